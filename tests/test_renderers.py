# tests/test_renderers.py
import types

import pytest
import requests

from modules.notice_watch.lib import engine
from modules.notice_watch.lib.http_client import HttpClient
from modules.notice_watch.lib.models import RunState
from modules.notice_watch.lib.renderers import (
    MARKER_NOT_FOUND,
    SESSION_UNAVAILABLE,
    TRANSPORT,
    BaseRenderer,
    BrowserRenderer,
    Document,
    RenderError,
    StaticRenderer,
    StubRenderer,
)
from modules.notice_watch.lib.renderers import registry


# ----------------------------------------------------------------------
# Registry + Document
# ----------------------------------------------------------------------
def test_builtin_renderers_are_registered():
    kinds = registry.all_kinds()
    assert kinds["browser"] is BrowserRenderer
    assert kinds["static"] is StaticRenderer
    assert kinds["stub"] is StubRenderer
    assert registry.get(" STUB ") is StubRenderer


def test_registry_rejects_unknown_and_conflicting_kinds():
    with pytest.raises(KeyError):
        registry.get("carrier-pigeon")

    class Other(BaseRenderer):
        kind = "stub"

        def render(self, url):
            raise NotImplementedError

    with pytest.raises(ValueError):
        registry.register(Other)


def test_document_base_url_and_select():
    doc = Document(
        url="https://example.org/bbs/list.php",
        html='<html><head><base href="/bbs/view/"></head><body><p class="x">1</p><p class="x">2</p></body></html>',
    )
    assert doc.base_url == "https://example.org/bbs/view/"
    assert [p.get_text() for p in doc.select("p.x")] == ["1", "2"]
    assert doc.has("p.x")
    assert not doc.has("table")


# ----------------------------------------------------------------------
# Stub
# ----------------------------------------------------------------------
def test_stub_requires_marker(make_settings, make_listing):
    html = make_listing([("t", "board.php?wr_id=1", "d")], marker=False)
    with StubRenderer(make_settings(html)) as r, pytest.raises(RenderError) as ei:
        r.render("https://example.org/list")
    assert ei.value.reason == MARKER_NOT_FOUND


def test_stub_serves_per_url_pages(make_settings, three_row_html):
    settings = make_settings(renderer_params={"pages": {"https://example.org/a": three_row_html}})
    with StubRenderer(settings) as r:
        doc = r.render("https://example.org/a")
        assert doc.has(".bo_tit")
        with pytest.raises(RenderError):
            r.render("https://example.org/b")
    assert r.calls == ["https://example.org/a", "https://example.org/b"]
    assert r.closed


# ----------------------------------------------------------------------
# Static (HTTP) renderer
# ----------------------------------------------------------------------
def test_static_renderer_returns_document(make_settings, three_row_html, monkeypatch):
    seen = {}

    def fake_fetch(self, url, **kw):
        seen["verify"] = self.session.verify
        seen["timeout"] = self.timeout
        return url + "&page=1", three_row_html

    monkeypatch.setattr(HttpClient, "fetch", fake_fetch)
    settings = make_settings(renderer="static", render_timeout_ms=2500)

    with StaticRenderer(settings) as r:
        doc = r.render(settings.url)

    assert doc.url == settings.url + "&page=1"
    assert len(doc.select(".bo_tit")) == 3
    # insecure_transport defaults on: certificate checks are off
    assert seen == {"verify": False, "timeout": 2.5}


def test_static_renderer_maps_transport_errors(make_settings, monkeypatch):
    def failing_fetch(self, url, **kw):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(HttpClient, "fetch", failing_fetch)
    settings = make_settings(renderer="static")
    with StaticRenderer(settings) as r, pytest.raises(RenderError) as ei:
        r.render(settings.url)
    assert ei.value.reason == TRANSPORT
    assert ei.value.url == settings.url


def test_static_renderer_requires_marker(make_settings, monkeypatch):
    monkeypatch.setattr(HttpClient, "fetch", lambda self, url, **kw: (url, "<html><body>login</body></html>"))
    settings = make_settings(renderer="static")
    with StaticRenderer(settings) as r, pytest.raises(RenderError) as ei:
        r.render(settings.url)
    assert ei.value.reason == MARKER_NOT_FOUND


# ----------------------------------------------------------------------
# Browser renderer against a fake Playwright session
# ----------------------------------------------------------------------
class _FakePage:
    def __init__(self, owner):
        self.owner = owner
        self.url = ""
        self.closed = False

    def goto(self, url, timeout=None, wait_until=None):
        self.owner.calls.append(("goto", url, timeout, wait_until))
        if self.owner.goto_error is not None:
            raise self.owner.goto_error
        self.url = url

    def wait_for_selector(self, selector, timeout=None):
        self.owner.calls.append(("wait_for_selector", selector, timeout))
        if self.owner.wait_error is not None:
            raise self.owner.wait_error

    def content(self):
        if self.owner.content_error is not None:
            raise self.owner.content_error
        return self.owner.html

    def evaluate(self, expression, arg=None):
        if self.closed:
            raise RuntimeError("page is closed")
        self.owner.calls.append(("evaluate", expression, arg))
        return len(self.owner.html)

    def close(self):
        self.closed = True


class _FakePlaywright:
    """Just enough of sync_playwright() for the renderer: start → chromium → context → page."""

    def __init__(self, html="", goto_error=None, wait_error=None, launch_error=None, content_error=None):
        self.html = html
        self.content_error = content_error
        self.goto_error = goto_error
        self.wait_error = wait_error
        self.launch_error = launch_error
        self.calls = []
        self.pages = []
        self.stopped = False
        self.browser_closed = False
        self.context_closed = False
        self.chromium = types.SimpleNamespace(launch=self._launch)

    # sync_playwright() → object with start()
    def __call__(self):
        return self

    def start(self):
        return self

    def stop(self):
        self.stopped = True

    def _launch(self, headless=True, args=None):
        self.calls.append(("launch", headless, tuple(args or ())))
        if self.launch_error is not None:
            raise self.launch_error
        return types.SimpleNamespace(new_context=self._new_context, close=self._close_browser)

    def _new_context(self, ignore_https_errors=False):
        self.calls.append(("new_context", ignore_https_errors))
        return types.SimpleNamespace(new_page=self._new_page, close=self._close_context)

    def _new_page(self):
        page = _FakePage(self)
        self.pages.append(page)
        return page

    def _close_browser(self):
        self.browser_closed = True

    def _close_context(self):
        self.context_closed = True


@pytest.fixture
def fake_playwright(monkeypatch):
    import playwright.sync_api

    def install(**kw):
        fake = _FakePlaywright(**kw)
        monkeypatch.setattr(playwright.sync_api, "sync_playwright", fake)
        return fake

    return install


def test_browser_renders_after_marker(make_settings, three_row_html, fake_playwright):
    fake = fake_playwright(html=three_row_html)
    settings = make_settings(renderer="browser", render_timeout_ms=5000)

    with BrowserRenderer(settings) as r:
        doc = r.render(settings.url)

    assert doc.url == settings.url
    assert len(doc.select("tr")) == 4
    assert ("launch", True, ("--no-sandbox", "--disable-setuid-sandbox")) in fake.calls
    assert ("new_context", True) in fake.calls
    assert ("goto", settings.url, 5000, "domcontentloaded") in fake.calls
    assert ("wait_for_selector", ".bo_tit", 5000) in fake.calls
    assert fake.pages[0].closed
    assert fake.context_closed and fake.browser_closed and fake.stopped


def test_browser_marker_timeout(make_settings, fake_playwright):
    from playwright.sync_api import TimeoutError as PlaywrightTimeout

    fake = fake_playwright(wait_error=PlaywrightTimeout("Timeout 10000ms exceeded."))
    settings = make_settings(renderer="browser")

    with BrowserRenderer(settings) as r, pytest.raises(RenderError) as ei:
        r.render(settings.url)

    assert ei.value.reason == MARKER_NOT_FOUND
    assert fake.pages[0].closed


def test_browser_navigation_failure(make_settings, fake_playwright):
    from playwright.sync_api import Error as PlaywrightError

    fake_playwright(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://cse.example.ac.kr/"))
    settings = make_settings(renderer="browser")

    with BrowserRenderer(settings) as r, pytest.raises(RenderError) as ei:
        r.render(settings.url)
    assert ei.value.reason == TRANSPORT
    assert "ERR_NAME_NOT_RESOLVED" in ei.value.detail


def test_browser_snapshot_failure_is_a_transport_error(make_settings, fake_playwright):
    from playwright.sync_api import Error as PlaywrightError

    fake = fake_playwright(content_error=PlaywrightError("Execution context was destroyed"))
    settings = make_settings(renderer="browser")

    with BrowserRenderer(settings) as r, pytest.raises(RenderError) as ei:
        r.render(settings.url)
    assert ei.value.reason == TRANSPORT
    assert fake.pages[0].closed


def test_browser_snapshot_failure_fails_the_run(make_settings, fake_playwright, read_log):
    from playwright.sync_api import Error as PlaywrightError

    fake = fake_playwright(content_error=PlaywrightError("Execution context was destroyed"))
    settings = make_settings(renderer="browser")

    result = engine.run_once(settings)

    assert result.state == RunState.FAILED
    assert result.error.reason == TRANSPORT
    assert (result.discovered, result.persisted_new, result.failed) == (0, 0, 0)
    assert fake.context_closed and fake.stopped
    (err,) = [r for r in read_log("error") if r.get("op") == "render"]
    assert err["reason"] == TRANSPORT


def test_browser_launch_failure_releases_session(make_settings, fake_playwright):
    from playwright.sync_api import Error as PlaywrightError

    fake = fake_playwright(launch_error=PlaywrightError("Executable doesn't exist"))
    settings = make_settings(renderer="browser", insecure_transport=False)

    with pytest.raises(RenderError) as ei, BrowserRenderer(settings):
        pass

    assert ei.value.reason == SESSION_UNAVAILABLE
    assert fake.stopped


def test_browser_document_evaluates_against_live_page(make_settings, three_row_html, fake_playwright):
    fake = fake_playwright(html=three_row_html)
    settings = make_settings(renderer="browser")

    with BrowserRenderer(settings) as r:
        first = r.render(settings.url)
        assert first.evaluate("document.documentElement.outerHTML.length") == len(three_row_html)
        assert not fake.pages[0].closed

        second = r.render(settings.url)
        assert fake.pages[0].closed
        assert second.evaluate("() => 1") == len(three_row_html)

    assert fake.pages[1].closed
    assert ("evaluate", "() => 1", None) in fake.calls


def test_snapshot_documents_cannot_evaluate(make_settings, three_row_html):
    settings = make_settings(html=three_row_html)
    with StubRenderer(settings) as r:
        doc = r.render(settings.url)

    with pytest.raises(RenderError) as ei:
        doc.evaluate("() => 1")
    assert ei.value.reason == SESSION_UNAVAILABLE
