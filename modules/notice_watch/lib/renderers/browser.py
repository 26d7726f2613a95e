from __future__ import annotations

import logging
from typing import Any

from .base import MARKER_NOT_FOUND, SESSION_UNAVAILABLE, TRANSPORT, BaseRenderer, Document, RenderError
from .registry import register

log = logging.getLogger(__name__)

_LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


@register
class BrowserRenderer(BaseRenderer):
    """
    Headless Chromium renderer for listings that only exist after scripts run.

    Settings used:
      - render_timeout_ms: bound for both navigation and the marker wait
      - insecure_transport: accept invalid/self-signed certificates
      - headless: launch without a window (turn off to watch a run)
      - selectors.marker: element that signals the listing has rendered

    The page behind the last successful render stays open until the next
    render or close(), so `Document.evaluate` can run scripts against it.

    Playwright is imported when the session opens so importing the package
    (and running the unit tests) does not need a browser install.
    """

    kind = "browser"

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self._pw: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    def open(self) -> None:
        from playwright.sync_api import Error as PlaywrightError  # noqa: PLC0415
        from playwright.sync_api import sync_playwright  # noqa: PLC0415

        try:
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(headless=self.settings.headless, args=_LAUNCH_ARGS)
            self._context = self._browser.new_context(ignore_https_errors=self.settings.insecure_transport)
        except PlaywrightError as e:
            self.close()
            raise RenderError(SESSION_UNAVAILABLE, self.settings.url, str(e).splitlines()[0]) from e

    def render(self, url: str) -> Document:
        from playwright.sync_api import Error as PlaywrightError  # noqa: PLC0415
        from playwright.sync_api import TimeoutError as PlaywrightTimeout  # noqa: PLC0415

        if self._context is None:
            self.open()

        timeout = self.settings.render_timeout_ms
        marker = self.settings.selectors.marker
        self._close_page()
        try:
            page = self._context.new_page()
        except PlaywrightError as e:
            raise RenderError(TRANSPORT, url, str(e).splitlines()[0]) from e
        try:
            try:
                page.goto(url, timeout=timeout, wait_until="domcontentloaded")
            except PlaywrightError as e:
                raise RenderError(TRANSPORT, url, str(e).splitlines()[0]) from e

            try:
                page.wait_for_selector(marker, timeout=timeout)
            except PlaywrightTimeout as e:
                raise RenderError(MARKER_NOT_FOUND, url, f"selector {marker!r} not seen in {timeout}ms") from e
            except PlaywrightError as e:
                raise RenderError(TRANSPORT, url, str(e).splitlines()[0]) from e

            try:
                html = page.content()
            except PlaywrightError as e:
                raise RenderError(TRANSPORT, url, str(e).splitlines()[0]) from e
        except BaseException:
            _close_quietly(page)
            raise

        self._page = page
        return Document(url=page.url, html=html, evaluator=page.evaluate)

    def _close_page(self) -> None:
        if self._page is not None:
            _close_quietly(self._page)
            self._page = None

    def close(self) -> None:
        self._close_page()
        for name in ("_context", "_browser"):
            handle = getattr(self, name)
            if handle is None:
                continue
            try:
                handle.close()
            except Exception:
                log.debug("BrowserRenderer: %s.close() swallow", name, exc_info=True)
            setattr(self, name, None)
        if self._pw is not None:
            try:
                self._pw.stop()
            except Exception:
                log.debug("BrowserRenderer: playwright.stop() swallow", exc_info=True)
            self._pw = None


def _close_quietly(page: Any) -> None:
    try:
        page.close()
    except Exception:
        log.debug("BrowserRenderer: page.close() swallow", exc_info=True)
