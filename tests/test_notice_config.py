# tests/test_notice_config.py
import pytest

from modules.notice_watch.lib.config import (
    DEFAULT_DATES,
    DEFAULT_SQLITE_PATH,
    DEFAULT_URL,
    ConfigError,
    Selectors,
    Settings,
)


def test_defaults_follow_the_board():
    s = Settings.from_env_and_kwargs({})
    assert s.url == DEFAULT_URL
    assert s.sqlite_path == DEFAULT_SQLITE_PATH
    assert s.renderer == "browser"
    assert s.render_timeout_ms == 10_000
    assert s.insecure_transport is True
    assert s.headless is True
    assert s.max_workers == 4
    assert s.selectors == Selectors(row="tr", title=".bo_tit a", dates=DEFAULT_DATES, marker=".bo_tit")


def test_env_fills_deployment_values(monkeypatch):
    monkeypatch.setenv("NOTICE_WATCH_URL", "https://board.example.org/list")
    monkeypatch.setenv("NOTICE_WATCH_SQLITE_PATH", "/tmp/nw-env.db")
    s = Settings.from_env_and_kwargs(None)
    assert s.url == "https://board.example.org/list"
    assert s.sqlite_path == "/tmp/nw-env.db"


def test_kwargs_win_over_env(monkeypatch):
    monkeypatch.setenv("NOTICE_WATCH_URL", "https://board.example.org/list")
    s = Settings.from_env_and_kwargs({"url": "https://other.example.org/notices"})
    assert s.url == "https://other.example.org/notices"


def test_selector_kwargs_and_comma_separated_dates():
    s = Settings.from_env_and_kwargs({
        "row_selector": "li.item",
        "title_selector": "a.subject",
        "marker_selector": "ul.board",
        "date_selectors": "span.date, span.when",
    })
    assert s.selectors == Selectors(row="li.item", title="a.subject", dates=("span.date", "span.when"), marker="ul.board")


def test_string_flags_are_coerced():
    s = Settings.from_env_and_kwargs({
        "insecure_transport": "false",
        "headless": "0",
        "skip_network": "yes",
        "max_workers": "8",
        "renderer": " Static ",
    })
    assert s.insecure_transport is False
    assert s.headless is False
    assert s.skip_network is True
    assert s.max_workers == 8
    assert s.renderer == "static"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"url": "ftp://example.org/list"},
        {"url": "/relative/only"},
        {"max_workers": 0},
        {"max_workers": "many"},
        {"render_timeout_ms": -1},
        {"store_timeout_sec": 0},
        {"renderer_params": ["not", "a", "dict"]},
    ],
)
def test_invalid_settings_raise_config_error(kwargs):
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs(kwargs)


def test_blank_date_alternatives_fall_back_to_defaults():
    s = Settings.from_env_and_kwargs({"date_selectors": " , "})
    assert s.selectors.dates == DEFAULT_DATES
