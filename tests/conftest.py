# tests/conftest.py
import json
import os

import pytest
from freezegun import freeze_time

from modules.notice_watch.lib import config as nw_config

BOARD_URL = "https://cse.example.ac.kr/bbs/board.php?bo_table=sub5_1&lang=kor"


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or a real browser).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or launch a real browser (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, tmp_path):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("LOG_DISABLE", raising=False)

    # Deployment env must not leak into unit tests
    for name in ("NOTICE_WATCH_URL", "NOTICE_WATCH_SQLITE_PATH", "CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Listing markup
# ---------------------------------------------------------------------
def listing_html(rows, *, base_href: str | None = "https://cse.example.ac.kr/bbs/", marker: bool = True) -> str:
    """
    Build a board-like page. Each row is (title, href, date) where date may be
    None (no date cell) or a ("td_datetime", "...") tuple for the alternate cell.
    """
    body = []
    for title, href, date in rows:
        cells = [f'<td class="td_subject"><div class="bo_tit"><a href="{href}">{title}</a></div></td>']
        if isinstance(date, tuple):
            cls, text = date
            cells.append(f'<td class="{cls}">{text}</td>')
        elif date is not None:
            cells.append(f'<td class="td_date">{date}</td>')
        body.append(f"<tr>{''.join(cells)}</tr>")

    head = f'<base href="{base_href}">' if base_href else ""
    header_row = "<tr><th>제목</th><th>날짜</th></tr>"
    table = f"<table><thead>{header_row}</thead><tbody>{''.join(body)}</tbody></table>"
    if not marker:
        # Same table with the subject wrapper renamed: the marker never appears
        table = table.replace('class="bo_tit"', 'class="subject"')
    return f"<html><head>{head}</head><body>{table}</body></html>"


@pytest.fixture
def make_listing():
    return listing_html


@pytest.fixture
def three_row_html():
    """Two distinct notices plus a repeat of the first with another date string."""
    return listing_html([
        ("Notice A", "board.php?bo_table=sub5_1&amp;wr_id=1", "2025-01-02"),
        ("Notice B", "board.php?bo_table=sub5_1&amp;wr_id=2", "2025-01-01"),
        ("Notice A (pinned)", "board.php?bo_table=sub5_1&amp;wr_id=1", "01-02"),
    ])


# ---------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------
@pytest.fixture
def sqlite_path(tmp_path):
    return str(tmp_path / "state" / "notices.db")


@pytest.fixture
def make_settings(sqlite_path):
    """
    Return a factory for **brand-new** stub-rendered Settings per test.
    - DB file: a fresh per-test SQLite file
    - renderer: stub serving `html`
    """

    def _make(html: str = "", **overrides):
        kwargs = {
            "url": BOARD_URL,
            "source": "test:board",
            "sqlite_path": sqlite_path,
            "renderer": "stub",
            "renderer_params": {"html": html},
            "max_workers": 2,
        }
        kwargs.update(overrides)
        return nw_config.Settings.from_env_and_kwargs(kwargs)

    return _make


@pytest.fixture
def write_min_config(tmp_path, monkeypatch, three_row_html):
    cfg = {
        "timezone": "UTC",
        "jobs": [
            {
                "id": "notices-never",
                "module": "modules.notice_watch",
                "trigger": {"date": "2099-01-01T00:00:00Z"},
                "kwargs": {
                    "url": BOARD_URL,
                    "renderer": "stub",
                    "renderer_params": {"html": three_row_html},
                    "sqlite_path": str(tmp_path / "cfg-notices.db"),
                },
                "summary": "pytest config",
            }
        ],
    }
    p = tmp_path / "config.json"
    p.write_text(json.dumps(cfg), encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(p))
    return p


@pytest.fixture
def board_url():
    return BOARD_URL


@pytest.fixture
def read_log():
    """Return the JSONL records of the current activity or error log ("activity" | "error")."""
    from service import logging_utils

    def _read(kind: str = "activity") -> list[dict]:
        path = logging_utils.get_activity_log_path() if kind == "activity" else logging_utils.get_error_log_path()
        if not os.path.exists(path):
            return []
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read
