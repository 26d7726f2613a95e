from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from .utils import as_str_list, getenv_str, truthy

# Defaults match the Gnuboard-style board this module was built for; every
# board skin we have seen renders the subject cell as `.bo_tit`.
DEFAULT_URL = "https://cse.knu.ac.kr/bbs/board.php?bo_table=sub5_1&lang=kor"
DEFAULT_SQLITE_PATH = "/app/local/state/notices.db"
DEFAULT_MARKER = ".bo_tit"
DEFAULT_ROW = "tr"
DEFAULT_TITLE = ".bo_tit a"
DEFAULT_DATES = (".td_date", ".td_datetime")


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class Selectors:
    """
    Structural selectors used to pull records out of a rendered listing.
    - row:    one listing row per match
    - title:  title-bearing anchor inside a row (its href is the link)
    - dates:  ordered alternatives for the date cell; first match wins
    - marker: element whose presence means the listing finished rendering
    """

    row: str = DEFAULT_ROW
    title: str = DEFAULT_TITLE
    dates: tuple[str, ...] = DEFAULT_DATES
    marker: str = DEFAULT_MARKER


@dataclass
class Settings:
    """
    Canonical configuration for a 'notice_watch' run.

    Resolution order per field: kwargs (from scheduler/runner/CLI), then the
    environment for the few values that are deployment specific, then defaults.
    """

    url: str = DEFAULT_URL
    source: str = ""

    # Store
    sqlite_path: str = DEFAULT_SQLITE_PATH
    store_timeout_sec: float = 30.0
    max_workers: int = 4

    # Renderer
    renderer: str = "browser"
    renderer_params: dict[str, Any] = field(default_factory=dict)
    render_timeout_ms: int = 10_000
    insecure_transport: bool = True
    headless: bool = True
    skip_network: bool = False

    selectors: Selectors = field(default_factory=Selectors)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            url: str                       # or env NOTICE_WATCH_URL
            source: str = ""               # label stored with each row
            sqlite_path: str               # or env NOTICE_WATCH_SQLITE_PATH
            store_timeout_sec: float = 30
            max_workers: int = 4
            renderer: "browser" | "static" | "stub" = "browser"
            renderer_params: dict = {}
            render_timeout_ms: int = 10000
            insecure_transport: bool = true
            headless: bool = true
            skip_network: bool = false
            marker_selector / row_selector / title_selector: str
            date_selectors: list[str] | "a,b"
        """
        kw = dict(kwargs or {})

        url = str(kw.get("url") or getenv_str("NOTICE_WATCH_URL", DEFAULT_URL)).strip()
        sqlite_path = str(
            kw.get("sqlite_path") or getenv_str("NOTICE_WATCH_SQLITE_PATH", DEFAULT_SQLITE_PATH)
        ).strip()

        renderer_params = kw.get("renderer_params") or {}
        if not isinstance(renderer_params, dict):
            raise ConfigError("'renderer_params' must be an object.")

        dates = as_str_list(kw.get("date_selectors")) or list(DEFAULT_DATES)
        selectors = Selectors(
            row=str(kw.get("row_selector") or DEFAULT_ROW).strip(),
            title=str(kw.get("title_selector") or DEFAULT_TITLE).strip(),
            dates=tuple(dates),
            marker=str(kw.get("marker_selector") or DEFAULT_MARKER).strip(),
        )

        try:
            settings = cls(
                url=url,
                source=str(kw.get("source") or "").strip(),
                sqlite_path=sqlite_path,
                store_timeout_sec=float(_given(kw, "store_timeout_sec", 30.0)),
                max_workers=int(_given(kw, "max_workers", 4)),
                renderer=str(kw.get("renderer") or "browser").strip().lower(),
                renderer_params=dict(renderer_params),
                render_timeout_ms=int(_given(kw, "render_timeout_ms", 10_000)),
                insecure_transport=truthy(kw.get("insecure_transport", True)),
                headless=truthy(kw.get("headless", True)),
                skip_network=truthy(kw.get("skip_network")),
                selectors=selectors,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid notice_watch setting: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _given(kw: Mapping[str, Any], key: str, default: Any) -> Any:
    # None and "" mean "not provided"; 0 is a real (and invalid) value.
    v = kw.get(key)
    return default if v is None or v == "" else v


def _validate_settings(s: Settings) -> None:
    parts = urlsplit(s.url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"'url' must be an absolute http(s) URL (got {s.url!r}).")
    if not s.sqlite_path:
        raise ConfigError("'sqlite_path' cannot be empty.")
    if s.max_workers <= 0:
        raise ConfigError("'max_workers' must be >= 1.")
    if s.render_timeout_ms <= 0:
        raise ConfigError("'render_timeout_ms' must be >= 1.")
    if s.store_timeout_sec <= 0:
        raise ConfigError("'store_timeout_sec' must be > 0.")
    if not s.renderer:
        raise ConfigError("'renderer' cannot be empty.")

    sel = s.selectors
    if not sel.row or not sel.title or not sel.marker:
        raise ConfigError("Row, title and marker selectors cannot be empty.")
    if not sel.dates:
        raise ConfigError("At least one date selector is required.")
