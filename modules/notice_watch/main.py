from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'notice_watch' module.

    Accepts kwargs (from scheduler/runner/CLI), including:
      url: str = env NOTICE_WATCH_URL or the CSE notice board
      source: str = ""                    # label stored with each row
      sqlite_path: str = "/app/local/state/notices.db"
      renderer: str = "browser"           # browser | static | stub
      render_timeout_ms: int = 10000
      insecure_transport: bool = True
      max_workers: int = 4
      skip_network: bool = False

    Returns:
      The run summary as a dict; the runner records it as the run's meta.

    Raises:
      RenderError when the listing could not be rendered. Nothing was written.
    """
    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    # Log a small start record (structured; no prints)
    log_activity({
        "component": "notice_watch.main",
        "op": "start",
        "url": settings.url,
        "source": settings.source,
        "renderer": settings.renderer,
        "flags": {
            "skip_network": settings.skip_network,
            "insecure_transport": settings.insecure_transport,
        },
    })

    result = _run_engine(settings)
    if result.error is not None:
        raise result.error

    summary = result.to_dict()
    summary["message"] = _summary_message(result.persisted_new, result.discovered, settings.url)
    return summary


def _summary_message(new: int, discovered: int, url: str) -> str:
    """
    Human-readable line like:
        "2 new notices (5 found) at https://..."
    """
    if new == 0:
        return f"No new notices ({discovered} found) at {url}"
    return f"{new} new notice{'s' if new != 1 else ''} ({discovered} found) at {url}"
