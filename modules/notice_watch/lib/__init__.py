# modules/notice_watch/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Selectors, Settings
from .db import NoticeStore, PersistError
from .engine import run_once
from .models import NoticeRecord, PersistOutcome, RunResult, RunState

# Importing the package registers the built-in renderers (browser, static, stub).
from .renderers import RenderError

__all__ = [
    "ConfigError",
    "NoticeRecord",
    "NoticeStore",
    "PersistError",
    "PersistOutcome",
    "RenderError",
    "RunResult",
    "RunState",
    "Selectors",
    "Settings",
    "run_once",
]
