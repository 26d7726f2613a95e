# notice_watch/lib/renderers/__init__.py
from __future__ import annotations

from .base import MARKER_NOT_FOUND, SESSION_UNAVAILABLE, TRANSPORT, BaseRenderer, Document, RenderError
from .browser import BrowserRenderer
from .static import StaticRenderer
from .stub import StubRenderer

__all__ = [
    "MARKER_NOT_FOUND",
    "SESSION_UNAVAILABLE",
    "TRANSPORT",
    "BaseRenderer",
    "BrowserRenderer",
    "Document",
    "RenderError",
    "StaticRenderer",
    "StubRenderer",
]
