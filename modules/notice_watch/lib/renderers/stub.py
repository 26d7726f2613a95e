from __future__ import annotations

from typing import Any

from .base import TRANSPORT, BaseRenderer, Document, RenderError
from .registry import register


@register
class StubRenderer(BaseRenderer):
    """
    A zero-network renderer used for tests and dry-runs.

    settings.renderer_params may contain:
      - html: str                 # markup returned for any URL
      - pages: {url: html}        # per-URL markup (wins over `html`)
      - fail: str                 # OPTIONAL, raise RenderError with this reason

    The marker check still applies, so a stub page without the marker fails
    exactly like a real listing that never finished rendering.
    """

    kind = "stub"

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.opened = False
        self.closed = False
        self.calls: list[str] = []

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def render(self, url: str) -> Document:
        self.calls.append(url)
        params: dict[str, Any] = dict(self.settings.renderer_params or {})

        reason = params.get("fail")
        if reason:
            raise RenderError(str(reason) if isinstance(reason, str) else TRANSPORT, url, "stub failure")

        pages = params.get("pages") or {}
        html = pages.get(url) if isinstance(pages, dict) else None
        if html is None:
            html = params.get("html") or ""
        return self._require_marker(Document(url=url, html=str(html)))
