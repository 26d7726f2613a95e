from __future__ import annotations

import requests

from ..http_client import HttpClient
from .base import TRANSPORT, BaseRenderer, Document, RenderError
from .registry import register


@register
class StaticRenderer(BaseRenderer):
    """
    Plain-HTTP renderer for listings whose rows are present in the served markup.

    Same contract as the browser renderer: the marker must be in the page or
    the call fails with `marker-not-found`. Transport errors (DNS, TLS, 4xx/5xx
    after the adapter's retries) fail with `transport`.
    """

    kind = "static"

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self._client: HttpClient | None = None

    def open(self) -> None:
        self._client = HttpClient(
            timeout=self.settings.render_timeout_ms / 1000.0,
            verify=not self.settings.insecure_transport,
        )

    def render(self, url: str) -> Document:
        if self._client is None:
            self.open()
        try:
            final_url, html = self._client.fetch(url)
        except requests.RequestException as e:
            raise RenderError(TRANSPORT, url, repr(e)) from e
        return self._require_marker(Document(url=final_url, html=html))

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
