from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Callable
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..config import Settings

MARKER_NOT_FOUND = "marker-not-found"
TRANSPORT = "transport"
SESSION_UNAVAILABLE = "session-unavailable"


class RenderError(Exception):
    """
    The page never reached a ready state, or the transport failed.
    Fatal to the run; nothing is extracted or persisted after it.
    """

    def __init__(self, reason: str, url: str, detail: str = "") -> None:
        self.reason = reason
        self.url = url
        self.detail = detail
        msg = f"{reason}: {url}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


@dataclass
class Document:
    """
    A rendered page snapshot ready for structural querying.

    `url` is the final URL after redirects; relative links resolve against
    `base_url`, which honours a <base href> element when the page has one.
    `evaluator` is set only when a live page stays behind the snapshot.
    """

    url: str
    html: str
    evaluator: Callable[[str, Any], Any] | None = field(default=None, repr=False, compare=False)
    _soup: BeautifulSoup | None = field(default=None, init=False, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html5lib")
        return self._soup

    @property
    def base_url(self) -> str:
        base = self.soup.find("base", href=True)
        if isinstance(base, Tag):
            return urljoin(self.url, str(base["href"]).strip())
        return self.url

    def select(self, selector: str) -> list[Tag]:
        """Query all matching structural nodes, in document order."""
        return list(self.soup.select(selector))

    def has(self, selector: str) -> bool:
        return self.soup.select_one(selector) is not None

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Evaluate a script against the loaded page and return its result."""
        if self.evaluator is None:
            raise RenderError(SESSION_UNAVAILABLE, self.url, "no live page behind this document")
        return self.evaluator(expression, arg)


class BaseRenderer(ABC):
    """
    Abstract renderer interface.

    One instance is one renderer session, used by exactly one run. The engine
    enters it as a context manager so the session is released on every exit
    path, including a failed render.

    Contract:
      - render(url) returns a Document once `settings.selectors.marker` is present,
        or raises RenderError. No retries here.
      - Do NOT touch storage, print, or mutate global state.
    """

    # Concrete subclasses MUST set this to a stable string, e.g. "browser", "static", "stub"
    kind: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def open(self) -> None:
        """Acquire the underlying session (browser, HTTP pool). Default: nothing."""

    def close(self) -> None:
        """Release the underlying session. Must be safe to call more than once."""

    def __enter__(self) -> BaseRenderer:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @abstractmethod
    def render(self, url: str) -> Document:
        raise NotImplementedError

    # ---- helpers for renderers that snapshot markup without a live page ----

    def _require_marker(self, document: Document) -> Document:
        marker = self.settings.selectors.marker
        if not document.has(marker):
            raise RenderError(MARKER_NOT_FOUND, document.url, f"selector {marker!r} absent")
        return document
