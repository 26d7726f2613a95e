"""
Listing-row extraction.

Walks every row-like node of a rendered listing in document order and keeps
the rows that carry both a non-empty title anchor and a date cell. Rows that
miss either are skipped silently; callers that want to tell "a few odd rows"
apart from "the page layout changed" pass an ExtractionStats and inspect it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from bs4 import Tag

from .config import Selectors
from .models import NoticeRecord
from .renderers.base import Document


@dataclass
class ExtractionStats:
    rows_seen: int = 0
    emitted: int = 0
    skipped: int = 0


def extract(
    document: Document,
    selectors: Selectors,
    *,
    source: str = "",
    stats: ExtractionStats | None = None,
) -> Iterator[NoticeRecord]:
    """
    Yield one NoticeRecord per qualifying row, top to bottom.

    Single pass: the generator is consumed once; re-querying needs a fresh Document.
    """
    st = stats if stats is not None else ExtractionStats()
    base = document.base_url

    for row in document.select(selectors.row):
        st.rows_seen += 1
        record = _record_from_row(row, selectors, base, source)
        if record is None:
            st.skipped += 1
            continue
        st.emitted += 1
        yield record


def _record_from_row(row: Tag, selectors: Selectors, base: str, source: str) -> NoticeRecord | None:
    title_el = row.select_one(selectors.title)
    if title_el is None:
        return None
    title = title_el.get_text().strip()
    if not title:
        return None

    date_el = _first_match(row, selectors.dates)
    if date_el is None:
        return None

    link = _absolute_link(title_el, base)
    if link is None:
        return None

    return NoticeRecord(
        title=title,
        link=link,
        post_date=date_el.get_text().strip(),
        source=source,
    )


def _first_match(row: Tag, alternatives: tuple[str, ...]) -> Tag | None:
    # Boards vary between "date" and "date-time" cells; first alternative wins.
    for sel in alternatives:
        el = row.select_one(sel)
        if el is not None:
            return el
    return None


def _absolute_link(anchor: Tag, base: str) -> str | None:
    href = str(anchor.get("href") or "").strip()
    if not href or href.startswith("#"):
        return None
    url = urljoin(base, href)
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return url
