from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .models import NoticeRecord

log = logging.getLogger(__name__)


@dataclass
class DedupeStats:
    kept: int = 0
    dropped: int = 0


def dedupe(records: Iterable[NoticeRecord], *, stats: DedupeStats | None = None) -> Iterator[NoticeRecord]:
    """
    Drop repeated links within one extraction pass, preserving first-seen order.

    A listing can render the same notice twice (pinned + regular row). The first
    occurrence wins; later ones are dropped without looking at their other fields.
    """
    st = stats if stats is not None else DedupeStats()
    seen: set[str] = set()
    for rec in records:
        if rec.link in seen:
            st.dropped += 1
            log.debug("dedupe: dropped repeat of %s", rec.link)
            continue
        seen.add(rec.link)
        st.kept += 1
        yield rec
