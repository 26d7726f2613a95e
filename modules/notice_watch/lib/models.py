from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class NoticeRecord:
    """
    A single announcement as extracted from one listing row (pre-dedupe).
    Identity is the link alone; the store enforces it across runs.
    """

    title: str  # trimmed, never empty
    link: str  # absolute http(s) URL
    post_date: str  # as rendered, trimmed only
    source: str = ""  # listing label like "knu:cse"; not part of identity


class PersistOutcome(str, Enum):
    """Result of one persistence attempt that did not fail."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class RunState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    REPORTING = "reporting"
    FAILED = "failed"


@dataclass
class RunResult:
    """
    Aggregate outcome of one run against a single listing URL.

    On a completed run:
        discovered == run_duplicates + persisted_new + duplicates + failed + not_attempted
    After a render failure every count is zero and `error` holds the cause.
    """

    url: str
    discovered: int = 0
    run_duplicates: int = 0
    persisted_new: int = 0
    duplicates: int = 0
    failed: int = 0
    not_attempted: int = 0
    state: RunState = RunState.IDLE
    cancelled: bool = False
    error: Exception | None = None
    durations_us: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.state is not RunState.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "discovered": self.discovered,
            "run_duplicates": self.run_duplicates,
            "persisted_new": self.persisted_new,
            "duplicates": self.duplicates,
            "failed": self.failed,
            "not_attempted": self.not_attempted,
            "state": self.state.value,
            "cancelled": self.cancelled,
            "error": repr(self.error) if self.error else None,
            "durations_us": dict(self.durations_us),
        }
