"""
Engine for one notice ingestion run: render, extract, dedupe, persist, report.

Features:
  - Explicit run state machine (idle -> rendering -> extracting -> persisting -> reporting -> idle,
    rendering -> failed) with every transition logged via `logging_bridge`
  - Run-scoped dedupe on link, store-level dedupe via the unique link constraint
  - Per-record persistence on a bounded thread pool; one failure never blocks the rest
  - Cooperative cancellation: stop submitting, let in-flight writes finish
  - Dependency injection for testability (`get_renderer`)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import ExitStack

from . import logging_bridge
from .config import Settings
from .db import NoticeStore
from .dedupe import DedupeStats, dedupe
from .extractor import ExtractionStats, extract
from .models import NoticeRecord, PersistOutcome, RunResult, RunState
from .renderers.base import BaseRenderer, RenderError

log = logging.getLogger(__name__)

_COMPONENT = "notice_watch.engine"


# =============================================================================
# DEFAULT RENDERER LOOKUP (PRODUCTION)
# =============================================================================
def _default_get_renderer(kind: str) -> type[BaseRenderer]:
    """
    Resolve renderer class from registry.

    Only called if no `get_renderer` override is provided.
    """
    from .renderers.registry import get as get_renderer_class

    return get_renderer_class(kind)


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    get_renderer: Callable[[str], type[BaseRenderer]] | None = None,
    *,
    cancel: threading.Event | None = None,
) -> RunResult:
    """
    Run one ingestion pass against settings.url.

    Args:
        settings: Target URL, selectors, store path, timeouts and pool size.
        get_renderer: Optional override to inject renderer classes (for testing).
        cancel: Optional event; once set, no further records are submitted.

    Returns:
        RunResult. A render failure yields state=FAILED, all-zero counts and
        `error` set; it is not raised here.
    """
    start_ns = time.perf_counter_ns()
    result = RunResult(url=settings.url)
    get_renderer_func = get_renderer or _default_get_renderer

    # Skip network I/O if requested
    if settings.skip_network:
        logging_bridge.activity({
            "component": _COMPONENT,
            "op": "skipped_run",
            "url": settings.url,
            "reason": "skip_network",
        })
        return result

    with ExitStack() as resources:
        # ---------------------------------------------------------------------
        # RENDER (only stage allowed to fail the run)
        # ---------------------------------------------------------------------
        _transition(result, RunState.RENDERING)
        t0 = time.perf_counter_ns()
        try:
            renderer_cls = get_renderer_func(settings.renderer)
            renderer = resources.enter_context(renderer_cls(settings))
            document = renderer.render(settings.url)
        except RenderError as e:
            result.durations_us["render"] = _since_us(t0)
            result.durations_us["total"] = _since_us(start_ns)
            result.error = e
            _transition(result, RunState.FAILED)
            logging_bridge.error({
                "component": _COMPONENT,
                "op": "render",
                "url": settings.url,
                "renderer": settings.renderer,
                "reason": e.reason,
                "error": repr(e),
            })
            return result
        result.durations_us["render"] = _since_us(t0)

        # ---------------------------------------------------------------------
        # EXTRACT + RUN-SCOPED DEDUPE
        # ---------------------------------------------------------------------
        _transition(result, RunState.EXTRACTING)
        t0 = time.perf_counter_ns()
        ext_stats = ExtractionStats()
        dd_stats = DedupeStats()
        unique = list(
            dedupe(
                extract(document, settings.selectors, source=settings.source, stats=ext_stats),
                stats=dd_stats,
            )
        )
        result.discovered = ext_stats.emitted
        result.run_duplicates = dd_stats.dropped
        result.durations_us["extract"] = _since_us(t0)

        if ext_stats.emitted == 0:
            logging_bridge.warning({
                "component": _COMPONENT,
                "op": "extraction_empty",
                "url": settings.url,
                "rows_seen": ext_stats.rows_seen,
                "reason": "no-rows" if ext_stats.rows_seen == 0 else "no-qualifying-rows",
                "row_selector": settings.selectors.row,
            })

        # ---------------------------------------------------------------------
        # PERSIST (each record independently)
        # ---------------------------------------------------------------------
        _transition(result, RunState.PERSISTING)
        t0 = time.perf_counter_ns()
        store = resources.enter_context(NoticeStore(settings.sqlite_path, timeout_sec=settings.store_timeout_sec))
        _persist_all(store, unique, result, max_workers=settings.max_workers, cancel=cancel)
        result.durations_us["persist"] = _since_us(t0)

        # ---------------------------------------------------------------------
        # REPORT
        # ---------------------------------------------------------------------
        _transition(result, RunState.REPORTING)
        result.durations_us["total"] = _since_us(start_ns)
        logging_bridge.activity({
            "component": _COMPONENT,
            "op": "summary",
            **result.to_dict(),
        })

    _transition(result, RunState.IDLE)
    return result


# =============================================================================
# PERSISTENCE FAN-OUT
# =============================================================================
def _persist_all(
    store: NoticeStore,
    records: list[NoticeRecord],
    result: RunResult,
    *,
    max_workers: int,
    cancel: threading.Event | None,
) -> None:
    """
    Attempt every record once, at most `max_workers` in flight.

    Order of completion is not meaningful; only the tallies on `result` are.
    """
    if not records:
        return

    workers = max(1, min(len(records), max_workers))
    in_flight: dict[Future[PersistOutcome], NoticeRecord] = {}
    submitted = 0

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notice-persist") as pool:
        for rec in records:
            if len(in_flight) >= workers:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for fut in done:
                    _tally(fut, in_flight.pop(fut), result)
            # Checked once a slot is free, right before the record would start.
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            in_flight[pool.submit(store.persist, rec)] = rec
            submitted += 1

        # In-flight writes always run to completion, cancelled or not.
        done, _ = wait(in_flight)
        for fut in done:
            _tally(fut, in_flight.pop(fut), result)

    result.not_attempted = len(records) - submitted
    if result.cancelled:
        logging_bridge.activity({
            "component": _COMPONENT,
            "op": "cancelled",
            "url": result.url,
            "attempted": submitted,
            "not_attempted": result.not_attempted,
        })


def _tally(fut: Future[PersistOutcome], rec: NoticeRecord, result: RunResult) -> None:
    try:
        outcome = fut.result()
    except Exception as e:
        result.failed += 1
        logging_bridge.error({
            "component": _COMPONENT,
            "op": "persist",
            "link": rec.link,
            "title": rec.title[:80],
            "error": repr(e),
        })
        return

    if outcome is PersistOutcome.INSERTED:
        result.persisted_new += 1
    else:
        result.duplicates += 1
        log.debug("persist: already stored %s", rec.link)


# =============================================================================
# HELPERS
# =============================================================================
def _transition(result: RunResult, to: RunState) -> None:
    frm = result.state
    result.state = to
    logging_bridge.activity({
        "component": _COMPONENT,
        "op": "state",
        "url": result.url,
        "from": frm.value,
        "to": to.value,
    })


def _since_us(t0_ns: int) -> int:
    return int((time.perf_counter_ns() - t0_ns) // 1000)
