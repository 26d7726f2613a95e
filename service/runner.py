# service/runner.py
from __future__ import annotations

import importlib
import json
import logging
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from service import logging_utils

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


def _maybe_bool(v: Any) -> Any:
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("true", "t", "yes", "y", "1"):
            return True
        if low in ("false", "f", "no", "n", "0"):
            return False
    return v


def _maybe_number(v: Any) -> Any:
    if isinstance(v, str):
        s = v.strip()
        if s and (s.isdigit() or (s.startswith("-") and s[1:].isdigit())):
            return int(s)
        try:
            return float(s)
        except ValueError:
            pass
    return v


def _normalize_kwargs_types(kwargs: dict[str, object] | None) -> dict[str, object]:
    """
    Normalize job kwargs:

      • For keys ending with "_env":
          - Treat the string value as an ENV VAR NAME (e.g., "KNU_NOTICE_URL").
          - Store os.getenv(<name>, "") under the key WITHOUT the suffix
            ("url_env": "KNU_NOTICE_URL" -> "url": "<value>").
          - An explicit key of the same name wins over the resolved one.

      • For all other keys:
          - If a string looks like JSON ({...} or [...]), parse it.
          - Else coerce common bool/number string forms.
          - Leave non-strings unchanged.

    This runs right before module.run(**kwargs).
    """
    import os

    if not kwargs:
        return {}

    normalized: dict[str, object] = {}
    resolved_env: dict[str, object] = {}
    for k, v in kwargs.items():
        if isinstance(k, str) and k.endswith("_env") and isinstance(v, str):
            resolved_env[k[: -len("_env")]] = os.getenv(v.strip(), "")
            continue

        if isinstance(v, str):
            s = v.strip()
            # Prefer JSON if it looks like JSON
            if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
                try:
                    normalized[k] = json.loads(s)
                    continue
                except json.JSONDecodeError:
                    pass  # fall through to bool/number coercion
            normalized[k] = _maybe_number(_maybe_bool(s))
        else:
            normalized[k] = v

    for k, v in resolved_env.items():
        normalized.setdefault(k, v)
    return normalized


def _resolve_callable(module_path: str) -> Callable[..., Any]:
    """Import module and return its `run` callable (falls back to `<module>.main`)."""
    mod = importlib.import_module(module_path)
    if not hasattr(mod, "run"):
        try:
            mod = importlib.import_module(f"{module_path}.main")
        except ModuleNotFoundError:
            pass
    if not hasattr(mod, "run") or not callable(mod.run):
        raise AttributeError(f"Module {module_path!r} does not define a callable `run(**kwargs)`.")
    return mod.run  # type: ignore[no-any-return]


def _emit_activity(record: dict[str, Any]) -> None:
    """Write a structured activity record; a logging failure never fails the run."""
    try:
        logging_utils.write_activity_log(record)
    except (OSError, TypeError, ValueError) as e:
        log.warning("logging_utils.write_activity_log failed: %s", e)


@dataclass
class ModuleResult:
    ok: bool
    message: str
    meta: dict[str, Any] | None = None


def _coerce_result(value: Any) -> ModuleResult:
    """
    Normalize module return into a ModuleResult.

    Acceptable shapes:
      - None  -> no output
      - dict  -> meta (may include 'message')
      - str   -> message
    """
    if value is None:
        return ModuleResult(ok=True, message="OK", meta=None)
    if isinstance(value, dict):
        return ModuleResult(ok=True, message=str(value.get("message", "OK")), meta=value)
    if isinstance(value, str):
        return ModuleResult(ok=True, message=value, meta=None)
    raise TypeError("Module return must be one of: None, dict, or str")


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
def run_module_once(
    module: str,
    kwargs: dict[str, object] | None = None,
    trigger_type: str = "scheduled",
    job_context: dict[str, object] | None = None,  # e.g., {"job_id": "...", "module": "...", "now_iso": "..."}
    timeout_sec: int | None = None,
) -> tuple[dict[str, Any] | None, str]:
    """
    Execute a module's run(**kwargs) once.

    Returns:
        (meta_or_none, run_id)
    Raises:
        Propagates exceptions from module execution (caller/CLI will catch and log).
        A timeout raises TimeoutError; the worker is left to finish its current
        write rather than being interrupted.
    """
    run_id = uuid.uuid4().hex
    started_at = now_iso()

    context: dict[str, Any] = {
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "started_at": started_at,
    }
    if job_context:
        # Shallow merge
        context.update({k: v for k, v in job_context.items() if k not in context})

    kw = _normalize_kwargs_types(kwargs)
    run_callable = _resolve_callable(module)

    # Execute with timeout in a worker thread
    result: ModuleResult
    exc: BaseException | None = None

    def _invoke() -> Any:
        return run_callable(**kw)

    t0 = datetime.now()
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="runner")
    try:
        fut = pool.submit(_invoke)
        value = fut.result(timeout=timeout_sec) if timeout_sec else fut.result()
        result = _coerce_result(value)
    except FutureTimeout:
        exc = TimeoutError(f"Module run timed out after {timeout_sec}s")
        result = ModuleResult(ok=False, message=str(exc), meta={"timeout_sec": timeout_sec})
    except Exception as e:
        exc = e
        result = ModuleResult(ok=False, message=str(e), meta={"exception_type": type(e).__name__})
    finally:
        pool.shutdown(wait=False)
    duration_ms = int((datetime.now() - t0).total_seconds() * 1000)

    # Emit structured JSON activity record
    _emit_activity({
        "ts": now_iso(),
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "ok": result.ok,
        "message": result.message,
        "duration_ms": duration_ms,
        "context": context,
        "kwargs": kw,
        "meta": result.meta or {},
    })

    # If there was an exception, re-raise so CLI/scheduler can handle exit code/logging
    if exc:
        raise exc

    return result.meta, run_id
