from __future__ import annotations

import copy
import logging
from typing import Any

# Prefer the service's JSONL writer; default to stdlib logging when the module
# runs outside the service (scripts, ad-hoc imports). Silent on import.
try:
    from service import logging_utils as _logging_backend  # type: ignore
except ImportError:
    _logging_backend = None

# Keys that should be redacted from structured logs
_REDACT_KEYS = {
    "password",
    "token",
    "apikey",
    "api_key",
    "secret",
    "authorization",
    "auth",
    "bearer",
    "cookie",
}


def _redact_record(record: dict[str, Any]) -> dict[str, Any]:
    """
    Shallow-copy record and redact obvious secret-like fields at top level.
    The service writer redacts nested structures on its own.
    """
    redacted = copy.copy(record)
    for k in list(redacted.keys()):
        lk = str(k).lower()
        if lk in _REDACT_KEYS or lk.endswith("_secret") or lk.endswith("_password"):
            redacted[k] = "***REDACTED***"
    return redacted


def activity(record: dict[str, Any]) -> None:
    """
    Write an activity record to the service logging utility if available.
    Falls back to stdlib logging as structured info.
    """
    payload = _redact_record(record)
    if _logging_backend is not None:
        try:
            _logging_backend.write_activity_log(payload)
            return
        except (OSError, TypeError, ValueError):
            logging.getLogger("notice_watch.activity").debug("activity sink failed", exc_info=True)
    logging.getLogger("notice_watch.activity").info(payload)


def warning(record: dict[str, Any]) -> None:
    """
    Activity record flagged as a warning (e.g. the listing structure looks changed).
    Lands in the activity log with level=warning and is echoed to stdlib logging.
    """
    payload = {**_redact_record(record), "level": "warning"}
    logging.getLogger("notice_watch.warning").warning(payload)
    if _logging_backend is not None:
        try:
            _logging_backend.write_activity_log(payload)
        except (OSError, TypeError, ValueError):
            logging.getLogger("notice_watch.warning").debug("activity sink failed", exc_info=True)


def error(record: dict[str, Any]) -> None:
    """
    Write an error record to the service logging utility if available.
    Falls back to stdlib logging as structured error.
    """
    payload = _redact_record(record)
    if _logging_backend is not None:
        try:
            _logging_backend.write_error_log(payload)
            return
        except (OSError, TypeError, ValueError):
            logging.getLogger("notice_watch.error").debug("error sink failed", exc_info=True)
    logging.getLogger("notice_watch.error").error(payload)
