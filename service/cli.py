# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Starts the APScheduler service loop via service.scheduler.start()
    - Registers signal handlers for graceful shutdown

run MODULE [--kwargs k=v ...] [--timeout-sec N] [--print-result]
    - Executes a module ad-hoc via runner.run_module_once(...)
    - Displays a concise success/failure summary
    - Optionally prints the run summary returned by the module as JSON

list-jobs
    - Loads config via config_schema.load_config() and prints configured jobs

validate-config
    - Loads/validates config and returns nonzero on error

Exit codes: 0 ok, 1 failure, 2 config module unavailable, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from service import logging_utils as L
from service import runner as _runner
from service import scheduler as _scheduler

try:
    from service import config_schema as _config_schema
except ImportError as e:  # pragma: no cover
    _config_schema = None  # type: ignore
    _CONF_IMPORT_ERR: Exception | None = e
else:
    _CONF_IMPORT_ERR = None


LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array/"str") are parsed.
    - Otherwise keep as raw strings (so url=https://... needs no quoting).
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _describe_job(job: dict[str, Any]) -> str:
    trigger = job.get("trigger") or {k: job[k] for k in ("cron", "interval", "date", "daily_time") if k in job}
    parts = [str(job.get("module", "?"))]
    if job.get("summary") or job.get("description"):
        parts.append(str(job.get("summary") or job.get("description")))
    parts.append(json.dumps(trigger, default=str, sort_keys=True))
    return " | ".join(parts)


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    if _config_schema is None:
        LOG.error("config_schema is not available: %s", _CONF_IMPORT_ERR)
        return 2
    try:
        cfg = _load_config_with_optional_path(args.config)
        _config_schema.validate(cfg)
        print("OK: configuration is valid.")
        return 0
    except KeyboardInterrupt:
        return 130
    except _config_schema.ConfigError as e:
        LOG.error("Configuration validation failed: %s", e)
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1


def cmd_list_jobs(args: argparse.Namespace) -> int:
    if _config_schema is None:
        LOG.error("config_schema is not available: %s", _CONF_IMPORT_ERR)
        return 2
    try:
        cfg = _load_config_with_optional_path(args.config)
    except KeyboardInterrupt:
        return 130
    except _config_schema.ConfigError as e:
        print(f"ERROR: failed to list jobs: {e}", file=sys.stderr)
        return 1

    rows = [(str(j["id"]), _describe_job(j)) for j in cfg.get("jobs", [])]
    if not rows:
        print("No jobs found in config.")
        return 0
    _print_table(rows, headers=("JOB", "DETAILS"))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        kwargs = _parse_kv_pairs(args.kwargs or [])
    except argparse.ArgumentTypeError as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1
    LOG.debug("Run module %s with kwargs=%s", args.module, kwargs)

    started = datetime.now()
    try:
        meta, run_id = _runner.run_module_once(
            module=args.module,
            kwargs=kwargs,
            trigger_type="adhoc",
            timeout_sec=args.timeout_sec,
        )
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.run",
            "module": args.module,
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int((datetime.now() - started).total_seconds() * 1000),
        })
        return 1

    L.write_activity_log({
        "ts": _now_iso(),
        "event": "cli_run",
        "run_id": run_id,
        "module": args.module,
        "trigger_type": "adhoc",
        "kwargs": kwargs,
        "duration_ms": int((datetime.now() - started).total_seconds() * 1000),
    })

    if meta and meta.get("message"):
        print(f"SUCCESS: {meta['message']}")
    else:
        print("DONE: Module run completed.")
    if args.print_result and meta:
        print("\n----- RESULT -----\n")
        print(json.dumps(meta, indent=2, ensure_ascii=False, default=str))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the scheduler loop until a termination signal is received, then stop
    it cleanly.
    """
    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})

    stop_event = threading.Event()

    def _on_signal(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _on_signal)

    controller = None
    try:
        controller = _scheduler.start(config_path=args.config)
        LOG.info("Scheduler started: %r", controller)
        while not stop_event.wait(timeout=0.3):
            pass
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        return 1
    finally:
        _safe_stop("scheduler", controller)
        L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})


def _safe_stop(name: str, handle: Any) -> None:
    """Stop & join a scheduler controller; shutdown errors are logged, not raised."""
    if handle is None:
        return
    try:
        handle.stop()
        handle.join(timeout=10.0)
    except Exception:  # pragma: no cover
        LOG.exception("Error stopping %s", name)


def _load_config_with_optional_path(path: str | None) -> dict[str, Any]:
    """Load config via config_schema.load_config(), optionally with a specific path."""
    if _config_schema is None:
        raise RuntimeError(f"config_schema unavailable: {_CONF_IMPORT_ERR}")
    return _config_schema.load_config(path)


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Service command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or an empty job list).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the main scheduler loop.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("run", help="Execute a module ad-hoc via runner.run_module_once().")
    sp.add_argument("module", help="Module to run (e.g., modules.notice_watch).")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra keyword arguments for the module (JSON values supported).",
    )
    sp.add_argument(
        "--timeout-sec",
        type=int,
        default=None,
        help="Abandon the run after this many seconds.",
    )
    sp.add_argument(
        "--print-result",
        action="store_true",
        help="Print the run summary returned by the module as JSON.",
    )
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("list-jobs", help="Print all jobs from config.")
    sp.set_defaults(func=cmd_list_jobs)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
