#!/usr/bin/env python3
"""
Print the newest stored notices, newest post date first.

Usage:
    python scripts/print_latest_notices.py [LIMIT] [DB_PATH]

DB_PATH defaults to $NOTICE_WATCH_SQLITE_PATH, then the same default path
notice_watch writes to.
"""

import os
import sqlite3
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent  # ../scripts → project root
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from modules.notice_watch.lib.config import DEFAULT_SQLITE_PATH  # noqa: E402


def get_latest_entries(db_path: str, limit: int = 15) -> list[tuple[str, str, str, str]]:
    """
    Fetch the newest `limit` notices, ordered the way the board lists them.
    Returns list of (post_date, title, link, first_seen_utc). The database is
    opened read-only so a running service is never disturbed.
    """
    try:
        conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    except sqlite3.Error as e:
        print(f"Error opening {db_path}: {e}", file=sys.stderr)
        return []
    try:
        return conn.execute(
            """
            SELECT post_date, title, link, first_seen_utc
            FROM notices
            ORDER BY post_date DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
    except sqlite3.Error as e:
        print(f"Error reading {db_path}: {e}", file=sys.stderr)
        return []
    finally:
        conn.close()


def _parse_limit(raw: str) -> int:
    try:
        limit = int(raw)
    except ValueError:
        limit = 0
    if limit <= 0:
        print(f"Invalid limit: {raw}. Using default (15).", file=sys.stderr)
        return 15
    return limit


def resolve_db_path(args: list[str]) -> str:
    if args:
        return args[0]
    return os.getenv("NOTICE_WATCH_SQLITE_PATH") or DEFAULT_SQLITE_PATH


def main() -> int:
    limit = _parse_limit(sys.argv[1]) if len(sys.argv) > 1 else 15
    db_path = resolve_db_path(sys.argv[2:])

    if not os.path.exists(db_path):
        print(f"Database not found: {db_path}")
        return 1

    entries = get_latest_entries(db_path, limit)
    print(f"DATABASE: {db_path}")
    print("-" * 80)
    if not entries:
        print("  No notices found or error accessing database.")
        return 0

    for i, (post_date, title, link, first_seen) in enumerate(entries, 1):
        print(f"{i:2d}. [{post_date}] {title}")
        print(f"     Link:       {link}")
        print(f"     First seen: {first_seen}")
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
