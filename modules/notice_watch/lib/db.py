from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import threading
from types import TracebackType

from .models import NoticeRecord, PersistOutcome
from .utils import now_iso

log = logging.getLogger(__name__)


class PersistError(Exception):
    """A single record could not be written (connectivity, locking, schema...)."""

    def __init__(self, link: str, cause: BaseException) -> None:
        self.link = link
        self.cause = cause
        super().__init__(f"persist failed for {link}: {cause!r}")


# ---- Gateway ----------------------------------------------------------------


class NoticeStore:
    """
    Idempotent writer for the notices table.

    Each worker thread gets its own connection (autocommit, WAL), so concurrent
    persist() calls never share a cursor and one record's failure cannot roll
    back another's write. close() releases every connection handed out.

    Usage:
        with NoticeStore(path, timeout_sec=30) as store:
            outcome = store.persist(record)
    """

    def __init__(self, sqlite_path: str, *, timeout_sec: float = 30.0) -> None:
        self.sqlite_path = sqlite_path
        self.timeout_sec = float(timeout_sec)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._conns: list[sqlite3.Connection] = []
        self._closed = False

    def __enter__(self) -> NoticeStore:
        init_db(self.sqlite_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def persist(self, record: NoticeRecord) -> PersistOutcome:
        """
        Insert the record unless its link is already stored.

        Returns INSERTED (one row written) or DUPLICATE (zero rows, existing row
        untouched). Raises PersistError for anything else.
        """
        try:
            conn = self._conn()
            cur = conn.execute(
                """
                INSERT INTO notices (title, post_date, link, source, first_seen_utc)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(link) DO NOTHING
                """,
                (record.title, record.post_date, record.link, record.source, now_iso()),
            )
        except sqlite3.Error as e:
            raise PersistError(record.link, e) from e
        return PersistOutcome.INSERTED if cur.rowcount == 1 else PersistOutcome.DUPLICATE

    def close(self) -> None:
        with self._lock:
            self._closed = True
            conns, self._conns = self._conns, []
        for conn in conns:
            try:
                conn.close()
            except sqlite3.Error:
                log.debug("NoticeStore.close() swallow", exc_info=True)

    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        with self._lock:
            if self._closed:
                raise sqlite3.ProgrammingError("NoticeStore is closed")
            conn = _connect(self.sqlite_path, timeout=self.timeout_sec, check_same_thread=False)
        try:
            _apply_pragmas(conn)
        except sqlite3.Error:
            conn.close()
            raise
        with self._lock:
            if self._closed:
                conn.close()
                raise sqlite3.ProgrammingError("NoticeStore is closed")
            # Only fully set-up connections are pooled and cached for the thread.
            self._conns.append(conn)
        self._local.conn = conn
        return conn


# ---- Public API -------------------------------------------------------------


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def count_rows(sqlite_path: str) -> int:
    """Return total rows in notices table; 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM notices").fetchone()
    return int(n or 0)


def latest(sqlite_path: str, limit: int = 15) -> list[NoticeRecord]:
    """
    Newest notices first, ordered the way the board lists them
    (post_date DESC, then insertion order DESC).
    """
    if not os.path.exists(sqlite_path):
        return []
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)
        rows = conn.execute(
            """
            SELECT title, link, post_date, source
            FROM notices
            ORDER BY post_date DESC, id DESC
            LIMIT ?
            """,
            (int(limit),),
        ).fetchall()
    return [NoticeRecord(title=t, link=u, post_date=d, source=s) for (t, u, d, s) in rows]


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    for suffix in ("", "-wal", "-shm"):
        with contextlib.suppress(FileNotFoundError):
            os.remove(sqlite_path + suffix)


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(sqlite_path: str) -> None:
    d = os.path.dirname(os.path.abspath(sqlite_path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str, *, timeout: float = 30.0, check_same_thread: bool = True) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode: every INSERT stands alone.
    return sqlite3.connect(
        sqlite_path,
        timeout=timeout,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    # Reasonable defaults for small append-only table
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS notices (
          id INTEGER PRIMARY KEY,
          title TEXT NOT NULL,
          post_date TEXT NOT NULL,
          link TEXT NOT NULL UNIQUE,
          source TEXT NOT NULL DEFAULT '',
          first_seen_utc TEXT NOT NULL
        );
        """
    )
