"""SQLite backend for the shell command history.

Every recorded command lands in a single append-only `history` table at
<data dir>/hun/history.db. Entries are never updated or deleted; search is a
newest-first scan with a literal substring filter.

Zero external dependencies -- sqlite3 is in Python's stdlib.
"""

import atexit
import os
import socket
import sqlite3
import sys
import threading
import time

SCAN_LIMIT = 1000


def _platform_data_dir() -> str:
    """Per-user application data directory for the current platform."""
    if sys.platform == "win32":
        return os.environ.get("APPDATA") or os.path.expanduser("~\\AppData\\Roaming")
    if sys.platform == "darwin":
        return os.path.expanduser("~/Library/Application Support")
    return os.environ.get("XDG_DATA_HOME") or os.path.expanduser("~/.local/share")


DATA_DIR = os.path.join(_platform_data_dir(), "hun")
DB_PATH = os.path.join(DATA_DIR, "history.db")

# Thread-local connections (sqlite3 objects can't cross threads)
_local = threading.local()


class StorageError(Exception):
    """The history database could not be opened, read or written."""


def _cleanup():
    """Close connection on process exit."""
    close()


atexit.register(_cleanup)


def _get_conn() -> sqlite3.Connection:
    """Get or create a thread-local database connection."""
    if not hasattr(_local, "conn") or _local.conn is None:
        conn = None
        try:
            os.makedirs(DATA_DIR, exist_ok=True)
            conn = sqlite3.connect(DB_PATH)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            _init_schema(conn)
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                conn.close()
            raise StorageError(f"Failed to open database at {DB_PATH}: {e}") from e
        _local.conn = conn
    return _local.conn


def _init_schema(conn: sqlite3.Connection):
    """Create tables if they don't exist."""
    # AUTOINCREMENT keeps ids monotonic and never reused
    conn.execute("""
        CREATE TABLE IF NOT EXISTS history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            command TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            cwd TEXT,
            exit_code INTEGER,
            session_id TEXT,
            hostname TEXT
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS history_recent ON history (timestamp, id)"
    )
    conn.commit()


def init_db() -> None:
    """Create the data directory and schema if they don't exist."""
    _get_conn()


def close():
    """Close the thread-local connection."""
    if hasattr(_local, "conn") and _local.conn is not None:
        _local.conn.close()
        _local.conn = None


def _resolve_hostname() -> str | None:
    """Best-effort hostname lookup. Returns None if it can't be resolved."""
    try:
        name = socket.gethostname()
    except OSError:
        return None
    return name or None


# --- Write path ---


def add_entry(
    command: str,
    cwd: str | None = None,
    exit_code: int | None = None,
    session_id: str | None = None,
) -> int:
    """Append one history entry stamped with the current time.

    Returns the id assigned to the new entry.
    """
    if not command:
        raise ValueError("command must not be empty")

    conn = _get_conn()
    try:
        cursor = conn.execute(
            """INSERT INTO history (command, timestamp, cwd, exit_code,
                                    session_id, hostname)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (command, int(time.time()), cwd, exit_code, session_id,
             _resolve_hostname()),
        )
        conn.commit()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to insert entry into {DB_PATH}: {e}") from e
    return cursor.lastrowid


# --- Read path ---


def search_entries(query: str = "", limit: int | None = None) -> list[dict]:
    """Most recent entries whose command contains `query`, newest first.

    Matching is a literal, case-sensitive substring test; an empty query
    returns the unfiltered most-recent window. At most SCAN_LIMIT rows.
    """
    if limit is None:
        limit = SCAN_LIMIT
    conn = _get_conn()

    # instr() is case-sensitive and treats % and _ literally, unlike LIKE
    if query:
        sql = """SELECT id, command, timestamp, cwd, exit_code, session_id, hostname
                 FROM history
                 WHERE instr(command, ?) > 0
                 ORDER BY timestamp DESC, id DESC
                 LIMIT ?"""
        params = (query, limit)
    else:
        sql = """SELECT id, command, timestamp, cwd, exit_code, session_id, hostname
                 FROM history
                 ORDER BY timestamp DESC, id DESC
                 LIMIT ?"""
        params = (limit,)

    try:
        rows = conn.execute(sql, params).fetchall()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to search {DB_PATH}: {e}") from e
    return [_row_to_dict(row) for row in rows]


def count_entries() -> int:
    """Return total number of entries."""
    conn = _get_conn()
    try:
        row = conn.execute("SELECT COUNT(*) FROM history").fetchone()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to count entries in {DB_PATH}: {e}") from e
    return row[0]


def get_stats(limit: int = 10) -> list[tuple[str, int]]:
    """Most frequently run commands as (command, count), highest count first.

    Commands are compared by exact text. Ties go to the command that was
    run most recently.
    """
    conn = _get_conn()
    try:
        rows = conn.execute(
            """SELECT command, COUNT(*) AS count
               FROM history
               GROUP BY command
               ORDER BY count DESC, MAX(id) DESC
               LIMIT ?""",
            (limit,),
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to aggregate stats from {DB_PATH}: {e}") from e
    return [(row["command"], row["count"]) for row in rows]


# --- Internal helpers ---


def _row_to_dict(row: sqlite3.Row) -> dict:
    """Convert a history row to a plain dict."""
    return dict(row)
