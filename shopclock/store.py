"""
Session/Gap store - SQLite persistence for work sessions and gaps.

Two tables, `sessions` and `gaps`; gaps are foreign-keyed to their session.
The store only persists: deciding when sessions open and close belongs to
the state machine, validating edits belongs to shopclock.validation.
"""

import logging
import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from shopclock.models import Gap, WorkSession

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    start_at TEXT NOT NULL,
    end_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (end_at IS NULL OR end_at >= start_at)
);

CREATE TABLE IF NOT EXISTS gaps (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
    exit_at TEXT NOT NULL,
    return_at TEXT,
    deleted INTEGER NOT NULL DEFAULT 0 CHECK (deleted IN (0, 1)),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- At most one open session: every open row maps to the same index key
CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_single_open
    ON sessions(coalesce(end_at, '')) WHERE end_at IS NULL;

CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_at);
CREATE INDEX IF NOT EXISTS idx_sessions_end ON sessions(end_at);
CREATE INDEX IF NOT EXISTS idx_gaps_session ON gaps(session_id, exit_at);
"""

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class StoreError(Exception):
    """A read or write against the session store failed."""


def to_db_time(dt: datetime | None) -> str | None:
    """Aware datetime -> sortable UTC text (microsecond precision)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        raise ValueError(f"naive datetime cannot be stored: {dt!r}")
    return dt.astimezone(UTC).strftime(_TS_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=UTC)


def _now_text() -> str:
    return to_db_time(datetime.now(UTC))


class SessionStore:
    """
    SQLite repository for WorkSession and Gap records.

    One short-lived connection per operation, so the store can be shared
    between the event worker thread and API request threads.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()
        logger.info("SessionStore ready, DB path: %s", self.db_path)

    @contextmanager
    def _get_conn(self):
        """Connection with auto-commit/rollback. sqlite3 errors surface as StoreError."""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StoreError(f"cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database error: %s", e)
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create tables and indexes. Safe to call multiple times."""
        with self._get_conn() as conn:
            conn.executescript(SCHEMA)

    # ==================== Writes ====================

    def insert_session(self, session: WorkSession) -> str:
        """Insert a new session and any gaps it already carries. Returns ID."""
        now = _now_text()
        with self._get_conn() as conn:
            conn.execute(
                "INSERT INTO sessions (id, start_at, end_at, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                [session.id, to_db_time(session.start), to_db_time(session.end), now, now],
            )
            for gap in session.gaps:
                self._upsert_gap(conn, gap, now)
        return session.id

    def save_session(self, session: WorkSession) -> None:
        """Insert or update the session row (gaps are saved separately)."""
        now = _now_text()
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO sessions (id, start_at, end_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       start_at = excluded.start_at,
                       end_at = excluded.end_at,
                       updated_at = excluded.updated_at""",
                [session.id, to_db_time(session.start), to_db_time(session.end), now, now],
            )

    def insert_gap(self, gap: Gap) -> str:
        now = _now_text()
        with self._get_conn() as conn:
            conn.execute(
                "INSERT INTO gaps (id, session_id, exit_at, return_at, deleted, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    gap.id,
                    gap.session_id,
                    to_db_time(gap.exit_time),
                    to_db_time(gap.return_time),
                    int(gap.deleted),
                    now,
                    now,
                ],
            )
        return gap.id

    def save_gap(self, gap: Gap) -> None:
        """Insert or update a gap row."""
        with self._get_conn() as conn:
            self._upsert_gap(conn, gap, _now_text())

    @staticmethod
    def _upsert_gap(conn: sqlite3.Connection, gap: Gap, now: str) -> None:
        conn.execute(
            """INSERT INTO gaps (id, session_id, exit_at, return_at, deleted, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   exit_at = excluded.exit_at,
                   return_at = excluded.return_at,
                   deleted = excluded.deleted,
                   updated_at = excluded.updated_at""",
            [
                gap.id,
                gap.session_id,
                to_db_time(gap.exit_time),
                to_db_time(gap.return_time),
                int(gap.deleted),
                now,
                now,
            ],
        )

    # ==================== Reads ====================

    def get_session(self, session_id: str) -> WorkSession | None:
        """Get a single session (with its gaps) by ID."""
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", [session_id]).fetchone()
            if row is None:
                return None
            return self._hydrate(conn, [row])[0]

    def get_gap(self, gap_id: str) -> Gap | None:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM gaps WHERE id = ?", [gap_id]).fetchone()
            return self._row_to_gap(row) if row else None

    def fetch_active_session(self) -> WorkSession | None:
        """The open session (end IS NULL), if any."""
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE end_at IS NULL ORDER BY start_at DESC"
            ).fetchall()
            if len(rows) > 1:
                logger.error("Found %d open sessions, using the most recent", len(rows))
            return self._hydrate(conn, rows[:1])[0] if rows else None

    def fetch_sessions_overlapping(self, start: datetime, end: datetime) -> list[WorkSession]:
        """
        Sessions whose [start, end) may intersect [start, end).

        Open sessions are always candidates when they started before the
        window ends; callers clip them against their own notion of now.
        """
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM sessions
                   WHERE start_at < ?
                   AND (end_at IS NULL OR end_at > ?)
                   ORDER BY start_at""",
                [to_db_time(end), to_db_time(start)],
            ).fetchall()
            return self._hydrate(conn, rows)

    def fetch_all_sessions(self) -> list[WorkSession]:
        with self._get_conn() as conn:
            rows = conn.execute("SELECT * FROM sessions ORDER BY start_at").fetchall()
            return self._hydrate(conn, rows)

    def earliest_session_start(self) -> datetime | None:
        with self._get_conn() as conn:
            row = conn.execute("SELECT MIN(start_at) AS first FROM sessions").fetchone()
            return from_db_time(row["first"]) if row else None

    def latest_session_end(self) -> datetime | None:
        """End of the most recently ended closed session."""
        with self._get_conn() as conn:
            row = conn.execute("SELECT MAX(end_at) AS last FROM sessions").fetchone()
            return from_db_time(row["last"]) if row else None

    def open_session_count(self) -> int:
        with self._get_conn() as conn:
            row = conn.execute("SELECT COUNT(*) AS c FROM sessions WHERE end_at IS NULL").fetchone()
            return row["c"] if row else 0

    def table_counts(self) -> dict:
        """Row counts for both tables."""
        with self._get_conn() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608
                for table in ("sessions", "gaps")
            }

    # ==================== Row mapping ====================

    def _hydrate(self, conn: sqlite3.Connection, rows: Iterable[sqlite3.Row]) -> list[WorkSession]:
        sessions = [self._row_to_session(row) for row in rows]
        if not sessions:
            return []

        by_id = {s.id: s for s in sessions}
        placeholders = ",".join("?" for _ in by_id)
        gap_rows = conn.execute(
            f"SELECT * FROM gaps WHERE session_id IN ({placeholders}) ORDER BY exit_at",  # noqa: S608
            list(by_id),
        ).fetchall()
        for gap_row in gap_rows:
            by_id[gap_row["session_id"]].gaps.append(self._row_to_gap(gap_row))
        return sessions

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> WorkSession:
        return WorkSession(
            id=row["id"],
            start=from_db_time(row["start_at"]),
            end=from_db_time(row["end_at"]),
        )

    @staticmethod
    def _row_to_gap(row: sqlite3.Row) -> Gap:
        return Gap(
            id=row["id"],
            session_id=row["session_id"],
            exit_time=from_db_time(row["exit_at"]),
            return_time=from_db_time(row["return_at"]),
            deleted=bool(row["deleted"]),
        )
