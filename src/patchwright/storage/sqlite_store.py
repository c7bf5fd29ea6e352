"""
SQLite-backed durable store for modification sessions.

The store is the slow mirror behind SessionCache: project file snapshots,
the append-only change history and session context, keyed by session id.
"""

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from patchwright.logging_config import logger
from patchwright.schemas import ModificationChange, ProjectFile, SessionContext


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS project_files (
    session_id TEXT NOT NULL,
    relative_path TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at REAL NOT NULL,
    PRIMARY KEY (session_id, relative_path)
);

-- Append-only: rows are inserted, never updated
CREATE TABLE IF NOT EXISTS modification_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('modified', 'created', 'updated')),
    file_path TEXT NOT NULL,
    description TEXT NOT NULL,
    timestamp REAL NOT NULL,
    success INTEGER NOT NULL,
    detail TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_changes_session ON modification_changes(session_id, timestamp);

CREATE TABLE IF NOT EXISTS session_contexts (
    session_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS session_state (
    session_id TEXT NOT NULL,
    key TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at REAL NOT NULL,
    PRIMARY KEY (session_id, key)
);
"""


class DurableStore:
    """
    Session persistence in a single SQLite file.

    Each operation opens its own connection so the store can be shared by
    worker threads.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        with self.transaction() as conn:
            conn.executescript(SCHEMA_SQL)
        logger.debug(f"Durable store initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self):
        """
        Context manager for atomic transactions.

        Commits on success, rolls back and re-raises on error.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Project files
    # ------------------------------------------------------------------

    def save_project_files(self, session_id: str, files: Dict[str, ProjectFile]) -> None:
        """Replace the snapshot for a session."""
        now = time.time()
        with self.transaction() as conn:
            conn.execute("DELETE FROM project_files WHERE session_id = ?", (session_id,))
            conn.executemany(
                "INSERT INTO project_files (session_id, relative_path, data, updated_at) VALUES (?, ?, ?, ?)",
                [(session_id, path, f.model_dump_json(), now) for path, f in files.items()],
            )
        logger.debug(f"Saved {len(files)} project files for session {session_id}")

    def load_project_files(self, session_id: str) -> Optional[Dict[str, ProjectFile]]:
        with self.transaction() as conn:
            rows = conn.execute(
                "SELECT relative_path, data FROM project_files WHERE session_id = ? ORDER BY relative_path",
                (session_id,),
            ).fetchall()
        if not rows:
            return None
        return {row["relative_path"]: ProjectFile.model_validate_json(row["data"]) for row in rows}

    # ------------------------------------------------------------------
    # Change history
    # ------------------------------------------------------------------

    def append_change(self, session_id: str, change: ModificationChange) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO modification_changes
                (session_id, kind, file_path, description, timestamp, success, detail)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    change.kind,
                    change.file,
                    change.description,
                    change.timestamp,
                    int(change.success),
                    json.dumps(change.details),
                ),
            )

    def load_changes(self, session_id: str, limit: Optional[int] = None) -> List[ModificationChange]:
        """Changes in append order. With limit, the most recent ones."""
        query = "SELECT * FROM modification_changes WHERE session_id = ? ORDER BY id"
        params: tuple = (session_id,)
        if limit is not None:
            query = f"SELECT * FROM ({query} DESC LIMIT ?) ORDER BY id"
            params = (session_id, limit)
        with self.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            ModificationChange(
                kind=row["kind"],
                file=row["file_path"],
                description=row["description"],
                timestamp=row["timestamp"],
                success=bool(row["success"]),
                details=json.loads(row["detail"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Session context and keyed state
    # ------------------------------------------------------------------

    def save_context(self, context: SessionContext) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO session_contexts (session_id, data, updated_at) VALUES (?, ?, ?)",
                (context.session_id, context.model_dump_json(), time.time()),
            )

    def load_context(self, session_id: str) -> Optional[SessionContext]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT data FROM session_contexts WHERE session_id = ?", (session_id,)
            ).fetchone()
        return SessionContext.model_validate_json(row["data"]) if row else None

    def save_state(self, session_id: str, key: str, value: Any) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO session_state (session_id, key, data, updated_at) VALUES (?, ?, ?, ?)",
                (session_id, key, json.dumps(value), time.time()),
            )

    def load_state(self, session_id: str, key: str) -> Optional[Any]:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT data FROM session_state WHERE session_id = ? AND key = ?", (session_id, key)
            ).fetchone()
        return json.loads(row["data"]) if row else None

    def delete_session(self, session_id: str, keep_history: bool = True) -> None:
        """
        Drop a session's snapshot, context and state.

        The change history is kept unless keep_history is False.
        """
        tables = ["project_files", "session_contexts", "session_state"]
        if not keep_history:
            tables.append("modification_changes")
        with self.transaction() as conn:
            for table in tables:
                conn.execute(f"DELETE FROM {table} WHERE session_id = ?", (session_id,))
        logger.info(f"Deleted durable records for session {session_id}")

    def get_stats(self) -> Dict[str, int]:
        with self.transaction() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("project_files", "modification_changes", "session_contexts", "session_state")
            }
