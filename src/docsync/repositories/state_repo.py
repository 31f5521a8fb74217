from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

from docsync.domain.errors import StorageError


class SqliteStateRepository:
    """Key-value run state that outlives a single invocation: cursors and scheduler flags."""

    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self) -> None:
        self.run_migrations()

    def run_migrations(self) -> None:
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            cur.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            cur.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
            current_version = int(cur.fetchone()[0])

            migrations = [
                (1, self._migration_v1_base),
                (2, self._migration_v2_completions),
            ]

            for version, migration in migrations:
                if version <= current_version:
                    continue
                migration(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, datetime('now'))",
                    (version,),
                )
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError("State database migration failed.") from exc
        finally:
            conn.close()

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sync_cursors (
            stream TEXT PRIMARY KEY,
            next_page INTEGER NOT NULL CHECK(next_page >= 1),
            updated_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS scheduler_state (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
        )

    def _migration_v2_completions(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sync_completions (
            stream TEXT PRIMARY KEY,
            completed_at TEXT NOT NULL
        )
        """
        )

    def integrity_check(self) -> str:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("PRAGMA integrity_check")
        row = cur.fetchone()
        conn.close()
        return str(row[0]) if row else "unknown"

    # ---------- Cursors ----------
    def get_cursor(self, stream: str) -> Optional[int]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT next_page FROM sync_cursors WHERE stream=?", (stream,))
        row = cur.fetchone()
        conn.close()
        return int(row[0]) if row else None

    def set_cursor(self, stream: str, next_page: int) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO sync_cursors (stream, next_page, updated_at) VALUES (?, ?, datetime('now'))
            ON CONFLICT(stream) DO UPDATE SET next_page=excluded.next_page, updated_at=excluded.updated_at
        """,
            (stream, int(next_page)),
        )
        conn.commit()
        conn.close()

    def delete_cursor(self, stream: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("DELETE FROM sync_cursors WHERE stream=?", (stream,))
        deleted = cur.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    def mark_complete(self, stream: str) -> None:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO sync_completions (stream, completed_at) VALUES (?, datetime('now'))
            ON CONFLICT(stream) DO UPDATE SET completed_at=excluded.completed_at
        """,
            (stream,),
        )
        conn.commit()
        conn.close()

    def is_complete(self, stream: str) -> bool:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT 1 FROM sync_completions WHERE stream=?", (stream,))
        row = cur.fetchone()
        conn.close()
        return row is not None

    def list_cursors(self) -> dict[str, int]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT stream, next_page FROM sync_cursors ORDER BY stream")
        rows = cur.fetchall()
        conn.close()
        return {str(r[0]): int(r[1]) for r in rows}

    # ---------- Scheduler ----------
    def get_values(self) -> dict[str, Any]:
        conn = self._conn()
        cur = conn.cursor()
        cur.execute("SELECT key, value FROM scheduler_state")
        rows = cur.fetchall()
        conn.close()
        return {str(k): json.loads(v) for k, v in rows}

    def set_values(self, values: dict[str, Any]) -> None:
        conn = self._conn()
        cur = conn.cursor()
        try:
            cur.executemany(
                """
                INSERT INTO scheduler_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
                [(k, json.dumps(v)) for k, v in values.items()],
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()
