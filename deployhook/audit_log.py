"""Audit log - records webhook run outcomes to SQLite for the runs API.

Observability only. The coordinator never reads from here; the status record
in the cluster stays the single source of truth.
"""
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path


class AuditLog:
    """Persistent log of webhook runs."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS webhook_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    package TEXT NOT NULL,
                    component TEXT NOT NULL,
                    webhook TEXT NOT NULL,
                    generation INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    error TEXT
                )
            """)
            columns = {row[1] for row in conn.execute("PRAGMA table_info(webhook_runs)")}
            if "error" not in columns:
                conn.execute("ALTER TABLE webhook_runs ADD COLUMN error TEXT")
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_component ON webhook_runs(component)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_timestamp ON webhook_runs(timestamp)
            """)

    def log(
        self,
        package: str,
        component: str,
        webhook: str,
        generation: int,
        status: str,
        error: str | None = None,
    ) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO webhook_runs (timestamp, package, component, webhook, generation, status, error)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    datetime.now(timezone.utc).isoformat(),
                    package,
                    component,
                    webhook,
                    generation,
                    status,
                    error,
                ),
            )

    def get_recent(self, limit: int = 100, component: str | None = None) -> list[dict]:
        """Most recent runs first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT id, timestamp, package, component, webhook, generation, status, error
                FROM webhook_runs
                WHERE (? IS NULL OR component = ?)
                ORDER BY id DESC
                LIMIT ?
                """,
                (component, component, limit),
            )
            rows = cursor.fetchall()
        return [dict(r) for r in rows]

    def prune(self, older_than_days: int) -> int:
        """Delete rows older than the retention window. Returns the number removed."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=older_than_days)).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM webhook_runs WHERE timestamp < ?", (cutoff,))
            return cursor.rowcount
