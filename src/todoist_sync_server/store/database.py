"""
SQLite schema and connection handling for the local store.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


# Database schema version for migrations
SCHEMA_VERSION = 1


@contextmanager
def get_connection(db_path: str | Path):
    """Get a database connection with proper cleanup and concurrency support."""
    # Sync passes run in worker threads while tools write from others
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA journal_mode=WAL")
    # Cascades from projects to tasks and to sync_logs owner columns
    conn.execute("PRAGMA foreign_keys=ON")

    try:
        yield conn
    finally:
        conn.close()


def migrate_database(conn: sqlite3.Connection, current_version: int) -> None:
    """Migrate database from current_version to latest schema."""
    if current_version < 1:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                color TEXT NOT NULL DEFAULT 'blue',
                remote_id TEXT,
                sync_status TEXT NOT NULL DEFAULT 'PENDING_UPLOAD',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL,
                completed INTEGER NOT NULL DEFAULT 0,
                priority INTEGER NOT NULL DEFAULT 2 CHECK (priority BETWEEN 1 AND 4),
                notes TEXT NOT NULL DEFAULT '',
                due_date TEXT,
                project_id TEXT NOT NULL,
                remote_id TEXT,
                sync_status TEXT NOT NULL DEFAULT 'PENDING_UPLOAD',
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (project_id) REFERENCES projects (id) ON DELETE CASCADE
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS sync_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_type TEXT NOT NULL, -- 'project' or 'task'
                entity_id TEXT NOT NULL,
                action TEXT NOT NULL, -- 'CREATE' or 'UPDATE'
                direction TEXT NOT NULL, -- 'TO_REMOTE' or 'FROM_REMOTE'
                remote_id TEXT,
                timestamp TEXT NOT NULL,
                error_message TEXT,
                project_id TEXT,
                task_id TEXT,
                FOREIGN KEY (project_id) REFERENCES projects (id) ON DELETE CASCADE,
                FOREIGN KEY (task_id) REFERENCES tasks (id) ON DELETE CASCADE
            )
        """)

        # NULL remote ids never collide, so unsynced entities are unaffected
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_projects_remote_id ON projects (remote_id)"
        )
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_remote_id ON tasks (remote_id)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_projects_sync_status ON projects (sync_status)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_sync_status ON tasks (sync_status)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks (project_id)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_sync_logs_entity ON sync_logs (entity_type, id)"
        )

        conn.commit()


def init_database(db_path: str | Path) -> None:
    """Create the database file and bring its schema up to date."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        current_version = row[0] or 0

        if current_version < SCHEMA_VERSION:
            logger.info(
                "Migrating database %s from v%d to v%d",
                db_path,
                current_version,
                SCHEMA_VERSION,
            )
            migrate_database(conn, current_version)
            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
