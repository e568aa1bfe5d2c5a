"""
SQLite database module for the commissioner.
Stores task trees, providers, their access keys and universes.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


class Database:
    """SQLite database manager for task and account records"""

    def __init__(self, db_path: str = "/data/commissioner/commissioner.db"):
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_db()

    def _ensure_db_dir(self):
        """Ensure database directory exists"""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_conn(self):
        """Get database connection with context manager"""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row  # Enable dict-like access
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema"""
        with self._get_conn() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS task_info (
                    uuid TEXT PRIMARY KEY,
                    parent_uuid TEXT,
                    position INTEGER NOT NULL DEFAULT -1,
                    task_type TEXT NOT NULL,
                    task_state TEXT NOT NULL DEFAULT 'Created',
                    sub_task_group_type TEXT,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    percent_done INTEGER NOT NULL DEFAULT 0,
                    details TEXT NOT NULL DEFAULT '{}',
                    owner TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS providers (
                    uuid TEXT PRIMARY KEY,
                    code TEXT NOT NULL,
                    name TEXT NOT NULL,
                    config TEXT NOT NULL DEFAULT '{}',
                    created_at TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS access_keys (
                    key_code TEXT NOT NULL,
                    provider_uuid TEXT NOT NULL,
                    key_info TEXT NOT NULL DEFAULT '{}',
                    created_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (key_code, provider_uuid),
                    FOREIGN KEY (provider_uuid) REFERENCES providers(uuid) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS universes (
                    uuid TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    provider_uuid TEXT,
                    details TEXT NOT NULL DEFAULT '{}',
                    created_at TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_info_parent ON task_info(parent_uuid, position)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_info_state ON task_info(task_state)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_access_keys_provider ON access_keys(provider_uuid)
            """)

            conn.commit()

    # Task operations

    def insert_task(self, task: Dict[str, Any]):
        """Insert new task row"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO task_info (uuid, parent_uuid, position, task_type, task_state,
                                       sub_task_group_type, created_at, updated_at,
                                       percent_done, details, owner)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                task['uuid'],
                task.get('parent_uuid'),
                task.get('position', -1),
                task['task_type'],
                task['task_state'],
                task.get('sub_task_group_type'),
                task['created_at'],
                task['updated_at'],
                task.get('percent_done', 0),
                json.dumps(task.get('details') or {}),
                task['owner'],
            ))

    def get_task(self, uuid: str) -> Optional[Dict[str, Any]]:
        """Get task by uuid"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM task_info WHERE uuid = ?", (uuid,))
            row = cursor.fetchone()
            return self._task_row(row) if row else None

    def list_subtasks(self, parent_uuid: str) -> List[Dict[str, Any]]:
        """List direct subtasks ordered by position"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM task_info WHERE parent_uuid = ? ORDER BY position ASC",
                (parent_uuid,)
            )
            return [self._task_row(row) for row in cursor.fetchall()]

    def list_root_tasks_in_states(self, states: List[str]) -> List[Dict[str, Any]]:
        """List top-level tasks whose state is one of states"""
        placeholders = ", ".join("?" for _ in states)
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM task_info WHERE parent_uuid IS NULL "
                f"AND task_state IN ({placeholders}) ORDER BY created_at",
                list(states)
            )
            return [self._task_row(row) for row in cursor.fetchall()]

    def update_task(self, uuid: str, updates: Dict[str, Any]) -> bool:
        """Update task; updated_at is always refreshed"""
        set_clauses = []
        values = []
        for key, value in updates.items():
            if key in ('uuid', 'parent_uuid', 'position', 'task_type', 'created_at', 'updated_at'):
                continue  # Immutable fields
            if key == 'details':
                value = json.dumps(value or {})
            set_clauses.append(f"{key} = ?")
            values.append(value)

        set_clauses.append("updated_at = ?")
        values.append(updates.get('updated_at') or datetime.utcnow().isoformat())

        values.append(uuid)  # WHERE condition

        with self._get_conn() as conn:
            cursor = conn.cursor()
            query = f"UPDATE task_info SET {', '.join(set_clauses)} WHERE uuid = ?"
            cursor.execute(query, values)
            return cursor.rowcount > 0

    @staticmethod
    def _task_row(row) -> Dict[str, Any]:
        data = dict(row)
        data['details'] = json.loads(data['details']) if data.get('details') else {}
        return data

    # Provider operations

    def insert_provider(self, provider: Dict[str, Any]):
        """Insert new provider"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO providers (uuid, code, name, config, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                provider['uuid'],
                provider['code'],
                provider['name'],
                json.dumps(provider.get('config') or {}),
                provider['created_at'],
            ))

    def get_provider(self, uuid: str) -> Optional[Dict[str, Any]]:
        """Get provider by uuid; config is returned as raw JSON text"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM providers WHERE uuid = ?", (uuid,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def insert_access_key(self, access_key: Dict[str, Any]):
        """Insert new access key; key_info is stored as given if already a string"""
        key_info = access_key.get('key_info') or {}
        if not isinstance(key_info, str):
            key_info = json.dumps(key_info)
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO access_keys (key_code, provider_uuid, key_info, created_at)
                VALUES (?, ?, ?, ?)
            """, (
                access_key['key_code'],
                access_key['provider_uuid'],
                key_info,
                access_key['created_at'],
            ))

    def list_access_keys(self, provider_uuid: str) -> List[Dict[str, Any]]:
        """List access keys of a provider, oldest first; key_info is raw JSON text"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM access_keys
                WHERE provider_uuid = ?
                ORDER BY created_at ASC, rowid ASC
            """, (provider_uuid,))
            return [dict(row) for row in cursor.fetchall()]


    # Universe operations

    def insert_universe(self, universe: Dict[str, Any]):
        """Insert new universe; details is stored as given if already a string"""
        details = universe.get('details') or {}
        if not isinstance(details, str):
            details = json.dumps(details)
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO universes (uuid, name, provider_uuid, details, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                universe['uuid'],
                universe['name'],
                universe.get('provider_uuid'),
                details,
                universe['created_at'],
            ))

    def get_universe(self, uuid: str) -> Optional[Dict[str, Any]]:
        """Get universe by uuid; details is returned as raw JSON text"""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM universes WHERE uuid = ?", (uuid,))
            row = cursor.fetchone()
            return dict(row) if row else None

# Global database instance
_db_instance: Optional[Database] = None


def get_db() -> Database:
    """Get or create global database instance"""
    global _db_instance
    if _db_instance is None:
        db_path = os.getenv("DB_PATH", "/data/commissioner/commissioner.db")
        _db_instance = Database(db_path)
    return _db_instance
