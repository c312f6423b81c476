# storage.py
import os
import sqlite3
from datetime import datetime, timezone

DEFAULT_DB_PATH = "jobcleaner.db"


class Storage:
    """Persisted CLI defaults. Holds no sweep state."""

    def __init__(self, db_path=None):
        db_path = db_path or os.getenv("JOBCLEANER_DB", DEFAULT_DB_PATH)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        self.conn.execute("""
        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """)
        self.conn.commit()

    # ---------------- Config helpers ----------------
    def get_config(self, key, default=None):
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM config WHERE key=?", (key,))
        row = cur.fetchone()
        return row["value"] if row else default

    def get_config_row(self, key):
        cur = self.conn.cursor()
        cur.execute("SELECT value, updated_at FROM config WHERE key=?", (key,))
        return cur.fetchone()

    def list_config(self):
        cur = self.conn.cursor()
        cur.execute("SELECT key, value, updated_at FROM config ORDER BY key")
        return cur.fetchall()

    def set_config(self, key, value):
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute("""
            INSERT INTO config (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
        """, (key, str(value), now))
        self.conn.commit()

    def get_int(self, key, default, maximum=None):
        raw = self.get_config(key)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            return default
        if value < 0 or (maximum is not None and value > maximum):
            return default
        return value

    def get_bool(self, key, default=False):
        raw = self.get_config(key)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    def close(self):
        self.conn.close()
