"""
SQLite Storage Layer.
Persists the garage: slots (one per token), the coordinators each slot has
joined, and garage-level state such as the selected slot.
Order state is not stored; it is re-derived from coordinators on refresh.
"""

from __future__ import annotations
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class StoredSlot:
    token: str
    short_aliases: List[str] = field(default_factory=list)
    pub_key: Optional[str] = None
    enc_priv_key: Optional[str] = None
    nickname: Optional[str] = None


class Database:
    """SQLite database manager with typed accessors."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self):
        """Initialize database connection and create tables."""
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._create_tables()
        logger.info(f"[DB] Connected to {self.db_path}")

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        assert self._conn is not None, "Database not connected"
        return self._conn

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS slots (
                token TEXT PRIMARY KEY,
                pub_key TEXT,
                enc_priv_key TEXT,
                nickname TEXT,
                position INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS slot_robots (
                token TEXT NOT NULL REFERENCES slots(token) ON DELETE CASCADE,
                short_alias TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (token, short_alias)
            );

            CREATE TABLE IF NOT EXISTS garage_state (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT
            );
        """)
        self.conn.commit()

    # ==================== Slot Operations ====================

    def save_slot(self, slot: StoredSlot):
        """Insert or update a slot and its coordinator list (order preserved)."""
        existing = self.conn.execute(
            "SELECT position FROM slots WHERE token = ?", (slot.token,)
        ).fetchone()
        if existing:
            position = existing["position"]
        else:
            row = self.conn.execute("SELECT COALESCE(MAX(position), -1) + 1 AS next FROM slots").fetchone()
            position = row["next"]

        self.conn.execute(
            """INSERT OR REPLACE INTO slots (token, pub_key, enc_priv_key, nickname, position, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                slot.token, slot.pub_key, slot.enc_priv_key, slot.nickname,
                position, datetime.utcnow().isoformat(),
            ),
        )
        self.conn.execute("DELETE FROM slot_robots WHERE token = ?", (slot.token,))
        self.conn.executemany(
            "INSERT INTO slot_robots (token, short_alias, position) VALUES (?, ?, ?)",
            [(slot.token, alias, i) for i, alias in enumerate(slot.short_aliases)],
        )
        self.conn.commit()

    def get_slot(self, token: str) -> Optional[StoredSlot]:
        row = self.conn.execute("SELECT * FROM slots WHERE token = ?", (token,)).fetchone()
        return self._row_to_slot(row) if row else None

    def get_all_slots(self) -> List[StoredSlot]:
        rows = self.conn.execute("SELECT * FROM slots ORDER BY position").fetchall()
        return [self._row_to_slot(r) for r in rows]

    def delete_slot(self, token: str):
        self.conn.execute("DELETE FROM slot_robots WHERE token = ?", (token,))
        self.conn.execute("DELETE FROM slots WHERE token = ?", (token,))
        self.conn.commit()
        logger.info("[DB] Deleted slot")

    # ==================== Garage State ====================

    def set_state(self, key: str, value: Optional[str]):
        self.conn.execute(
            "INSERT OR REPLACE INTO garage_state (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, datetime.utcnow().isoformat()),
        )
        self.conn.commit()

    def get_state(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM garage_state WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    # ==================== Row Converters ====================

    def _row_to_slot(self, row) -> StoredSlot:
        aliases = self.conn.execute(
            "SELECT short_alias FROM slot_robots WHERE token = ? ORDER BY position",
            (row["token"],),
        ).fetchall()
        return StoredSlot(
            token=row["token"],
            short_aliases=[a["short_alias"] for a in aliases],
            pub_key=row["pub_key"],
            enc_priv_key=row["enc_priv_key"],
            nickname=row["nickname"],
        )
