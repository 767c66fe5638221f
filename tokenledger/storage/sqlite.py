import os
import sqlite3
import json
from pathlib import Path
from typing import List, Optional

from tokenledger.core.types import JournalEntry
from tokenledger.core.canon import canonical_json
from tokenledger.crypto.hashing import entry_hash
from . import StorageBackend, DB_PATH_ENV


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for ledger notification journals."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get(DB_PATH_ENV)
            db_path = env_path if env_path else Path.cwd() / "tokenledger-journal.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        # Amounts exceed SQLite's 64-bit INTEGER, so payloads stay as canonical JSON text.
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                ledger_id       TEXT    NOT NULL,
                sequence        INTEGER NOT NULL,
                prev_hash       TEXT    NOT NULL,
                entry_hash      TEXT    NOT NULL,
                operation       TEXT    NOT NULL,
                caller          TEXT    NOT NULL,
                kind            TEXT    NOT NULL,
                payload_json    TEXT    NOT NULL,
                PRIMARY KEY (ledger_id, sequence)
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_kind   ON entries(ledger_id, kind)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_caller ON entries(caller)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def append(self, entry: JournalEntry) -> None:
        if entry.sequence < 0:
            raise ValueError(f"Invalid sequence {entry.sequence}")
        if entry.sequence > 0 and not entry.prev_hash:
            raise ValueError("Cannot persist unchained entry (missing prev_hash)")

        payload_str = canonical_json(entry.payload).decode("utf-8")
        self.conn.execute("""
            INSERT INTO entries
            (ledger_id, sequence, prev_hash, entry_hash, operation,
             caller, kind, payload_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.ledger_id, entry.sequence, entry.prev_hash, entry_hash(entry),
            entry.operation, entry.caller, entry.kind, payload_str
        ))

    def _row_to_entry(self, ledger_id: str, row) -> JournalEntry:
        seq, prev, op, caller, kind, pjson = row
        return JournalEntry(
            ledger_id=ledger_id,
            sequence=seq,
            operation=op,
            caller=caller,
            kind=kind,
            payload=json.loads(pjson),
            prev_hash=prev,
        )

    def load_entries(self, ledger_id: str) -> List[JournalEntry]:
        cursor = self.conn.execute("""
            SELECT sequence, prev_hash, operation, caller, kind, payload_json
            FROM entries WHERE ledger_id = ? ORDER BY sequence ASC
        """, (ledger_id,))

        loaded = [self._row_to_entry(ledger_id, row) for row in cursor]
        for i in range(1, len(loaded)):
            if loaded[i].prev_hash != entry_hash(loaded[i - 1]):
                raise ValueError(f"Chain broken at sequence {loaded[i].sequence}")
        return loaded

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def list_ledgers(self) -> list[str]:
        """All ledger ids with at least one entry, alphabetically."""
        cursor = self.conn.execute("""
            SELECT DISTINCT ledger_id FROM entries ORDER BY ledger_id ASC
        """)
        return [row[0] for row in cursor.fetchall()]

    def get_entry_count(self, ledger_id: str) -> int:
        cursor = self.conn.execute(
            "SELECT COUNT(*) FROM entries WHERE ledger_id = ?",
            (ledger_id,)
        )
        return cursor.fetchone()[0]

    def get_latest_sequence(self, ledger_id: str) -> Optional[int]:
        cursor = self.conn.execute(
            "SELECT MAX(sequence) FROM entries WHERE ledger_id = ?",
            (ledger_id,)
        )
        row = cursor.fetchone()
        return row[0] if row and row[0] is not None else None

    def query_entries(self, ledger_id: str, limit: int = 50) -> List[JournalEntry]:
        cursor = self.conn.execute("""
            SELECT sequence, prev_hash, operation, caller, kind, payload_json
            FROM entries
            WHERE ledger_id = ?
            ORDER BY sequence DESC
            LIMIT ?
        """, (ledger_id, limit))

        loaded = [self._row_to_entry(ledger_id, row) for row in cursor]
        loaded.reverse()  # latest last
        return loaded
