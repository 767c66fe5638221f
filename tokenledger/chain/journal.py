# tokenledger/chain/journal.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from tokenledger.core.types import Checkpoint, JournalEntry, Notification, Receipt
from tokenledger.crypto.hashing import entry_hash
from tokenledger.crypto.keys import LedgerKeyPair
from tokenledger.storage import StorageBackend, create_storage

logger = logging.getLogger(__name__)


@dataclass
class Journal:
    """
    Append-only, hash-chained record of the notifications a ledger emitted.
    Receipts returned by ledger and registry calls are fed in through record().
    Supports optional persistent storage (SQLite).
    """
    ledger_id: str
    entries: List[JournalEntry] = field(default_factory=list)
    storage: Optional[Union[StorageBackend, str]] = None

    def __post_init__(self):
        if isinstance(self.storage, str):
            stripped = self.storage.strip()
            if stripped.startswith(("sqlite://", "jsonl:")):
                self.storage = create_storage(stripped)
            elif stripped:
                # Plain file path means SQLite
                self.storage = create_storage(f"sqlite://{stripped}")
            else:
                self.storage = None

        if self.storage and not self.entries:
            try:
                self.entries = self.storage.load_entries(self.ledger_id)
                logger.info("Loaded %d entries from storage for ledger %s", len(self.entries), self.ledger_id)
            except Exception as e:
                logger.error("Could not load journal for ledger %s: %s", self.ledger_id, e)
                self.storage.close()
                raise

    @property
    def length(self) -> int:
        return len(self.entries)

    def append(self, notification: Notification, operation: str, caller: str) -> JournalEntry:
        """Chain one notification onto the journal and persist it if storage is active."""
        prev_hash = entry_hash(self.entries[-1]) if self.entries else ""
        entry = JournalEntry(
            ledger_id=self.ledger_id,
            sequence=self.length,
            operation=operation,
            caller=caller,
            kind=notification.kind,
            payload=dict(notification.payload),
            prev_hash=prev_hash,
        )
        if self.storage:
            try:
                self.storage.append(entry)
            except Exception as e:
                logger.error("Failed to persist entry %d of ledger %s: %s", entry.sequence, self.ledger_id, e)
                raise
        self.entries.append(entry)
        return entry

    def record(self, receipt: Receipt) -> List[JournalEntry]:
        """Append every notification of a successful receipt, in emission order."""
        if not receipt:
            raise ValueError("Cannot record a failed receipt")
        return [
            self.append(note, receipt.operation, str(receipt.caller))
            for note in receipt.notifications
        ]

    def get_chain(self) -> List[JournalEntry]:
        """Returns copy of the full chain (immutable view)"""
        return self.entries.copy()

    def get_last_hash(self) -> Optional[str]:
        if not self.entries:
            return None
        return entry_hash(self.entries[-1])

    def checkpoint(self, signer: LedgerKeyPair) -> Checkpoint:
        """Sign the current head so auditors can pin the journal at this length."""
        if not self.entries:
            raise ValueError("Cannot checkpoint an empty journal")
        unsigned = Checkpoint(
            ledger_id=self.ledger_id,
            sequence=self.entries[-1].sequence,
            head_hash=entry_hash(self.entries[-1]),
        )
        return signer.sign_checkpoint(unsigned)

    def close(self) -> None:
        """Release any storage resources (e.g. database connection)."""
        if self.storage:
            try:
                self.storage.close()
                logger.info("Storage closed for ledger %s", self.ledger_id)
            except Exception as e:
                logger.warning("Error closing storage: %s", e)
            self.storage = None
