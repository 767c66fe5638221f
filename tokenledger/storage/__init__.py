"""
Storage backends for persistent ledger journals.
"""

from abc import ABC, abstractmethod
from typing import List
from pathlib import Path
from tokenledger.core.types import JournalEntry

DB_PATH_ENV = "TOKENLEDGER_DB_PATH"


class StorageBackend(ABC):
    """Abstract base for all persistent storage implementations."""

    @abstractmethod
    def append(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    def load_entries(self, ledger_id: str) -> List[JournalEntry]:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(uri: str) -> StorageBackend:
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in storage URI: {uri}")
        return SQLiteStorage(Path(raw_path).resolve())

    elif uri.startswith("jsonl:"):
        raise NotImplementedError("JSONL backend coming soon")
    else:
        raise ValueError(f"Unsupported storage URI: {uri}")


from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "create_storage", "SQLiteStorage", "DB_PATH_ENV"]
