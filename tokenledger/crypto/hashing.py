# tokenledger/crypto/hashing.py
import hashlib

from tokenledger.core.types import Checkpoint, JournalEntry
from tokenledger.core.canon import canonical_json


def entry_hash(entry: JournalEntry) -> str:
    """hex(sha256) over the canonical JSON of a journal entry (prev_hash included)."""
    return hashlib.sha256(canonical_json(entry.to_dict())).hexdigest()


def checkpoint_payload(checkpoint: Checkpoint) -> bytes:
    """Bytes a checkpoint signature covers: everything except the proof itself."""
    payload = {k: v for k, v in checkpoint.to_dict().items() if k != "proof"}
    return canonical_json(payload)
