# tokenledger/verify/verifier.py
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field

from tokenledger.core.encoding import amount_from_str
from tokenledger.core.types import MAX_SUPPLY, NULL_PRINCIPAL, Checkpoint, JournalEntry
from tokenledger.crypto.hashing import entry_hash
from tokenledger.crypto.keys import LedgerKeyPair
from tokenledger.storage import StorageBackend


@dataclass
class VerificationFailure:
    index: int
    message: str
    category: str = "general"  # e.g. "hash_chain", "sequence", "ledger", "invariant", "checkpoint"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None

    def __post_init__(self):
        if self.failures is None:
            self.failures = []

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def fail(self, index: int, message: str, category: str) -> None:
        self.failures.append(VerificationFailure(index, message, category))
        self.is_valid = False

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Journal is valid ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.index}] {f.category}: {f.message}")
        return "\n".join(lines)


@dataclass
class LedgerSnapshot:
    """Ledger state reconstructed purely from journal notifications."""
    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[Tuple[str, str], int] = field(default_factory=dict)
    total_supply: int = 0
    paused: bool = False
    owner: str = ""
    # (index, message) for every transition that broke a ledger invariant
    violations: List[Tuple[int, str]] = field(default_factory=list)


def replay(entries: List[JournalEntry], max_supply: int = MAX_SUPPLY) -> LedgerSnapshot:
    """
    Fold journal entries into a snapshot. Transfer-from-null counts as issuance,
    Transfer-to-null as burn; Mint/Burn records are informational duplicates.
    Every Transfer moves balance and supply together, so sum(balances) tracks
    total_supply by construction; the checks here catch overdrafts and ceiling breaks.
    """
    snap = LedgerSnapshot()
    null = str(NULL_PRINCIPAL)

    for i, entry in enumerate(entries):
        p = entry.payload
        try:
            if entry.kind == "Transfer":
                value = amount_from_str(p["value"])
                src, dst = p["from"], p["to"]
                if src == null and dst == null:
                    snap.violations.append((i, "Transfer between null principals"))
                    continue
                if src == null:
                    snap.total_supply += value
                else:
                    remaining = snap.balances.get(src, 0) - value
                    if remaining < 0:
                        snap.violations.append((i, f"Negative balance for {src}"))
                    snap.balances[src] = remaining
                if dst == null:
                    snap.total_supply -= value
                else:
                    snap.balances[dst] = snap.balances.get(dst, 0) + value
                if snap.total_supply > max_supply:
                    snap.violations.append((i, f"Total supply {snap.total_supply} exceeds max {max_supply}"))
                if snap.total_supply < 0:
                    snap.violations.append((i, "Total supply went negative"))
            elif entry.kind == "Approval":
                snap.allowances[(p["owner"], p["spender"])] = amount_from_str(p["value"])
            elif entry.kind == "Paused":
                snap.paused = True
            elif entry.kind == "Unpaused":
                snap.paused = False
            elif entry.kind == "OwnershipTransferred":
                snap.owner = p["new_owner"]
        except (KeyError, ValueError) as e:
            snap.violations.append((i, f"Malformed {entry.kind} payload: {e}"))

    snap.balances = {k: v for k, v in sorted(snap.balances.items()) if v != 0}
    snap.allowances = {k: v for k, v in sorted(snap.allowances.items()) if v != 0}
    return snap


class JournalVerifier:
    """
    Offline verifier for ledger journals.
    Checks structure and hash chaining, replays the notifications against the
    ledger invariants, and optionally checks signed checkpoints.
    """

    def __init__(self, trusted_keys: Optional[Dict[str, str]] = None, max_supply: int = MAX_SUPPLY):
        """
        trusted_keys: ledger_id → base64url Ed25519 public key of the host allowed to checkpoint it
        """
        self.trusted_keys = trusted_keys or {}
        self.max_supply = max_supply

    def verify(self, chain: List[JournalEntry]) -> VerificationResult:
        if not chain:
            return VerificationResult(True, "Empty journal is valid")

        result = VerificationResult(True)

        # 1. Ledger & sequence consistency
        ledger_id = chain[0].ledger_id
        for i, entry in enumerate(chain):
            if entry.ledger_id != ledger_id:
                result.fail(i, f"Ledger mismatch: {entry.ledger_id}", "ledger")
            if entry.sequence != i:
                result.fail(i, f"Sequence mismatch: expected {i}, got {entry.sequence}", "sequence")

        if not result.is_valid:
            return result

        # 2. Hash chain
        if chain[0].prev_hash:
            result.fail(0, "First entry must not reference a previous hash", "hash_chain")
        for i in range(1, len(chain)):
            if chain[i].prev_hash != entry_hash(chain[i - 1]):
                result.fail(i, "prev_hash does not match previous entry hash", "hash_chain")

        # 3. Ledger invariants over the replayed state
        snapshot = replay(chain, self.max_supply)
        for index, message in snapshot.violations:
            result.fail(index, message, "invariant")

        result.message = (
            f"Valid journal ({len(chain)} entries, supply {snapshot.total_supply})"
            if result.is_valid else f"Failed with {len(result.failures)} issues"
        )
        return result

    def verify_checkpoint(self, chain: List[JournalEntry], checkpoint: Checkpoint) -> VerificationResult:
        """Check that `checkpoint` is signed by the trusted host key and pins a prefix of `chain`."""
        result = VerificationResult(True)
        pub_b64 = self.trusted_keys.get(checkpoint.ledger_id)
        if pub_b64 is None:
            result.fail(-1, f"No trusted key for ledger '{checkpoint.ledger_id}'", "checkpoint")
            return result

        try:
            verifier = LedgerKeyPair.from_public_b64url(pub_b64)
            if not verifier.verify_checkpoint(checkpoint):
                result.fail(checkpoint.sequence, "Invalid checkpoint signature", "signature")
        except Exception as e:
            result.fail(checkpoint.sequence, f"Key loading failed: {str(e)}", "signature")

        if not 0 <= checkpoint.sequence < len(chain):
            result.fail(checkpoint.sequence, "Checkpoint is beyond the end of the journal", "checkpoint")
        elif entry_hash(chain[checkpoint.sequence]) != checkpoint.head_hash:
            result.fail(checkpoint.sequence, "Checkpoint head does not match journal", "checkpoint")

        result.message = "Checkpoint valid" if result.is_valid else f"Failed with {len(result.failures)} issues"
        return result

    def verify_from_storage(self, ledger_id: str, storage: StorageBackend) -> VerificationResult:
        """
        Load entries from persistent storage and verify the journal.
        Returns a failed result if loading itself fails (e.g. broken chain in storage).
        """
        try:
            chain = storage.load_entries(ledger_id)
        except Exception as e:
            return VerificationResult(
                False,
                f"Failed to load ledger '{ledger_id}' from storage: {str(e)}",
                [VerificationFailure(-1, str(e), "storage")]
            )

        if not chain:
            return VerificationResult(
                False,
                f"No entries recorded for ledger '{ledger_id}'",
                [VerificationFailure(-1, "Ledger not found", "storage")]
            )

        return self.verify(chain)
