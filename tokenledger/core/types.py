# tokenledger/core/types.py
from dataclasses import dataclass, field, asdict
from typing import Dict, Literal, Optional, Tuple

DECIMALS = 18
MAX_SUPPLY_UNITS = 500_000
MAX_SUPPLY = MAX_SUPPLY_UNITS * 10 ** DECIMALS
UINT256_MAX = (1 << 256) - 1

NotificationKind = Literal[
    "Transfer",
    "Approval",
    "Mint",
    "Burn",
    "Paused",
    "Unpaused",
    "ManagementUpdated",
    "OwnershipTransferred",
    "AddressAuthorized",
    "AddressDeauthorized",
]


@dataclass(frozen=True, order=True)
class Principal:
    """Opaque account identifier (address-like). Ordered so it can key sorted maps."""
    address: str

    def __post_init__(self):
        if not isinstance(self.address, str) or not self.address:
            raise ValueError("Principal address must be a non-empty string")

    @property
    def is_null(self) -> bool:
        return self == NULL_PRINCIPAL

    def __str__(self) -> str:
        return self.address


NULL_PRINCIPAL = Principal("0x" + "00" * 20)


@dataclass(frozen=True)
class Proof:
    """W3C Data Integrity style signature proof (minimal version)."""
    type: str = "Ed25519Signature2020"
    created: str = ""
    verification_method: str = ""           # key URI / JWK thumbprint of the signer
    proof_purpose: str = "assertionMethod"
    proof_value: str = ""                   # base64url encoded Ed25519 sig


@dataclass(frozen=True)
class Notification:
    """Structured record of one committed state change."""
    kind: NotificationKind
    payload: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "payload": dict(self.payload)}


@dataclass(frozen=True)
class Receipt:
    """Outcome of a single mutating call: who did what, and what it emitted."""
    operation: str
    caller: Principal
    notifications: Tuple[Notification, ...] = ()
    success: bool = True

    def __bool__(self):
        return self.success

    @property
    def kinds(self) -> Tuple[str, ...]:
        return tuple(n.kind for n in self.notifications)


@dataclass(frozen=True)
class JournalEntry:
    """Single hash-chained entry in a ledger's notification journal."""
    ledger_id: str
    sequence: int
    operation: str
    caller: str
    kind: NotificationKind
    payload: Dict[str, str] = field(default_factory=dict)
    prev_hash: str = ""             # hex(sha256) or empty for first entry

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Checkpoint:
    """Signed statement that a journal reached `sequence` with head `head_hash`."""
    ledger_id: str
    sequence: int
    head_hash: str
    proof: Optional[Proof] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        if d["proof"] is None:
            d["proof"] = {}
        return d
