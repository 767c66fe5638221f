# tokenledger/crypto/keys.py
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from tokenledger.core.encoding import b64url_decode, b64url_encode
from tokenledger.core.types import Checkpoint, Proof
from tokenledger.crypto.hashing import checkpoint_payload


class LedgerKeyPair:
    """
    Ed25519 key used by a ledger host to sign journal checkpoints.
    A verify-only instance (public key, no private key) is built with from_public_b64url().
    """

    def __init__(self, public_key: Ed25519PublicKey, private_key: Optional[Ed25519PrivateKey] = None):
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "LedgerKeyPair":
        private_key = Ed25519PrivateKey.generate()
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_public_b64url(cls, public_b64: str) -> "LedgerKeyPair":
        raw = b64url_decode(public_b64)
        return cls(Ed25519PublicKey.from_public_bytes(raw))

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def public_key_b64url(self) -> str:
        raw = self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return b64url_encode(raw)

    def sign_bytes(self, data: bytes) -> bytes:
        if self._private_key is None:
            raise ValueError("Cannot sign with a verify-only key")
        return self._private_key.sign(data)

    def verify_bytes(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public_key.verify(signature, data)
            return True
        except InvalidSignature:
            return False

    def sign_checkpoint(self, checkpoint: Checkpoint) -> Checkpoint:
        """Return a copy of `checkpoint` carrying an Ed25519 proof over its canonical payload."""
        if checkpoint.proof is not None:
            raise ValueError("Checkpoint is already signed")
        signature = self.sign_bytes(checkpoint_payload(checkpoint))
        proof = Proof(
            created=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            verification_method=f"ed25519:{self.public_key_b64url()}",
            proof_value=b64url_encode(signature),
        )
        return replace(checkpoint, proof=proof)

    def verify_checkpoint(self, checkpoint: Checkpoint) -> bool:
        if checkpoint.proof is None or not checkpoint.proof.proof_value:
            return False
        signature = b64url_decode(checkpoint.proof.proof_value)
        return self.verify_bytes(signature, checkpoint_payload(checkpoint))
