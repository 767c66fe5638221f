# tests/test_verify.py
from dataclasses import replace

import pytest

from tokenledger.asset.ledger import AssetLedger
from tokenledger.auth.registry import AuthorizationRegistry
from tokenledger.chain.journal import Journal
from tokenledger.core.types import MAX_SUPPLY, NULL_PRINCIPAL, Principal
from tokenledger.crypto.hashing import entry_hash
from tokenledger.crypto.keys import LedgerKeyPair
from tokenledger.storage import SQLiteStorage
from tokenledger.verify.verifier import JournalVerifier, replay

DEPLOYER = Principal("0xdeployer")
MINTER = Principal("0xminter")
ALICE = Principal("0xalice")
BOB = Principal("0xbob")


def create_test_journal(storage=None):
    registry = AuthorizationRegistry(owner=DEPLOYER, address=Principal("0xregistry"))
    ledger = AssetLedger("Test Asset", "TST", registry, DEPLOYER)
    journal = Journal(ledger_id="TST", storage=storage)
    journal.record(ledger.genesis)
    journal.record(registry.authorize(DEPLOYER, MINTER))
    journal.record(ledger.transfer(DEPLOYER, ALICE, 1_000))
    journal.record(ledger.burn(ALICE, 300))
    journal.record(ledger.mint(MINTER, BOB, 300))
    journal.record(ledger.approve(ALICE, BOB, 100))
    journal.record(ledger.transfer_from(BOB, ALICE, BOB, 40))
    journal.record(ledger.pause(MINTER))
    return ledger, journal


def rechain(chain):
    """Recompute prev_hash links so only the payload tamper remains."""
    fixed = []
    for i, entry in enumerate(chain):
        prev = entry_hash(fixed[i - 1]) if i else ""
        fixed.append(replace(entry, prev_hash=prev))
    return fixed


def test_valid_journal():
    _, journal = create_test_journal()
    result = JournalVerifier().verify(journal.get_chain())
    assert result.is_valid is True
    assert len(result.failures) == 0
    assert "valid" in str(result).lower()


def test_empty_journal_is_valid():
    assert JournalVerifier().verify([])


def test_replay_matches_live_ledger():
    ledger, journal = create_test_journal()
    snapshot = replay(journal.get_chain())
    assert snapshot.violations == []
    assert snapshot.total_supply == ledger.total_supply == MAX_SUPPLY
    assert snapshot.balances == {str(p): v for p, v in ledger.holders().items()}
    assert snapshot.allowances == {("0xalice", "0xbob"): 60}
    assert snapshot.paused is True
    assert snapshot.owner == "0xdeployer"
    assert str(NULL_PRINCIPAL) not in snapshot.balances


def test_tamper_payload_breaks_hash_chain():
    _, journal = create_test_journal()
    chain = journal.get_chain()
    chain[4] = replace(chain[4], payload={**chain[4].payload, "value": "999"})
    result = JournalVerifier().verify(chain)
    assert result.is_valid is False
    assert any(f.category == "hash_chain" for f in result.failures)


def test_rechained_overdraft_breaks_invariants():
    _, journal = create_test_journal()
    chain = journal.get_chain()
    # ALICE -> null burn of more than ALICE ever held
    burn_index = next(i for i, e in enumerate(chain) if e.kind == "Transfer" and e.payload["to"] == str(NULL_PRINCIPAL))
    chain[burn_index] = replace(chain[burn_index], payload={**chain[burn_index].payload, "value": "5000"})
    result = JournalVerifier().verify(rechain(chain))
    assert result.is_valid is False
    assert {f.category for f in result.failures} == {"invariant"}
    assert any("Negative balance" in f.message for f in result.failures)


def test_rechained_supply_over_ceiling():
    _, journal = create_test_journal()
    chain = journal.get_chain()
    mint_index = next(i for i, e in enumerate(chain) if e.kind == "Transfer" and e.payload["from"] == str(NULL_PRINCIPAL) and e.operation == "mint")
    chain[mint_index] = replace(chain[mint_index], payload={**chain[mint_index].payload, "value": "301"})
    result = JournalVerifier().verify(rechain(chain))
    assert not result
    assert any("exceeds max" in f.message for f in result.failures)


def test_wrong_sequence():
    _, journal = create_test_journal()
    chain = journal.get_chain()
    chain[2] = replace(chain[2], sequence=99)
    result = JournalVerifier().verify(chain)
    assert result.is_valid is False
    assert any("sequence" in f.category for f in result.failures)


def test_different_ledger():
    _, journal = create_test_journal()
    chain = journal.get_chain()
    chain[2] = replace(chain[2], ledger_id="EVIL")
    result = JournalVerifier().verify(chain)
    assert result.is_valid is False
    assert any("ledger" == f.category for f in result.failures)


def test_checkpoint_verification():
    _, journal = create_test_journal()
    key = LedgerKeyPair.generate()
    checkpoint = journal.checkpoint(key)
    verifier = JournalVerifier(trusted_keys={"TST": key.public_key_b64url()})
    assert verifier.verify_checkpoint(journal.get_chain(), checkpoint).is_valid

    forged = replace(checkpoint, head_hash="00" * 32)
    result = verifier.verify_checkpoint(journal.get_chain(), forged)
    assert not result
    assert {"signature", "checkpoint"} <= {f.category for f in result.failures}


def test_checkpoint_from_untrusted_key():
    _, journal = create_test_journal()
    checkpoint = journal.checkpoint(LedgerKeyPair.generate())
    verifier = JournalVerifier(trusted_keys={"TST": LedgerKeyPair.generate().public_key_b64url()})
    result = verifier.verify_checkpoint(journal.get_chain(), checkpoint)
    assert not result
    assert result.first_failure.category == "signature"


def test_checkpoint_without_trusted_key():
    _, journal = create_test_journal()
    checkpoint = journal.checkpoint(LedgerKeyPair.generate())
    result = JournalVerifier().verify_checkpoint(journal.get_chain(), checkpoint)
    assert not result
    assert result.first_failure.category == "checkpoint"


def test_verifier_with_storage(tmp_path):
    db = tmp_path / "verify.db"
    _, journal = create_test_journal(storage=f"sqlite://{db}")
    journal.close()

    verifier = JournalVerifier()
    with SQLiteStorage(db) as storage:
        assert verifier.verify_from_storage("TST", storage).is_valid
        missing = verifier.verify_from_storage("NOPE", storage)
        assert not missing
        assert missing.first_failure.category == "storage"
