# examples/ledger_demo.py
# Run with: python examples/ledger_demo.py
#
# Walks a ledger through burn / mint / pause / allowance spending, records every
# receipt into a journal, signs a checkpoint and verifies the result.

from dataclasses import replace

from tokenledger.asset.ledger import AssetLedger
from tokenledger.auth.registry import AuthorizationRegistry
from tokenledger.chain.journal import Journal
from tokenledger.core.encoding import format_units
from tokenledger.core.errors import ContractPaused, SupplyExceeded
from tokenledger.core.types import Principal
from tokenledger.crypto.keys import LedgerKeyPair
from tokenledger.verify.verifier import JournalVerifier


if __name__ == "__main__":
    deployer = Principal("0xdeployer")
    minter = Principal("0xminter")
    alice = Principal("0xalice")
    bob = Principal("0xbob")

    registry = AuthorizationRegistry(owner=deployer, address=Principal("0xregistry"))
    ledger = AssetLedger("Demo Asset", "DMO", registry, deployer)
    journal = Journal(ledger_id="DMO")
    journal.record(ledger.genesis)

    print("=" * 60)
    print(f"Deployed {ledger!r}")
    print(f"  deployer balance: {format_units(ledger.balance_of(deployer))} DMO")

    journal.record(registry.authorize(deployer, minter))
    journal.record(ledger.transfer(deployer, alice, 1_000 * 10 ** 18))
    journal.record(ledger.burn(alice, 250 * 10 ** 18))
    journal.record(ledger.mint(minter, bob, 250 * 10 ** 18))

    try:
        ledger.mint(minter, bob, 1)
    except SupplyExceeded as e:
        print(f"\n[mint beyond ceiling rejected] {e.code}: {e}")

    journal.record(ledger.pause(minter))
    try:
        ledger.transfer(alice, bob, 1)
    except ContractPaused as e:
        print(f"[transfer while paused rejected] {e.code}")
    journal.record(ledger.unpause(minter))

    journal.record(ledger.approve(alice, bob, 100 * 10 ** 18))
    journal.record(ledger.transfer_from(bob, alice, bob, 40 * 10 ** 18))
    print(f"\nallowance(alice, bob) = {format_units(ledger.allowance(alice, bob))}")

    print("\n[Journal]")
    for entry in journal.get_chain():
        hash_preview = entry.prev_hash[:12] + "..." if entry.prev_hash else "(genesis)"
        print(f"  [{entry.sequence:2d}] {entry.kind:20} | {hash_preview} | {entry.payload}")

    host_key = LedgerKeyPair.generate()
    checkpoint = journal.checkpoint(host_key)

    verifier = JournalVerifier(trusted_keys={"DMO": host_key.public_key_b64url()})
    chain = journal.get_chain()
    print("\n[Verification]")
    print(f"  Journal valid:    {verifier.verify(chain).is_valid}")
    print(f"  Checkpoint valid: {verifier.verify_checkpoint(chain, checkpoint).is_valid}")

    print("\n[Tamper detection]")
    tampered = chain.copy()
    tampered[1] = replace(tampered[1], payload={**tampered[1].payload, "value": "1"})
    print(f"  Tampering detected: {not verifier.verify(tampered).is_valid}")
    print("=" * 60)
