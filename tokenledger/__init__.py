# tokenledger/__init__.py
"""
tokenledger: bounded-issuance fungible asset ledger with gated mint/burn,
a pause switch, allowances and owner + registry access control.
Every state change is returned as a receipt of notifications that can be
hash-chained into a verifiable journal.
"""

__version__ = "0.1.0-dev"
