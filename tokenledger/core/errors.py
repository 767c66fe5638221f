# tokenledger/core/errors.py
"""
Failure taxonomy for ledger and registry operations.

Every failure rejects exactly one call and leaves state as it was before the
call. Callers branch on the exception type (or its stable `code`).
"""


class LedgerError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class AccessDenied(LedgerError):
    code = "ACCESS_DENIED"


class Unauthorized(LedgerError):
    """Registry mutation attempted by someone other than the registry owner."""
    code = "UNAUTHORIZED"


class ContractPaused(LedgerError):
    code = "CONTRACT_PAUSED"


class NotPaused(LedgerError):
    code = "NOT_PAUSED"


class InsufficientBalance(LedgerError):
    code = "INSUFFICIENT_BALANCE"


class AllowanceExceeded(LedgerError):
    code = "ALLOWANCE_EXCEEDED"


class AllowanceUnderflow(LedgerError):
    code = "ALLOWANCE_UNDERFLOW"


class SupplyExceeded(LedgerError):
    code = "SUPPLY_EXCEEDED"


class SelfTransfer(LedgerError):
    code = "SELF_TRANSFER"


class ZeroAmount(LedgerError):
    code = "ZERO_AMOUNT"


class InvalidAddress(LedgerError):
    code = "INVALID_ADDRESS"


class InvalidAmount(LedgerError):
    """Amount is not an integer in [0, 2**256 - 1]."""
    code = "INVALID_AMOUNT"


class ReentrantCall(LedgerError):
    code = "REENTRANT_CALL"
