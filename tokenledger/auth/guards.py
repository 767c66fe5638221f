# tokenledger/auth/guards.py
"""
Composable preconditions for ledger operations.

Each guard is a pure read: `check()` returns a GuardResult and never touches
state. An operation evaluates every guard it needs, then calls `enforce()`,
which raises the first failure as its LedgerError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Type

from tokenledger.core.errors import AccessDenied, ContractPaused, LedgerError, NotPaused
from tokenledger.core.types import Principal


@dataclass(frozen=True)
class GuardResult:
    passed: bool
    error: Optional[Type[LedgerError]] = None
    message: str = ""

    def __bool__(self):
        return self.passed

    def raise_for_failure(self) -> None:
        if not self.passed:
            raise (self.error or LedgerError)(self.message)


PASSED = GuardResult(True)


def enforce(*results: GuardResult) -> None:
    """Raise the first failed result, in argument order."""
    for result in results:
        result.raise_for_failure()


class Guard(ABC):
    @abstractmethod
    def check(self, caller: Optional[Principal] = None) -> GuardResult:
        pass


class OwnerGuard(Guard):
    def __init__(self, owner: Principal):
        self.owner = owner

    def check(self, caller: Optional[Principal] = None) -> GuardResult:
        if caller is not None and caller == self.owner:
            return PASSED
        return GuardResult(False, AccessDenied, f"{caller} is not the ledger owner")


class AuthorizationGuard(Guard):
    """Delegates the decision to an external authorization source (e.g. AuthorizationRegistry)."""

    def __init__(self, source):
        self.source = source

    def check(self, caller: Optional[Principal] = None) -> GuardResult:
        if caller is not None and self.source.is_authorized(caller):
            return PASSED
        return GuardResult(False, AccessDenied, f"{caller} is not authorized")


class PauseGuard(Guard):
    """Passes when the ledger's paused flag equals `expect_paused`."""

    def __init__(self, paused: bool, expect_paused: bool = False):
        self.paused = paused
        self.expect_paused = expect_paused

    def check(self, caller: Optional[Principal] = None) -> GuardResult:
        if self.paused == self.expect_paused:
            return PASSED
        if self.paused:
            return GuardResult(False, ContractPaused, "Ledger is paused")
        return GuardResult(False, NotPaused, "Ledger is not paused")
