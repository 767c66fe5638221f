# tokenledger/asset/ledger.py
"""
Bounded-issuance fungible asset ledger.

The full ceiling is issued to the deploying principal at construction; `mint`
can only refill what `burn` removed. Privileged operations are gated by the
ledger owner or by an external authorization source, transfers by a pause
switch. Each mutating call returns a Receipt listing the notifications it
emitted; a failing call raises a LedgerError and changes nothing.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Dict, List, Tuple

from tokenledger.asset.reentrancy import ReentrancyGuard
from tokenledger.auth.guards import (
    AuthorizationGuard,
    GuardResult,
    OwnerGuard,
    PauseGuard,
    enforce,
)
from tokenledger.auth.registry import AuthorizationSource
from tokenledger.core.encoding import amount_to_str
from tokenledger.core.errors import (
    AllowanceExceeded,
    AllowanceUnderflow,
    InsufficientBalance,
    InvalidAddress,
    InvalidAmount,
    SelfTransfer,
    SupplyExceeded,
    ZeroAmount,
)
from tokenledger.core.types import (
    DECIMALS,
    MAX_SUPPLY,
    NULL_PRINCIPAL,
    UINT256_MAX,
    Notification,
    Principal,
    Receipt,
)

logger = logging.getLogger(__name__)

SupplyHook = Callable[[Notification], None]


def _checked_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or amount > UINT256_MAX:
        raise InvalidAmount(f"Amount out of range: {amount}")
    return amount


def _transfer_note(sender: Principal, recipient: Principal, amount: int) -> Notification:
    return Notification("Transfer", {"from": str(sender), "to": str(recipient), "value": amount_to_str(amount)})


def _approval_note(owner: Principal, spender: Principal, amount: int) -> Notification:
    return Notification("Approval", {"owner": str(owner), "spender": str(spender), "value": amount_to_str(amount)})


class AssetLedger:

    decimals = DECIMALS

    def __init__(
        self,
        name: str,
        symbol: str,
        authorization_source: AuthorizationSource,
        deployer: Principal,
        *,
        max_supply: int = MAX_SUPPLY,
    ):
        if not name or not symbol:
            raise ValueError("name and symbol must be non-empty")
        if isinstance(max_supply, bool) or not isinstance(max_supply, int) or not 0 < max_supply <= UINT256_MAX:
            raise ValueError(f"max_supply out of range: {max_supply!r}")
        if deployer.is_null:
            raise InvalidAddress("Deployer cannot be the null principal")
        self._require_valid_source(authorization_source)

        self._name = name
        self._symbol = symbol
        self._max_supply = max_supply
        self._owner = deployer
        self._authorization_source = authorization_source
        self._paused = False
        self._balances: Dict[Principal, int] = {deployer: max_supply}
        self._allowances: Dict[Tuple[Principal, Principal], int] = {}
        self._total_supply = max_supply
        self._lock = ReentrancyGuard(f"{symbol} ledger")
        self._supply_hooks: List[SupplyHook] = []

        self.genesis = Receipt(
            operation="deploy",
            caller=deployer,
            notifications=(
                Notification("OwnershipTransferred", {"previous_owner": str(NULL_PRINCIPAL), "new_owner": str(deployer)}),
                _transfer_note(NULL_PRINCIPAL, deployer, max_supply),
            ),
        )
        logger.info("Deployed %s (%s) with %d units issued to %s", name, symbol, max_supply, deployer)

    # ── views

    @property
    def name(self) -> str:
        return self._name

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def max_supply(self) -> int:
        return self._max_supply

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def owner(self) -> Principal:
        return self._owner

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def authorization_source(self) -> AuthorizationSource:
        return self._authorization_source

    def balance_of(self, principal: Principal) -> int:
        return self._balances.get(principal, 0)

    def allowance(self, owner: Principal, spender: Principal) -> int:
        return self._allowances.get((owner, spender), 0)

    def remaining_supply(self) -> int:
        """How much can still be minted before hitting the ceiling."""
        return self._max_supply - self._total_supply

    def holders(self) -> Dict[Principal, int]:
        """Non-zero balances, ordered by principal."""
        return dict(sorted(self._balances.items()))

    # ── guards

    def require_owner(self, caller: Principal) -> GuardResult:
        return OwnerGuard(self._owner).check(caller)

    def require_authorized(self, caller: Principal) -> GuardResult:
        return AuthorizationGuard(self._authorization_source).check(caller)

    def require_not_paused(self) -> GuardResult:
        return PauseGuard(self._paused).check()

    # ── supply hooks (the only callback surface, reached from mint and burn;
    #    every other mutator refuses to run while one is in progress)

    def add_supply_hook(self, hook: SupplyHook) -> None:
        self._supply_hooks.append(hook)

    def remove_supply_hook(self, hook: SupplyHook) -> None:
        self._supply_hooks.remove(hook)

    def _notify_supply_hooks(self, notifications: Tuple[Notification, ...]) -> None:
        for note in notifications:
            for hook in list(self._supply_hooks):
                hook(note)

    # ── transfer family

    def transfer(self, caller: Principal, recipient: Principal, amount: int) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_not_paused())
        amount = _checked_amount(amount)
        if recipient == caller:
            raise SelfTransfer(f"{caller} cannot transfer to itself")
        if self.balance_of(caller) < amount:
            raise InsufficientBalance(f"{caller} holds {self.balance_of(caller)}, needs {amount}")
        note = self._transfer(caller, recipient, amount)
        return Receipt("transfer", caller, (note,))

    def transfer_from(self, caller: Principal, sender: Principal, recipient: Principal, amount: int) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_not_paused())
        amount = _checked_amount(amount)
        if self.balance_of(sender) < amount:
            raise InsufficientBalance(f"{sender} holds {self.balance_of(sender)}, needs {amount}")
        allowed = self.allowance(sender, caller)
        if allowed < amount:
            raise AllowanceExceeded(f"{caller} may move {allowed} from {sender}, asked {amount}")
        note = self._transfer(sender, recipient, amount)
        remaining = allowed - amount
        self._set_allowance(sender, caller, remaining)
        return Receipt("transfer_from", caller, (note, _approval_note(sender, caller, remaining)))

    def _transfer(self, sender: Principal, recipient: Principal, amount: int) -> Notification:
        # Single debit/credit primitive behind transfer and transfer_from.
        if sender.is_null or recipient.is_null:
            raise InvalidAddress("Transfers to or from the null principal are not allowed")
        if amount == 0:
            raise ZeroAmount("Transfer amount must be positive")
        sender_balance = self.balance_of(sender)
        if sender_balance < amount:
            raise InsufficientBalance(f"{sender} holds {sender_balance}, needs {amount}")
        self._debit(sender, amount)
        self._credit(recipient, amount)
        logger.debug("Transfer %d from %s to %s", amount, sender, recipient)
        return _transfer_note(sender, recipient, amount)

    def _debit(self, principal: Principal, amount: int) -> None:
        remaining = self._balances.get(principal, 0) - amount
        if remaining:
            self._balances[principal] = remaining
        else:
            self._balances.pop(principal, None)

    def _credit(self, principal: Principal, amount: int) -> None:
        self._balances[principal] = self._balances.get(principal, 0) + amount

    # ── allowances

    def approve(self, caller: Principal, spender: Principal, amount: int) -> Receipt:
        self._lock.ensure_idle()
        amount = _checked_amount(amount)
        self._require_parties(caller, spender)
        self._set_allowance(caller, spender, amount)
        logger.debug("Approval %s -> %s set to %d", caller, spender, amount)
        return Receipt("approve", caller, (_approval_note(caller, spender, amount),))

    def increase_allowance(self, caller: Principal, spender: Principal, delta: int) -> Receipt:
        self._lock.ensure_idle()
        delta = _checked_amount(delta)
        self._require_parties(caller, spender)
        updated = self.allowance(caller, spender) + delta
        if updated > UINT256_MAX:
            raise InvalidAmount("Allowance would overflow")
        self._set_allowance(caller, spender, updated)
        return Receipt("increase_allowance", caller, (_approval_note(caller, spender, updated),))

    def decrease_allowance(self, caller: Principal, spender: Principal, delta: int) -> Receipt:
        self._lock.ensure_idle()
        delta = _checked_amount(delta)
        self._require_parties(caller, spender)
        current = self.allowance(caller, spender)
        if delta > current:
            raise AllowanceUnderflow(f"Cannot decrease allowance {current} by {delta}")
        updated = current - delta
        self._set_allowance(caller, spender, updated)
        return Receipt("decrease_allowance", caller, (_approval_note(caller, spender, updated),))

    def _set_allowance(self, owner: Principal, spender: Principal, amount: int) -> None:
        if amount:
            self._allowances[(owner, spender)] = amount
        else:
            self._allowances.pop((owner, spender), None)

    @staticmethod
    def _require_parties(owner: Principal, spender: Principal) -> None:
        if owner.is_null or spender.is_null:
            raise InvalidAddress("Allowance parties cannot be the null principal")

    # ── issuance

    @contextmanager
    def _undo_on_error(self):
        """Restore the whole mutable state if anything below raises (e.g. a supply hook)."""
        saved = (
            self._total_supply,
            dict(self._balances),
            dict(self._allowances),
            self._paused,
            self._owner,
            self._authorization_source,
        )
        try:
            yield
        except BaseException:
            (
                self._total_supply,
                self._balances,
                self._allowances,
                self._paused,
                self._owner,
                self._authorization_source,
            ) = saved
            raise

    def mint(self, caller: Principal, recipient: Principal, amount: int) -> Receipt:
        with self._lock:
            enforce(self.require_authorized(caller), self.require_not_paused())
            amount = _checked_amount(amount)
            if recipient.is_null:
                raise InvalidAddress("Cannot mint to the null principal")
            if amount == 0:
                raise ZeroAmount("Mint amount must be positive")
            if self._total_supply + amount > self._max_supply:
                raise SupplyExceeded(
                    f"Minting {amount} would exceed max supply ({self.remaining_supply()} remaining)"
                )
            notes = (
                Notification("Mint", {"to": str(recipient), "value": amount_to_str(amount)}),
                _transfer_note(NULL_PRINCIPAL, recipient, amount),
            )
            with self._undo_on_error():
                self._total_supply += amount
                self._credit(recipient, amount)
                self._notify_supply_hooks(notes)
        logger.info("Minted %d to %s (supply %d)", amount, recipient, self._total_supply)
        return Receipt("mint", caller, notes)

    def burn(self, caller: Principal, amount: int) -> Receipt:
        with self._lock:
            enforce(self.require_not_paused())
            amount = _checked_amount(amount)
            if caller.is_null:
                raise InvalidAddress("The null principal cannot burn")
            if self.balance_of(caller) < amount:
                raise InsufficientBalance(f"{caller} holds {self.balance_of(caller)}, burning {amount}")
            if amount == 0:
                raise ZeroAmount("Burn amount must be positive")
            notes = (
                Notification("Burn", {"from": str(caller), "value": amount_to_str(amount)}),
                _transfer_note(caller, NULL_PRINCIPAL, amount),
            )
            with self._undo_on_error():
                self._total_supply -= amount
                self._debit(caller, amount)
                self._notify_supply_hooks(notes)
        logger.info("Burned %d from %s (supply %d)", amount, caller, self._total_supply)
        return Receipt("burn", caller, notes)

    # ── pause switch

    def pause(self, caller: Principal) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_authorized(caller), self.require_not_paused())
        self._paused = True
        logger.info("Ledger %s paused by %s", self._symbol, caller)
        return Receipt("pause", caller, (Notification("Paused", {"account": str(caller)}),))

    def unpause(self, caller: Principal) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_authorized(caller), PauseGuard(self._paused, expect_paused=True).check())
        self._paused = False
        logger.info("Ledger %s unpaused by %s", self._symbol, caller)
        return Receipt("unpause", caller, (Notification("Unpaused", {"account": str(caller)}),))

    # ── administration

    @staticmethod
    def _require_valid_source(source) -> None:
        if source is None or not isinstance(source, AuthorizationSource):
            raise InvalidAddress("Authorization source must expose address and is_authorized()")
        if not isinstance(source.address, Principal) or source.address.is_null:
            raise InvalidAddress("Authorization source address cannot be null")

    def update_authorization_source(self, caller: Principal, new_source: AuthorizationSource) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_owner(caller))
        self._require_valid_source(new_source)
        previous = self._authorization_source
        self._authorization_source = new_source
        logger.info("Authorization source changed from %s to %s", previous.address, new_source.address)
        return Receipt(
            "update_authorization_source",
            caller,
            (Notification("ManagementUpdated", {"previous": str(previous.address), "current": str(new_source.address)}),),
        )

    def transfer_ownership(self, caller: Principal, new_owner: Principal) -> Receipt:
        self._lock.ensure_idle()
        enforce(self.require_owner(caller))
        if new_owner.is_null:
            raise InvalidAddress("New owner cannot be the null principal")
        previous = self._owner
        self._owner = new_owner
        logger.info("Ownership transferred from %s to %s", previous, new_owner)
        return Receipt(
            "transfer_ownership",
            caller,
            (Notification("OwnershipTransferred", {"previous_owner": str(previous), "new_owner": str(new_owner)}),),
        )

    def __repr__(self) -> str:
        state = "paused" if self._paused else "active"
        return f"AssetLedger({self._symbol}, supply={self._total_supply}/{self._max_supply}, {state})"
