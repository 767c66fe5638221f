# tokenledger/auth/registry.py
import logging
from typing import Dict, Protocol, runtime_checkable

from tokenledger.core.errors import Unauthorized
from tokenledger.core.types import Notification, Principal, Receipt

logger = logging.getLogger(__name__)


@runtime_checkable
class AuthorizationSource(Protocol):
    """What the asset ledger needs from whoever decides who is authorized."""

    address: Principal

    def is_authorized(self, principal: Principal) -> bool:
        ...


class AuthorizationRegistry:
    """
    Boolean registry of authorized principals, writable only by its owner.
    Entries are flipped to False on deauthorize, never removed.
    """

    def __init__(self, owner: Principal, address: Principal):
        if owner.is_null:
            raise ValueError("Registry owner cannot be the null principal")
        self.owner = owner
        self.address = address
        self._authorized: Dict[Principal, bool] = {}

    def _require_owner(self, caller: Principal) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the registry owner")

    def authorize(self, caller: Principal, target: Principal) -> Receipt:
        self._require_owner(caller)
        self._authorized[target] = True
        logger.info("Authorized %s in registry %s", target, self.address)
        return Receipt(
            operation="authorize",
            caller=caller,
            notifications=(Notification("AddressAuthorized", {"account": str(target)}),),
        )

    def deauthorize(self, caller: Principal, target: Principal) -> Receipt:
        self._require_owner(caller)
        self._authorized[target] = False
        logger.info("Deauthorized %s in registry %s", target, self.address)
        return Receipt(
            operation="deauthorize",
            caller=caller,
            notifications=(Notification("AddressDeauthorized", {"account": str(target)}),),
        )

    def is_authorized(self, principal: Principal) -> bool:
        return self._authorized.get(principal, False)

    def __repr__(self) -> str:
        active = sum(1 for flag in self._authorized.values() if flag)
        return f"AuthorizationRegistry({self.address}, {active} authorized)"
