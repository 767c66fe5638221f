# tokenledger/asset/reentrancy.py
from tokenledger.core.errors import ReentrantCall


class ReentrancyGuard:
    """
    Busy marker for one ledger instance.
    Entering while already entered raises ReentrantCall; leaving always clears the marker.
    """

    def __init__(self, name: str = "ledger"):
        self.name = name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def ensure_idle(self) -> None:
        """Reject a call that arrives while the marker is held, without taking it."""
        if self._busy:
            raise ReentrantCall(f"Call into {self.name} while it is busy")

    def __enter__(self):
        if self._busy:
            raise ReentrantCall(f"Reentrant call into {self.name}")
        self._busy = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._busy = False
        return False
