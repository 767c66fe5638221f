# tokenledger/core/encoding.py
import base64

from tokenledger.core.types import DECIMALS


def b64url_encode(data: bytes) -> str:
    """Encode bytes to base64url (no padding, URL-safe)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode base64url string back to bytes."""
    padding = len(s) % 4
    if padding:
        s += "=" * (4 - padding)
    return base64.urlsafe_b64decode(s)


def amount_to_str(amount: int) -> str:
    """Amounts go into records as base-10 strings (JSON numbers lose precision past 2**53)."""
    return str(int(amount))


def amount_from_str(s: str) -> int:
    if not s.isdigit():
        raise ValueError(f"Not an unsigned decimal amount: {s!r}")
    return int(s)


def format_units(amount: int, decimals: int = DECIMALS) -> str:
    """Render base units as a human-readable decimal, e.g. 1500000000000000000 -> '1.5'."""
    whole, frac = divmod(amount, 10 ** decimals)
    if not frac:
        return f"{whole:,}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole:,}.{frac_str}"
