"""
Input validation utilities for BurnerPay.

Provides reusable validators for EVM addresses and the counterparty payloads
received over the optical and proximity channels.
"""
import re
from typing import Optional

from config import settings
from domain.constants import ADDRESS_PATTERN, OPTICAL_PARAM_SEPARATORS
from domain.errors import ValidationError

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)


def is_valid_address(candidate: Optional[str]) -> bool:
    """Strict format check: 0x prefix + 40 hex chars, nothing else."""
    if not isinstance(candidate, str):
        return False
    return _ADDRESS_RE.fullmatch(candidate) is not None


def validate_evm_address(address: Optional[str], field: str = "address") -> str:
    """
    Validate an EVM address format.

    Args:
        address: 0x-prefixed address string

    Returns:
        The validated address (unchanged)

    Raises:
        ValidationError (HTTP 400) if the address is invalid
    """
    if not address:
        raise ValidationError("Wallet address is required", field=field)

    if not is_valid_address(address):
        raise ValidationError(
            f"expected 0x followed by 40 hex characters, got {address[:12]!r}",
            field=field,
        )

    return address


def extract_address(payload: Optional[str], scheme: Optional[str] = None) -> Optional[str]:
    """
    Pull the address out of an optical code payload.

    Accepts ``0xabc...``, ``ethereum:0xabc...`` and ``ethereum:0xabc...@10143?value=1``.
    Only the part before the first parameter separator is kept.

    Returns:
        The validated address, or None if the payload carries no valid address
    """
    if not payload:
        return None

    scheme = (scheme or settings.optical_scheme).lower()
    text = payload.strip()
    if text.lower().startswith(f"{scheme}:"):
        text = text[len(scheme) + 1:]

    for sep in OPTICAL_PARAM_SEPARATORS:
        text = text.split(sep, 1)[0]
    text = text.strip()

    return text if is_valid_address(text) else None


def shorten_address(address: str) -> str:
    """0x1234...abcd form for logs and step details."""
    if not address or len(address) < 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
