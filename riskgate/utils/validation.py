"""Input validators for addresses, amounts, hex payloads and pagination.

Each validator returns the normalised value or raises ``ValidationError``.
Amounts arrive as decimal CRO strings (``"1.5"``) and are returned in wei.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from eth_utils import is_address, to_checksum_address
from web3 import Web3

from riskgate.constants import BLOCKED_TX_DEFAULT_LIMIT, BLOCKED_TX_MAX_LIMIT
from riskgate.errors import ValidationError

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")

# Largest amount accepted in a single request, in whole CRO.
MAX_AMOUNT = Decimal(10) ** 18


def validate_address(value: Any, field: str = "address") -> str:
    """Return the EIP-55 checksummed form of a 20-byte hex address."""
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    # Mixed-case input with a bad checksum is still accepted as an address.
    if not is_address(value.lower()):
        raise ValidationError(f"{field} must be a valid Ethereum address")
    return to_checksum_address(value.lower())


def validate_amount(value: Any, field: str = "amount") -> int:
    """Parse a positive decimal CRO amount and return it in wei."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a positive number") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be a positive number")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    wei = Web3.to_wei(amount, "ether")
    if wei == 0:
        raise ValidationError(f"{field} must be a positive number")
    return wei


def validate_hex(value: Any, field: str = "hex") -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    if not value.startswith("0x"):
        raise ValidationError(f"{field} must start with 0x")
    if not _HEX_RE.match(value):
        raise ValidationError(f"{field} must be a valid hex string")
    return value


def validate_tx_hash(value: Any, field: str = "txHash") -> str:
    """A 32-byte transaction hash, returned lower-case."""
    value = validate_hex(value, field)
    if len(value) != 66:
        raise ValidationError(f"{field} must be a 32-byte transaction hash")
    return value.lower()


def validate_limit(value: Optional[int]) -> int:
    """Clamp a page size into ``[1, BLOCKED_TX_MAX_LIMIT]``; default when absent."""
    if value is None:
        return BLOCKED_TX_DEFAULT_LIMIT
    return max(1, min(BLOCKED_TX_MAX_LIMIT, value))


def format_wei(wei: int) -> str:
    return str(Web3.from_wei(wei, "ether"))
