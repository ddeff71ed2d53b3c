"""ULID-based identifiers for RiskGate.

Payment identifiers and request ids are ULIDs (26-character Crockford Base32,
millisecond timestamp prefix + 80 random bits) from the ``python-ulid``
library. Payment ids carry a ``pay_`` prefix so they are recognisable in
client headers and ledger rows.
"""

from __future__ import annotations

from ulid import ULID

PAYMENT_ID_PREFIX = "pay_"


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string."""
    return str(ULID())


def generate_payment_id() -> str:
    """Generate a fresh payment identifier, e.g. ``pay_01KJ0JRVHYA7KX32VPN5ZSCTMV``.

    Every call returns a new id; ids are never reused across challenges.
    """
    return f"{PAYMENT_ID_PREFIX}{generate_ulid()}"
