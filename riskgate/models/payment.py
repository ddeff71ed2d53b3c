"""x402 payment contracts.

A PaymentChallenge is what a 402 response advertises; a PaymentRecord is the
durable ledger row written exactly once when a payment id settles.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from riskgate.constants import X402_SCHEME, X402_VERSION


@dataclass(frozen=True)
class PaymentChallenge:
    payment_id: str
    resource: str
    pay_to: str
    asset: str
    amount_required: str
    """Integer amount in the asset's base units, as a decimal string."""
    network: str
    expires_at: datetime
    description: str
    max_timeout_seconds: int
    mime_type: str = "application/json"

    def to_requirements(self) -> dict[str, Any]:
        """One entry of the 402 body's ``accepts`` list."""
        return {
            "scheme": X402_SCHEME,
            "network": self.network,
            "payTo": self.pay_to,
            "asset": self.asset,
            "maxAmountRequired": self.amount_required,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "description": self.description,
            "resource": self.resource,
            "mimeType": self.mime_type,
            "extra": {"paymentId": self.payment_id},
        }

    def to_body(self) -> dict[str, Any]:
        return {
            "x402Version": X402_VERSION,
            "error": "payment_required",
            "message": "This endpoint requires payment",
            "paymentId": self.payment_id,
            "accepts": [self.to_requirements()],
        }


@dataclass(frozen=True)
class PaymentRecord:
    """Settled payment. Written once per payment id, never updated or deleted."""

    payment_id: str
    tx_hash: str
    settled_at: datetime
    resource: Optional[str] = None
    settled: bool = True


@dataclass(frozen=True)
class SettlementResult:
    ok: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    already_settled: bool = False
