"""Error taxonomy for RiskGate.

Every per-request failure the core can produce is a ``RiskGateError`` subclass
carrying the HTTP status and machine-readable ``code`` the HTTP layer returns.
Two of them never reach the HTTP layer:

  UpstreamDataUnavailable      raised by source adapters, absorbed by the
                               aggregator into a default fact value.
  ProofVerificationUnavailable raised by risk-ledger readers, absorbed by the
                               proof service into ``False``.

A blocked transaction is not an error: it is a normal ``TransactionResult``
with ``blocked=True``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from riskgate.models.payment import PaymentChallenge


class RiskGateError(Exception):
    """Base class. ``status_code`` and ``code`` drive the JSON error response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "", code: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(RiskGateError):
    """Malformed address, amount or hex payload. Rejected before the core runs."""

    status_code = 400
    code = "validation_error"


class DepositRejected(ValidationError):
    """The named transaction does not back a deposit, or was already credited."""

    code = "deposit_rejected"


class PaymentRequired(RiskGateError):
    """Expected control-flow state: the caller holds no settled payment."""

    status_code = 402
    code = "payment_required"

    def __init__(self, challenge: "PaymentChallenge", message: str = "") -> None:
        super().__init__(message or "Payment required to access this resource")
        self.challenge = challenge


class PaymentVerificationFailed(RiskGateError):
    status_code = 400
    code = "verify_failed"


class PaymentSettlementFailed(RiskGateError):
    status_code = 400
    code = "settle_failed"


class UpstreamDataUnavailable(RiskGateError):
    """A source adapter could not produce a value (timeout, HTTP error, bad payload)."""

    status_code = 502
    code = "upstream_unavailable"


class ProofVerificationUnavailable(RiskGateError):
    """The on-chain risk ledger could not be read."""

    status_code = 502
    code = "proof_verification_unavailable"


class InsufficientFunds(RiskGateError):
    status_code = 400
    code = "insufficient_funds"


class TransactionReverted(RiskGateError):
    """The forwarded call reverted downstream. Balances are left unchanged."""

    status_code = 500
    code = "transaction_reverted"


class ConfigError(RiskGateError):
    """Misconfiguration detected while wiring services. Fatal at startup."""

    status_code = 500
    code = "config_error"


class ServiceDisabled(RiskGateError):
    """The requested feature is switched off in config (vault, divergence)."""

    status_code = 503
    code = "service_disabled"
