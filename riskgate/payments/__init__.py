"""x402 payment gate: challenge issuance, settlement and entitlement checks."""

from riskgate.payments.facilitator import Facilitator, HttpFacilitator, SettleOutcome, VerifyOutcome
from riskgate.payments.gate import PaymentGate

__all__ = [
    "Facilitator",
    "HttpFacilitator",
    "PaymentGate",
    "SettleOutcome",
    "VerifyOutcome",
]
