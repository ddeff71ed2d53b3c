"""Vault and transaction gate contracts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class BlockedTransactionRecord:
    user: str
    target: str
    score: int
    reason: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "target": self.target,
            "riskScore": self.score,
            "reason": self.reason,
            "timestamp": int(self.timestamp.timestamp()),
        }


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of ``execute_with_risk_check``.

    Exactly one of three shapes:
      allowed  success=True,  tx_hash set
      blocked  success=False, blocked=True, risk_score and reason set
      failed   success=False, error set ("reverted" or "insufficient_funds")
    """

    success: bool
    tx_hash: Optional[str] = None
    blocked: bool = False
    risk_score: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.tx_hash is not None:
            body["txHash"] = self.tx_hash
        if self.blocked:
            body["blocked"] = True
        if self.risk_score is not None:
            body["riskScore"] = self.risk_score
        if self.reason is not None:
            body["reason"] = self.reason
        if self.error is not None:
            body["error"] = self.error
        return body
