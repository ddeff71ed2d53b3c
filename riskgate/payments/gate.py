"""PaymentGate: the x402 challenge/settle/entitlement state machine.

State per payment id:

    UNPAID ──issue_challenge──▶ CHALLENGE_ISSUED ──settle ok──▶ SETTLED (terminal)
                                        │
                                        └──verify/settle fails──▶ FAILED (retryable)

Only SETTLED is persisted; the earlier states exist only in the client's
hands. A payment id settles at most once: concurrent settlements for the
same id serialise on a per-id lock, the ledger insert is insert-once, and an
already-settled id short-circuits without calling the facilitator again.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from riskgate.config import PaymentConfig
from riskgate.constants import X402_SCHEME
from riskgate.errors import ConfigError
from riskgate.models.payment import PaymentChallenge, PaymentRecord, SettlementResult
from riskgate.payments.facilitator import Facilitator
from riskgate.store.protocol import LedgerStore
from riskgate.utils.locks import KeyedLocks
from riskgate.utils.logger import get_logger
from riskgate.utils.ulid import generate_payment_id

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentGate:
    def __init__(
        self,
        config: PaymentConfig,
        store: LedgerStore,
        facilitator: Facilitator,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not config.pay_to:
            raise ConfigError(
                "payment.pay_to must be set (config.yaml or RISKGATE_PAY_TO) to serve paid endpoints"
            )
        self._config = config
        self._store = store
        self._facilitator = facilitator
        self._clock = clock
        self._locks = KeyedLocks()

    @property
    def config(self) -> PaymentConfig:
        return self._config

    # ── Challenge ─────────────────────────────────────────────────────────────

    def issue_challenge(self, resource: str, description: str = "RiskGate paid resource") -> PaymentChallenge:
        """Fresh challenge with a never-reused payment id. No ledger lookup."""
        challenge = PaymentChallenge(
            payment_id=generate_payment_id(),
            resource=resource,
            pay_to=self._config.pay_to,
            asset=self._config.asset,
            amount_required=self._config.price_base_units,
            network=self._config.network,
            expires_at=self._clock() + timedelta(seconds=self._config.max_timeout_seconds),
            description=description,
            max_timeout_seconds=self._config.max_timeout_seconds,
        )
        logger.info("payment_challenge_issued", payment_id=challenge.payment_id, resource=resource)
        return challenge

    def requirements_mismatch(self, payment_id: str, requirements: Any) -> Optional[str]:
        """Why ``requirements`` do not match the terms this server advertises, or None.

        Checked before the facilitator sees them: scheme, network, payee, asset,
        a price at least the configured one, and the payment id in ``extra``.
        """
        if not isinstance(requirements, dict):
            return "paymentRequirements must be an object"
        if requirements.get("scheme") != X402_SCHEME:
            return f"scheme must be '{X402_SCHEME}'"
        if requirements.get("network") != self._config.network:
            return f"network must be '{self._config.network}'"
        if str(requirements.get("payTo", "")).lower() != self._config.pay_to.lower():
            return "payTo does not match this server's payee"
        if str(requirements.get("asset", "")).lower() != self._config.asset.lower():
            return "asset does not match the advertised asset"
        try:
            amount = int(str(requirements.get("maxAmountRequired")))
        except ValueError:
            return "maxAmountRequired must be an integer amount"
        if amount < int(self._config.price_base_units):
            return f"maxAmountRequired is below the price of {self._config.price_base_units}"
        extra = requirements.get("extra")
        if isinstance(extra, dict) and extra.get("paymentId") not in (None, payment_id):
            return "extra.paymentId does not match paymentId"
        return None

    # ── Entitlement ───────────────────────────────────────────────────────────

    async def check_entitlement(self, payment_id: Optional[str], resource: Optional[str] = None) -> bool:
        """True iff ``payment_id`` has a settled record (scoped to ``resource`` in
        ``resource`` entitlement mode)."""
        payment_id = (payment_id or "").strip()
        if not payment_id:
            return False
        record = await self._store.get_payment(payment_id)
        if record is None or not record.settled:
            return False
        if self._config.entitlement_scope == "resource" and resource is not None:
            return record.resource == resource
        return True

    # ── Settlement ────────────────────────────────────────────────────────────

    async def settle(
        self,
        payment_id: str,
        payment_header: str,
        requirements: dict[str, Any],
    ) -> SettlementResult:
        """Verify and settle through the facilitator, then record the payment once.

        Never raises for facilitator failures: they come back as
        ``SettlementResult(ok=False, error="verify_failed" | "settle_failed")``
        and leave the id retryable.
        """
        async with self._locks.hold(payment_id):
            existing = await self._store.get_payment(payment_id)
            if existing is not None:
                logger.info("payment_already_settled", payment_id=payment_id, tx_hash=existing.tx_hash)
                return SettlementResult(ok=True, tx_hash=existing.tx_hash, already_settled=True)

            mismatch = self.requirements_mismatch(payment_id, requirements)
            if mismatch is not None:
                logger.warning("payment_requirements_rejected", payment_id=payment_id, reason=mismatch)
                return SettlementResult(ok=False, error="verify_failed", message=mismatch)

            try:
                verified = await self._facilitator.verify(payment_header, requirements)
            except Exception as exc:
                logger.warning("payment_verify_error", payment_id=payment_id, error=str(exc),
                               error_type=type(exc).__name__)
                return SettlementResult(ok=False, error="verify_failed", message=str(exc) or type(exc).__name__)
            if not verified.is_valid:
                logger.info("payment_verify_rejected", payment_id=payment_id, reason=verified.reason)
                return SettlementResult(ok=False, error="verify_failed", message=verified.reason)

            try:
                settled = await self._facilitator.settle(payment_header, requirements)
            except Exception as exc:
                logger.warning("payment_settle_error", payment_id=payment_id, error=str(exc),
                               error_type=type(exc).__name__)
                return SettlementResult(ok=False, error="settle_failed", message=str(exc) or type(exc).__name__)
            if not settled.settled:
                logger.info("payment_settle_rejected", payment_id=payment_id, event=settled.event,
                            reason=settled.reason)
                return SettlementResult(ok=False, error="settle_failed", message=settled.reason)

            record = PaymentRecord(
                payment_id=payment_id,
                tx_hash=settled.tx_hash or "",
                settled_at=self._clock(),
                resource=requirements.get("resource"),
            )
            inserted = await self._store.insert_payment(record)
            if not inserted:
                # Another process sharing the store won the insert.
                winner = await self._store.get_payment(payment_id)
                tx_hash = winner.tx_hash if winner else record.tx_hash
                logger.warning("payment_settle_race_lost", payment_id=payment_id, tx_hash=tx_hash)
                return SettlementResult(ok=True, tx_hash=tx_hash, already_settled=True)

            logger.info("payment_settled", payment_id=payment_id, tx_hash=record.tx_hash,
                        resource=record.resource)
            return SettlementResult(ok=True, tx_hash=record.tx_hash)
