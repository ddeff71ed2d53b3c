"""TransactionGate: risk-gated execution against the custodial vault ledger.

A call is blocked iff the target's score is strictly greater than
``max_risk_score`` (30 by default: 30 passes, 31 is blocked). Blocking never
touches funds. For allowed calls the balance check, the forward and the
debit run under the user's lock, and the debit happens only after the
forward succeeded, so a revert leaves the balance exactly as it was.

Balances only grow through ``deposit``, which credits a verified on-chain
transfer to the vault once per transaction hash.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from riskgate.constants import DEFAULT_MAX_RISK_SCORE
from riskgate.errors import DepositRejected, InsufficientFunds, ServiceDisabled, TransactionReverted
from riskgate.models.vault import BlockedTransactionRecord, TransactionResult
from riskgate.risk.service import RiskService
from riskgate.store.protocol import LedgerStore
from riskgate.utils.locks import KeyedLocks
from riskgate.utils.logger import get_logger
from riskgate.vault.deposits import DepositVerifier
from riskgate.vault.forwarder import CallForwarder

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def block_reason(score: int) -> str:
    return f"Risk score {score} exceeds maximum allowed threshold"


class TransactionGate:
    def __init__(
        self,
        risk: RiskService,
        store: LedgerStore,
        forwarder: CallForwarder,
        deposits: Optional[DepositVerifier] = None,
        max_risk_score: int = DEFAULT_MAX_RISK_SCORE,
        address: str = "",
        ledger_address: Optional[str] = None,
        risk_oracle_url: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._risk = risk
        self._store = store
        self._forwarder = forwarder
        self._deposits = deposits
        self.max_risk_score = max_risk_score
        self._address = address
        self._ledger_address = ledger_address
        self._risk_oracle_url = risk_oracle_url
        self._clock = clock
        self._locks = KeyedLocks()

    def allows(self, score: int) -> bool:
        return score <= self.max_risk_score

    async def execute_with_risk_check(
        self, user: str, target: str, value: int, call_data: str = "0x"
    ) -> TransactionResult:
        analysis = await self._risk.analyze(target)
        score = analysis.score

        if not self.allows(score):
            reason = block_reason(score)
            await self._store.append_blocked(
                BlockedTransactionRecord(
                    user=user, target=target, score=score, reason=reason, timestamp=self._clock()
                )
            )
            logger.warning("transaction_blocked", user=user, target=target, score=score,
                           max_risk_score=self.max_risk_score)
            return TransactionResult(success=False, blocked=True, risk_score=score, reason=reason)

        async with self._locks.hold(user.lower()):
            balance = await self._store.get_balance(user)
            if balance < value:
                logger.info("transaction_insufficient_funds", user=user, balance=balance, value=value)
                return TransactionResult(success=False, risk_score=score, error="insufficient_funds",
                                         reason=f"balance {balance} is lower than {value}")
            try:
                tx_hash = await self._forwarder.forward(target, call_data, value)
            except TransactionReverted as exc:
                logger.warning("transaction_reverted", user=user, target=target, score=score,
                               error=exc.message)
                return TransactionResult(success=False, risk_score=score, error="reverted",
                                         reason=exc.message)
            if value:
                await self._store.debit(user, value)

        logger.info("transaction_allowed", user=user, target=target, score=score, tx_hash=tx_hash)
        return TransactionResult(success=True, tx_hash=tx_hash, risk_score=score)

    # ── Ledger operations ─────────────────────────────────────────────────────

    async def balance(self, user: str) -> int:
        return await self._store.get_balance(user)

    @property
    def custody_address(self) -> str:
        """The account the forwarder spends from; deposits must be sent here."""
        return getattr(self._forwarder, "address", "")

    async def deposit(
        self, user: str, tx_hash: str, expected_amount: Optional[int] = None
    ) -> tuple[int, int]:
        """Credit the value of ``tx_hash``, a mined transfer from ``user`` to the vault.

        Returns ``(amount, new_balance)``.

        Raises:
            DepositRejected: the transaction is not such a transfer, its value
                differs from ``expected_amount``, or it was already credited.
            ServiceDisabled: no deposit verifier is configured.
        """
        if self._deposits is None:
            raise ServiceDisabled("Deposits are disabled")
        transfer = await self._deposits.inbound_transfer(tx_hash)
        if transfer.sender.lower() != user.lower():
            raise DepositRejected(f"transaction {tx_hash} was not sent by {user}")
        if not self.custody_address or transfer.recipient.lower() != self.custody_address.lower():
            raise DepositRejected(f"transaction {tx_hash} was not sent to the vault")
        if transfer.value <= 0:
            raise DepositRejected(f"transaction {tx_hash} carries no value")
        if expected_amount is not None and transfer.value != expected_amount:
            raise DepositRejected(
                f"transaction {tx_hash} transferred {transfer.value} wei, not {expected_amount}"
            )

        async with self._locks.hold(user.lower()):
            balance = await self._store.record_deposit(transfer.tx_hash, user, transfer.value)
        if balance is None:
            raise DepositRejected(f"transaction {tx_hash} was already credited")
        logger.info("vault_deposit", user=user, amount=transfer.value, tx_hash=transfer.tx_hash, balance=balance)
        return transfer.value, balance

    async def withdraw(self, user: str, amount: int, recipient: Optional[str] = None) -> TransactionResult:
        """Send ``amount`` to ``recipient`` (default the user) and debit it.

        Raises:
            InsufficientFunds: the balance cannot cover ``amount``.
        """
        async with self._locks.hold(user.lower()):
            balance = await self._store.get_balance(user)
            if balance < amount:
                raise InsufficientFunds(f"balance {balance} is lower than {amount}")
            try:
                tx_hash = await self._forwarder.forward(recipient or user, "0x", amount)
            except TransactionReverted as exc:
                return TransactionResult(success=False, error="reverted", reason=exc.message)
            await self._store.debit(user, amount)
        logger.info("vault_withdraw", user=user, amount=amount, tx_hash=tx_hash)
        return TransactionResult(success=True, tx_hash=tx_hash)

    async def blocked_transactions(
        self, limit: int, user: Optional[str] = None
    ) -> list[BlockedTransactionRecord]:
        return await self._store.list_blocked(limit=limit, user=user)

    def info(self) -> dict[str, Any]:
        return {
            "contractAddress": self._address or self.custody_address,
            "custodyAddress": self.custody_address,
            "maxRiskScore": self.max_risk_score,
            "riskOracleAddress": self._ledger_address or "",
            "riskOracleUrl": self._risk_oracle_url,
            "isPaused": False,
        }
