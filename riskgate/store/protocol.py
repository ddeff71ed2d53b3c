"""LedgerStore Protocol.

Layout:
    protocol.py      : LedgerStore Protocol
    memory_backend.py: InMemoryLedgerStore
    sqlite_backend.py: SQLiteLedgerStore
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from riskgate.models.payment import PaymentRecord
from riskgate.models.vault import BlockedTransactionRecord


@runtime_checkable
class LedgerStore(Protocol):
    """Pluggable persistence for payments, blocked transactions and balances.

    Implementations: InMemoryLedgerStore (default), SQLiteLedgerStore.
    Selection via create_ledger_store() (store/factory.py).

    Payment records are insert-once: ``insert_payment`` must be atomic with
    respect to ``payment_id`` so two concurrent settlements can never both
    report success.
    """

    async def insert_payment(self, record: PaymentRecord) -> bool:
        """Insert a settled payment. Returns False if the id already exists (no overwrite)."""
        ...

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        ...

    async def append_blocked(self, record: BlockedTransactionRecord) -> None:
        ...

    async def list_blocked(
        self, limit: int = 20, user: Optional[str] = None
    ) -> list[BlockedTransactionRecord]:
        """Newest first. ``user`` filters case-insensitively."""
        ...

    async def get_balance(self, user: str) -> int:
        """Balance in wei; 0 for unknown users."""
        ...

    async def credit(self, user: str, amount: int) -> int:
        """Add ``amount`` wei. Returns the new balance."""
        ...

    async def record_deposit(self, tx_hash: str, user: str, amount: int) -> Optional[int]:
        """Credit ``amount`` wei for the deposit transaction ``tx_hash``, once.

        Returns the new balance, or None when ``tx_hash`` was already credited
        (nothing is changed). Claiming the hash and crediting are atomic.
        """
        ...

    async def debit(self, user: str, amount: int) -> int:
        """Subtract ``amount`` wei. Returns the new balance.

        Raises:
            InsufficientFunds: balance is lower than ``amount``; nothing is changed.
        """
        ...

    async def health_check(self) -> bool:
        """Returns True if the store is operational. Must not raise."""
        ...

    async def close(self) -> None:
        ...
