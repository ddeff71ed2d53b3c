"""InMemoryLedgerStore: process-local dicts, the default backend.

All mutations run under one asyncio.Lock, which makes ``insert_payment`` and
``debit`` atomic within the event loop. State is lost on restart.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from riskgate.errors import InsufficientFunds
from riskgate.models.payment import PaymentRecord
from riskgate.models.vault import BlockedTransactionRecord
from riskgate.store.protocol import LedgerStore


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._payments: dict[str, PaymentRecord] = {}
        self._blocked: list[BlockedTransactionRecord] = []
        self._balances: dict[str, int] = {}
        self._deposits: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def insert_payment(self, record: PaymentRecord) -> bool:
        async with self._lock:
            if record.payment_id in self._payments:
                return False
            self._payments[record.payment_id] = record
            return True

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        return self._payments.get(payment_id)

    async def append_blocked(self, record: BlockedTransactionRecord) -> None:
        async with self._lock:
            self._blocked.append(record)

    async def list_blocked(
        self, limit: int = 20, user: Optional[str] = None
    ) -> list[BlockedTransactionRecord]:
        records = self._blocked
        if user is not None:
            records = [r for r in records if r.user.lower() == user.lower()]
        # Insertion order breaks timestamp ties.
        ordered = sorted(enumerate(records), key=lambda p: (p[1].timestamp, p[0]), reverse=True)
        return [record for _, record in ordered[:limit]]

    async def get_balance(self, user: str) -> int:
        return self._balances.get(user.lower(), 0)

    async def credit(self, user: str, amount: int) -> int:
        async with self._lock:
            balance = self._balances.get(user.lower(), 0) + amount
            self._balances[user.lower()] = balance
            return balance

    async def record_deposit(self, tx_hash: str, user: str, amount: int) -> Optional[int]:
        async with self._lock:
            if tx_hash.lower() in self._deposits:
                return None
            self._deposits[tx_hash.lower()] = user.lower()
            balance = self._balances.get(user.lower(), 0) + amount
            self._balances[user.lower()] = balance
            return balance

    async def debit(self, user: str, amount: int) -> int:
        async with self._lock:
            balance = self._balances.get(user.lower(), 0)
            if balance < amount:
                raise InsufficientFunds(f"balance {balance} is lower than {amount}")
            self._balances[user.lower()] = balance - amount
            return balance - amount

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass


assert isinstance(InMemoryLedgerStore(), LedgerStore), (
    "InMemoryLedgerStore does not satisfy LedgerStore protocol: implementation error"
)
