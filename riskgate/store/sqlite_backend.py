"""SQLiteLedgerStore: aiosqlite-based async ledger store.

Features:
  - WAL mode: PRAGMA journal_mode=WAL
  - Schema version guard: PRAGMA user_version=2 (1 is upgraded in place), RuntimeError
    on anything else, refuse startup
  - Credit-once deposits: tx_hash PRIMARY KEY claimed in the same commit as the credit
  - Long-lived connection: opened in initialize(), closed in close()
  - Insert-once payments: INSERT OR IGNORE on payment_id UNIQUE constraint
  - Balances stored as decimal TEXT (wei values exceed SQLite's 64-bit INTEGER)
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from typing import Optional

import aiosqlite

from riskgate.errors import InsufficientFunds
from riskgate.models.payment import PaymentRecord
from riskgate.models.vault import BlockedTransactionRecord
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS payments (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_id  TEXT NOT NULL UNIQUE,
    tx_hash     TEXT NOT NULL,
    settled_at  TEXT NOT NULL,
    resource    TEXT
);

CREATE TABLE IF NOT EXISTS blocked_transactions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user        TEXT NOT NULL,
    target      TEXT NOT NULL,
    score       INTEGER NOT NULL CHECK(score BETWEEN 0 AND 100),
    reason      TEXT NOT NULL,
    timestamp   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_blocked_timestamp
    ON blocked_transactions(timestamp DESC);

CREATE INDEX IF NOT EXISTS idx_blocked_user
    ON blocked_transactions(user);

CREATE TABLE IF NOT EXISTS balances (
    user        TEXT PRIMARY KEY,
    balance     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS deposits (
    tx_hash     TEXT PRIMARY KEY,
    user        TEXT NOT NULL,
    amount      TEXT NOT NULL
);
"""

_SCHEMA_VERSION = 2


# ─── Row deserialisers ────────────────────────────────────────────────────────


def _row_to_payment(row: aiosqlite.Row) -> PaymentRecord:
    return PaymentRecord(
        payment_id=row["payment_id"],
        tx_hash=row["tx_hash"],
        settled_at=datetime.fromisoformat(row["settled_at"]),
        resource=row["resource"],
    )


def _row_to_blocked(row: aiosqlite.Row) -> BlockedTransactionRecord:
    return BlockedTransactionRecord(
        user=row["user"],
        target=row["target"],
        score=row["score"],
        reason=row["reason"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


# ─── SQLiteLedgerStore ────────────────────────────────────────────────────────


class SQLiteLedgerStore:
    """Async SQLite ledger store using aiosqlite exclusively.

    Usage:
        store = SQLiteLedgerStore("~/.riskgate/ledger.db")
        await store.initialize()   # raises RuntimeError on schema version mismatch
        inserted = await store.insert_payment(record)
        await store.close()
    """

    def __init__(self, db_path: str = "~/.riskgate/ledger.db") -> None:
        self._db_path: str = os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None
        # Serialises read-modify-write balance updates on the shared connection.
        self._balance_lock = asyncio.Lock()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the connection, enable WAL mode, and create or verify the schema.

        Raises:
            RuntimeError: If PRAGMA user_version is not 0, 1 or 2.
                          The FastAPI lifespan propagates this and refuses startup.
        """
        parent_dir = os.path.dirname(self._db_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("PRAGMA journal_mode=WAL;")

        cursor = await self._db.execute("PRAGMA user_version;")
        row = await cursor.fetchone()
        current_version: int = row[0] if row else 0

        if current_version in (0, 1):
            # Every statement is IF NOT EXISTS, so version 1 only gains the deposits table.
            await self._db.executescript(_CREATE_SCHEMA_SQL)
            # executescript may not honour PRAGMA in all SQLite builds;
            # set user_version separately after the script.
            await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
            await self._db.commit()
            logger.info(
                "ledger_db_schema_created" if current_version == 0 else "ledger_db_schema_upgraded",
                db_path=self._db_path,
                schema_version=_SCHEMA_VERSION,
            )
        elif current_version == _SCHEMA_VERSION:
            logger.info("ledger_db_schema_ok", db_path=self._db_path, schema_version=current_version)
        else:
            await self._db.close()
            self._db = None
            raise RuntimeError(
                f"Unsupported ledger database schema version: {current_version}. "
                f"Delete {self._db_path} to reset."
            )

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("ledger_db_closed", db_path=self._db_path)

    # ── Payments ──────────────────────────────────────────────────────────────

    async def insert_payment(self, record: PaymentRecord) -> bool:
        """INSERT OR IGNORE on payment_id. True only for the call that wrote the row."""
        assert self._db is not None, "Database not initialized: call initialize() first"
        cursor = await self._db.execute(
            """INSERT OR IGNORE INTO payments (payment_id, tx_hash, settled_at, resource)
               VALUES (?,?,?,?)""",
            (record.payment_id, record.tx_hash, record.settled_at.isoformat(), record.resource),
        )
        await self._db.commit()
        return cursor.rowcount == 1

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        assert self._db is not None, "Database not initialized"
        cursor = await self._db.execute("SELECT * FROM payments WHERE payment_id = ?", (payment_id,))
        row = await cursor.fetchone()
        return _row_to_payment(row) if row else None

    # ── Blocked transactions ──────────────────────────────────────────────────

    async def append_blocked(self, record: BlockedTransactionRecord) -> None:
        assert self._db is not None, "Database not initialized"
        await self._db.execute(
            """INSERT INTO blocked_transactions (user, target, score, reason, timestamp)
               VALUES (?,?,?,?,?)""",
            (record.user, record.target, record.score, record.reason, record.timestamp.isoformat()),
        )
        await self._db.commit()

    async def list_blocked(
        self, limit: int = 20, user: Optional[str] = None
    ) -> list[BlockedTransactionRecord]:
        assert self._db is not None, "Database not initialized"
        sql = "SELECT * FROM blocked_transactions"
        params: list = []
        if user is not None:
            sql += " WHERE lower(user) = ?"
            params.append(user.lower())
        sql += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(int(limit))
        cursor = await self._db.execute(sql, params)
        rows = await cursor.fetchall()
        return [_row_to_blocked(row) for row in rows]

    # ── Balances ──────────────────────────────────────────────────────────────

    async def get_balance(self, user: str) -> int:
        assert self._db is not None, "Database not initialized"
        cursor = await self._db.execute("SELECT balance FROM balances WHERE user = ?", (user.lower(),))
        row = await cursor.fetchone()
        return int(row["balance"]) if row else 0

    async def _set_balance(self, user: str, balance: int) -> None:
        assert self._db is not None, "Database not initialized"
        await self._db.execute(
            """INSERT INTO balances (user, balance) VALUES (?, ?)
               ON CONFLICT(user) DO UPDATE SET balance = excluded.balance""",
            (user.lower(), str(balance)),
        )
        await self._db.commit()

    async def credit(self, user: str, amount: int) -> int:
        async with self._balance_lock:
            balance = await self.get_balance(user) + amount
            await self._set_balance(user, balance)
            return balance

    async def record_deposit(self, tx_hash: str, user: str, amount: int) -> Optional[int]:
        """INSERT OR IGNORE on tx_hash, then credit, in a single commit."""
        assert self._db is not None, "Database not initialized"
        async with self._balance_lock:
            cursor = await self._db.execute(
                "INSERT OR IGNORE INTO deposits (tx_hash, user, amount) VALUES (?,?,?)",
                (tx_hash.lower(), user.lower(), str(amount)),
            )
            if cursor.rowcount != 1:
                return None
            balance = await self.get_balance(user) + amount
            await self._set_balance(user, balance)
            return balance

    async def debit(self, user: str, amount: int) -> int:
        async with self._balance_lock:
            balance = await self.get_balance(user)
            if balance < amount:
                raise InsufficientFunds(f"balance {balance} is lower than {amount}")
            await self._set_balance(user, balance - amount)
            return balance - amount

    async def health_check(self) -> bool:
        """Returns True if the DB connection is alive and queryable."""
        try:
            assert self._db is not None
            await self._db.execute("SELECT 1")
            return True
        except Exception:
            return False
