"""RiskGate ledger store package.

Owns every durable record: settled payments, blocked transactions and vault
balances.

    from riskgate.store import LedgerStore, InMemoryLedgerStore

Layout:
    protocol.py      : LedgerStore Protocol
    memory_backend.py: InMemoryLedgerStore (default, process-local)
    sqlite_backend.py: SQLiteLedgerStore (aiosqlite, WAL mode, PRAGMA version guard)
    factory.py       : create_ledger_store(), backend selection by config
"""

from riskgate.store.memory_backend import InMemoryLedgerStore
from riskgate.store.protocol import LedgerStore

__all__ = [
    "InMemoryLedgerStore",
    "LedgerStore",
]
