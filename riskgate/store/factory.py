"""Ledger store factory: backend selection and initialization.

Backend selection (``ledger.backend`` in config.yaml):
  - "sqlite" → SQLiteLedgerStore at ``ledger.path`` (default ~/.riskgate/ledger.db)
  - "memory" → InMemoryLedgerStore (default)

PRAGMA version guard:
  SQLiteLedgerStore.initialize() raises RuntimeError if PRAGMA user_version
  is not 0 (fresh) or 1 (expected). The FastAPI lifespan propagates this
  RuntimeError to refuse startup.
"""

from __future__ import annotations

from riskgate.config import LedgerConfig
from riskgate.store.protocol import LedgerStore
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


async def create_ledger_store(config: LedgerConfig) -> LedgerStore:
    """Create and initialize the configured ledger store.

    Raises:
      RuntimeError: If the SQLite schema version is incompatible.
    """
    if config.backend == "sqlite":
        from riskgate.store.sqlite_backend import SQLiteLedgerStore

        store = SQLiteLedgerStore(db_path=config.path)
        await store.initialize()
        logger.info("ledger_store_selected", backend="SQLiteLedgerStore", db_path=config.path)
        return store

    from riskgate.store.memory_backend import InMemoryLedgerStore

    logger.info("ledger_store_selected", backend="InMemoryLedgerStore")
    return InMemoryLedgerStore()
