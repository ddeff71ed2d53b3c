"""Deposit verification: a vault credit must be backed by a mined transfer.

A client claims a deposit by naming the hash of a transaction that sent CRO
to the vault's custody account. The verifier reads the transaction and its
receipt; the gate then checks sender, recipient and value before crediting.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from riskgate.constants import RPC_TIMEOUT_S
from riskgate.errors import DepositRejected, UpstreamDataUnavailable
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class InboundTransfer:
    tx_hash: str
    sender: str
    recipient: str
    value: int
    """wei"""


@runtime_checkable
class DepositVerifier(Protocol):
    async def inbound_transfer(self, tx_hash: str) -> InboundTransfer:
        """Read a mined, successful transfer.

        Raises:
            DepositRejected: unknown, pending or failed transaction.
            UpstreamDataUnavailable: the chain could not be read.
        """
        ...


class ChainDepositVerifier:
    def __init__(self, w3: AsyncWeb3, timeout_s: float = RPC_TIMEOUT_S) -> None:
        self.w3 = w3
        self._timeout_s = timeout_s

    async def inbound_transfer(self, tx_hash: str) -> InboundTransfer:
        try:
            tx, receipt = await asyncio.wait_for(
                asyncio.gather(
                    self.w3.eth.get_transaction(tx_hash),
                    self.w3.eth.get_transaction_receipt(tx_hash),
                ),
                timeout=self._timeout_s,
            )
        except TransactionNotFound as exc:
            raise DepositRejected(f"transaction {tx_hash} is unknown or not yet mined") from exc
        except Exception as exc:
            logger.warning("deposit_lookup_failed", tx_hash=tx_hash, error_type=type(exc).__name__)
            raise UpstreamDataUnavailable(
                f"deposit lookup failed: {type(exc).__name__}: {exc}"
            ) from exc

        if receipt.get("status") != 1:
            raise DepositRejected(f"transaction {tx_hash} failed on chain")
        if not tx.get("to"):
            raise DepositRejected(f"transaction {tx_hash} is a contract creation")
        return InboundTransfer(
            tx_hash=tx_hash.lower(),
            sender=tx["from"],
            recipient=tx["to"],
            value=int(tx.get("value", 0)),
        )
