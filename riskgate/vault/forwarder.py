"""Call forwarders: how an allowed vault transaction reaches its target.

A forwarder returns the transaction hash of a successful call and raises
``TransactionReverted`` when the target reverts. Any other exception means
the outcome is unknown and the caller must not touch balances.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from web3 import Web3

from riskgate.sources.signer import TransactionSender
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class CallForwarder(Protocol):
    async def forward(self, target: str, call_data: str, value: int) -> str:
        ...


class ChainCallForwarder:
    """Sends the call from the vault's custody account."""

    def __init__(self, sender: TransactionSender) -> None:
        self._sender = sender

    @property
    def address(self) -> str:
        return self._sender.address

    async def forward(self, target: str, call_data: str, value: int) -> str:
        tx = {
            "to": Web3.to_checksum_address(target),
            "value": value,
            "data": call_data or "0x",
        }
        tx_hash = await self._sender.send(tx)
        logger.info("call_forwarded", target=target, value=value, tx_hash=tx_hash)
        return tx_hash
