"""Signed transaction submission for the service's own account.

Shared by the risk-ledger writer and the vault call forwarder. Nonce
allocation and submission are serialised under one lock per sender so two
concurrent writes never reuse a nonce.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import Web3Exception

from riskgate.constants import RPC_TIMEOUT_S
from riskgate.errors import TransactionReverted, UpstreamDataUnavailable
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


class TransactionSender:
    def __init__(
        self,
        w3: AsyncWeb3,
        private_key: str,
        chain_id: Optional[int] = None,
        receipt_timeout_s: float = RPC_TIMEOUT_S,
    ) -> None:
        self.w3 = w3
        self.account: LocalAccount = Account.from_key(private_key)
        self._chain_id = chain_id
        self._receipt_timeout_s = receipt_timeout_s
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self.account.address

    async def send(self, tx: dict[str, Any]) -> str:
        """Sign ``tx`` with the service key, submit it and wait for the receipt.

        ``tx`` may be a prepared contract call (``build_transaction`` output)
        or a plain ``{"to", "value", "data"}`` dict.

        Raises:
            TransactionReverted: receipt status is 0.
            UpstreamDataUnavailable: the node rejected or never mined the transaction.
        """
        try:
            async with self._lock:
                tx = dict(tx)
                tx.setdefault("from", self.account.address)
                tx["nonce"] = await self.w3.eth.get_transaction_count(self.account.address, "pending")
                if self._chain_id is not None:
                    tx.setdefault("chainId", self._chain_id)
                else:
                    tx.setdefault("chainId", await self.w3.eth.chain_id)
                if "gas" not in tx:
                    tx["gas"] = await self.w3.eth.estimate_gas(tx)
                if "gasPrice" not in tx and "maxFeePerGas" not in tx:
                    tx["gasPrice"] = await self.w3.eth.gas_price
                signed = self.account.sign_transaction(tx)
                tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout_s
            )
        except Web3Exception as exc:
            if "revert" in str(exc).lower():
                raise TransactionReverted(str(exc)) from exc
            raise UpstreamDataUnavailable(f"transaction submission failed: {exc}") from exc
        except (ValueError, OSError, asyncio.TimeoutError) as exc:
            raise UpstreamDataUnavailable(f"transaction submission failed: {exc}") from exc

        tx_hex = Web3.to_hex(tx_hash)
        if receipt.get("status") == 0:
            logger.warning("transaction_reverted", tx_hash=tx_hex, to=tx.get("to"))
            raise TransactionReverted(f"transaction {tx_hex} reverted")
        return tx_hex
