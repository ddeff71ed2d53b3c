"""Unit tests for riskgate.vault.deposits.ChainDepositVerifier against a stub ``w3.eth``."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Optional

import pytest
from helpers import USER
from web3.exceptions import TransactionNotFound

from riskgate.errors import DepositRejected, UpstreamDataUnavailable
from riskgate.vault.deposits import ChainDepositVerifier

VAULT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TX_HASH = "0x" + "AB" * 32


class StubEth:
    def __init__(
        self,
        status: int = 1,
        to: Optional[str] = VAULT,
        value: int = 10**18,
        mined: bool = True,
        error: Optional[Exception] = None,
        hang: bool = False,
    ) -> None:
        self._tx = {"hash": TX_HASH, "from": USER, "to": to, "value": value}
        self._receipt = {"transactionHash": TX_HASH, "status": status}
        self._mined = mined
        self._error = error
        self._hang = hang

    async def get_transaction(self, tx_hash: str) -> dict:
        if self._hang:
            await asyncio.sleep(10)
        if self._error is not None:
            raise self._error
        return self._tx

    async def get_transaction_receipt(self, tx_hash: str) -> dict:
        if not self._mined:
            raise TransactionNotFound(f"Transaction with hash: '{tx_hash}' not found.")
        return self._receipt


def _verifier(eth: StubEth, timeout_s: float = 1.0) -> ChainDepositVerifier:
    return ChainDepositVerifier(SimpleNamespace(eth=eth), timeout_s=timeout_s)


class TestInboundTransfer:
    async def test_successful_transfer(self) -> None:
        transfer = await _verifier(StubEth()).inbound_transfer(TX_HASH)
        assert transfer.tx_hash == TX_HASH.lower()
        assert transfer.sender == USER
        assert transfer.recipient == VAULT
        assert transfer.value == 10**18

    async def test_pending_transaction_is_rejected(self) -> None:
        with pytest.raises(DepositRejected, match="not yet mined"):
            await _verifier(StubEth(mined=False)).inbound_transfer(TX_HASH)

    async def test_failed_transaction_is_rejected(self) -> None:
        with pytest.raises(DepositRejected, match="failed on chain"):
            await _verifier(StubEth(status=0)).inbound_transfer(TX_HASH)

    async def test_contract_creation_is_rejected(self) -> None:
        with pytest.raises(DepositRejected, match="contract creation"):
            await _verifier(StubEth(to=None)).inbound_transfer(TX_HASH)

    async def test_rpc_error_is_upstream_unavailable(self) -> None:
        with pytest.raises(UpstreamDataUnavailable):
            await _verifier(StubEth(error=RuntimeError("500 Internal Server Error"))).inbound_transfer(TX_HASH)

    async def test_timeout_is_upstream_unavailable(self) -> None:
        with pytest.raises(UpstreamDataUnavailable):
            await _verifier(StubEth(hang=True), timeout_s=0.05).inbound_transfer(TX_HASH)
