"""Unit tests for riskgate.sources.chain.ChainClient against a stub ``w3.eth``."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from helpers import CONTRACT

from riskgate.errors import UpstreamDataUnavailable
from riskgate.sources.chain import ChainClient

HEAD = 50_000
CREATED_AT_BLOCK = 45_500


def _topic(address_hex: str) -> str:
    return "0x" + "00" * 12 + address_hex


ALICE = "11" * 20
BOB = "22" * 20
ZERO = "00" * 20


class StubEth:
    """Just the ``AsyncEth`` surface ChainClient touches."""

    def __init__(self, logs: Optional[list] = None, max_range: Optional[int] = None, hang: bool = False) -> None:
        self._logs = logs or []
        self._max_range = max_range
        self._hang = hang
        self.log_queries: list[dict] = []

    @property
    def block_number(self):
        async def _value() -> int:
            if self._hang:
                await asyncio.sleep(10)
            return HEAD

        return _value()

    async def get_logs(self, params: dict) -> list:
        self.log_queries.append(params)
        if self._max_range and params["toBlock"] - params["fromBlock"] > self._max_range:
            raise ValueError({"code": -32000, "message": "exceed maximum block range: 1000"})
        return self._logs

    async def get_code(self, address: str, block_identifier: Any = None) -> bytes:
        if block_identifier is not None and block_identifier < CREATED_AT_BLOCK:
            return b""
        return bytes.fromhex("6080")

    async def get_block(self, number: int) -> dict:
        return {"number": number, "timestamp": number * 100}


def _client(eth: StubEth, timeout_s: float = 1.0) -> ChainClient:
    return ChainClient(SimpleNamespace(eth=eth), timeout_s=timeout_s)


class TestCode:
    async def test_get_code_is_hex(self) -> None:
        client = _client(StubEth())
        assert await client.get_code(CONTRACT) == "0x6080"
        assert await client.has_code(CONTRACT) is True

    async def test_eoa_has_no_code(self) -> None:
        client = _client(StubEth())
        assert await client.get_code(CONTRACT, block=1) == "0x"

    async def test_transport_error_is_upstream_unavailable(self) -> None:
        class _BrokenTransportEth(StubEth):
            async def get_code(self, address: str, block_identifier: Any = None) -> bytes:
                raise RuntimeError("500, message='Internal Server Error'")

        with pytest.raises(UpstreamDataUnavailable, match="RuntimeError"):
            await _client(_BrokenTransportEth()).get_code(CONTRACT)


class TestHolderCount:
    async def test_counts_unique_non_zero_parties(self) -> None:
        logs = [
            {"topics": ["0xddf2", _topic(ZERO), _topic(ALICE)]},
            {"topics": ["0xddf2", _topic(ALICE), _topic(BOB)]},
            {"topics": ["0xddf2", _topic(BOB), _topic(ALICE)]},
            {"topics": ["0xddf2"]},
        ]
        assert await _client(StubEth(logs)).holder_count(CONTRACT) == 2

    async def test_range_error_retries_with_smaller_window(self) -> None:
        eth = StubEth([{"topics": ["0xddf2", _topic(ALICE), _topic(BOB)]}], max_range=1000)
        assert await _client(eth).holder_count(CONTRACT) == 2
        assert [q["toBlock"] - q["fromBlock"] for q in eth.log_queries] == [1900, 1000]
        assert all(q["toBlock"] == HEAD for q in eth.log_queries)

    async def test_timeout_becomes_upstream_error(self) -> None:
        with pytest.raises(UpstreamDataUnavailable):
            await _client(StubEth(hang=True), timeout_s=0.05).holder_count(CONTRACT)


class TestAge:
    async def test_age_from_first_block_with_code(self) -> None:
        days = await _client(StubEth()).age_days(CONTRACT)
        # Creation is found at the first 1000-block step at or after CREATED_AT_BLOCK.
        assert days == int((HEAD - 46_000) * 100 // 86_400)
