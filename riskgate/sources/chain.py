"""Chain RPC adapter built on web3's ``AsyncWeb3``.

Covers the fallback paths for holders and contract age, the DEX/supply
liquidity estimates and the ``getCode`` check. Every call is bounded by
``asyncio.wait_for`` and failures surface as ``UpstreamDataUnavailable``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from riskgate.constants import (
    AGE_SCAN_BLOCK_STEP,
    AGE_SCAN_BLOCK_WINDOW,
    HOLDER_SCAN_BLOCK_WINDOW,
    HOLDER_SCAN_RETRY_BLOCK_WINDOW,
    LIQUIDITY_QUOTE_MULTIPLIER,
    SECONDS_PER_DAY,
    ZERO_ADDRESS,
)
from riskgate.errors import UpstreamDataUnavailable
from riskgate.sources.abi import ERC20_ABI, ROUTER_ABI, TRANSFER_TOPIC
from riskgate.utils.logger import get_logger
from riskgate.utils.retry import NO_RETRY, RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

# One whole token with 18 decimals, the amount quoted through the router.
ONE_TOKEN = 10**18


def create_web3(rpc_url: str, timeout_s: float = 30.0) -> AsyncWeb3:
    """Build the process-wide AsyncWeb3 instance (created once in the lifespan)."""
    return AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s}))


def _is_range_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return "maximum" in message or "blocks distance" in message or "block range" in message


def _topic_address(topic: Any) -> str:
    raw = bytes(topic) if not isinstance(topic, str) else bytes.fromhex(topic[2:])
    return "0x" + raw[-20:].hex()


class ChainClient:
    """Reads contract facts over JSON-RPC."""

    def __init__(
        self,
        w3: AsyncWeb3,
        timeout_s: float = 8.0,
        retry: RetryPolicy = NO_RETRY,
    ) -> None:
        self.w3 = w3
        self._timeout_s = timeout_s
        self._retry = retry

    async def _call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        async def _bounded() -> T:
            return await asyncio.wait_for(fn(), timeout=self._timeout_s)

        try:
            return await self._retry.call(_bounded, operation=operation)
        except UpstreamDataUnavailable:
            raise
        except Exception as exc:
            raise UpstreamDataUnavailable(f"rpc.{operation}: {type(exc).__name__}: {exc}") from exc

    # ── Code ──────────────────────────────────────────────────────────────────

    async def get_code(self, contract: str, block: Optional[int] = None) -> str:
        """Deployed bytecode as a 0x-prefixed hex string (``"0x"`` for an EOA)."""
        address = Web3.to_checksum_address(contract)
        if block is None:
            code = await self._call("get_code", lambda: self.w3.eth.get_code(address))
        else:
            code = await self._call(
                "get_code", lambda: self.w3.eth.get_code(address, block_identifier=block)
            )
        return Web3.to_hex(code)

    async def has_code(self, contract: str) -> bool:
        return (await self.get_code(contract)) not in ("0x", "")

    # ── Holders (Transfer log scan) ───────────────────────────────────────────

    async def holder_count(self, contract: str) -> int:
        """Unique non-zero senders and receivers of ``Transfer`` in recent blocks.

        Scans the last 1900 blocks; when the provider rejects the range it is
        retried once with a 1000-block window.
        """
        head = await self._call("block_number", lambda: self.w3.eth.block_number)
        try:
            logs = await self._transfer_logs(contract, head, HOLDER_SCAN_BLOCK_WINDOW)
        except UpstreamDataUnavailable as exc:
            if not _is_range_error(exc):
                raise
            logger.warning(
                "rpc_block_range_rejected",
                contract=contract,
                window=HOLDER_SCAN_BLOCK_WINDOW,
                retry_window=HOLDER_SCAN_RETRY_BLOCK_WINDOW,
            )
            logs = await self._transfer_logs(contract, head, HOLDER_SCAN_RETRY_BLOCK_WINDOW)

        holders: set[str] = set()
        for log in logs:
            topics = log.get("topics") or []
            if len(topics) < 3:
                continue
            for topic in topics[1:3]:
                address = _topic_address(topic)
                if address != ZERO_ADDRESS:
                    holders.add(address)
        return len(holders)

    async def _transfer_logs(self, contract: str, head: int, window: int) -> list:
        params = {
            "address": Web3.to_checksum_address(contract),
            "fromBlock": max(0, head - window),
            "toBlock": head,
            "topics": [TRANSFER_TOPIC],
        }
        return list(await self._call("get_logs", lambda: self.w3.eth.get_logs(params)))

    # ── Age (getCode history search) ──────────────────────────────────────────

    async def age_days(self, contract: str) -> int:
        """Days since the first scanned block at which code exists.

        Walks the last 10000 blocks in 1000-block steps. Blocks the node cannot
        serve (no archive state) are skipped. If the code predates the window
        the window start is used, so the result is a lower bound.
        """
        head = await self._call("block_number", lambda: self.w3.eth.block_number)
        head_block = await self._call("get_block", lambda: self.w3.eth.get_block(head))
        start = max(0, head - AGE_SCAN_BLOCK_WINDOW)

        creation_block = start
        for block in range(start, head + 1, AGE_SCAN_BLOCK_STEP):
            try:
                code = await self.get_code(contract, block)
                if code in ("0x", ""):
                    continue
                previous = await self.get_code(contract, max(0, block - AGE_SCAN_BLOCK_STEP))
            except UpstreamDataUnavailable:
                continue
            if previous in ("0x", ""):
                creation_block = block
                break

        created = await self._call("get_block", lambda: self.w3.eth.get_block(creation_block))
        return int((head_block["timestamp"] - created["timestamp"]) // SECONDS_PER_DAY)

    # ── Liquidity ─────────────────────────────────────────────────────────────

    async def amounts_out(self, router: str, amount_in: int, path: list[str]) -> list[int]:
        contract = self.w3.eth.contract(address=Web3.to_checksum_address(router), abi=ROUTER_ABI)
        checksummed = [Web3.to_checksum_address(p) for p in path]
        amounts = await self._call(
            "get_amounts_out",
            lambda: contract.functions.getAmountsOut(amount_in, checksummed).call(),
        )
        return [int(a) for a in amounts]

    async def router_liquidity(self, contract: str, router: str, quote_token: str) -> float:
        """Router quote for one token, scaled into a rough pool-depth estimate."""
        amounts = await self.amounts_out(router, ONE_TOKEN, [contract, quote_token])
        quoted = amounts[-1] / ONE_TOKEN
        if quoted <= 0:
            raise UpstreamDataUnavailable("router returned a zero quote")
        return quoted * LIQUIDITY_QUOTE_MULTIPLIER

    async def supply_liquidity(self, contract: str) -> float:
        """ERC-20 ``totalSupply / 10**decimals`` used as a liquidity proxy."""
        token = self.w3.eth.contract(address=Web3.to_checksum_address(contract), abi=ERC20_ABI)
        supply, decimals = await asyncio.gather(
            self._call("total_supply", lambda: token.functions.totalSupply().call()),
            self._call("decimals", lambda: token.functions.decimals().call()),
        )
        value = int(supply) / (10 ** int(decimals))
        if value <= 0:
            raise UpstreamDataUnavailable("token reports zero supply")
        return value
