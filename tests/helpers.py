"""Test helpers for RiskGate.

Shared fakes for the collaborators that would otherwise hit the network:
the x402 facilitator, the call forwarder and the fact sources behind the
aggregator. Everything else (stores, gates, proof service) is exercised for
real.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Optional

from riskgate.aggregator import DataAggregator, FactCache
from riskgate.aggregator.aggregator import FactPlan
from riskgate.config import Config
from riskgate.errors import DepositRejected, TransactionReverted, UpstreamDataUnavailable
from riskgate.payments.facilitator import SettleOutcome, VerifyOutcome
from riskgate.vault.deposits import InboundTransfer

# Hardhat / Anvil development account #0. Never funded outside local chains.
TEST_SIGNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

PAY_TO = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
USER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

# 100 bytes of PUSH1 opcodes: low complexity, no proxy markers, no 0xff byte.
SIMPLE_BYTECODE = "0x" + "60" * 100


# ─── Fact sources ─────────────────────────────────────────────────────────────


def const_source(value: Any, delay: float = 0.0):
    """Async fact fetcher returning ``value`` for any contract."""

    async def _fetch(contract: str) -> Any:
        if delay:
            await asyncio.sleep(delay)
        return value

    return _fetch


def failing_source(message: str = "upstream down"):
    async def _fetch(contract: str) -> Any:
        raise UpstreamDataUnavailable(message)

    return _fetch


def make_aggregator(
    holders: Any = 5000,
    age: Any = 400,
    verified: Any = True,
    liquidity: Any = 200_000.0,
    code: Any = SIMPLE_BYTECODE,
    cache: Optional[FactCache] = None,
    source_timeout_s: float = 1.0,
) -> DataAggregator:
    """Aggregator whose primaries return fixed values. Pass a fetcher to override one."""

    def _as_fetcher(value: Any):
        return value if callable(value) else const_source(value)

    plans = {
        "holders": FactPlan(_as_fetcher(holders), None, 0),
        "age": FactPlan(_as_fetcher(age), None, 0),
        "verified": FactPlan(_as_fetcher(verified), None, False),
        "liquidity": FactPlan(_as_fetcher(liquidity), None, 0.0),
    }
    return DataAggregator(
        plans,
        _as_fetcher(code),
        cache=cache if cache is not None else FactCache(),
        source_timeout_s=source_timeout_s,
        code_check_timeout_s=source_timeout_s,
    )


# ─── Facilitator ──────────────────────────────────────────────────────────────


class FakeFacilitator:
    """Records calls; ``delay`` widens the window for concurrency tests."""

    def __init__(
        self,
        valid: bool = True,
        settles: bool = True,
        tx_hash: str = "0xsettled",
        delay: float = 0.0,
        raise_on_verify: Optional[Exception] = None,
    ) -> None:
        self.valid = valid
        self.settles = settles
        self.tx_hash = tx_hash
        self.delay = delay
        self.raise_on_verify = raise_on_verify
        self.verify_calls = 0
        self.settle_calls = 0

    async def verify(self, payment_header: str, requirements: dict[str, Any]) -> VerifyOutcome:
        self.verify_calls += 1
        if self.raise_on_verify is not None:
            raise self.raise_on_verify
        await asyncio.sleep(self.delay)
        return VerifyOutcome(is_valid=self.valid, reason=None if self.valid else "invalid signature")

    async def settle(self, payment_header: str, requirements: dict[str, Any]) -> SettleOutcome:
        self.settle_calls += 1
        await asyncio.sleep(self.delay)
        if not self.settles:
            return SettleOutcome(event="payment.failed", reason="insufficient allowance")
        return SettleOutcome(event="payment.settled", tx_hash=self.tx_hash)


# ─── Vault collaborators ──────────────────────────────────────────────────────


class FixedRisk:
    """Stands in for RiskService in transaction-gate tests."""

    def __init__(self, score: int) -> None:
        self.score = score
        self.calls: list[str] = []

    async def analyze(self, contract: str, verify: bool = False) -> Any:
        self.calls.append(contract)
        return SimpleNamespace(score=self.score, contract=contract)


class FakeForwarder:
    def __init__(self, revert: bool = False, address: str = "0x000000000000000000000000000000000000dEaD") -> None:
        self.revert = revert
        self.address = address
        self.calls: list[tuple[str, str, int]] = []

    async def forward(self, target: str, call_data: str, value: int) -> str:
        self.calls.append((target, call_data, value))
        if self.revert:
            raise TransactionReverted("execution reverted: transfer failed")
        return "0x" + "ab" * 32


class FakeDepositVerifier:
    """Transfers the test has "mined", keyed by transaction hash."""

    def __init__(self) -> None:
        self.transfers: dict[str, InboundTransfer] = {}

    def mine(self, sender: str, recipient: str, value: int) -> str:
        tx_hash = "0x" + f"{len(self.transfers) + 1:064x}"
        self.transfers[tx_hash] = InboundTransfer(tx_hash, sender, recipient, value)
        return tx_hash

    async def inbound_transfer(self, tx_hash: str) -> InboundTransfer:
        transfer = self.transfers.get(tx_hash.lower())
        if transfer is None:
            raise DepositRejected(f"transaction {tx_hash} is unknown or not yet mined")
        return transfer


# ─── Config ───────────────────────────────────────────────────────────────────


def make_config(**overrides: Any) -> Config:
    """Default Config with ``pay_to`` set. ``overrides`` are ``section__field=value``."""
    config = Config.defaults()
    config.payment.pay_to = PAY_TO
    for key, value in overrides.items():
        section, attr = key.split("__", 1)
        setattr(getattr(config, section), attr, value)
    return config
