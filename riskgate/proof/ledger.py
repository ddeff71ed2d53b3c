"""Risk-ledger backends: where proof hashes are anchored and read back.

Layout mirrors the store package:
    RiskLedger          Protocol (store_result / get_result)
    ChainRiskLedger     the on-chain risk-ledger contract via AsyncWeb3
    InMemoryRiskLedger  process-local dict, for tests and ledger-less deployments

Readers raise ``ProofVerificationUnavailable`` when the ledger cannot be
read; "no such record" is a normal ``None`` result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from web3 import AsyncWeb3, Web3

from riskgate.constants import RPC_TIMEOUT_S
from riskgate.errors import ProofVerificationUnavailable
from riskgate.sources.abi import RISK_LEDGER_ABI
from riskgate.sources.signer import TransactionSender
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerRecord:
    contract: str
    score: int
    proof_hash: str
    """0x-prefixed 32-byte hex."""
    timestamp: int
    oracle_address: str


# ─── RiskLedger Protocol ──────────────────────────────────────────────────────


@runtime_checkable
class RiskLedger(Protocol):
    async def store_result(
        self, contract: str, score: int, proof_hash: str, timestamp: int
    ) -> Optional[str]:
        """Anchor a result. Returns a transaction hash where one exists."""
        ...

    async def get_result(self, contract: str, timestamp: int) -> Optional[LedgerRecord]:
        """Read an anchored result. ``None`` when no record exists.

        Raises:
            ProofVerificationUnavailable: the ledger could not be read.
        """
        ...


# ─── InMemoryRiskLedger ───────────────────────────────────────────────────────


class InMemoryRiskLedger:
    def __init__(self, oracle_address: str = "") -> None:
        self.oracle_address = oracle_address
        self._records: dict[tuple[str, int], LedgerRecord] = {}

    async def store_result(
        self, contract: str, score: int, proof_hash: str, timestamp: int
    ) -> Optional[str]:
        self._records[(contract.lower(), timestamp)] = LedgerRecord(
            contract=contract,
            score=score,
            proof_hash=proof_hash.lower(),
            timestamp=timestamp,
            oracle_address=self.oracle_address,
        )
        return None

    async def get_result(self, contract: str, timestamp: int) -> Optional[LedgerRecord]:
        return self._records.get((contract.lower(), timestamp))


# ─── ChainRiskLedger ──────────────────────────────────────────────────────────


class ChainRiskLedger:
    """The deployed risk-ledger contract.

    Reads need only the RPC; writes need a ``TransactionSender``.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        address: str,
        sender: Optional[TransactionSender] = None,
        timeout_s: float = RPC_TIMEOUT_S,
    ) -> None:
        self._contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=RISK_LEDGER_ABI)
        self._sender = sender
        self._timeout_s = timeout_s

    async def store_result(
        self, contract: str, score: int, proof_hash: str, timestamp: int
    ) -> Optional[str]:
        if self._sender is None:
            logger.warning("risk_ledger_write_skipped", reason="no signer configured")
            return None
        call = self._contract.functions.storeResult(
            Web3.to_checksum_address(contract),
            score,
            Web3.to_bytes(hexstr=proof_hash),
            timestamp,
        )
        tx = await call.build_transaction({"from": self._sender.address})
        return await self._sender.send(tx)

    async def get_result(self, contract: str, timestamp: int) -> Optional[LedgerRecord]:
        call = self._contract.functions.getResult(Web3.to_checksum_address(contract), timestamp)
        try:
            score, proof_hash, result_ts, oracle, exists = await asyncio.wait_for(
                call.call(), timeout=self._timeout_s
            )
        except Exception as exc:
            # Provider transports raise their own types (aiohttp on HTTP 5xx).
            raise ProofVerificationUnavailable(
                f"getResult failed: {type(exc).__name__}: {exc}"
            ) from exc
        if not exists:
            return None
        return LedgerRecord(
            contract=contract,
            score=int(score),
            proof_hash=Web3.to_hex(proof_hash).lower(),
            timestamp=int(result_ts),
            oracle_address=oracle,
        )

