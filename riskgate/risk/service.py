"""RiskService: the full pipeline: aggregate, score, sign, anchor, verify.

Anchoring a proof on the risk ledger can take a block confirmation, so it
runs as a background task unless the caller asked for on-chain verification,
in which case the anchor must land before the ledger can be read back.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from riskgate.aggregator.aggregator import DataAggregator
from riskgate.models.risk import RiskAnalysis
from riskgate.proof.service import ProofService
from riskgate.scoring.scorer import score_facts
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


class RiskService:
    def __init__(
        self,
        aggregator: DataAggregator,
        proofs: ProofService,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._aggregator = aggregator
        self._proofs = proofs
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    @property
    def proofs(self) -> ProofService:
        return self._proofs

    async def analyze(self, contract: str, verify: bool = False) -> RiskAnalysis:
        """Score ``contract`` and attach a proof. Never raises for upstream failures."""
        facts = await self._aggregator.aggregate(contract)
        timestamp = int(self._clock())
        score = score_facts(facts, now=timestamp)
        proof = self._proofs.sign(contract, score.score, timestamp)

        verified = None
        if verify:
            await self._proofs.anchor(proof)
            verified = await self._proofs.verify(contract, timestamp, proof.proof_hash)
        else:
            task = asyncio.create_task(self._proofs.anchor(proof))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        logger.info(
            "risk_analysis_completed",
            contract=contract,
            score=score.score,
            proof_kind=proof.kind,
            verified=verified,
            warnings=len(score.warnings),
        )
        return RiskAnalysis(
            contract=contract,
            score=score.score,
            proof=proof,
            facts=facts,
            warnings=score.warnings,
            timestamp_ms=timestamp * 1000,
            verified=verified,
        )

    async def drain(self) -> None:
        """Wait for pending anchor tasks. Called on shutdown."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
