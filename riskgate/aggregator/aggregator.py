"""DataAggregator: turns unreliable sources into a complete RiskFactSet.

Per fact the lookup order is:

  1. cache     (fact, contract) entry younger than the TTL
  2. primary   source adapter, bounded by ``source_timeout_s``
  3. fallback  source adapter, same bound
  4. default   the zero value for the fact, tagged ``default``

Only primary/fallback successes are cached, so a recovered upstream is used
on the next request. ``aggregate()`` never raises: every failure degrades to
the next step and is recorded in ``RiskFactSet.sources``.

The ``getCode`` check runs first. Empty bytecode short-circuits to
``has_code=False`` with no other fetch; the four remote facts then run
concurrently, so latency is bounded by the slowest of them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from riskgate.aggregator.cache import FactCache
from riskgate.constants import CODE_CHECK_TIMEOUT_S, SOURCE_TIMEOUT_S
from riskgate.models.risk import BytecodeProfile, FactResult, FactSource, RiskFactSet
from riskgate.sources.bytecode import analyze_bytecode
from riskgate.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

FactFetcher = Callable[[str], Awaitable[Any]]

REMOTE_FACTS: tuple[str, ...] = ("holders", "age", "verified", "liquidity")


@dataclass(frozen=True)
class FactPlan:
    """Sources for one fact. Either source may be None (verified has no fallback)."""

    primary: Optional[FactFetcher]
    fallback: Optional[FactFetcher]
    default: Any


class DataAggregator:
    def __init__(
        self,
        plans: dict[str, FactPlan],
        code_check: FactFetcher,
        cache: Optional[FactCache] = None,
        source_timeout_s: float = SOURCE_TIMEOUT_S,
        code_check_timeout_s: float = CODE_CHECK_TIMEOUT_S,
    ) -> None:
        missing = set(REMOTE_FACTS) - set(plans)
        if missing:
            raise ValueError(f"no source plan for facts: {sorted(missing)}")
        self._plans = plans
        self._code_check = code_check
        self._cache = cache if cache is not None else FactCache()
        self._source_timeout_s = source_timeout_s
        self._code_check_timeout_s = code_check_timeout_s

    @classmethod
    def from_sources(
        cls,
        explorer: Any,
        chain: Any,
        router_address: str,
        quote_token: str,
        cache: Optional[FactCache] = None,
        source_timeout_s: float = SOURCE_TIMEOUT_S,
    ) -> "DataAggregator":
        """Wire the explorer (primary) and chain RPC (fallback) adapters.

        ``explorer`` may be None when no explorer is configured; chain sources
        then serve as the only source for holders and age.
        """

        async def router_liquidity(contract: str) -> float:
            return await chain.router_liquidity(contract, router_address, quote_token)

        plans = {
            "holders": FactPlan(
                explorer.holder_count if explorer else None, chain.holder_count, 0
            ),
            "age": FactPlan(explorer.age_days if explorer else None, chain.age_days, 0),
            "verified": FactPlan(explorer.is_verified if explorer else None, None, False),
            "liquidity": FactPlan(router_liquidity, chain.supply_liquidity, 0.0),
        }
        return cls(plans, chain.get_code, cache=cache, source_timeout_s=source_timeout_s)

    @property
    def cache(self) -> FactCache:
        return self._cache

    # ── Single fact ───────────────────────────────────────────────────────────

    async def fetch_fact(self, fact: str, contract: str) -> FactResult:
        """Resolve one fact through cache, primary, fallback, default. Never raises."""
        hit, cached = self._cache.lookup(fact, contract)
        if hit:
            return FactResult(cached, FactSource.CACHE)

        plan = self._plans[fact]
        errors: list[str] = []
        for source, fetcher in ((FactSource.PRIMARY, plan.primary), (FactSource.FALLBACK, plan.fallback)):
            if fetcher is None:
                continue
            try:
                value = await asyncio.wait_for(fetcher(contract), timeout=self._source_timeout_s)
            except Exception as exc:
                # Timeouts, HTTP errors, RPC errors and bad payloads all degrade.
                reason = str(exc) or type(exc).__name__
                errors.append(f"{source.value}: {reason}")
                logger.warning(
                    "fact_source_failed",
                    fact=fact,
                    source=source.value,
                    contract=contract,
                    error=reason,
                    error_type=type(exc).__name__,
                )
                continue
            await self._cache.set(fact, contract, value)
            return FactResult(value, source)

        logger.warning("fact_defaulted", fact=fact, contract=contract, default=plan.default)
        return FactResult(plan.default, FactSource.DEFAULT, "; ".join(errors) or None)

    async def _check_code(self, contract: str) -> FactResult:
        hit, cached = self._cache.lookup("code", contract)
        if hit:
            return FactResult(cached, FactSource.CACHE)
        try:
            code = await asyncio.wait_for(
                self._code_check(contract), timeout=self._code_check_timeout_s
            )
        except Exception as exc:
            logger.warning(
                "code_check_failed",
                contract=contract,
                error=str(exc) or type(exc).__name__,
            )
            return FactResult(None, FactSource.DEFAULT, str(exc) or type(exc).__name__)
        await self._cache.set("code", contract, code)
        return FactResult(code, FactSource.PRIMARY)

    # ── Full fact set ─────────────────────────────────────────────────────────

    async def aggregate(self, contract: str) -> RiskFactSet:
        """Gather every fact for ``contract``. Never raises.

        If the code check itself fails the address is assumed to be a contract
        and complexity falls back to its default. Scoring then runs on
        whatever the other sources produce.
        """
        with PerformanceLogger("aggregate_facts", logger, contract=contract):
            code = await self._check_code(contract)
            if code.value is not None and code.value in ("0x", ""):
                logger.info("address_has_no_code", contract=contract)
                return RiskFactSet(contract=contract, has_code=False, sources={"code": code.source.value})

            results = await asyncio.gather(
                *(self.fetch_fact(fact, contract) for fact in REMOTE_FACTS)
            )
            by_fact = dict(zip(REMOTE_FACTS, results))

            profile = analyze_bytecode(code.value) if code.value else BytecodeProfile()
            sources = {fact: result.source.value for fact, result in by_fact.items()}
            sources["complexity"] = code.source.value

            facts = RiskFactSet(
                contract=contract,
                holder_count=int(by_fact["holders"].value),
                age_days=int(by_fact["age"].value),
                is_verified=bool(by_fact["verified"].value),
                liquidity_estimate=float(by_fact["liquidity"].value),
                bytecode_complexity=profile.complexity,
                is_proxy=profile.is_proxy,
                has_self_destruct=profile.has_self_destruct,
                has_code=True,
                sources=sources,
            )

        defaulted = [fact for fact, tag in sources.items() if tag == FactSource.DEFAULT.value]
        logger.info(
            "facts_aggregated",
            contract=contract,
            holders=facts.holder_count,
            age_days=facts.age_days,
            verified=facts.is_verified,
            liquidity=facts.liquidity_estimate,
            complexity=facts.bytecode_complexity.value,
            defaulted=defaulted,
        )
        return facts
