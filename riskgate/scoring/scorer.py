"""Deterministic risk scoring.

``score_facts`` is pure: same fact set in, same score and warnings out. Fact
weights are added to a base of 50 and the sum is clamped to [0, 100] once at
the end, never per step.

Weights:
    holders     > 1000: -10   > 100: -5    < 10: +15
    age (days)  > 365:  -10   > 90:  -5    < 7:  +10
    verified    yes: -10      no: +10
    liquidity   > 100000: -15 > 10000: -5  0 < liq < 1000: +15  == 0: +20
    complexity  high: +10     medium: +5
    proxy       +5
    selfdestruct +20

Warnings are derived from the facts independently of the score.
"""

from __future__ import annotations

import time
from typing import Optional

from riskgate.constants import (
    AGE_MATURE_DAYS,
    AGE_NEW_DAYS,
    AGE_SEASONED_DAYS,
    BASE_RISK_SCORE,
    HOLDERS_ESTABLISHED,
    HOLDERS_FEW,
    HOLDERS_MODERATE,
    LIQUIDITY_DEEP,
    LIQUIDITY_LOW,
    LIQUIDITY_MODERATE,
    MAX_RISK_SCORE,
    MIN_RISK_SCORE,
)
from riskgate.models.risk import Complexity, RiskFactSet, RiskScore

WARNING_NOT_A_CONTRACT = "address is not a contract"
WARNING_LOW_LIQUIDITY = "Low liquidity detected"
WARNING_NEW_CONTRACT = "Contract is very new (< 7 days)"
WARNING_UNVERIFIED = "Contract source code not verified"
WARNING_SELFDESTRUCT = "Contract contains selfdestruct function"
WARNING_FEW_HOLDERS = "Very few token holders"


def _holder_weight(holders: int) -> int:
    if holders > HOLDERS_ESTABLISHED:
        return -10
    if holders > HOLDERS_MODERATE:
        return -5
    if holders < HOLDERS_FEW:
        return 15
    return 0


def _age_weight(age_days: int) -> int:
    if age_days > AGE_MATURE_DAYS:
        return -10
    if age_days > AGE_SEASONED_DAYS:
        return -5
    if age_days < AGE_NEW_DAYS:
        return 10
    return 0


def _liquidity_weight(liquidity: float) -> int:
    if liquidity > LIQUIDITY_DEEP:
        return -15
    if liquidity > LIQUIDITY_MODERATE:
        return -5
    if liquidity == 0:
        return 20
    if liquidity < LIQUIDITY_LOW:
        return 15
    return 0


_COMPLEXITY_WEIGHT = {Complexity.HIGH: 10, Complexity.MEDIUM: 5, Complexity.LOW: 0}


def raw_score(facts: RiskFactSet) -> int:
    """Unclamped weighted sum. Exposed for tests of the clamping boundary."""
    score = BASE_RISK_SCORE
    score += _holder_weight(facts.holder_count)
    score += _age_weight(facts.age_days)
    score += -10 if facts.is_verified else 10
    score += _liquidity_weight(facts.liquidity_estimate)
    score += _COMPLEXITY_WEIGHT[Complexity(facts.bytecode_complexity)]
    if facts.is_proxy:
        score += 5
    if facts.has_self_destruct:
        score += 20
    return score


def warnings_for(facts: RiskFactSet) -> tuple[str, ...]:
    if not facts.has_code:
        return (WARNING_NOT_A_CONTRACT,)
    warnings = []
    if facts.liquidity_estimate < LIQUIDITY_LOW:
        warnings.append(WARNING_LOW_LIQUIDITY)
    if facts.age_days < AGE_NEW_DAYS:
        warnings.append(WARNING_NEW_CONTRACT)
    if not facts.is_verified:
        warnings.append(WARNING_UNVERIFIED)
    if facts.has_self_destruct:
        warnings.append(WARNING_SELFDESTRUCT)
    if facts.holder_count < HOLDERS_FEW:
        warnings.append(WARNING_FEW_HOLDERS)
    return tuple(warnings)


def score_facts(facts: RiskFactSet, now: Optional[int] = None) -> RiskScore:
    """Score a fact set. An address without code always scores 100."""
    computed_at = int(time.time()) if now is None else now
    if not facts.has_code:
        score = MAX_RISK_SCORE
    else:
        score = max(MIN_RISK_SCORE, min(MAX_RISK_SCORE, raw_score(facts)))
    return RiskScore(
        contract=facts.contract,
        score=score,
        warnings=warnings_for(facts),
        computed_at=computed_at,
    )
