"""Risk pipeline data contracts.

Fact sets, scores and proofs are created per request and never mutated, so
every type here is a frozen dataclass. ``sources`` on RiskFactSet records
where each fact came from so a response can say which values were defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, Optional, TypeVar

from eth_utils import keccak

# ─── Type Aliases ─────────────────────────────────────────────────────────────

FactName = Literal["holders", "age", "verified", "liquidity", "complexity"]
ProofKind = Literal["signed", "placeholder"]

T = TypeVar("T")


class FactSource(str, Enum):
    """Where an aggregated fact value came from."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    DEFAULT = "default"
    CACHE = "cache"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ─── Facts ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FactResult(Generic[T]):
    """Output of a single fact fetch: ``(value, source, error)``."""

    value: T
    source: FactSource
    error: Optional[str] = None


@dataclass(frozen=True)
class BytecodeProfile:
    complexity: Complexity = Complexity.LOW
    is_proxy: bool = False
    has_self_destruct: bool = False


@dataclass(frozen=True)
class RiskFactSet:
    """Everything the scorer needs to know about one contract address.

    Zero values (0 holders, 0 days, unverified, 0 liquidity, low complexity)
    are the documented defaults when every source for a fact failed.
    """

    contract: str
    holder_count: int = 0
    age_days: int = 0
    is_verified: bool = False
    liquidity_estimate: float = 0.0
    bytecode_complexity: Complexity = Complexity.LOW
    is_proxy: bool = False
    has_self_destruct: bool = False
    has_code: bool = True
    sources: dict[str, str] = field(default_factory=dict)


# ─── Score + Proof ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RiskScore:
    contract: str
    score: int
    warnings: tuple[str, ...] = ()
    computed_at: int = 0
    """Unix seconds at which the score was computed."""


@dataclass(frozen=True)
class Proof:
    """A signed (or placeholder) attestation of ``(contract, score, timestamp)``.

    ``signature`` is the 0x-hex EIP-191 signature for signed proofs and
    ``placeholder:0x<hex>`` for placeholder proofs. ``proof_hash`` is the
    keccak-256 of the signature text and is what gets anchored on-chain.
    """

    contract: str
    score: int
    timestamp: int
    signature: str
    signer_address: Optional[str] = None
    kind: ProofKind = "signed"

    @property
    def proof_hash(self) -> str:
        return "0x" + keccak(text=self.signature).hex()

    @property
    def is_placeholder(self) -> bool:
        return self.kind == "placeholder"


@dataclass(frozen=True)
class RiskAnalysis:
    """Full pipeline output returned to paying callers and used by the vault gate."""

    contract: str
    score: int
    proof: Proof
    facts: RiskFactSet
    warnings: tuple[str, ...]
    timestamp_ms: int
    verified: Optional[bool] = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "score": self.score,
            "proof": self.proof.signature,
            "proofHash": self.proof.proof_hash,
            "proofKind": self.proof.kind,
            "details": {
                "liquidity": _liquidity_label(self.facts),
                "contractAge": _age_label(self.facts),
                "holders": self.facts.holder_count,
                "verified": self.facts.is_verified,
                "warnings": list(self.warnings),
            },
            "timestamp": self.timestamp_ms,
            "contract": self.contract,
            "sources": dict(self.facts.sources),
        }
        if self.verified is not None:
            body["verified"] = self.verified
        return body


def _liquidity_label(facts: RiskFactSet) -> str:
    if not facts.has_code:
        return "unknown"
    if facts.liquidity_estimate > 10_000:
        return "sufficient"
    if facts.liquidity_estimate > 1_000:
        return "moderate"
    return "low"


def _age_label(facts: RiskFactSet) -> str:
    if not facts.has_code:
        return "N/A"
    if facts.age_days > 0:
        return f"{facts.age_days} days"
    return "Unknown"
