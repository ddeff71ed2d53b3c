from riskgate.proof.ledger import ChainRiskLedger, InMemoryRiskLedger, LedgerRecord, RiskLedger
from riskgate.proof.service import ProofService

__all__ = [
    "ChainRiskLedger",
    "InMemoryRiskLedger",
    "LedgerRecord",
    "ProofService",
    "RiskLedger",
]
