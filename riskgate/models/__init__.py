"""RiskGate models package.

Shared data contracts used across the risk pipeline, payment gate and vault:

  - risk.py     : RiskFactSet, FactResult, RiskScore, Proof, RiskAnalysis
  - payment.py  : PaymentChallenge, PaymentRecord, SettlementResult
  - vault.py    : BlockedTransactionRecord, TransactionResult
  - api.py      : pydantic request bodies for the HTTP routes
  - responses.py: 402 challenge and error response builders
"""
