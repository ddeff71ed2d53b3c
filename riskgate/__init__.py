"""RiskGate: pay-per-call contract risk scoring and risk-gated vault execution."""

__version__ = "1.0.0"
