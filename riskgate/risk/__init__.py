from riskgate.risk.service import RiskService

__all__ = ["RiskService"]
