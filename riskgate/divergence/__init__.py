from riskgate.divergence.service import CexPriceClient, DivergenceService

__all__ = ["CexPriceClient", "DivergenceService"]
