"""Data aggregator: per-fact cache, primary source, fallback source, default."""

from riskgate.aggregator.aggregator import DataAggregator
from riskgate.aggregator.cache import FactCache

__all__ = ["DataAggregator", "FactCache"]
