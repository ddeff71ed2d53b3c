from riskgate.scoring.scorer import score_facts

__all__ = ["score_facts"]
