"""Root test configuration for RiskGate.

Fakes and builders shared across the suite live in ``tests/helpers.py``
(importable as ``helpers`` via ``pythonpath`` in pyproject.toml).
"""

import pytest

from helpers import make_config
from riskgate.config import Config


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests.

    Prevents test-to-test rate limit bleed where multiple tests hitting the
    same endpoint within the same minute would trigger a 429.
    """
    from riskgate.limiter import limiter

    limiter.reset()


@pytest.fixture
def config() -> Config:
    return make_config()
