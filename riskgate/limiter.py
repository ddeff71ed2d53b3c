"""Shared rate limiter for the RiskGate HTTP surface.

The Limiter instance is created here and shared between:
  - riskgate/routes/*.py  (route decorators)
  - riskgate/main.py      (app.state.limiter + SlowAPIMiddleware registration)

Limits are keyed by the caller's remote address. The analysis endpoints fan
out to several upstreams per request; the pay endpoints call the
facilitator, so they are capped lower.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from riskgate.constants import ANALYSIS_RATE_LIMIT, PAYMENT_RATE_LIMIT

# Module-level limiter, imported by main.py and the routers
limiter = Limiter(key_func=get_remote_address)

__all__ = ["limiter", "ANALYSIS_RATE_LIMIT", "PAYMENT_RATE_LIMIT"]
