"""FastAPI dependency that puts a route behind the payment gate.

    @router.get("/risk-analysis", dependencies=[Depends(require_payment("/api/risk/risk-analysis"))])

An entitled request passes straight through. Anything else raises
``PaymentRequired`` carrying a fresh challenge; the app's exception handler
turns it into the 402 response.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Request

from riskgate.constants import PAYMENT_ID_HEADER
from riskgate.errors import PaymentRequired
from riskgate.payments.gate import PaymentGate
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


def get_payment_gate(request: Request) -> PaymentGate:
    return request.app.state.payment_gate


def require_payment(path: str, description: str) -> Callable[[Request], Awaitable[str]]:
    """Build a dependency guarding ``path``. Returns the entitled payment id."""

    async def _dependency(request: Request) -> str:
        gate = get_payment_gate(request)
        resource = f"{gate.config.resource_url.rstrip('/')}{path}"
        payment_id = (request.headers.get(PAYMENT_ID_HEADER) or "").strip()

        if await gate.check_entitlement(payment_id, resource):
            return payment_id

        if payment_id:
            logger.info("payment_not_entitled", payment_id=payment_id, resource=resource)
        raise PaymentRequired(gate.issue_challenge(resource, description))

    return _dependency
