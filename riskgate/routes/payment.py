"""Settlement handler shared by every paid resource's ``/pay`` endpoint.

The client takes the ``paymentId`` and requirements from the 402 challenge,
signs the payment, and posts the result here. On success the id is
entitled and the client retries the paid request with ``X-Payment-Id``.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from riskgate.errors import ValidationError
from riskgate.models.api import PayRequest
from riskgate.payments.dependency import get_payment_gate
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


async def settle_payment(request: Request, body: PayRequest) -> JSONResponse:
    """200 ``{ok, success, txHash}`` or 400 ``{error, message}``."""
    payment_id = body.payment_id.strip()
    if not payment_id or not body.payment_header.strip():
        raise ValidationError("paymentId, paymentHeader and paymentRequirements are required")

    gate = get_payment_gate(request)
    result = await gate.settle(payment_id, body.payment_header, body.payment_requirements)

    if not result.ok:
        return JSONResponse(
            status_code=400,
            content={"error": result.error, "message": result.message or result.error},
        )
    return JSONResponse(
        status_code=200,
        content={"ok": True, "success": True, "txHash": result.tx_hash},
    )
