"""HTTP response builders for the paid endpoints and the error handlers.

  build_payment_required_response():
      HTTP 402 carrying the x402 challenge body and the ``X-Payment-Id``
      header with the freshly issued payment id.

  build_error_response():
      Any ``RiskGateError``: status from the exception, body ``{error, message}``.

A 402 is never confused with a failed settlement: settlement failures are
400 ``verify_failed`` / ``settle_failed`` and carry no challenge.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from riskgate.constants import PAYMENT_ID_HEADER
from riskgate.errors import RiskGateError
from riskgate.models.payment import PaymentChallenge


def build_payment_required_response(challenge: PaymentChallenge) -> JSONResponse:
    """Build the HTTP 402 response for an unpaid request.

    .. code-block:: json

        {
          "x402Version": 1,
          "error": "payment_required",
          "message": "This endpoint requires payment",
          "paymentId": "pay_01J...",
          "accepts": [{"scheme": "exact", "network": "...", "payTo": "0x...",
                       "asset": "0x...", "maxAmountRequired": "1000000",
                       "maxTimeoutSeconds": 300, "description": "...",
                       "resource": "...", "mimeType": "application/json",
                       "extra": {"paymentId": "pay_01J..."}}]
        }
    """
    response = JSONResponse(status_code=402, content=challenge.to_body())
    response.headers[PAYMENT_ID_HEADER] = challenge.payment_id
    return response


def build_error_response(exc: RiskGateError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
