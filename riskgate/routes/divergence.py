"""CEX/DEX price divergence endpoints.

  GET  /api/divergence/divergence?token=CRO&amount=1   paid (x402)
  POST /api/divergence/pay                             settle a challenge
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from riskgate.divergence.service import DivergenceService
from riskgate.errors import ServiceDisabled, ValidationError
from riskgate.limiter import ANALYSIS_RATE_LIMIT, PAYMENT_RATE_LIMIT, limiter
from riskgate.models.api import PayRequest
from riskgate.payments.dependency import require_payment
from riskgate.routes.payment import settle_payment
from riskgate.sources.chain import ONE_TOKEN
from riskgate.utils.validation import validate_amount

router = APIRouter(tags=["divergence"])

DIVERGENCE_PATH = "/api/divergence/divergence"
DIVERGENCE_DESCRIPTION = "CEX/DEX price divergence analysis"


def get_divergence_service(request: Request) -> DivergenceService:
    service = getattr(request.app.state, "divergence_service", None)
    if service is None:
        raise ServiceDisabled("Divergence analysis is disabled")
    return service


@router.get("/divergence")
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def divergence(
    request: Request,
    token: Optional[str] = None,
    amount: Optional[str] = None,
    service: DivergenceService = Depends(get_divergence_service),
    payment_id: str = Depends(require_payment(DIVERGENCE_PATH, DIVERGENCE_DESCRIPTION)),
) -> dict[str, Any]:
    """503 when the service is disabled, before any challenge is issued."""
    if not token or not token.strip():
        raise ValidationError('Token symbol is required (e.g., "CRO")')
    amount_in = validate_amount(amount) if amount else ONE_TOKEN
    result = await service.calculate(token.strip(), amount_in)
    return result.to_response()


@router.post("/pay")
@limiter.limit(PAYMENT_RATE_LIMIT)
async def pay(request: Request, body: PayRequest) -> JSONResponse:
    return await settle_payment(request, body)
