"""Risk analysis endpoints.

  GET  /api/risk/risk-analysis?contract=0x..&verify=true   paid (x402)
  POST /api/risk/pay                                       settle a challenge

The analysis never fails because an upstream is down: missing facts fall
back to defaults and the response's ``sources`` map says which ones.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from riskgate.limiter import ANALYSIS_RATE_LIMIT, PAYMENT_RATE_LIMIT, limiter
from riskgate.models.api import PayRequest
from riskgate.payments.dependency import require_payment
from riskgate.risk.service import RiskService
from riskgate.routes.payment import settle_payment
from riskgate.utils.validation import validate_address

router = APIRouter(tags=["risk"])

RISK_ANALYSIS_PATH = "/api/risk/risk-analysis"
RISK_ANALYSIS_DESCRIPTION = "Contract risk analysis with a signed score proof"


def get_risk_service(request: Request) -> RiskService:
    return request.app.state.risk_service


@router.get("/risk-analysis")
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def risk_analysis(
    request: Request,
    contract: Optional[str] = None,
    verify: bool = False,
    payment_id: str = Depends(require_payment(RISK_ANALYSIS_PATH, RISK_ANALYSIS_DESCRIPTION)),
) -> dict[str, Any]:
    """Score ``contract``. With ``verify=true`` the proof is anchored and read
    back from the risk ledger before responding."""
    address = validate_address(contract, "contract")
    analysis = await get_risk_service(request).analyze(address, verify=verify)
    return analysis.to_response()


@router.post("/pay")
@limiter.limit(PAYMENT_RATE_LIMIT)
async def pay(request: Request, body: PayRequest) -> JSONResponse:
    return await settle_payment(request, body)
