"""Risk-gated vault endpoints.

  GET  /api/vault/info
  GET  /api/vault/balance?address=0x..
  POST /api/vault/deposit                 {userAddress, txHash, amount?}
  POST /api/vault/withdraw                {userAddress, amount, recipient?}
  POST /api/vault/execute                 {userAddress, target, callData, value}
  GET  /api/vault/blocked-transactions?limit=20&userAddress=0x..

Amounts are decimal CRO strings on the way in and wei strings on the way out.
A blocked call is a normal 200 result with ``blocked: true``; a reverted
call is a 500 with ``error: "transaction_reverted"``.
"""

from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from riskgate.errors import ServiceDisabled
from riskgate.limiter import ANALYSIS_RATE_LIMIT, limiter
from riskgate.models.api import DepositRequest, ExecuteRequest, WithdrawRequest
from riskgate.models.vault import TransactionResult
from riskgate.utils.logger import get_logger
from riskgate.utils.validation import (
    format_wei,
    validate_address,
    validate_amount,
    validate_hex,
    validate_limit,
    validate_tx_hash,
)
from riskgate.vault.gate import TransactionGate

logger = get_logger(__name__)

router = APIRouter(tags=["vault"])


def get_transaction_gate(request: Request) -> TransactionGate:
    gate = getattr(request.app.state, "transaction_gate", None)
    if gate is None:
        raise ServiceDisabled("Vault is disabled")
    return gate


def _result_response(result: TransactionResult) -> JSONResponse:
    if result.error == "reverted":
        body = {"success": False, "error": "transaction_reverted", "message": result.reason}
        if result.risk_score is not None:
            body["riskScore"] = result.risk_score
        return JSONResponse(status_code=500, content=body)
    if result.error == "insufficient_funds":
        return JSONResponse(status_code=400, content={**result.to_dict(), "message": result.reason})
    return JSONResponse(status_code=200, content=result.to_dict())


def _balance_body(address: str, balance: int) -> dict[str, Any]:
    return {"address": address, "balance": str(balance), "balanceFormatted": format_wei(balance)}


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/info")
async def vault_info(request: Request) -> dict[str, Any]:
    return get_transaction_gate(request).info()


@router.get("/balance")
async def balance(request: Request, address: Optional[str] = None) -> dict[str, Any]:
    user = validate_address(address, "address")
    return _balance_body(user, await get_transaction_gate(request).balance(user))


@router.post("/deposit")
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def deposit(request: Request, body: DepositRequest) -> dict[str, Any]:
    """Credit a mined transfer to the vault. Each transaction hash is credited once."""
    user = validate_address(body.user_address, "userAddress")
    tx_hash = validate_tx_hash(body.tx_hash, "txHash")
    expected = validate_amount(body.amount, "amount") if body.amount not in (None, "") else None
    gate = get_transaction_gate(request)
    amount, new_balance = await gate.deposit(user, tx_hash, expected)
    return {"success": True, "txHash": tx_hash, "amount": str(amount), **_balance_body(user, new_balance)}


@router.post("/withdraw")
async def withdraw(request: Request, body: WithdrawRequest) -> JSONResponse:
    user = validate_address(body.user_address, "userAddress")
    amount = validate_amount(body.amount, "amount")
    recipient = validate_address(body.recipient, "recipient") if body.recipient else None
    result = await get_transaction_gate(request).withdraw(user, amount, recipient)
    return _result_response(result)


@router.post("/execute")
@limiter.limit(ANALYSIS_RATE_LIMIT)
async def execute(request: Request, body: ExecuteRequest) -> JSONResponse:
    """Run the target through the risk pipeline, then forward or block the call."""
    user = validate_address(body.user_address, "userAddress")
    target = validate_address(body.target, "target")
    call_data = validate_hex(body.call_data or "0x", "callData")
    value = validate_amount(body.value, "value") if body.value not in (None, "", 0, "0") else 0

    result = await get_transaction_gate(request).execute_with_risk_check(user, target, value, call_data)
    return _result_response(result)


@router.get("/blocked-transactions")
async def blocked_transactions(
    request: Request,
    limit: Optional[int] = None,
    userAddress: Optional[str] = None,
) -> list[dict[str, Any]]:
    user = validate_address(userAddress, "userAddress") if userAddress else None
    records = await get_transaction_gate(request).blocked_transactions(validate_limit(limit), user)
    return [record.to_dict() for record in records]
