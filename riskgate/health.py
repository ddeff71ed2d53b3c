"""Health and service-discovery endpoints.

  GET /health  503 until the lifespan marks the app ready, then 200 with
               the state of the ledger store and which optional services
               (vault, divergence, on-chain proofs) are wired.
  GET /        service identity and the paid endpoints it offers.
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from riskgate.config import Config

router = APIRouter(tags=["health"])


# ─── /health ──────────────────────────────────────────────────────────────────


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200):
        {
          "status": "ok" | "degraded",
          "ledger_store": "healthy" | "error",
          "network": "cronos-testnet",
          "signer": true,
          "proof_ledger": "chain" | "memory",
          "vault": true,
          "divergence": true,
          "uptime_s": 12
        }

    A degraded store still answers 200: risk analysis keeps working without
    it, only payments and the vault ledger are affected.
    """
    state = request.app.state
    if not getattr(state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "RiskGate is starting up"},
        )

    config: Config = state.config
    store_ok = await state.ledger_store.health_check()
    started_at = getattr(state, "started_at", None)

    return {
        "status": "ok" if store_ok else "degraded",
        "ledger_store": "healthy" if store_ok else "error",
        "network": config.chain.network,
        "signer": state.risk_service.proofs.signer_address is not None,
        "proof_ledger": "chain" if config.proof.ledger_address else "memory",
        "vault": getattr(state, "transaction_gate", None) is not None,
        "divergence": getattr(state, "divergence_service", None) is not None,
        "uptime_s": int(time.monotonic() - started_at) if started_at is not None else 0,
    }


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@router.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint: service identity / discovery."""
    return {
        "service": "RiskGate",
        "tagline": "Pay-per-call contract risk scoring with signed proofs",
        "health": "/health",
        "endpoints": {
            "riskAnalysis": "/api/risk/risk-analysis",
            "divergence": "/api/divergence/divergence",
            "vault": "/api/vault/info",
        },
    }
