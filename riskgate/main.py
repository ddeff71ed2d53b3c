"""RiskGate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app()     testable application factory
  - lifespan         @asynccontextmanager startup/shutdown sequence
  - wire_services()  builds every service from Config onto app.state
  - app = create_app()  module-level instance for uvicorn

Startup sequence:
  1. load_config()             → app.state.config
  2. create_http_client()      → app.state.http_client (shared, pooled)
  3. create_ledger_store()     → app.state.ledger_store
  4. wire_services()           → risk_service, payment_gate,
                                 divergence_service, transaction_gate
  5. app.state.ready = True

Shutdown sequence (reverse):
  app.state.ready = False → drain proof anchors → close ledger store →
  close HTTP client

Misconfiguration (no ``payment.pay_to``, vault enabled without a signer
key) exits with status 1 before ready is ever set.
"""

from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from riskgate import __version__
from riskgate.aggregator import DataAggregator, FactCache
from riskgate.config import Config, load_config
from riskgate.divergence.service import CexPriceClient, DivergenceService
from riskgate.errors import ConfigError, PaymentRequired, RiskGateError
from riskgate.health import router as health_router
from riskgate.limiter import limiter
from riskgate.models.responses import build_error_response, build_payment_required_response
from riskgate.payments.facilitator import HttpFacilitator
from riskgate.payments.gate import PaymentGate
from riskgate.proof.ledger import ChainRiskLedger, InMemoryRiskLedger, RiskLedger
from riskgate.proof.service import ProofService
from riskgate.risk.service import RiskService
from riskgate.routes.divergence import router as divergence_router
from riskgate.routes.risk import RISK_ANALYSIS_PATH
from riskgate.routes.risk import router as risk_router
from riskgate.routes.vault import router as vault_router
from riskgate.sources.chain import ChainClient, create_web3
from riskgate.sources.explorer import ExplorerClient
from riskgate.sources.signer import TransactionSender
from riskgate.store.factory import create_ledger_store
from riskgate.store.protocol import LedgerStore
from riskgate.utils.logger import bind_request_context, clear_request_context, configure_logging, get_logger
from riskgate.utils.retry import RetryPolicy
from riskgate.utils.ulid import generate_ulid
from riskgate.vault.deposits import ChainDepositVerifier
from riskgate.vault.forwarder import ChainCallForwarder
from riskgate.vault.gate import TransactionGate

# ─── Logging Setup ────────────────────────────────────────────────────────────
# Configure logging at module import time (before any other imports that may log).
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

# ─── Shared HTTP client ───────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
HTTP_TIMEOUT: float = 30.0  # per-call timeouts are tighter; this is the ceiling

REQUEST_ID_HEADER = "X-Request-Id"


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used by the explorer, facilitator
    and CEX clients. Created once in the lifespan, never per request."""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(HTTP_TIMEOUT),
    )


# ─── Service wiring ───────────────────────────────────────────────────────────


def wire_services(
    state: Any,
    config: Config,
    http_client: httpx.AsyncClient,
    store: LedgerStore,
) -> None:
    """Build the service graph from ``config`` and attach it to ``state``.

    Raises:
        ConfigError: pay_to is missing, or the vault is enabled without a signer key.
    """
    retry = RetryPolicy(
        max_attempts=config.risk.retry.max_attempts,
        base_delay_s=config.risk.retry.base_delay_s,
        backoff_factor=config.risk.retry.backoff_factor,
    )
    w3 = create_web3(config.chain.rpc_url, config.chain.timeout_s)

    explorer: Optional[ExplorerClient] = None
    if config.explorer.base_url:
        explorer = ExplorerClient(
            http_client,
            config.explorer.base_url,
            api_key=config.explorer.api_key,
            timeout_s=config.explorer.timeout_s,
            retry=retry,
        )
    chain = ChainClient(w3, timeout_s=config.risk.source_timeout_s, retry=retry)

    quote_token = config.dex.tokens.get(config.dex.quote_token.upper(), "")
    aggregator = DataAggregator.from_sources(
        explorer,
        chain,
        config.dex.router_address,
        quote_token,
        cache=FactCache(ttl_s=config.risk.cache_ttl_s),
        source_timeout_s=config.risk.source_timeout_s,
    )

    sender: Optional[TransactionSender] = None
    if config.proof.signer_key:
        sender = TransactionSender(
            w3,
            config.proof.signer_key,
            chain_id=config.chain.chain_id,
            receipt_timeout_s=config.chain.timeout_s,
        )

    ledger: RiskLedger
    if config.proof.ledger_address:
        ledger = ChainRiskLedger(
            w3, config.proof.ledger_address, sender=sender, timeout_s=config.chain.timeout_s
        )
    else:
        ledger = InMemoryRiskLedger(oracle_address=sender.address if sender else "")
    proofs = ProofService(signer_key=config.proof.signer_key, ledger=ledger)

    risk_service = RiskService(aggregator, proofs)

    facilitator = HttpFacilitator(
        http_client, config.payment.facilitator_url, timeout_s=config.payment.facilitator_timeout_s
    )
    payment_gate = PaymentGate(config.payment, store, facilitator)

    divergence_service: Optional[DivergenceService] = None
    if config.divergence.enabled:
        cex = CexPriceClient(
            http_client, config.divergence.cex_api_url, timeout_s=config.divergence.timeout_s, retry=retry
        )
        divergence_service = DivergenceService(cex, chain, config.dex.router_address, config.dex.tokens)

    transaction_gate: Optional[TransactionGate] = None
    if config.vault.enabled:
        if sender is None:
            raise ConfigError("vault.enabled requires proof.signer_key (or RISKGATE_SIGNER_KEY)")
        transaction_gate = TransactionGate(
            risk_service,
            store,
            ChainCallForwarder(sender),
            deposits=ChainDepositVerifier(w3, timeout_s=config.chain.timeout_s),
            max_risk_score=config.vault.max_risk_score,
            address=config.vault.address,
            ledger_address=config.proof.ledger_address,
            risk_oracle_url=f"{config.payment.resource_url.rstrip('/')}{RISK_ANALYSIS_PATH}",
        )

    state.risk_service = risk_service
    state.payment_gate = payment_gate
    state.divergence_service = divergence_service
    state.transaction_gate = transaction_gate

    logger.info(
        "services_wired",
        network=config.chain.network,
        explorer=explorer is not None,
        signer=proofs.signer_address,
        proof_ledger=type(ledger).__name__,
        entitlement_scope=config.payment.entitlement_scope,
        divergence=divergence_service is not None,
        vault=transaction_gate is not None,
    )


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown sequence."""
    logger.info("RiskGate starting up...")

    # ── Step 1: Load configuration ────────────────────────────────────────────
    # load_config() raises SystemExit on parse error or missing version field.
    config: Config = app.state.config if app.state.config is not None else load_config()
    app.state.config = config
    logger.info("Config loaded", path=config.path, network=config.chain.network)

    # ── Step 2: Shared HTTP client ───────────────────────────────────────────
    http_client = create_http_client()
    app.state.http_client = http_client

    # ── Step 3: Ledger store ─────────────────────────────────────────────────
    # RuntimeError from an incompatible SQLite schema propagates and refuses startup.
    store: LedgerStore = await create_ledger_store(config.ledger)
    app.state.ledger_store = store

    # ── Step 4: Services ─────────────────────────────────────────────────────
    try:
        wire_services(app.state, config, http_client, store)
    except ConfigError as exc:
        logger.error("startup_config_error", error=exc.message)
        await store.close()
        await http_client.aclose()
        raise SystemExit(1) from exc

    # ── Step 5: Mark as ready ─────────────────────────────────────────────────
    app.state.started_at = time.monotonic()
    app.state.ready = True
    logger.info("RiskGate ready", host=config.server.host, port=config.server.port)

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("RiskGate shutting down...")
    app.state.ready = False

    await app.state.risk_service.drain()
    await store.close()

    try:
        await http_client.aclose()
    except Exception as exc:
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("RiskGate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the RiskGate FastAPI application.

    Unit tests pass a ``Config`` directly; uvicorn uses the module-level
    ``app``, whose lifespan loads ``.riskgate/config.yaml``.
    """
    application = FastAPI(
        title="RiskGate",
        description="Pay-per-call contract risk scoring with signed proofs and a risk-gated vault",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # /health returns 503 on any request that arrives before startup completes.
    application.state.ready = False
    application.state.config = config

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Payment-Id", REQUEST_ID_HEADER],
    )
    application.add_middleware(SlowAPIMiddleware)

    @application.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_ulid()
        bind_request_context(request_id, request.method, request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    application.include_router(health_router)
    application.include_router(risk_router, prefix="/api/risk")
    application.include_router(divergence_router, prefix="/api/divergence")
    application.include_router(vault_router, prefix="/api/vault")

    # ─── Exception handlers ───────────────────────────────────────────────────

    @application.exception_handler(PaymentRequired)
    async def payment_required_handler(request: Request, exc: PaymentRequired) -> JSONResponse:
        return build_payment_required_response(exc.challenge)

    @application.exception_handler(RiskGateError)
    async def riskgate_error_handler(request: Request, exc: RiskGateError) -> JSONResponse:
        logger.warning(
            "request_failed",
            status_code=exc.status_code,
            error=exc.code,
            message=exc.message,
            path=str(request.url.path),
        )
        return build_error_response(exc)

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = [".".join(str(part) for part in err["loc"] if part != "body") for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content={"error": "validation_error", "message": f"Invalid or missing fields: {', '.join(fields)}"},
        )

    @application.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
