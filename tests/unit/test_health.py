"""Unit tests for /health and the / discovery endpoint."""

from __future__ import annotations

from typing import Iterator

import pytest
from helpers import TEST_SIGNER_KEY, make_config
from starlette.testclient import TestClient

from riskgate.main import create_app


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(create_app(make_config())) as test_client:
        yield test_client


class TestHealth:
    def test_health_fields(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["ledger_store"] == "healthy"
        assert body["network"] == "cronos-testnet"
        assert body["signer"] is False
        assert body["proof_ledger"] == "memory"
        assert body["vault"] is False
        assert body["divergence"] is True
        assert isinstance(body["uptime_s"], int)

    def test_degraded_store_still_200(self, client: TestClient) -> None:
        async def _unhealthy() -> bool:
            return False

        client.app.state.ledger_store.health_check = _unhealthy
        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["ledger_store"] == "error"

    def test_signer_and_vault_reported(self) -> None:
        config = make_config(proof__signer_key=TEST_SIGNER_KEY, vault__enabled=True)
        with TestClient(create_app(config)) as client:
            body = client.get("/health").json()
        assert body["signer"] is True
        assert body["vault"] is True


class TestRoot:
    def test_discovery(self, client: TestClient) -> None:
        body = client.get("/").json()
        assert body["service"] == "RiskGate"
        assert body["endpoints"]["riskAnalysis"] == "/api/risk/risk-analysis"
        assert body["health"] == "/health"

    def test_cors_preflight(self, client: TestClient) -> None:
        response = client.options(
            "/api/risk/risk-analysis",
            headers={"Origin": "https://agent.example", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
