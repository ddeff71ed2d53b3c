"""Unit tests for riskgate.payments.facilitator.HttpFacilitator (httpx MockTransport)."""

from __future__ import annotations

import json

import httpx
import pytest

from riskgate.payments.facilitator import Facilitator, HttpFacilitator, SettleOutcome

BASE_URL = "https://facilitator.test/v2/x402/"
REQUIREMENTS = {"scheme": "exact", "network": "cronos-testnet", "maxAmountRequired": "1000000"}


def _facilitator(handler) -> HttpFacilitator:
    return HttpFacilitator(httpx.AsyncClient(transport=httpx.MockTransport(handler)), BASE_URL)


class TestRequests:
    async def test_verify_posts_x402_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"isValid": True})

        outcome = await _facilitator(handler).verify("aGVhZGVy", REQUIREMENTS)

        assert outcome.is_valid is True
        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == "https://facilitator.test/v2/x402/verify"
        assert request.headers["X402-Version"] == "1"
        assert json.loads(request.content) == {
            "x402Version": 1,
            "paymentHeader": "aGVhZGVy",
            "paymentRequirements": REQUIREMENTS,
        }

    async def test_verify_invalid_carries_reason(self) -> None:
        facilitator = _facilitator(
            lambda r: httpx.Response(200, json={"isValid": False, "invalidReason": "expired"})
        )
        outcome = await facilitator.verify("h", REQUIREMENTS)
        assert outcome.is_valid is False
        assert outcome.reason == "expired"

    async def test_settle_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/settle")
            return httpx.Response(200, json={"event": "payment.settled", "txHash": "0xfeed"})

        outcome = await _facilitator(handler).settle("h", REQUIREMENTS)
        assert outcome.settled is True
        assert outcome.tx_hash == "0xfeed"

    async def test_settle_failure_event(self) -> None:
        facilitator = _facilitator(
            lambda r: httpx.Response(200, json={"event": "payment.failed", "error": "nonce used"})
        )
        outcome = await facilitator.settle("h", REQUIREMENTS)
        assert outcome.settled is False
        assert outcome.reason == "nonce used"


class TestErrors:
    async def test_http_error_propagates(self) -> None:
        with pytest.raises(httpx.HTTPStatusError):
            await _facilitator(lambda r: httpx.Response(500)).verify("h", REQUIREMENTS)

    async def test_non_object_body_is_a_decoding_error(self) -> None:
        with pytest.raises(httpx.DecodingError):
            await _facilitator(lambda r: httpx.Response(200, json=[1, 2])).settle("h", REQUIREMENTS)


class TestSettleOutcome:
    def test_settled_requires_tx_hash(self) -> None:
        assert SettleOutcome(event="payment.settled", tx_hash=None).settled is False

    def test_http_facilitator_satisfies_protocol(self) -> None:
        assert isinstance(_facilitator(lambda r: httpx.Response(200)), Facilitator)
