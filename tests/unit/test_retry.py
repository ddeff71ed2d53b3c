"""Unit tests for riskgate.utils.retry."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from riskgate.utils.retry import NO_RETRY, RetryPolicy, is_retryable_error


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://upstream.test")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(status, request=request))


class TestIsRetryable:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504, 599])
    def test_retryable_statuses(self, status: int) -> None:
        assert is_retryable_error(_status_error(status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_are_final(self, status: int) -> None:
        assert is_retryable_error(_status_error(status)) is False

    def test_transport_and_timeout(self) -> None:
        assert is_retryable_error(httpx.ConnectError("refused")) is True
        assert is_retryable_error(asyncio.TimeoutError()) is True

    def test_other_exceptions(self) -> None:
        assert is_retryable_error(ValueError("bad")) is False


class TestRetryPolicy:
    async def test_succeeds_after_transient_failures(self) -> None:
        attempts = {"n": 0}

        async def flaky() -> str:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise httpx.ConnectError("refused")
            return "ok"

        policy = RetryPolicy(max_attempts=3, base_delay_s=0.001)
        assert await policy.call(flaky, operation="test") == "ok"
        assert attempts["n"] == 3

    async def test_budget_exhausted_raises_last_error(self) -> None:
        attempts = {"n": 0}

        async def down() -> None:
            attempts["n"] += 1
            raise _status_error(503)

        with pytest.raises(httpx.HTTPStatusError):
            await RetryPolicy(max_attempts=2, base_delay_s=0.001).call(down)
        assert attempts["n"] == 2

    async def test_non_retryable_propagates_immediately(self) -> None:
        attempts = {"n": 0}

        async def rejected() -> None:
            attempts["n"] += 1
            raise _status_error(404)

        with pytest.raises(httpx.HTTPStatusError):
            await RetryPolicy(max_attempts=5, base_delay_s=0.001).call(rejected)
        assert attempts["n"] == 1

    async def test_no_retry_policy_runs_once(self) -> None:
        attempts = {"n": 0}

        async def down() -> None:
            attempts["n"] += 1
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await NO_RETRY.call(down)
        assert attempts["n"] == 1

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(base_delay_s=1.0, backoff_factor=10.0, max_delay_s=2.0)
        assert policy.delay_for(5) <= 2.0 + 0.25
        assert policy.delay_for(0) >= 1.0
