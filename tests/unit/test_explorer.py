"""Unit tests for riskgate.sources.explorer.ExplorerClient (httpx MockTransport)."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from riskgate.errors import UpstreamDataUnavailable
from riskgate.sources.explorer import ExplorerClient
from riskgate.utils.retry import RetryPolicy

BASE_URL = "https://explorer.test/api"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def _ok(result) -> httpx.Response:
    return httpx.Response(200, json={"status": "1", "message": "OK", "result": result})


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> ExplorerClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExplorerClient(http, BASE_URL, **kwargs)


def _route(routes: dict[str, httpx.Response]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        action = request.url.params["action"]
        return routes.get(action, httpx.Response(200, json={"status": "0", "message": "NOTOK", "result": "unknown"}))

    return handler


class TestRequest:
    async def test_api_key_and_params_are_sent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _ok([{"ContractName": "Token"}])

        assert await _client(handler, api_key="secret").is_verified(CONTRACT) is True
        params = seen[0].url.params
        assert params["module"] == "contract"
        assert params["action"] == "getsourcecode"
        assert params["address"] == CONTRACT
        assert params["apikey"] == "secret"

    async def test_notok_status_raises(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={"status": "0", "message": "NOTOK", "result": "rate limit"}))
        with pytest.raises(UpstreamDataUnavailable, match="rate limit"):
            await client.is_verified(CONTRACT)

    async def test_http_error_raises(self) -> None:
        client = _client(lambda r: httpx.Response(404))
        with pytest.raises(UpstreamDataUnavailable):
            await client.is_verified(CONTRACT)

    async def test_non_json_raises(self) -> None:
        client = _client(lambda r: httpx.Response(200, content=b"<html>"))
        with pytest.raises(UpstreamDataUnavailable):
            await client.is_verified(CONTRACT)

    async def test_5xx_is_retried(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(503)
            return _ok([{"ContractName": "Token"}])

        client = _client(handler, retry=RetryPolicy(max_attempts=2, base_delay_s=0.001))
        assert await client.is_verified(CONTRACT) is True
        assert calls["n"] == 2


class TestHolders:
    async def test_tokeninfo_holder_count(self) -> None:
        client = _client(_route({"tokeninfo": _ok([{"holderCount": "1234"}])}))
        assert await client.holder_count(CONTRACT) == 1234

    async def test_falls_back_to_holder_list(self) -> None:
        client = _client(
            _route(
                {
                    "tokeninfo": _ok([{"holderCount": "0"}]),
                    "tokenholderlist": _ok([{"TokenHolderAddress": f"0x{n:040x}"} for n in range(7)]),
                }
            )
        )
        assert await client.holder_count(CONTRACT) == 7

    async def test_no_holders_anywhere_raises(self) -> None:
        client = _client(_route({"tokenholderlist": _ok([])}))
        with pytest.raises(UpstreamDataUnavailable):
            await client.holder_count(CONTRACT)


class TestAge:
    async def test_age_in_whole_days(self) -> None:
        created = 1_700_000_000
        client = _client(_route({"getcontractcreation": _ok([{"timeStamp": str(created)}])}))
        assert await client.age_days(CONTRACT, now=created + 10 * 86_400 + 5) == 10

    async def test_zero_age_means_no_data(self) -> None:
        created = 1_700_000_000
        client = _client(_route({"getcontractcreation": _ok([{"timeStamp": str(created)}])}))
        with pytest.raises(UpstreamDataUnavailable):
            await client.age_days(CONTRACT, now=created + 60)

    async def test_missing_timestamp(self) -> None:
        client = _client(_route({"getcontractcreation": _ok([{"txHash": "0x1"}])}))
        with pytest.raises(UpstreamDataUnavailable):
            await client.age_days(CONTRACT)


class TestVerified:
    @pytest.mark.parametrize("name, expected", [("MyToken", True), ("", False), ("  ", False)])
    async def test_contract_name_decides(self, name: str, expected: bool) -> None:
        client = _client(_route({"getsourcecode": _ok([{"ContractName": name, "SourceCode": ""}])}))
        assert await client.is_verified(CONTRACT) is expected

    async def test_request_body_is_a_plain_get(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.content == b""
            return _ok([{"ContractName": "X"}])

        assert await _client(handler).is_verified(CONTRACT) is True
