"""Etherscan-compatible block explorer client (Cronoscan by default).

All calls share the application's ``httpx.AsyncClient``. The explorer wraps
every result in ``{"status": "1", "message": "OK", "result": ...}``; anything
else (including rate-limit notices served with HTTP 200) is a failure.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from riskgate.constants import SECONDS_PER_DAY
from riskgate.errors import UpstreamDataUnavailable
from riskgate.utils.logger import get_logger
from riskgate.utils.retry import NO_RETRY, RetryPolicy

logger = get_logger(__name__)

# tokenholderlist page size used when tokeninfo has no holder count.
_HOLDER_LIST_PAGE_SIZE = 100


class ExplorerClient:
    """Thin async wrapper over the explorer's ``module``/``action`` REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_s: float = 8.0,
        retry: RetryPolicy = NO_RETRY,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout_s)
        self._retry = retry

    async def _request(self, module: str, action: str, **params: str) -> Any:
        query = {"module": module, "action": action, **params}
        if self._api_key:
            query["apikey"] = self._api_key

        async def _get() -> httpx.Response:
            response = await self._client.get(self._base_url, params=query, timeout=self._timeout)
            response.raise_for_status()
            return response

        operation = f"explorer.{module}.{action}"
        try:
            response = await self._retry.call(_get, operation=operation)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamDataUnavailable(f"{operation}: {type(exc).__name__}: {exc}") from exc

        if not isinstance(payload, dict):
            raise UpstreamDataUnavailable(f"{operation}: malformed payload")
        if payload.get("status") != "1" or payload.get("message") != "OK":
            raise UpstreamDataUnavailable(
                f"{operation}: explorer error: {payload.get('message') or payload.get('result')}"
            )
        return payload.get("result")

    async def holder_count(self, contract: str) -> int:
        """Holder count from ``token/tokeninfo``, else the length of ``tokenholderlist``.

        Raises:
            UpstreamDataUnavailable: when neither endpoint reports any holder.
        """
        try:
            info = await self._request("token", "tokeninfo", contractaddress=contract)
            if isinstance(info, list) and info:
                info = info[0]
            if isinstance(info, dict) and "holderCount" in info:
                count = int(info.get("holderCount") or 0)
                if count > 0:
                    return count
        except (UpstreamDataUnavailable, ValueError) as exc:
            logger.debug("explorer_tokeninfo_failed", contract=contract, error=str(exc))

        holders = await self._request(
            "token",
            "tokenholderlist",
            contractaddress=contract,
            page="1",
            offset=str(_HOLDER_LIST_PAGE_SIZE),
        )
        if not isinstance(holders, list) or not holders:
            raise UpstreamDataUnavailable("explorer reported no holders")
        return len(holders)

    async def creation_timestamp(self, contract: str) -> int:
        """Unix seconds of the contract-creation transaction."""
        result = await self._request("contract", "getcontractcreation", contractaddresses=contract)
        if not isinstance(result, list) or not result:
            raise UpstreamDataUnavailable("explorer has no creation record")
        try:
            return int(result[0]["timeStamp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamDataUnavailable("creation record has no timeStamp") from exc

    async def age_days(self, contract: str, now: Optional[float] = None) -> int:
        created = await self.creation_timestamp(contract)
        now = time.time() if now is None else now
        age = int((now - created) // SECONDS_PER_DAY)
        if age <= 0:
            raise UpstreamDataUnavailable("explorer creation timestamp is not in the past")
        return age

    async def is_verified(self, contract: str) -> bool:
        """True when ``getsourcecode`` returns a non-empty contract name."""
        result = await self._request("contract", "getsourcecode", address=contract)
        if isinstance(result, list):
            result = result[0] if result else {}
        if not isinstance(result, dict):
            raise UpstreamDataUnavailable("malformed getsourcecode result")
        return bool(str(result.get("ContractName") or result.get("contractName") or "").strip())
