"""x402 facilitator client.

The facilitator is the third party that checks a signed payment header
against the advertised requirements (``/verify``) and executes the transfer
on-chain (``/settle``). Both calls share the application's
``httpx.AsyncClient`` and carry the facilitator timeout.

Request body for both endpoints:

    {"x402Version": 1, "paymentHeader": "<base64>", "paymentRequirements": {...}}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from riskgate.constants import FACILITATOR_TIMEOUT_S, SETTLED_EVENT, X402_VERSION
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerifyOutcome:
    is_valid: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class SettleOutcome:
    event: Optional[str]
    tx_hash: Optional[str] = None
    reason: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.event == SETTLED_EVENT and bool(self.tx_hash)


@runtime_checkable
class Facilitator(Protocol):
    async def verify(self, payment_header: str, requirements: dict[str, Any]) -> VerifyOutcome:
        ...

    async def settle(self, payment_header: str, requirements: dict[str, Any]) -> SettleOutcome:
        ...


class HttpFacilitator:
    """Facilitator REST client. Transport and HTTP errors propagate as ``httpx.HTTPError``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        timeout_s: float = FACILITATOR_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_s)

    async def _post(self, path: str, payment_header: str, requirements: dict[str, Any]) -> dict:
        response = await self._client.post(
            f"{self._base_url}/{path}",
            json={
                "x402Version": X402_VERSION,
                "paymentHeader": payment_header,
                "paymentRequirements": requirements,
            },
            headers={"X402-Version": str(X402_VERSION)},
            timeout=self._timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise httpx.DecodingError(f"facilitator /{path} returned a non-object body")
        return body

    async def verify(self, payment_header: str, requirements: dict[str, Any]) -> VerifyOutcome:
        body = await self._post("verify", payment_header, requirements)
        return VerifyOutcome(
            is_valid=bool(body.get("isValid")),
            reason=body.get("invalidReason") or body.get("error"),
        )

    async def settle(self, payment_header: str, requirements: dict[str, Any]) -> SettleOutcome:
        body = await self._post("settle", payment_header, requirements)
        return SettleOutcome(
            event=body.get("event"),
            tx_hash=body.get("txHash"),
            reason=body.get("error") or body.get("errorReason"),
        )
