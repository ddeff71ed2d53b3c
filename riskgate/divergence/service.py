"""CEX/DEX price divergence for a token against USDC.

The CEX side is the Crypto.com Exchange public ticker endpoint; the DEX side
is a router ``getAmountsOut`` quote. Both are fetched concurrently. Unlike
risk facts there is no defaulting here: a price that cannot be fetched is
an ``UpstreamDataUnavailable`` and the route answers 502.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from riskgate.constants import (
    DIVERGENCE_THRESHOLD_HIGH_PCT,
    DIVERGENCE_THRESHOLD_LOW_PCT,
    LIQUIDITY_LOW,
    LIQUIDITY_MODERATE,
)
from riskgate.errors import UpstreamDataUnavailable, ValidationError
from riskgate.sources.chain import ONE_TOKEN, ChainClient
from riskgate.utils.logger import get_logger
from riskgate.utils.retry import RetryPolicy, is_retryable_error

logger = get_logger(__name__)

QUOTE_SYMBOL = "USDC"

_TICKER_PRICE_FIELDS = ("last_price", "a", "b", "mark_price", "index_price")


@dataclass(frozen=True)
class DivergenceResult:
    token: str
    cex_price: float
    dex_price: float
    divergence_pct: float
    divergence_amount: float
    recommendation: str
    dex_liquidity: float
    timestamp_ms: int

    def to_response(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "cexPrice": f"{self.cex_price}",
            "dexPrice": f"{self.dex_price}",
            "divergence": f"{self.divergence_pct:.4f}",
            "divergenceAmount": f"{self.divergence_amount:.6f}",
            "recommendation": self.recommendation,
            "timestamp": self.timestamp_ms,
            "details": {
                "cexExchange": "Crypto.com",
                "dexExchange": "VVS Finance",
                "liquidity": {"cex": "N/A", "dex": f"{self.dex_liquidity:.2f}"},
            },
        }


def liquidity_depth(liquidity: float) -> str:
    if liquidity > LIQUIDITY_MODERATE:
        return "HIGH"
    if liquidity > LIQUIDITY_LOW:
        return "MEDIUM"
    return "LOW"


def recommend(divergence_pct: float, depth: str) -> str:
    """``divergence_pct`` is signed: positive means the DEX is more expensive."""
    magnitude = abs(divergence_pct)
    if magnitude < DIVERGENCE_THRESHOLD_LOW_PCT:
        return "no_arbitrage"
    if magnitude >= DIVERGENCE_THRESHOLD_HIGH_PCT and depth != "LOW":
        return "buy_on_cex" if divergence_pct > 0 else "buy_on_dex"
    return "no_arbitrage"


class CexPriceClient:
    """Crypto.com Exchange ``public/get-tickers``."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout_s: float = 10.0,
                 retry: Optional[RetryPolicy] = None) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout_s)
        self._retry = retry or RetryPolicy(max_attempts=3, base_delay_s=1.0)

    async def price(self, token: str, quote: str = QUOTE_SYMBOL) -> float:
        """Last price of ``token`` in ``quote``, trying the instrument spellings in turn."""
        last_error = "no instrument matched"
        for instrument in (f"{token}_{quote}", f"{token}-{quote}", f"{token}{quote}"):
            async def _get() -> httpx.Response:
                response = await self._client.get(
                    f"{self._base_url}/public/get-tickers",
                    params={"instrument_name": instrument},
                    timeout=self._timeout,
                )
                response.raise_for_status()
                return response

            try:
                response = await self._retry.call(_get, operation="cex.get_tickers")
                body = response.json()
            except httpx.HTTPStatusError as exc:
                last_error = f"HTTP {exc.response.status_code}"
                if is_retryable_error(exc):
                    break
                continue
            except (httpx.HTTPError, ValueError) as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                break

            data = (body.get("result") or {}).get("data") if isinstance(body, dict) else None
            ticker = data[0] if isinstance(data, list) and data else data
            if isinstance(ticker, dict):
                for field in _TICKER_PRICE_FIELDS:
                    if ticker.get(field):
                        return float(ticker[field])
            last_error = f"no price in ticker for {instrument}"

        raise UpstreamDataUnavailable(f"CEX price for {token}: {last_error}")


class DivergenceService:
    def __init__(
        self,
        cex: CexPriceClient,
        chain: ChainClient,
        router_address: str,
        tokens: dict[str, str],
    ) -> None:
        self._cex = cex
        self._chain = chain
        self._router = router_address
        self._tokens = {symbol.upper(): address for symbol, address in tokens.items()}

    def token_address(self, symbol: str) -> str:
        address = self._tokens.get(symbol.upper())
        if not address:
            raise ValidationError(f"Unsupported token: {symbol}")
        return address

    async def dex_price(self, token: str, amount_in: int = ONE_TOKEN) -> float:
        path = [self.token_address(token), self.token_address(QUOTE_SYMBOL)]
        amounts = await self._chain.amounts_out(self._router, amount_in, path)
        if len(amounts) < 2 or amounts[-1] == 0:
            raise UpstreamDataUnavailable(f"no DEX liquidity for {token}-{QUOTE_SYMBOL}")
        return amounts[-1] / amount_in

    async def dex_liquidity(self, token: str) -> float:
        try:
            return await self._chain.router_liquidity(
                self.token_address(token), self._router, self.token_address(QUOTE_SYMBOL)
            )
        except UpstreamDataUnavailable as exc:
            logger.info("dex_liquidity_unavailable", token=token, error=str(exc))
            return 0.0

    async def calculate(self, token: str, amount_in: int = ONE_TOKEN) -> DivergenceResult:
        token = token.upper()
        self.token_address(token)
        cex_price, dex_price, liquidity = await asyncio.gather(
            self._cex.price(token),
            self.dex_price(token, amount_in),
            self.dex_liquidity(token),
        )
        if cex_price <= 0:
            raise UpstreamDataUnavailable(f"CEX returned a non-positive price for {token}")

        pct = (dex_price - cex_price) / cex_price * 100
        result = DivergenceResult(
            token=token,
            cex_price=cex_price,
            dex_price=dex_price,
            divergence_pct=pct,
            divergence_amount=abs(dex_price - cex_price),
            recommendation=recommend(pct, liquidity_depth(liquidity)),
            dex_liquidity=liquidity,
            timestamp_ms=int(time.time() * 1000),
        )
        logger.info("divergence_calculated", token=token, cex_price=cex_price, dex_price=dex_price,
                    divergence_pct=round(pct, 4), recommendation=result.recommendation)
        return result
