"""
Coinvera Price Feed

Token prices in SOL and USD from the Coinvera HTTP API (GET /price?ca=<mint>).

The API may answer with numbers or numeric strings. Both are converted to
float here; anything else raises PriceFormatInvalid with the raw body, so
exit evaluation only ever sees validated numbers.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from solswap.exceptions import PriceFormatInvalid, PriceUnavailable

logger = logging.getLogger(__name__)


@dataclass
class TokenPrice:
    """Price snapshot for one token"""
    mint: str
    price_in_sol: float
    price_in_usd: float
    timestamp: datetime = field(default_factory=datetime.utcnow)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


def _parse_price(body: Dict[str, Any], key: str) -> float:
    value = body.get(key)
    if isinstance(value, bool):
        raise PriceFormatInvalid(f"Invalid price format: {key} is not a number", str(body))
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise PriceFormatInvalid(f"Invalid price format: {key} is not a number", str(body))
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise PriceFormatInvalid(f"Invalid price format: {key} is not a number", str(body))
    return float(value)


class CoinveraPriceFeed:
    """Coinvera price client using httpx.AsyncClient"""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        if self._client:
            await self._client.aclose()

    async def get_price(self, mint: str) -> TokenPrice:
        """
        Fetch the current price of ``mint``.

        Raises:
            PriceUnavailable: Transport error, error status or non-JSON body
            PriceFormatInvalid: priceInSol / priceInUsd missing or not numeric
        """
        headers = {"x-api-key": self._api_key} if self._api_key else {}
        try:
            resp = await self._client.get(
                f"{self._base_url}/price", params={"ca": mint}, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch price for {mint}: {e}")
            raise PriceUnavailable(f"Price feed unavailable for {mint}: {e}")

        if resp.status_code >= 400:
            logger.error(f"Price feed HTTP {resp.status_code} for {mint}: {resp.text[:200]}")
            raise PriceUnavailable(f"Price feed returned HTTP {resp.status_code} for {mint}")

        try:
            body = resp.json()
        except ValueError:
            raise PriceUnavailable(f"Price feed returned a non-JSON body for {mint}")

        if not isinstance(body, dict):
            raise PriceFormatInvalid("Invalid price format: expected a JSON object", str(body))

        logger.debug(f"Raw price response for {mint}: {body}")
        return TokenPrice(
            mint=mint,
            price_in_sol=_parse_price(body, "priceInSol"),
            price_in_usd=_parse_price(body, "priceInUsd"),
            raw=body,
        )
