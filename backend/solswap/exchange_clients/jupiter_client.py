"""
Jupiter Aggregator Client

Quote and swap-build calls against the Jupiter v6 HTTP API.

- Uses httpx.AsyncClient for HTTP
- Every upstream failure (HTTP status, transport error, malformed body) is
  translated into QuoteUnavailable here, so callers never inspect raw bodies
- No retries: a retried quote may be stale by the time it is used
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from solswap.constants import SWAP_MODE_EXACT_IN
from solswap.exceptions import QuoteUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    """
    A single aggregator quote.

    Only valid for the amount and slippage it was requested with. ``raw`` is
    the untouched response body; the swap-build endpoint requires it verbatim.
    """
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    slippage_bps: int
    output_decimals: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


def _parse_amount(body: Dict[str, Any], key: str) -> int:
    """Jupiter returns amounts as integer strings ("12345")"""
    value = body.get(key)
    if isinstance(value, bool) or value is None:
        raise QuoteUnavailable("Malformed Jupiter quote", f"missing {key}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise QuoteUnavailable("Malformed Jupiter quote", f"non-numeric {key}: {value!r}")


def _parse_output_decimals(body: Dict[str, Any]) -> Optional[int]:
    decimals = body.get("outputDecimals")
    if decimals is None and isinstance(body.get("outputMint"), dict):
        decimals = body["outputMint"].get("decimals")
    if isinstance(decimals, int) and not isinstance(decimals, bool) and decimals >= 0:
        return decimals
    return None


def parse_quote(body: Any, input_mint: str, output_mint: str, slippage_bps: int) -> Quote:
    """Validate a quote response body and build a Quote"""
    if not isinstance(body, dict):
        raise QuoteUnavailable("Malformed Jupiter quote", f"expected JSON object, got {type(body).__name__}")
    if body.get("error"):
        raise QuoteUnavailable("Jupiter quote rejected", str(body["error"]))

    return Quote(
        input_mint=input_mint,
        output_mint=output_mint,
        in_amount=_parse_amount(body, "inAmount"),
        out_amount=_parse_amount(body, "outAmount"),
        slippage_bps=slippage_bps,
        output_decimals=_parse_output_decimals(body),
        raw=body,
    )


class JupiterClient:
    """
    Jupiter v6 quote/swap client.

    Endpoints used:
      GET  /quote   - price a swap route
      POST /swap    - build the unsigned swap transaction for a quote
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close the underlying httpx client to release connections."""
        if self._client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, action: str, **kwargs) -> Any:
        """Make an HTTP request and decode JSON, raising QuoteUnavailable on any failure."""
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Jupiter {action} request failed: {e}")
            raise QuoteUnavailable(f"Jupiter {action} unavailable", str(e))

        if resp.status_code >= 400:
            body = resp.text[:500]
            logger.error(f"Jupiter {action} HTTP {resp.status_code}: {body}")
            raise QuoteUnavailable(
                f"Failed to get Jupiter {action} (HTTP {resp.status_code})", body
            )

        try:
            return resp.json()
        except ValueError:
            logger.error(f"Jupiter {action} returned non-JSON body")
            raise QuoteUnavailable(f"Malformed Jupiter {action}", resp.text[:500])

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
        swap_mode: str = SWAP_MODE_EXACT_IN,
    ) -> Quote:
        """
        Request a route quote.

        Args:
            input_mint: Mint of the asset being spent
            output_mint: Mint of the asset being received
            amount: Input amount in smallest units
            slippage_bps: Slippage tolerance in basis points

        Raises:
            QuoteUnavailable: Non-success status, transport error or malformed body
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "swapMode": swap_mode,
            "slippageBps": str(slippage_bps),
        }
        body = await self._request("GET", "/quote", "quote", params=params)
        quote = parse_quote(body, input_mint, output_mint, slippage_bps)
        logger.info(
            f"Jupiter quote received: {input_mint} -> {output_mint}, "
            f"in={quote.in_amount}, out={quote.out_amount}"
        )
        return quote

    async def get_swap_transaction(self, quote: Quote, user_public_key: str) -> str:
        """
        Build the unsigned swap transaction for ``quote``.

        Returns:
            Base64-encoded serialized VersionedTransaction
        """
        payload = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "wrapUnwrapSol": True,
        }
        body = await self._request("POST", "/swap", "swap transaction", json=payload)
        swap_tx = body.get("swapTransaction") if isinstance(body, dict) else None
        if not isinstance(swap_tx, str) or not swap_tx:
            raise QuoteUnavailable("Malformed Jupiter swap response", "missing swapTransaction")
        return swap_tx
