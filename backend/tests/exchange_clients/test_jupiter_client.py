"""
Tests for backend/solswap/exchange_clients/jupiter_client.py

HTTP is served by httpx.MockTransport -- no real network calls.

Covers:
- get_quote: request params, parsing, error statuses, malformed bodies
- get_swap_transaction: payload, missing swapTransaction
- parse_quote helpers
"""

import json

import httpx
import pytest

from solswap.constants import SOL_MINT
from solswap.exceptions import QuoteUnavailable, TradeErrorKind
from solswap.exchange_clients.jupiter_client import JupiterClient, Quote, parse_quote

TOKEN = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"

QUOTE_BODY = {
    "inputMint": SOL_MINT,
    "inAmount": "10000000",
    "outputMint": TOKEN,
    "outAmount": "123456789",
    "otherAmountThreshold": "111111110",
    "swapMode": "ExactIn",
    "slippageBps": 1000,
    "routePlan": [],
}


def _client(handler) -> JupiterClient:
    return JupiterClient(
        "https://jup.example.com/v6/",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


# =========================================================
# get_quote
# =========================================================


class TestGetQuote:
    """Tests for JupiterClient.get_quote()"""

    @pytest.mark.asyncio
    async def test_quote_success(self):
        """Happy path: params sent as strings, amounts parsed to int."""
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = request.url
            return httpx.Response(200, json=QUOTE_BODY)

        client = _client(handler)
        quote = await client.get_quote(SOL_MINT, TOKEN, 10_000_000, 1000)

        assert seen["url"].path == "/v6/quote"
        params = seen["url"].params
        assert params["inputMint"] == SOL_MINT
        assert params["outputMint"] == TOKEN
        assert params["amount"] == "10000000"
        assert params["slippageBps"] == "1000"
        assert params["swapMode"] == "ExactIn"

        assert quote.in_amount == 10_000_000
        assert quote.out_amount == 123_456_789
        assert quote.slippage_bps == 1000
        assert quote.output_decimals is None
        assert quote.raw == QUOTE_BODY

    @pytest.mark.asyncio
    async def test_rate_limited_raises_quote_unavailable(self):
        """Failure: HTTP 429 becomes QuoteUnavailable with the body kept."""
        client = _client(lambda request: httpx.Response(429, text="Too Many Requests"))

        with pytest.raises(QuoteUnavailable) as exc_info:
            await client.get_quote(SOL_MINT, TOKEN, 1, 50)

        assert exc_info.value.kind == TradeErrorKind.QUOTE_UNAVAILABLE
        assert "429" in exc_info.value.message
        assert exc_info.value.upstream_message == "Too Many Requests"

    @pytest.mark.asyncio
    async def test_transport_error_raises_quote_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(QuoteUnavailable):
            await _client(handler).get_quote(SOL_MINT, TOKEN, 1, 50)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(QuoteUnavailable):
            await client.get_quote(SOL_MINT, TOKEN, 1, 50)

    @pytest.mark.asyncio
    async def test_error_field_in_body(self):
        client = _client(lambda request: httpx.Response(200, json={"error": "No routes found"}))

        with pytest.raises(QuoteUnavailable) as exc_info:
            await client.get_quote(SOL_MINT, TOKEN, 1, 50)
        assert exc_info.value.upstream_message == "No routes found"


# =========================================================
# parse_quote
# =========================================================


class TestParseQuote:

    def test_missing_out_amount(self):
        body = {k: v for k, v in QUOTE_BODY.items() if k != "outAmount"}
        with pytest.raises(QuoteUnavailable):
            parse_quote(body, SOL_MINT, TOKEN, 50)

    def test_non_numeric_amount(self):
        with pytest.raises(QuoteUnavailable):
            parse_quote({**QUOTE_BODY, "outAmount": "12.5"}, SOL_MINT, TOKEN, 50)

    def test_non_object_body(self):
        with pytest.raises(QuoteUnavailable):
            parse_quote(["not", "a", "quote"], SOL_MINT, TOKEN, 50)

    def test_output_decimals_when_present(self):
        quote = parse_quote({**QUOTE_BODY, "outputDecimals": 6}, SOL_MINT, TOKEN, 50)
        assert quote.output_decimals == 6


# =========================================================
# get_swap_transaction
# =========================================================


class TestGetSwapTransaction:
    """Tests for JupiterClient.get_swap_transaction()"""

    @pytest.mark.asyncio
    async def test_swap_success_posts_raw_quote(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"swapTransaction": "AQID", "lastValidBlockHeight": 1})

        client = _client(handler)
        quote = parse_quote(QUOTE_BODY, SOL_MINT, TOKEN, 1000)
        swap_tx = await client.get_swap_transaction(quote, "Wallet1111")

        assert swap_tx == "AQID"
        assert seen["path"] == "/v6/swap"
        assert seen["body"]["quoteResponse"] == QUOTE_BODY
        assert seen["body"]["userPublicKey"] == "Wallet1111"
        assert seen["body"]["wrapUnwrapSol"] is True

    @pytest.mark.asyncio
    async def test_missing_swap_transaction(self):
        client = _client(lambda request: httpx.Response(200, json={"lastValidBlockHeight": 1}))
        quote = Quote(SOL_MINT, TOKEN, 1, 1, 50, raw=QUOTE_BODY)

        with pytest.raises(QuoteUnavailable):
            await client.get_swap_transaction(quote, "Wallet1111")

    @pytest.mark.asyncio
    async def test_swap_server_error(self):
        client = _client(lambda request: httpx.Response(500, text="internal"))
        quote = Quote(SOL_MINT, TOKEN, 1, 1, 50, raw=QUOTE_BODY)

        with pytest.raises(QuoteUnavailable) as exc_info:
            await client.get_swap_transaction(quote, "Wallet1111")
        assert "500" in exc_info.value.message
