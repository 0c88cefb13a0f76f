"""
Tests for backend/solswap/exchange_clients/jito_client.py

Covers:
- encode_bundle ordering and base58 encoding
- send_bundle: JSON-RPC payload, result shapes, error object, HTTP errors
"""

import json

import base58
import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from solswap.exceptions import SubmissionFailed
from solswap.exchange_clients.jito_client import JitoClient, encode_bundle


def _signed_tx(payer: Keypair, lamports: int) -> VersionedTransaction:
    ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=lamports))
    message = Message.new_with_blockhash([ix], payer.pubkey(), Hash.default())
    return VersionedTransaction(message, [payer])


def _client(handler) -> JitoClient:
    return JitoClient(
        "https://jito.example.com/api/v1/",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def transactions(keypair):
    return [_signed_tx(keypair, 1), _signed_tx(keypair, 2)]


class TestEncodeBundle:

    def test_preserves_order_and_round_trips(self, transactions):
        encoded = encode_bundle(transactions)

        assert len(encoded) == 2
        for tx, item in zip(transactions, encoded):
            assert base58.b58decode(item) == bytes(tx)


class TestSendBundle:
    """Tests for JitoClient.send_bundle()"""

    @pytest.mark.asyncio
    async def test_send_bundle_success(self, transactions):
        """Happy path: sendBundle posted to /bundles, id returned."""
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "bundle-123"})

        bundle_id = await _client(handler).send_bundle(transactions)

        assert bundle_id == "bundle-123"
        assert seen["path"] == "/api/v1/bundles"
        assert seen["body"]["method"] == "sendBundle"
        assert seen["body"]["params"] == [encode_bundle(transactions)]

    @pytest.mark.asyncio
    async def test_wrapped_bundle_id(self, transactions):
        client = _client(lambda request: httpx.Response(200, json={"result": {"bundleId": "abc"}}))

        assert await client.send_bundle(transactions) == "abc"

    @pytest.mark.asyncio
    async def test_json_rpc_error_raises(self, transactions):
        """Failure: relay error object becomes SubmissionFailed with its message."""
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bundle contains an expired blockhash"}}
        client = _client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(SubmissionFailed) as exc_info:
            await client.send_bundle(transactions)
        assert exc_info.value.upstream_message == "bundle contains an expired blockhash"

    @pytest.mark.asyncio
    async def test_http_error_raises(self, transactions):
        client = _client(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(SubmissionFailed) as exc_info:
            await client.send_bundle(transactions)
        assert "503" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_result_raises(self, transactions):
        client = _client(lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}))

        with pytest.raises(SubmissionFailed):
            await client.send_bundle(transactions)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, transactions):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(SubmissionFailed):
            await _client(handler).send_bundle(transactions)
