"""
Jito Block Engine Client

Submits signed transaction sets as atomic bundles via JSON-RPC ``sendBundle``.
The relay either lands the whole bundle in one block or none of it.
"""

import logging
from typing import List, Optional

import base58
import httpx
from solders.transaction import VersionedTransaction

from solswap.exceptions import SubmissionFailed

logger = logging.getLogger(__name__)


def encode_bundle(transactions: List[VersionedTransaction]) -> List[str]:
    """Serialize and base58-encode each signed transaction, preserving order"""
    return [base58.b58encode(bytes(tx)).decode("ascii") for tx in transactions]


class JitoClient:
    """JSON-RPC client for a Jito block engine (``{engine_url}/bundles``)."""

    def __init__(
        self,
        engine_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._engine_url = engine_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        if self._client:
            await self._client.aclose()

    async def send_bundle(self, transactions: List[VersionedTransaction]) -> str:
        """
        Submit ``transactions`` as one bundle.

        Returns:
            Bundle id assigned by the relay (not a transaction signature)

        Raises:
            SubmissionFailed: Transport error, HTTP error, or JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendBundle",
            "params": [encode_bundle(transactions)],
        }
        url = f"{self._engine_url}/bundles"
        try:
            resp = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Jito bundle submission failed: {e}")
            raise SubmissionFailed("Jito relay unavailable", str(e))

        try:
            data = resp.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error(f"Jito error: {message}")
            raise SubmissionFailed("Jito rejected bundle", message)

        if resp.status_code >= 400 or not isinstance(data, dict):
            body = resp.text[:500]
            logger.error(f"Jito HTTP {resp.status_code}: {body}")
            raise SubmissionFailed(f"Jito bundle submission failed (HTTP {resp.status_code})", body)

        result = data.get("result")
        # Block engines answer with the id string; some proxies wrap it as {"bundleId": ...}
        bundle_id = result.get("bundleId") if isinstance(result, dict) else result
        if not isinstance(bundle_id, str) or not bundle_id:
            raise SubmissionFailed("Malformed Jito response", resp.text[:500])
        return bundle_id
