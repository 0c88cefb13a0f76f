"""
Exchange Client Layer

HTTP clients for the off-chain services the trade core talks to:
- JupiterClient: aggregator quotes and swap-transaction building
- JitoClient: priority relay bundle submission

Usage:
    from solswap.exchange_clients import JupiterClient, JitoClient

    jupiter = JupiterClient(settings.jupiter_api_url)
    quote = await jupiter.get_quote(SOL_MINT, mint, 10_000_000, slippage_bps=1000)
"""

from solswap.exchange_clients.jito_client import JitoClient
from solswap.exchange_clients.jupiter_client import JupiterClient, Quote

__all__ = ["JitoClient", "JupiterClient", "Quote"]
