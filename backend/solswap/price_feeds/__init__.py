"""
Price Feeds Module

Token price sources used by the position exit monitor.
"""

from solswap.price_feeds.coinvera_feed import CoinveraPriceFeed, TokenPrice

__all__ = [
    "CoinveraPriceFeed",
    "TokenPrice",
]
