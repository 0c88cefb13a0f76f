"""
Solana constants

Mint addresses and precision shared by the trade core.
"""

# Wrapped SOL mint (Jupiter wraps/unwraps native SOL through this mint)
SOL_MINT = "So11111111111111111111111111111111111111112"
SOL_DECIMALS = 9

# Jupiter swap mode used for every quote
SWAP_MODE_EXACT_IN = "ExactIn"

VALID_DEX_OPTIONS = ["auto", "pumpfun", "meteora", "raydium", "moonshot", "jupiter"]
