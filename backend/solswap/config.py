from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Solana RPC node
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    skip_preflight: bool = False

    # Jupiter aggregator (quote + swap-build endpoints)
    jupiter_api_url: str = "https://quote-api.jup.ag/v6"

    # Jito block engine (priority relay). Leave empty to submit directly to the RPC node.
    jito_engine_url: Optional[str] = None
    jito_tip_account: str = "96gYZMGz6LgT4b2M775x6JygM8P22sZc5AETXjQcBCzJ"
    # A tip without a relay cannot be atomic with the swap; refuse it unless explicitly allowed
    require_relay_for_tip: bool = True

    # Confirmation polling
    confirm_timeout_seconds: float = 60.0
    confirm_poll_interval_seconds: float = 2.0

    # HTTP client timeout for aggregator / relay / price feed calls
    http_timeout_seconds: float = 10.0

    # Price feed (Coinvera)
    coinvera_api_url: str = "https://api.coinvera.io/api/v1"
    coinvera_api_key: str = ""
    price_check_delay_seconds: float = 5.0

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/bot.db"

    # Bot wallet used by the position monitor for automated exits (base58 secret key)
    wallet_private_key: str = ""

    # Trade defaults, used when the caller does not supply its own values
    default_slippage_pct: float = 10.0
    default_jito_tip_sol: float = 0.0001
    default_dex: str = "jupiter"

    log_level: str = "INFO"

    @field_validator("jito_engine_url")
    @classmethod
    def strip_engine_url(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank engine URL as "no relay" and drop trailing slashes"""
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")

    @field_validator("jupiter_api_url", "coinvera_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def relay_enabled(self) -> bool:
        return self.jito_engine_url is not None

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
