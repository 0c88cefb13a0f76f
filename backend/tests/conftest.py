"""
Shared test fixtures for SolSwap backend tests.

Provides reusable fixtures for:
- Async database engine and session factory (file-backed SQLite per test)
- PositionStore bound to the test database
- Real solders keypairs and unsigned swap transactions
- Mock Solana RPC client
"""

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

TOKEN_MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine(tmp_path):
    """Create a file-backed async SQLite engine for testing.

    A file database (rather than :memory:) lets several sessions see the same
    data, which the per-update transactions in PositionStore rely on.
    """
    from solswap.models import Base

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
def position_store(session_maker):
    from solswap.services.position_store import PositionStore

    return PositionStore(session_maker)


@pytest.fixture
def position_data():
    """Minimal valid PositionCreate payload"""
    return {
        "mint": TOKEN_MINT,
        "buy_amount": 0.01,
        "token_amount": 1000.0,
        "entry_price": 0.00001,
        "dex": "jupiter",
        "parent_signature": "buy-sig",
    }


# ---------------------------------------------------------------------------
# Solana fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def keypair():
    return Keypair()


def make_unsigned_swap_b64(payer: Pubkey) -> str:
    """Base64 unsigned v0 transaction paid by ``payer``, shaped like a Jupiter swap"""
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    tx = VersionedTransaction.populate(message, [Signature.default()])
    return base64.b64encode(bytes(tx)).decode("ascii")


def signature_status(confirmation_status=TransactionConfirmationStatus.Confirmed, err=None):
    return SimpleNamespace(value=[SimpleNamespace(err=err, confirmation_status=confirmation_status)])


@pytest.fixture
def mock_rpc():
    """AsyncClient stand-in answering every call used by the trade core successfully."""
    rpc = MagicMock()
    rpc.get_latest_blockhash = AsyncMock(
        return_value=SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))
    )
    rpc.get_account_info_json_parsed = AsyncMock(
        return_value=SimpleNamespace(
            value=SimpleNamespace(data=SimpleNamespace(parsed={"info": {"decimals": 6}}))
        )
    )
    rpc.send_raw_transaction = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
    rpc.get_signature_statuses = AsyncMock(return_value=signature_status())
    rpc.close = AsyncMock()
    return rpc


@pytest.fixture
def swap_tx_b64(keypair):
    """Unsigned swap transaction for the default keypair"""
    return make_unsigned_swap_b64(keypair.pubkey())


@pytest.fixture
def foreign_swap_tx_b64():
    """Unsigned swap transaction built for some other wallet"""
    return make_unsigned_swap_b64(Keypair().pubkey())
