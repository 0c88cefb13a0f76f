"""
Transaction bundle assembly

Turns a trade intent into a signed, ordered transaction set:
1. Convert the human amount to smallest units
2. Quote the swap on Jupiter
3. Build the swap transaction for exactly that quote
4. Optionally append a tip transfer to the Jito tip account (fresh blockhash)
5. Sign every transaction with the fee payer

Steps are strictly sequential: the swap transaction must reference the quote
just obtained, and the tip must be built against a blockhash fetched now.
"""

import base64
import logging
from dataclasses import dataclass
from typing import List, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from solswap.constants import SOL_DECIMALS
from solswap.exceptions import (
    AssetMetadataUnavailable,
    QuoteUnavailable,
    SigningFailed,
    SubmissionFailed,
    ValidationError,
)
from solswap.exchange_clients.jupiter_client import JupiterClient, Quote
from solswap.precision import lamports_to_sol, to_smallest_unit
from solswap.trading_engine.trade_context import TradeDirection, TradeIntent

logger = logging.getLogger(__name__)

VersionedMessage = Union[Message, MessageV0]


@dataclass
class TransactionBundle:
    """Signed transaction set: swap first, optional tip transfer second."""
    transactions: List[VersionedTransaction]
    fee_payer: Pubkey
    quote: Quote
    tip_lamports: int = 0

    @property
    def has_tip(self) -> bool:
        return len(self.transactions) > 1

    @property
    def tracking_signature(self) -> str:
        """First transaction's own signature; stands in for the whole set"""
        return str(self.transactions[0].signatures[0])

    def __len__(self) -> int:
        return len(self.transactions)


def deserialize_swap_transaction(swap_transaction_b64: str) -> VersionedTransaction:
    """Decode the aggregator's base64 unsigned transaction"""
    try:
        raw = base64.b64decode(swap_transaction_b64, validate=True)
        return VersionedTransaction.from_bytes(raw)
    except Exception as e:
        raise QuoteUnavailable("Malformed Jupiter swap transaction", str(e))


def build_tip_message(fee_payer: Pubkey, tip_account: Pubkey, tip_lamports: int, blockhash: Hash) -> Message:
    """Legacy message transferring ``tip_lamports`` from the fee payer to the tip account"""
    instruction = transfer(
        TransferParams(from_pubkey=fee_payer, to_pubkey=tip_account, lamports=tip_lamports)
    )
    return Message.new_with_blockhash([instruction], fee_payer, blockhash)


def sign_messages(messages: List[VersionedMessage], signer: Keypair) -> List[VersionedTransaction]:
    """
    Sign every message with ``signer``, producing the transactions to submit.

    Every message must name the signer as fee payer (first account key);
    anything else means the transaction was built for a different wallet.

    Raises:
        SigningFailed: Fee payer mismatch or signer error
    """
    signer_pubkey = signer.pubkey()
    signed = []
    for index, message in enumerate(messages):
        account_keys = list(message.account_keys)
        if not account_keys or account_keys[0] != signer_pubkey:
            payer = account_keys[0] if account_keys else None
            raise SigningFailed(
                "Transaction fee payer does not match signer",
                f"transaction {index}: payer={payer}, signer={signer_pubkey}",
            )
        try:
            signed.append(VersionedTransaction(message, [signer]))
        except Exception as e:
            logger.error(f"Signing transaction {index} failed: {e}")
            raise SigningFailed("Failed to sign transaction", str(e))
    return signed


class TransactionBundler:
    """Builds signed swap (+ tip) transaction sets for buy and sell intents."""

    def __init__(
        self,
        jupiter: JupiterClient,
        rpc: AsyncClient,
        tip_account: str,
        relay_enabled: bool,
        require_relay_for_tip: bool = True,
    ):
        self.jupiter = jupiter
        self.rpc = rpc
        self.tip_account = Pubkey.from_string(tip_account)
        self.relay_enabled = relay_enabled
        self.require_relay_for_tip = require_relay_for_tip

    async def resolve_decimals(self, mint: str) -> int:
        """
        Read a token's decimal precision from its mint account.

        Raises:
            AssetMetadataUnavailable: Invalid mint, RPC failure, or unparsed account
        """
        try:
            resp = await self.rpc.get_account_info_json_parsed(Pubkey.from_string(mint))
        except Exception as e:
            logger.error(f"Mint account lookup failed for {mint}: {e}")
            raise AssetMetadataUnavailable(f"Could not find token mint account info for {mint}", str(e))

        account = resp.value
        parsed = getattr(account.data, "parsed", None) if account is not None else None
        try:
            decimals = parsed["info"]["decimals"]
        except (KeyError, TypeError):
            raise AssetMetadataUnavailable(
                f"Could not find token mint account info for {mint}", "mint account is not a parsed token mint"
            )
        if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
            raise AssetMetadataUnavailable(f"Invalid decimals for {mint}", repr(decimals))
        return decimals

    async def build_buy_bundle(self, intent: TradeIntent, fee_payer: Keypair, tip_lamports: int = 0) -> TransactionBundle:
        """Spend ``intent.amount`` SOL on ``intent.base_mint``"""
        if intent.direction != TradeDirection.BUY:
            raise ValidationError("build_buy_bundle requires a BUY intent")
        amount = to_smallest_unit(intent.amount, SOL_DECIMALS)
        return await self._build_bundle(intent, amount, fee_payer, tip_lamports)

    async def build_sell_bundle(self, intent: TradeIntent, fee_payer: Keypair, tip_lamports: int = 0) -> TransactionBundle:
        """Sell ``intent.amount`` tokens of ``intent.quote_mint`` for SOL"""
        if intent.direction != TradeDirection.SELL:
            raise ValidationError("build_sell_bundle requires a SELL intent")
        decimals = await self.resolve_decimals(intent.quote_mint)
        amount = to_smallest_unit(intent.amount, decimals)
        return await self._build_bundle(intent, amount, fee_payer, tip_lamports)

    async def _build_bundle(
        self,
        intent: TradeIntent,
        amount: int,
        fee_payer: Keypair,
        tip_lamports: int,
    ) -> TransactionBundle:
        if tip_lamports < 0:
            raise ValidationError(f"Tip must be >= 0 lamports, got {tip_lamports}")
        if tip_lamports > 0 and not self.relay_enabled and self.require_relay_for_tip:
            raise ValidationError(
                "A tip was requested but no Jito relay is configured; "
                "the tip cannot be sent atomically with the swap"
            )

        payer = fee_payer.pubkey()

        # 1. Quote (errors propagate before anything is built)
        quote = await self.jupiter.get_quote(
            intent.input_mint, intent.output_mint, amount, intent.slippage_bps
        )

        # 2. Swap transaction for exactly this quote
        swap_b64 = await self.jupiter.get_swap_transaction(quote, str(payer))
        messages = [deserialize_swap_transaction(swap_b64).message]

        # 3. Optional tip transfer against a fresh blockhash
        if tip_lamports > 0:
            if not self.relay_enabled:
                logger.warning(
                    "Multiple transactions (swap + tip) cannot be sent atomically without a Jito bundle; "
                    "tip inclusion is not guaranteed"
                )
            blockhash = await self._latest_blockhash()
            messages.append(build_tip_message(payer, self.tip_account, tip_lamports, blockhash))
            logger.info(f"Adding Jito tip of {lamports_to_sol(tip_lamports)} SOL.")

        # 4. Sign everything with the fee payer
        signed = sign_messages(messages, fee_payer)
        return TransactionBundle(
            transactions=signed, fee_payer=payer, quote=quote, tip_lamports=tip_lamports
        )

    async def _latest_blockhash(self) -> Hash:
        try:
            resp = await self.rpc.get_latest_blockhash(commitment=Finalized)
            return resp.value.blockhash
        except Exception as e:
            logger.error(f"Failed to fetch latest blockhash: {e}")
            raise SubmissionFailed("Could not fetch a blockhash for the tip transaction", str(e))
