"""
Transaction submission and confirmation

Two paths:
- Relay (Jito configured): the whole ordered set goes out as one atomic
  bundle. The bundle id is not a transaction id, so the first transaction's
  signature is confirmed instead; the relay lands all or nothing.
- Direct (no relay): each transaction is sent to the RPC node in order and
  confirmed before the next one. With a swap + tip this is NOT atomic, which
  the result reports through ``atomic`` and ``tip_landed``.

Confirmation is bounded polling of getSignatureStatuses. A timeout surfaces
as ConfirmationTimeout and is never retried here: resubmitting a swap can
execute it twice. Polling awaits asyncio.sleep, so cancelling the calling
task (or wrapping it in asyncio.wait_for) aborts a hung poll.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from solswap.exceptions import ConfirmationTimeout, SubmissionFailed
from solswap.exchange_clients.jito_client import JitoClient
from solswap.trading_engine.bundle_builder import TransactionBundle

logger = logging.getLogger(__name__)

_CONFIRMED_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""
    signature: str  # Confirmed tracking signature (the swap)
    via_relay: bool
    atomic: bool
    bundle_id: Optional[str] = None
    tip_landed: Optional[bool] = None  # None when the set had no tip


class SubmissionRelay:
    """Submits signed bundles via Jito or directly to the RPC node and waits for confirmation."""

    def __init__(
        self,
        rpc: AsyncClient,
        jito: Optional[JitoClient] = None,
        confirm_timeout_seconds: float = 60.0,
        poll_interval_seconds: float = 2.0,
        skip_preflight: bool = False,
    ):
        self.rpc = rpc
        self.jito = jito
        self.confirm_timeout_seconds = confirm_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.skip_preflight = skip_preflight

    @property
    def relay_enabled(self) -> bool:
        return self.jito is not None

    async def submit(self, bundle: TransactionBundle, timeout_seconds: Optional[float] = None) -> SubmissionResult:
        """
        Submit ``bundle`` and wait for the tracking transaction to confirm.

        Args:
            bundle: Signed transaction set (swap first)
            timeout_seconds: Override of the confirmation bound for this call

        Raises:
            SubmissionFailed: Relay/node rejected the set or the swap failed on chain
            ConfirmationTimeout: No confirmation within the bound
        """
        timeout = timeout_seconds if timeout_seconds is not None else self.confirm_timeout_seconds
        if self.jito is not None:
            return await self._submit_bundle(bundle, timeout)
        return await self._submit_direct(bundle, timeout)

    async def _submit_bundle(self, bundle: TransactionBundle, timeout: float) -> SubmissionResult:
        logger.info(f"Sending {len(bundle)} transaction(s) via Jito bundle...")
        bundle_id = await self.jito.send_bundle(bundle.transactions)
        logger.info(f"Bundle sent to Jito: {bundle_id}")

        signature = bundle.tracking_signature
        await self.wait_for_confirmation(signature, timeout)
        logger.info(f"Bundle confirmed via tracking signature {signature}")
        return SubmissionResult(
            signature=signature,
            via_relay=True,
            atomic=True,
            bundle_id=bundle_id,
            tip_landed=True if bundle.has_tip else None,
        )

    async def _submit_direct(self, bundle: TransactionBundle, timeout: float) -> SubmissionResult:
        logger.info("Sending transaction directly to Solana RPC (Jito not configured)...")
        non_atomic = bundle.has_tip
        if non_atomic:
            logger.warning(
                "Multiple transactions (swap + tip) cannot be sent atomically without a Jito bundle; "
                "the tip may land without the swap or vice versa"
            )

        swap_tx, *rest = bundle.transactions
        signature = await self._send_transaction(swap_tx)
        logger.info(f"Swap transaction sent: {signature}")
        try:
            await self.wait_for_confirmation(signature, timeout)
        except ConfirmationTimeout as e:
            e.non_atomic = non_atomic
            raise

        tip_landed = None
        for tip_tx in rest:
            try:
                tip_signature = await self._send_transaction(tip_tx)
                await self.wait_for_confirmation(tip_signature, timeout)
                tip_landed = True
            except (SubmissionFailed, ConfirmationTimeout) as e:
                # Swap already confirmed; report the tip as not guaranteed
                logger.warning(f"Tip transaction did not confirm after swap {signature}: {e}")
                tip_landed = False

        return SubmissionResult(
            signature=signature,
            via_relay=False,
            atomic=not non_atomic,
            tip_landed=tip_landed,
        )

    async def _send_transaction(self, tx: VersionedTransaction) -> str:
        opts = TxOpts(skip_preflight=self.skip_preflight, preflight_commitment=Confirmed)
        try:
            resp = await self.rpc.send_raw_transaction(bytes(tx), opts=opts)
        except Exception as e:
            logger.error(f"sendTransaction failed: {e}")
            raise SubmissionFailed("RPC node rejected transaction", str(e))
        return str(resp.value)

    async def wait_for_confirmation(self, signature: str, timeout: float) -> None:
        """
        Poll until ``signature`` reaches "confirmed" (or better).

        Transient RPC errors while polling are logged and polling continues
        until the bound.

        Raises:
            SubmissionFailed: Transaction landed with an error
            ConfirmationTimeout: Bound exceeded
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        sig = Signature.from_string(signature)

        while True:
            try:
                resp = await self.rpc.get_signature_statuses([sig])
                status = resp.value[0]
            except Exception as e:
                logger.warning(f"Signature status lookup failed for {signature}: {e}")
                status = None

            if status is not None:
                if status.err is not None:
                    logger.error(f"Transaction {signature} failed on chain: {status.err}")
                    raise SubmissionFailed("Transaction failed on chain", str(status.err), signature=signature)
                if status.confirmation_status in _CONFIRMED_STATUSES:
                    return

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.error(f"Confirmation timeout for {signature} after {timeout}s")
                raise ConfirmationTimeout(
                    f"Transaction {signature} not confirmed within {timeout}s", signature=signature
                )
            await asyncio.sleep(min(self.poll_interval_seconds, remaining))
