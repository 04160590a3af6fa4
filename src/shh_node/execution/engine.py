"""Execution engine - runs one transfer per claimed offer and builds its receipt."""

from __future__ import annotations

import asyncio
import logging
import time

from shh_node.errors import ConfirmationTimeoutError, UnsupportedAssetError
from shh_node.interfaces.chain import ChainExecutor
from shh_node.models.offers import AssetKind, ExecutionReceipt, Offer, now_ms
from shh_node.wallet.pool import WalletPool

log = logging.getLogger(__name__)


class ExecutionEngine:
    """Executes claimed offers from the relay wallet pool.

    ``execute`` never raises. Every failure (unsupported asset, transfer
    construction, submission, confirmation timeout) comes back as a receipt
    with ``success=False`` so the offer can still be reported and released.
    """

    def __init__(
        self,
        pool: WalletPool,
        chain: ChainExecutor,
        confirm_timeout: float = 60.0,
    ) -> None:
        self._pool = pool
        self._chain = chain
        self._confirm_timeout = confirm_timeout

    async def execute(self, offer: Offer) -> ExecutionReceipt:
        start = time.monotonic()
        log.info("Executing offer %s (%s %s)", offer.id, offer.asset, offer.amount)

        try:
            # One wallet per attempt, selected before anything can fail
            wallet = self._pool.next_wallet()

            try:
                asset = AssetKind(offer.asset)
            except ValueError:
                raise UnsupportedAssetError(f"Unsupported asset: {offer.asset}") from None

            try:
                outcome = await asyncio.wait_for(
                    self._chain.transfer(wallet, offer), timeout=self._confirm_timeout,
                )
            except asyncio.TimeoutError:
                raise ConfirmationTimeoutError(
                    f"Transaction not confirmed within {self._confirm_timeout:.0f}s"
                ) from None

            # The node only counts what it pays out of pocket: the full amount
            # for SOL, only the account-creation fee for token transfers.
            if asset == AssetKind.SOL:
                spent = offer.amount_units
            else:
                spent = outcome.account_creation_fee

        except Exception as exc:
            elapsed = int((time.monotonic() - start) * 1000)
            log.error("Failed to execute %s after %dms: %s", offer.id, elapsed, exc)
            return ExecutionReceipt(
                part_id=offer.part_id,
                tx_signature="",
                spent_lamports=0,
                fee_paid=0,
                timestamp=now_ms(),
                success=False,
                error=str(exc) or type(exc).__name__,
            )

        elapsed = int((time.monotonic() - start) * 1000)
        log.info("Executed %s in %dms (%s)", offer.id, elapsed, outcome.signature)
        return ExecutionReceipt(
            part_id=offer.part_id,
            tx_signature=outcome.signature,
            spent_lamports=spent,
            fee_paid=offer.fee_lamports,
            timestamp=now_ms(),
            success=True,
        )
