"""Offer coordinator - admission, claim, execution and resolution of offers."""

from __future__ import annotations

import asyncio
import logging
import time

from shh_node.interfaces.engine import OfferExecutor
from shh_node.interfaces.gateway import DispatchGateway
from shh_node.models.offers import ExecutionReceipt, Offer, OfferClaim, now_ms
from shh_node.monitoring.metrics import NodeMetrics
from shh_node.policy.admission import AdmissionPolicy

log = logging.getLogger(__name__)


class OfferCoordinator:
    """Owns the active-offer set and drives each offer through its lifecycle.

    received -> admitted -> claimed -> executing -> resolved

    Offers are handled as independent tasks on one event loop, so they
    interleave at await points. An offer enters ``active_offers`` before its
    execution is awaited and leaves it in a ``finally`` once resolved, so no
    downstream fault can leak an entry. Claims in flight count toward
    capacity but are not part of the active set.
    """

    def __init__(
        self,
        gateway: DispatchGateway,
        engine: OfferExecutor,
        metrics: NodeMetrics,
        node_id: str,
        policy: AdmissionPolicy | None = None,
        drain_timeout: float = 30.0,
        drain_poll_interval: float = 1.0,
        receipt_attempts: int = 3,
        retry_backoff: float = 1.0,
        retry_max_backoff: float = 10.0,
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._metrics = metrics
        self._node_id = node_id
        self._policy = policy or AdmissionPolicy()
        self._drain_timeout = drain_timeout
        self._drain_poll_interval = drain_poll_interval
        self._receipt_attempts = max(1, receipt_attempts)
        self._retry_backoff = retry_backoff
        self._retry_max_backoff = retry_max_backoff

        self.active_offers: dict[str, Offer] = {}
        self._claiming: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._accepting = True

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def active_count(self) -> int:
        return len(self.active_offers)

    # ── Intake ────────────────────────────────────────────

    async def run(self, queue: asyncio.Queue[Offer]) -> None:
        """Consume offers from the queue until cancelled."""
        while True:
            offer = await queue.get()
            try:
                self.submit(offer)
            finally:
                queue.task_done()

    def submit(self, offer: Offer) -> asyncio.Task:
        """Start handling one offer as its own task."""
        task = asyncio.create_task(self.handle_offer(offer))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle_offer(self, offer: Offer) -> None:
        """Run one offer through admission, claim, execution and resolution."""
        log.info("Received offer %s (%s %s)", offer.id, offer.asset, offer.amount)
        self._metrics.record_offer_received()

        admission = self._policy.evaluate(
            offer,
            in_flight=len(self.active_offers) + len(self._claiming),
            now_ms=now_ms(),
            accepting=self._accepting,
            already_active=offer.id in self.active_offers or offer.id in self._claiming,
        )
        if not admission.admitted:
            log.warning("Dropping offer %s: %s", offer.id, admission.reason)
            self._metrics.record_offer_rejected(admission.reason)
            return

        if not await self._claim(offer):
            return

        await self._execute_and_resolve(offer)

    async def _claim(self, offer: Offer) -> bool:
        self._claiming.add(offer.id)
        try:
            claimed = await self._gateway.claim(OfferClaim(
                offer_id=offer.id, node_id=self._node_id, timestamp=now_ms(),
            ))
        except Exception as exc:
            log.error("Claim failed for offer %s: %s", offer.id, exc)
            self._metrics.record_offer_rejected("claim_error")
            return False
        finally:
            self._claiming.discard(offer.id)

        if not claimed:
            log.info("Offer %s was claimed by another node", offer.id)
            self._metrics.record_claim_lost()
            return False
        return True

    async def _execute_and_resolve(self, offer: Offer) -> None:
        start = time.monotonic()
        self.active_offers[offer.id] = offer
        self._metrics.record_offer_accepted()
        log.info("Accepted offer %s, executing...", offer.id)

        try:
            receipt = await self._engine.execute(offer)
            await self._submit_receipt(receipt)
        except Exception as exc:
            self._metrics.record_offer_failed()
            log.error("Failed to execute offer %s: %s", offer.id, exc, exc_info=True)
            return
        finally:
            self.active_offers.pop(offer.id, None)

        if receipt.success:
            self._metrics.record_offer_completed(time.monotonic() - start)
            self._metrics.record_earnings(receipt.fee_paid)
            log.info("Completed offer %s (%s)", offer.id, receipt.tx_signature)
        else:
            self._metrics.record_offer_failed()
            log.warning("Offer %s failed on-chain: %s", offer.id, receipt.error)

    async def _submit_receipt(self, receipt: ExecutionReceipt) -> None:
        """Submit with bounded exponential backoff; re-raises the last failure."""
        delay = self._retry_backoff
        for attempt in range(1, self._receipt_attempts + 1):
            try:
                await self._gateway.submit_receipt(receipt)
                return
            except Exception as exc:
                if attempt >= self._receipt_attempts:
                    raise
                log.warning(
                    "Receipt submission for part %s failed (attempt %d/%d): %s",
                    receipt.part_id, attempt, self._receipt_attempts, exc,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._retry_max_backoff)

    # ── Shutdown ──────────────────────────────────────────

    async def shutdown(self) -> list[str]:
        """Stop admitting offers and wait, bounded, for in-flight ones to resolve.

        Offers whose claim is still outstanding are waited for too: the claim
        may yet win and lead to a transfer. In-flight transfers are never
        cancelled, they may already be on-chain. Returns the ids of offers
        still claiming or active when the drain timeout expired.
        """
        self._accepting = False
        pending = self._in_flight()
        if pending:
            log.info("Waiting for %d in-flight offers to complete...", len(pending))

        deadline = time.monotonic() + self._drain_timeout
        while self._in_flight():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self._drain_poll_interval, remaining))

        abandoned = self._in_flight()
        if abandoned:
            log.warning(
                "%d offers still in flight after %.1fs drain timeout, abandoning: %s",
                len(abandoned), self._drain_timeout, ", ".join(abandoned),
            )
        return abandoned

    def _in_flight(self) -> list[str]:
        return [*self._claiming, *self.active_offers]
