"""Offer subscription - background poll loop feeding an offer queue."""

from __future__ import annotations

import asyncio
import logging

from shh_node.interfaces.gateway import DispatchGateway
from shh_node.models.offers import Offer

log = logging.getLogger(__name__)


class OfferSubscription:
    """Polls the dispatcher for open offers and puts them on a queue.

    The loop is scheduled independently of request/response calls and
    never stops on a failed poll: it logs and waits for the next interval.
    """

    def __init__(
        self,
        gateway: DispatchGateway,
        queue: asyncio.Queue[Offer],
        poll_interval: float = 5.0,
    ) -> None:
        self._gateway = gateway
        self._queue = queue
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None
        self.polls = 0
        self.poll_errors = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        log.info("Offer polling started (interval=%.1fs)", self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("Offer polling stopped")

    async def poll_once(self) -> int:
        """Fetch offers once and enqueue them. Returns how many were enqueued."""
        offers = await self._gateway.list_offers()
        for offer in offers:
            self._queue.put_nowait(offer)
        if offers:
            log.debug("Polled %d offers", len(offers))
        return len(offers)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break

            self.polls += 1
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                self.poll_errors += 1
                log.warning("Failed to poll offers: %s", exc)
