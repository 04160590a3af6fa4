"""OfferExecutor protocol - turns a claimed offer into a receipt."""

from __future__ import annotations

from typing import Protocol

from shh_node.models.offers import ExecutionReceipt, Offer


class OfferExecutor(Protocol):
    """Executes a claimed offer. Failures come back as unsuccessful receipts."""

    async def execute(self, offer: Offer) -> ExecutionReceipt:
        ...
