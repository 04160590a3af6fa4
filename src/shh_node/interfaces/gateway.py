"""DispatchGateway protocol - authenticated dispatcher client."""

from __future__ import annotations

from typing import Protocol

from shh_node.models.offers import ExecutionReceipt, HeartbeatData, Offer, OfferClaim


class DispatchGateway(Protocol):
    """Request/response client for the central dispatcher."""

    async def connect(self) -> None:
        """Liveness probe. Raises DispatcherUnreachableError."""
        ...

    async def list_offers(self) -> list[Offer]:
        """Fetch currently open offers."""
        ...

    async def claim(self, claim: OfferClaim) -> bool:
        """Claim an offer. False means another node already owns it."""
        ...

    async def submit_receipt(self, receipt: ExecutionReceipt) -> None:
        """Report an execution outcome. Raises ReceiptSubmissionError."""
        ...

    async def heartbeat(self, data: HeartbeatData) -> bool:
        """Best-effort heartbeat. Never raises."""
        ...
