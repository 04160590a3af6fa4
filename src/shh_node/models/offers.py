"""Dispatcher wire models: offers, claims, receipts, heartbeats.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds (the wire timestamp unit)."""
    return int(time.time() * 1000)


class AssetKind(str, Enum):
    """Assets a relay node can move."""

    SOL = "SOL"  # native coin, amounts in lamports
    USDC = "USDC"  # SPL stable token, amounts in 6-decimal units


@dataclass(frozen=True)
class OfferMetadata:
    """Links an offer to its parent multi-part transfer."""

    request_id: str
    part_index: int
    total_parts: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OfferMetadata:
        return cls(
            request_id=str(data["requestId"]),
            part_index=int(data["partIndex"]),
            total_parts=int(data["totalParts"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "partIndex": self.part_index,
            "totalParts": self.total_parts,
        }


@dataclass(frozen=True)
class Offer:
    """A dispatcher-issued request to transfer one part of a split transfer."""

    id: str
    part_id: str
    asset: str  # AssetKind value; unknown kinds are kept so execution can report them
    amount: str  # smallest units, decimal string
    recipient: str
    fee_lamports: int
    expires_at: int | None = None  # epoch ms
    metadata: OfferMetadata | None = None

    @property
    def amount_units(self) -> int:
        return int(self.amount)

    def is_expired(self, at_ms: int) -> bool:
        return self.expires_at is not None and at_ms > self.expires_at

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Offer:
        """Parse a dispatcher offer. Raises ValueError/KeyError on bad input."""
        amount = str(data["amount"]).strip()
        if not amount.isdigit() or int(amount) <= 0:
            raise ValueError(f"offer amount must be a positive integer, got {amount!r}")

        expires_at = data.get("expiresAt")
        metadata = data.get("metadata")
        return cls(
            id=str(data["id"]),
            part_id=str(data["partId"]),
            asset=str(data["asset"]),
            amount=amount,
            recipient=str(data["recipient"]),
            fee_lamports=int(data.get("feeLamports", 0)),
            expires_at=int(expires_at) if expires_at is not None else None,
            metadata=OfferMetadata.from_dict(metadata) if metadata else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "partId": self.part_id,
            "asset": self.asset,
            "amount": self.amount,
            "recipient": self.recipient,
            "feeLamports": self.fee_lamports,
        }
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass(frozen=True)
class OfferClaim:
    """Assertion that this node takes execution rights for an offer."""

    offer_id: str
    node_id: str
    timestamp: int  # epoch ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "offerId": self.offer_id,
            "nodeId": self.node_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ExecutionReceipt:
    """Outcome of one execution attempt, reported back to the dispatcher."""

    part_id: str
    tx_signature: str  # "" when the transfer failed
    spent_lamports: int
    fee_paid: int
    timestamp: int  # epoch ms
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "partId": self.part_id,
            "txSignature": self.tx_signature,
            "spentLamports": self.spent_lamports,
            "feePaid": self.fee_paid,
            "timestamp": self.timestamp,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class HeartbeatData:
    """Periodic liveness report sent to the dispatcher."""

    timestamp: int
    status: str  # healthy | degraded | unhealthy
    balances: list[dict[str, Any]] = field(default_factory=list)
    active_offers: int = 0
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "status": self.status,
            "balances": self.balances,
            "activeOffers": self.active_offers,
            "version": self.version,
        }
