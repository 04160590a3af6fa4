"""Internal record types for operation results and status reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

LAMPORTS_PER_SOL = 1_000_000_000
USDC_DECIMALS = 6


@dataclass
class WalletBalance:
    """Balance of one relay wallet at query time."""

    public_key: str
    balance_sol: float
    balance_usdc: float | None = None  # None = unknown (no token account or lookup failed)
    is_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "publicKey": self.public_key,
            "balanceSOL": self.balance_sol,
            "isActive": self.is_active,
        }
        if self.balance_usdc is not None:
            data["balanceUSDC"] = self.balance_usdc
        return data


@dataclass
class TransferOutcome:
    """Result of a confirmed on-chain transfer."""

    signature: str
    account_creation_fee: int = 0  # lamports paid to create the recipient token account


@dataclass
class AdmissionResult:
    """Result of evaluating an offer against admission policy."""

    admitted: bool
    reason: str  # "admitted", "at_capacity", "expired", "exceeds_per_tx_limit", ...
    offer_id: str


@dataclass
class MetricsSnapshot:
    offers_received: int = 0
    offers_accepted: int = 0
    offers_completed: int = 0
    offers_failed: int = 0
    offers_rejected: int = 0
    claims_lost: int = 0
    heartbeats: int = 0
    heartbeat_errors: int = 0
    avg_execution_time: int = 0  # ms
    total_earnings: int = 0  # lamports
    uptime: int = 0  # seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "offersReceived": self.offers_received,
            "offersAccepted": self.offers_accepted,
            "offersCompleted": self.offers_completed,
            "offersFailed": self.offers_failed,
            "offersRejected": self.offers_rejected,
            "claimsLost": self.claims_lost,
            "heartbeats": self.heartbeats,
            "heartbeatErrors": self.heartbeat_errors,
            "avgExecutionTime": self.avg_execution_time,
            "totalEarnings": self.total_earnings,
            "uptime": self.uptime,
        }


@dataclass
class HealthStatus:
    """Aggregated node health used by the health server and heartbeats."""

    status: str  # healthy | degraded | unhealthy
    uptime: int  # seconds
    wallets: list[WalletBalance] = field(default_factory=list)
    active_offers: int = 0
    metrics: MetricsSnapshot = field(default_factory=MetricsSnapshot)

    @property
    def active_wallet_count(self) -> int:
        return len([w for w in self.wallets if w.is_active])


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
