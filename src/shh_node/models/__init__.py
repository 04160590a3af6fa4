"""Data models for the shh_node relay."""

from shh_node.models.config import NodeConfig, RotationStrategy
from shh_node.models.offers import (
    AssetKind,
    ExecutionReceipt,
    HeartbeatData,
    Offer,
    OfferClaim,
    OfferMetadata,
)
from shh_node.models.records import (
    AdmissionResult,
    HealthStatus,
    MetricsSnapshot,
    TransferOutcome,
    ValidationResult,
    WalletBalance,
)

__all__ = [
    "NodeConfig", "RotationStrategy",
    "AssetKind", "ExecutionReceipt", "HeartbeatData", "Offer", "OfferClaim",
    "OfferMetadata",
    "AdmissionResult", "HealthStatus", "MetricsSnapshot", "TransferOutcome",
    "ValidationResult", "WalletBalance",
]
