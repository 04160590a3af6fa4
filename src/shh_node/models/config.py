"""Configuration models for the relay node."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

USDC_MINT_MAINNET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


class RotationStrategy(str, Enum):
    """Relay wallet selection strategy."""

    ROUND_ROBIN = "round_robin"


@dataclass
class NodeConfig:
    """Complete relay node configuration."""

    # Node
    version: str = "0.1.0"
    environment: str = "development"  # NODE_ENV
    log_level: str = "info"
    max_concurrent: int = 5
    drain_timeout: float = 30.0  # seconds
    drain_poll_interval: float = 1.0  # seconds
    tx_confirm_timeout: float = 60.0  # seconds
    retry_max: int = 3  # confirmation retries and receipt submission attempts
    retry_backoff: float = 1.0  # seconds
    retry_max_backoff: float = 10.0  # seconds

    # Keys (base64 64-byte ed25519 secret keys)
    node_signer_secret: str = ""  # loaded from env var NODE_SIGNER_SECRET
    relay_signers: list[str] = field(default_factory=list)  # env var RELAY_SIGNERS

    # Solana
    rpc_url: str = "https://api.devnet.solana.com"
    rpc_commitment: str = "confirmed"
    usdc_mint: str = USDC_MINT_MAINNET

    # Dispatcher
    dispatcher_url: str = "https://dispatcher.dev.shh.cash"
    request_timeout: float = 10.0  # seconds
    offer_poll_interval: float = 5.0  # seconds
    heartbeat_interval: float = 30.0  # seconds

    # Limits
    per_tx_lamports: int = 500_000_000  # 0.5 SOL

    # Rotation
    rotation_strategy: RotationStrategy = RotationStrategy.ROUND_ROBIN
    min_balance_sol: float = 0.01

    # Monitoring
    health_host: str = "0.0.0.0"
    health_port: int = 8080
