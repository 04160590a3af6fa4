"""Configuration loading: TOML file + environment variables, and validation."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlparse

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from shh_node.errors import ConfigurationError
from shh_node.models.config import NodeConfig, RotationStrategy
from shh_node.models.records import ValidationResult
from shh_node.wallet.keys import parse_relay_signers


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "",
) -> NodeConfig:
    """Load node configuration from a TOML file and environment variables.

    Priority (highest wins):
        1. Environment variables (NODE_SIGNER_SECRET, RELAY_SIGNERS, ...)
        2. TOML config file
        3. Defaults from NodeConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = NodeConfig()

    # ── Node section ───────────────────────────────────────
    node = raw.get("node", {})
    if v := node.get("version"):
        cfg.version = str(v)
    if v := node.get("environment"):
        cfg.environment = str(v)
    if v := node.get("log_level"):
        cfg.log_level = str(v)
    if v := node.get("max_concurrent"):
        cfg.max_concurrent = int(v)
    if v := node.get("drain_timeout"):
        cfg.drain_timeout = float(v)
    if v := node.get("drain_poll_interval"):
        cfg.drain_poll_interval = float(v)
    if v := node.get("tx_confirm_timeout"):
        cfg.tx_confirm_timeout = float(v)
    if v := node.get("retry_max"):
        cfg.retry_max = int(v)
    if v := node.get("retry_backoff"):
        cfg.retry_backoff = float(v)
    if v := node.get("retry_max_backoff"):
        cfg.retry_max_backoff = float(v)

    # ── Keys section ───────────────────────────────────────
    keys = raw.get("keys", {})
    if v := keys.get("node_signer_secret"):
        cfg.node_signer_secret = str(v)
    if v := keys.get("relay_signers"):
        cfg.relay_signers = [str(s) for s in v]

    # ── Solana section ─────────────────────────────────────
    solana = raw.get("solana", {})
    if v := solana.get("rpc_url"):
        cfg.rpc_url = str(v)
    if v := solana.get("commitment"):
        cfg.rpc_commitment = str(v)
    if v := solana.get("usdc_mint"):
        cfg.usdc_mint = str(v)

    # ── Dispatcher section ─────────────────────────────────
    dispatcher = raw.get("dispatcher", {})
    if v := dispatcher.get("url"):
        cfg.dispatcher_url = str(v)
    if v := dispatcher.get("request_timeout"):
        cfg.request_timeout = float(v)
    if v := dispatcher.get("offer_poll_interval"):
        cfg.offer_poll_interval = float(v)
    if v := dispatcher.get("heartbeat_interval"):
        cfg.heartbeat_interval = float(v)

    # ── Limits section ─────────────────────────────────────
    limits = raw.get("limits", {})
    if v := limits.get("per_tx_lamports"):
        cfg.per_tx_lamports = int(v)

    # ── Rotation section ───────────────────────────────────
    rotation = raw.get("rotation", {})
    if v := rotation.get("strategy"):
        cfg.rotation_strategy = _rotation_strategy(str(v))
    if v := rotation.get("min_balance_sol"):
        cfg.min_balance_sol = float(v)

    # ── Monitoring section ─────────────────────────────────
    monitoring = raw.get("monitoring", {})
    if v := monitoring.get("health_host"):
        cfg.health_host = str(v)
    if v := monitoring.get("health_port"):
        cfg.health_port = int(v)

    # ── Environment variable overrides (highest priority) ──
    env = os.environ
    if secret := env.get(f"{env_prefix}NODE_SIGNER_SECRET"):
        cfg.node_signer_secret = secret
    if relays := env.get(f"{env_prefix}RELAY_SIGNERS"):
        cfg.relay_signers = parse_relay_signers(relays)
    if rpc := env.get(f"{env_prefix}RPC_URL"):
        cfg.rpc_url = rpc
    if commitment := env.get(f"{env_prefix}RPC_COMMITMENT"):
        cfg.rpc_commitment = commitment
    if mint := env.get(f"{env_prefix}USDC_MINT"):
        cfg.usdc_mint = mint
    if url := env.get(f"{env_prefix}DISPATCHER_URL"):
        cfg.dispatcher_url = url
    if ms := env.get(f"{env_prefix}HEARTBEAT_INTERVAL_MS"):
        cfg.heartbeat_interval = _ms_to_seconds("HEARTBEAT_INTERVAL_MS", ms)
    if ms := env.get(f"{env_prefix}OFFER_POLL_INTERVAL_MS"):
        cfg.offer_poll_interval = _ms_to_seconds("OFFER_POLL_INTERVAL_MS", ms)
    if port := env.get(f"{env_prefix}HEALTH_PORT"):
        cfg.health_port = _int_env("HEALTH_PORT", port)
    if limit := env.get(f"{env_prefix}MAX_PER_TX_LAMPORTS"):
        cfg.per_tx_lamports = _int_env("MAX_PER_TX_LAMPORTS", limit)
    if concurrent := env.get(f"{env_prefix}MAX_CONCURRENT"):
        cfg.max_concurrent = _int_env("MAX_CONCURRENT", concurrent)
    if level := env.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level
    if node_env := env.get(f"{env_prefix}NODE_ENV"):
        cfg.environment = node_env

    return cfg


def _rotation_strategy(value: str) -> RotationStrategy:
    try:
        return RotationStrategy(value)
    except ValueError:
        raise ConfigurationError(
            f"Unsupported rotation strategy {value!r} (supported: round_robin)"
        ) from None


def _int_env(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _ms_to_seconds(name: str, value: str) -> float:
    return _int_env(name, value) / 1000


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_config(cfg: NodeConfig) -> ValidationResult:
    """Check a loaded configuration before the node starts."""
    errors: list[str] = []
    warnings: list[str] = []

    if not cfg.rpc_url:
        errors.append("Missing required setting: RPC_URL")
    elif not _is_valid_url(cfg.rpc_url):
        errors.append("RPC_URL must be a valid URL")
    if not cfg.node_signer_secret:
        errors.append("Missing required setting: NODE_SIGNER_SECRET")
    if not cfg.relay_signers:
        errors.append("RELAY_SIGNERS must be a non-empty list of secrets")
    if not _is_valid_url(cfg.dispatcher_url):
        errors.append("DISPATCHER_URL must be a valid URL")

    if cfg.max_concurrent < 1:
        errors.append("max_concurrent must be >= 1")
    if cfg.per_tx_lamports < 1000:
        errors.append("per_tx_lamports must be >= 1000")
    if cfg.min_balance_sol < 0.001:
        errors.append("min_balance_sol must be >= 0.001")

    if cfg.environment == "production":
        if "devnet" in cfg.rpc_url:
            warnings.append("Using devnet RPC in production environment")
        if not cfg.dispatcher_url.startswith("https://"):
            warnings.append("Dispatcher URL should use HTTPS in production")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
