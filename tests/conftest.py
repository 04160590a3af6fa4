"""Shared fixtures for shh_node tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key
from solders.keypair import Keypair

from shh_node.models.config import NodeConfig
from shh_node.monitoring.metrics import NodeMetrics
from shh_node.wallet.keys import secret_to_base64
from shh_node.wallet.pool import WalletPool

from tests.mocks import (
    MockChainExecutor,
    MockDispatcherServer,
    MockGateway,
    MockWalletSource,
)

# Deterministic keys so pubkeys are stable across runs
IDENTITY = Keypair.from_seed(bytes([1] * 32))
RELAYS = [Keypair.from_seed(bytes([i] * 32)) for i in (2, 3, 4)]

IDENTITY_SECRET = secret_to_base64(IDENTITY)
RELAY_SECRETS = [secret_to_base64(kp) for kp in RELAYS]

CONFIG_ENV_VARS = [
    "NODE_SIGNER_SECRET", "RELAY_SIGNERS", "RPC_URL", "RPC_COMMITMENT", "USDC_MINT",
    "DISPATCHER_URL", "HEARTBEAT_INTERVAL_MS", "OFFER_POLL_INTERVAL_MS", "HEALTH_PORT",
    "MAX_PER_TX_LAMPORTS", "MAX_CONCURRENT", "LOG_LEVEL", "NODE_ENV",
]

DISPATCHER_PORT = 9281
HEALTH_PORT = 9282


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add node identity to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Solana Devnet (mocked)"
    meta["Node ID"] = str(IDENTITY.pubkey())
    meta["Relay Wallets"] = ", ".join(str(kp.pubkey()) for kp in RELAYS)


def make_test_config(**overrides) -> NodeConfig:
    """Build a NodeConfig suitable for testing."""
    defaults = dict(
        node_signer_secret=IDENTITY_SECRET,
        relay_signers=list(RELAY_SECRETS),
        rpc_url="https://api.devnet.solana.com",
        dispatcher_url=f"http://127.0.0.1:{DISPATCHER_PORT}",
        request_timeout=2.0,
        offer_poll_interval=0.05,
        heartbeat_interval=60.0,
        drain_timeout=0.5,
        drain_poll_interval=0.05,
        tx_confirm_timeout=1.0,
        retry_backoff=0.0,
        retry_max_backoff=0.0,
        health_host="127.0.0.1",
        health_port=HEALTH_PORT,
    )
    defaults.update(overrides)
    return NodeConfig(**defaults)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove config environment variables set by the outer shell."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def test_config():
    """Default NodeConfig for tests."""
    return make_test_config()


@pytest.fixture
def wallet_source():
    return MockWalletSource(default_lamports=1_000_000_000)


@pytest.fixture
def pool(wallet_source):
    """Pool of two relays with funded balances."""
    return WalletPool(IDENTITY, RELAYS[:2], source=wallet_source)


@pytest.fixture
def chain():
    return MockChainExecutor()


@pytest.fixture
def gateway():
    return MockGateway()


@pytest.fixture
def metrics():
    return NodeMetrics()


@pytest.fixture
async def dispatcher():
    """Local mock dispatcher server on a fixed port."""
    server = MockDispatcherServer(port=DISPATCHER_PORT)
    await server.start()
    yield server
    await server.stop()
