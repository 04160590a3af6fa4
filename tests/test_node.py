"""RelayNode wiring: startup checks, offer flow, heartbeats, shutdown."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from shh_node.daemon import RelayNode
from shh_node.dispatch.gateway import PATH_ACCEPT, PATH_HEARTBEAT, PATH_PING, PATH_RECEIPT
from shh_node.errors import DispatcherUnreachableError, InsufficientFundsError

from tests.conftest import HEALTH_PORT, RELAYS, make_test_config
from tests.factories import make_offer_payload
from tests.mocks import MockChainExecutor, MockWalletSource

pytestmark = pytest.mark.dispatcher


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def node(wallet_source, chain):
    return RelayNode(make_test_config(), wallet_source=wallet_source, chain=chain)


@pytest.fixture
async def running_node(node, dispatcher):
    await node.start()
    yield node
    await node.stop()


# ── Startup ───────────────────────────────────────────────────────


async def test_start_connects_and_serves_health(running_node, dispatcher):
    assert running_node.running
    assert len(dispatcher.requests_to(PATH_PING)) == 1

    async with httpx.AsyncClient() as client:
        resp = await client.get(f"http://127.0.0.1:{HEALTH_PORT}/health")
    assert resp.status_code == 200
    assert resp.json()["walletCount"] == len(RELAYS)


async def test_start_twice_raises(running_node):
    with pytest.raises(RuntimeError):
        await running_node.start()


async def test_start_fails_when_all_wallets_low(chain, dispatcher):
    node = RelayNode(
        make_test_config(),
        wallet_source=MockWalletSource(default_lamports=1_000_000),
        chain=chain,
    )
    with pytest.raises(InsufficientFundsError):
        await node.start()
    await node.close()
    assert dispatcher.requests_to(PATH_PING) == []


async def test_start_fails_when_dispatcher_unreachable(node):
    with pytest.raises(DispatcherUnreachableError):
        await node.start()
    await node.close()
    assert not node.running


# ── Offer flow ────────────────────────────────────────────────────


async def test_polled_offer_is_claimed_executed_and_reported(running_node, dispatcher, chain):
    dispatcher.offers = [make_offer_payload("o1", feeLamports=7000)]

    await wait_until(lambda: dispatcher.requests_to(PATH_RECEIPT))

    [claim] = dispatcher.requests_to(PATH_ACCEPT)
    assert json.loads(claim["body"])["offerId"] == "o1"
    receipt = json.loads(dispatcher.requests_to(PATH_RECEIPT)[0]["body"])
    assert receipt["partId"] == "part-o1"
    assert receipt["txSignature"] == "SIG1"
    assert receipt["success"] is True
    assert [offer_id for _, offer_id in chain.transfer_calls] == ["o1"]

    await wait_until(lambda: running_node.coordinator.active_count == 0)
    snap = running_node.metrics.snapshot()
    assert snap.offers_completed == 1
    assert snap.total_earnings == 7000


async def test_lost_claim_is_not_executed(running_node, dispatcher, chain):
    dispatcher.status[PATH_ACCEPT] = 409
    dispatcher.offers = [make_offer_payload("o1")]

    await wait_until(lambda: running_node.metrics.snapshot().claims_lost == 1)

    assert chain.transfer_calls == []
    assert dispatcher.requests_to(PATH_RECEIPT) == []


# ── Heartbeat ─────────────────────────────────────────────────────


async def test_send_heartbeat(running_node, dispatcher):
    assert await running_node.send_heartbeat() is True

    body = json.loads(dispatcher.requests_to(PATH_HEARTBEAT)[0]["body"])
    assert body["status"] == "healthy"
    assert body["activeOffers"] == 0
    assert body["version"] == "0.1.0"
    assert len(body["balances"]) == len(RELAYS)
    assert running_node.metrics.snapshot().heartbeats == 1


async def test_failed_heartbeat_counts_error(running_node, dispatcher):
    dispatcher.status[PATH_HEARTBEAT] = 500
    assert await running_node.send_heartbeat() is False
    assert running_node.metrics.snapshot().heartbeat_errors == 1


# ── Shutdown ──────────────────────────────────────────────────────


async def test_stop_drains_and_stops_intake(node, dispatcher):
    await node.start()
    await node.stop()

    assert not node.running
    assert not node.subscription.running
    assert not node.coordinator.accepting
    await asyncio.wait_for(node.wait_stopped(), timeout=1.0)

    # Second stop is a no-op
    await node.stop()


async def test_stop_waits_for_slow_transfer(dispatcher, wallet_source):
    chain = MockChainExecutor(delay=0.2)
    node = RelayNode(make_test_config(drain_timeout=2.0), wallet_source=wallet_source, chain=chain)
    await node.start()
    dispatcher.offers = [make_offer_payload("slow")]
    await wait_until(lambda: node.coordinator.active_count == 1)

    await node.stop()

    assert node.coordinator.active_count == 0
    assert len(dispatcher.requests_to(PATH_RECEIPT)) == 1


async def test_heartbeat_loop_survives_failed_heartbeats(dispatcher, wallet_source, chain):
    node = RelayNode(
        make_test_config(heartbeat_interval=0.05), wallet_source=wallet_source, chain=chain,
    )
    dispatcher.status[PATH_HEARTBEAT] = 500
    await node.start()
    try:
        await wait_until(lambda: node.metrics.snapshot().heartbeat_errors >= 2)

        del dispatcher.status[PATH_HEARTBEAT]
        await wait_until(lambda: node.metrics.snapshot().heartbeats >= 1)
        assert node.running
    finally:
        await node.stop()


async def test_heartbeat_loop_survives_status_errors(dispatcher, wallet_source, chain):
    node = RelayNode(
        make_test_config(heartbeat_interval=0.05), wallet_source=wallet_source, chain=chain,
    )
    await node.start()

    async def broken_status():
        raise RuntimeError("balance query exploded")

    node.health.get_status = broken_status
    try:
        await wait_until(lambda: node.metrics.snapshot().heartbeat_errors >= 2)
        assert node.running
        assert dispatcher.requests_to(PATH_HEARTBEAT) == []
    finally:
        await node.stop()


async def test_stop_signals_stopped_even_when_teardown_fails(node, dispatcher):
    await node.start()
    real_stop = node.health_server.stop

    async def failing_stop():
        await real_stop()
        raise RuntimeError("runner cleanup failed")

    node.health_server.stop = failing_stop

    with pytest.raises(RuntimeError):
        await node.stop()
    await asyncio.wait_for(node.wait_stopped(), timeout=1.0)
    assert not node.running
