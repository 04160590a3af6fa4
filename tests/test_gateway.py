"""Dispatcher gateway against a local mock dispatcher."""

from __future__ import annotations

import base64
import json

import pytest
from solders.signature import Signature

from shh_node.dispatch.gateway import (
    PATH_ACCEPT,
    PATH_HEARTBEAT,
    PATH_OFFERS,
    PATH_PING,
    PATH_RECEIPT,
    HttpDispatchGateway,
)
from shh_node.dispatch.signing import signing_message
from shh_node.errors import (
    ClaimRequestError,
    DispatcherUnreachableError,
    OfferFetchError,
    ReceiptSubmissionError,
)
from shh_node.models.offers import HeartbeatData, OfferClaim, now_ms

from tests.conftest import IDENTITY
from tests.factories import make_offer_payload, make_receipt

pytestmark = pytest.mark.dispatcher


@pytest.fixture
def client(dispatcher):
    return HttpDispatchGateway(dispatcher.url + "/", IDENTITY, timeout=2.0)


def assert_signed(record: dict) -> None:
    """Verify a recorded request carries a valid signature over its content."""
    headers = record["headers"]
    assert headers["X-Node-Pubkey"] == str(IDENTITY.pubkey())
    ts = int(headers["X-Timestamp"])
    assert abs(now_ms() - ts) < 60_000
    sig = Signature.from_bytes(base64.b64decode(headers["X-Signature"]))
    msg = signing_message(ts, record["method"], record["path"], record["body"])
    assert sig.verify(IDENTITY.pubkey(), msg)


# ── Connection ────────────────────────────────────────────────────


async def test_connect_pings_dispatcher(client, dispatcher):
    await client.connect()
    [ping] = dispatcher.requests_to(PATH_PING)
    assert ping["method"] == "GET"
    assert_signed(ping)


async def test_connect_fails_on_error_status(client, dispatcher):
    dispatcher.status[PATH_PING] = 503
    with pytest.raises(DispatcherUnreachableError) as exc_info:
        await client.connect()
    assert exc_info.value.status_code == 503


async def test_connect_fails_when_nothing_listening():
    gateway = HttpDispatchGateway("http://127.0.0.1:9299", IDENTITY, timeout=1.0)
    with pytest.raises(DispatcherUnreachableError):
        await gateway.connect()


async def test_base_url_trailing_slash_stripped(client, dispatcher):
    assert client.base_url == dispatcher.url
    assert client.node_id == str(IDENTITY.pubkey())


# ── Offers ────────────────────────────────────────────────────────


async def test_list_offers_parses_and_skips_malformed(client, dispatcher):
    dispatcher.offers = [
        make_offer_payload("o1"),
        {"id": "broken"},
        make_offer_payload("o2", asset="USDC", amount="2500000"),
        make_offer_payload("o3", amount="-5"),
    ]

    offers = await client.list_offers()

    assert [o.id for o in offers] == ["o1", "o2"]
    assert offers[0].metadata.total_parts == 3
    assert offers[1].asset == "USDC"
    assert offers[1].amount_units == 2_500_000
    assert_signed(dispatcher.requests_to(PATH_OFFERS)[0])


async def test_list_offers_error_status(client, dispatcher):
    dispatcher.status[PATH_OFFERS] = 500
    with pytest.raises(OfferFetchError):
        await client.list_offers()


@pytest.mark.parametrize("body", [[{"id": "offer-1"}], "offers", None])
async def test_list_offers_rejects_non_object_body(client, dispatcher, body):
    dispatcher.bodies[PATH_OFFERS] = body
    with pytest.raises(OfferFetchError, match="not a JSON object"):
        await client.list_offers()


async def test_list_offers_rejects_non_array_offers(client, dispatcher):
    dispatcher.bodies[PATH_OFFERS] = {"offers": {"id": "offer-1"}}
    with pytest.raises(OfferFetchError, match="not an array"):
        await client.list_offers()


# ── Claim ─────────────────────────────────────────────────────────


async def test_claim_success(client, dispatcher):
    claim = OfferClaim(offer_id="o1", node_id=client.node_id, timestamp=now_ms())

    assert await client.claim(claim) is True

    [record] = dispatcher.requests_to(PATH_ACCEPT)
    assert record["method"] == "POST"
    assert json.loads(record["body"]) == {
        "offerId": "o1", "nodeId": client.node_id, "timestamp": claim.timestamp,
    }
    assert_signed(record)


async def test_claim_conflict_means_lost(client, dispatcher):
    dispatcher.status[PATH_ACCEPT] = 409
    claim = OfferClaim(offer_id="o1", node_id=client.node_id, timestamp=now_ms())
    assert await client.claim(claim) is False


async def test_claim_server_error_raises(client, dispatcher):
    dispatcher.status[PATH_ACCEPT] = 500
    claim = OfferClaim(offer_id="o1", node_id=client.node_id, timestamp=now_ms())
    with pytest.raises(ClaimRequestError) as exc_info:
        await client.claim(claim)
    assert exc_info.value.status_code == 500


# ── Receipt ───────────────────────────────────────────────────────


async def test_submit_receipt(client, dispatcher):
    receipt = make_receipt(part_id="p1")

    await client.submit_receipt(receipt)

    [record] = dispatcher.requests_to(PATH_RECEIPT)
    body = json.loads(record["body"])
    assert body["partId"] == "p1"
    assert body["txSignature"] == "SIG1"
    assert body["success"] is True
    assert "error" not in body
    assert_signed(record)


async def test_submit_failed_receipt_carries_error(client, dispatcher):
    await client.submit_receipt(make_receipt(success=False, error="rpc down"))
    body = json.loads(dispatcher.requests_to(PATH_RECEIPT)[0]["body"])
    assert body["success"] is False
    assert body["error"] == "rpc down"
    assert body["txSignature"] == ""


async def test_submit_receipt_error_status(client, dispatcher):
    dispatcher.status[PATH_RECEIPT] = 502
    with pytest.raises(ReceiptSubmissionError):
        await client.submit_receipt(make_receipt())


# ── Heartbeat ─────────────────────────────────────────────────────


async def test_heartbeat(client, dispatcher):
    data = HeartbeatData(timestamp=now_ms(), status="healthy", active_offers=2, version="0.1.0")

    assert await client.heartbeat(data) is True

    body = json.loads(dispatcher.requests_to(PATH_HEARTBEAT)[0]["body"])
    assert body["activeOffers"] == 2
    assert body["status"] == "healthy"


async def test_heartbeat_failure_returns_false(client, dispatcher):
    dispatcher.status[PATH_HEARTBEAT] = 500
    assert await client.heartbeat(HeartbeatData(timestamp=now_ms(), status="healthy")) is False


async def test_heartbeat_unreachable_returns_false():
    gateway = HttpDispatchGateway("http://127.0.0.1:9299", IDENTITY, timeout=1.0)
    assert await gateway.heartbeat(HeartbeatData(timestamp=now_ms(), status="healthy")) is False
