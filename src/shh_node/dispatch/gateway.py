"""HTTP dispatcher client - ping, offers, claim, receipt, heartbeat."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from solders.keypair import Keypair

from shh_node.dispatch.signing import auth_headers
from shh_node.errors import (
    ClaimRequestError,
    DispatcherUnreachableError,
    OfferFetchError,
    ReceiptSubmissionError,
)
from shh_node.models.offers import ExecutionReceipt, HeartbeatData, Offer, OfferClaim

log = logging.getLogger(__name__)

PATH_PING = "/api/node/ping"
PATH_OFFERS = "/api/node/offers"
PATH_ACCEPT = "/api/node/accept"
PATH_RECEIPT = "/api/node/receipt"
PATH_HEARTBEAT = "/api/node/heartbeat"

STATUS_CONFLICT = 409  # offer already claimed by another node


class HttpDispatchGateway:
    """Authenticated request/response client for the SHH dispatcher.

    Every call is signed with the node identity key (see ``signing``).
    Uses a short-lived httpx client per request, so there is no connection
    state to tear down beyond logging on disconnect.
    """

    def __init__(
        self,
        base_url: str,
        identity: Keypair,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def node_id(self) -> str:
        return str(self._identity.pubkey())

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else ""
        headers = auth_headers(self._identity, method, path, body)
        if payload is not None:
            headers["Content-Type"] = "application/json"

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(
                method,
                f"{self._base_url}{path}",
                content=body.encode("utf-8") if body else None,
                headers=headers,
            )

    # ── Connection ────────────────────────────────────────

    async def connect(self) -> None:
        """Probe dispatcher liveness."""
        try:
            resp = await self._request("GET", PATH_PING)
        except httpx.HTTPError as exc:
            raise DispatcherUnreachableError(
                f"Failed to connect to dispatcher at {self._base_url}: {exc}"
            ) from exc

        if not resp.is_success:
            raise DispatcherUnreachableError(
                f"Dispatcher ping failed: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        log.info("Connected to dispatcher: %s", self._base_url)

    async def disconnect(self) -> None:
        log.info("Disconnected from dispatcher")

    # ── Offers ────────────────────────────────────────────

    async def list_offers(self) -> list[Offer]:
        """Fetch open offers. Malformed entries are logged and skipped."""
        try:
            resp = await self._request("GET", PATH_OFFERS)
        except httpx.HTTPError as exc:
            raise OfferFetchError(f"Failed to get offers: {exc}") from exc

        if not resp.is_success:
            raise OfferFetchError(
                f"Failed to get offers: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise OfferFetchError(f"Offer list is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise OfferFetchError(f"Offer list response is not a JSON object: {type(data).__name__}")
        raw_offers = data.get("offers") or []
        if not isinstance(raw_offers, list):
            raise OfferFetchError(f"Offer list \"offers\" is not an array: {type(raw_offers).__name__}")

        offers: list[Offer] = []
        for raw in raw_offers:
            try:
                offers.append(Offer.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed offer %r: %s", raw.get("id") if isinstance(raw, dict) else raw, exc)
        return offers

    async def claim(self, claim: OfferClaim) -> bool:
        """Claim an offer. Returns False when another node already owns it."""
        try:
            resp = await self._request("POST", PATH_ACCEPT, claim.to_dict())
        except httpx.HTTPError as exc:
            raise ClaimRequestError(f"Failed to accept offer {claim.offer_id}: {exc}") from exc

        if resp.status_code == STATUS_CONFLICT:
            return False
        if not resp.is_success:
            raise ClaimRequestError(
                f"Failed to accept offer {claim.offer_id}: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return True

    async def submit_receipt(self, receipt: ExecutionReceipt) -> None:
        try:
            resp = await self._request("POST", PATH_RECEIPT, receipt.to_dict())
        except httpx.HTTPError as exc:
            raise ReceiptSubmissionError(
                f"Failed to submit receipt for part {receipt.part_id}: {exc}"
            ) from exc

        if not resp.is_success:
            raise ReceiptSubmissionError(
                f"Failed to submit receipt for part {receipt.part_id}: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

    async def heartbeat(self, data: HeartbeatData) -> bool:
        """Send a heartbeat. Failures are logged and reported as False."""
        try:
            resp = await self._request("POST", PATH_HEARTBEAT, data.to_dict())
        except Exception as exc:
            log.warning("Heartbeat failed: %s", exc)
            return False

        if not resp.is_success:
            log.warning("Heartbeat failed: HTTP %d", resp.status_code)
            return False
        return True
