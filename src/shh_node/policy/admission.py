"""Admission policy - decides whether an inbound offer is worth claiming."""

from __future__ import annotations

import logging

from shh_node.models.offers import AssetKind, Offer
from shh_node.models.records import AdmissionResult

log = logging.getLogger(__name__)


class AdmissionPolicy:
    """Evaluates offers against local capacity and limits.

    Checks, in order:
    1. Node is still accepting offers (not shutting down)
    2. Offer is not already active on this node
    3. SOL amount is within the per-transaction ceiling
    4. Active + in-flight claims are below max_concurrent
    5. Offer has not expired

    The per-transaction ceiling only applies to SOL offers.
    """

    def __init__(self, max_concurrent: int = 5, per_tx_lamports: int = 500_000_000) -> None:
        self._max_concurrent = max_concurrent
        self._per_tx_lamports = per_tx_lamports

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def per_tx_lamports(self) -> int:
        return self._per_tx_lamports

    def evaluate(
        self,
        offer: Offer,
        *,
        in_flight: int,
        now_ms: int,
        accepting: bool = True,
        already_active: bool = False,
    ) -> AdmissionResult:
        if not accepting:
            return AdmissionResult(False, "shutting_down", offer.id)

        if already_active:
            return AdmissionResult(False, "already_active", offer.id)

        if offer.asset == AssetKind.SOL and offer.amount_units > self._per_tx_lamports:
            log.warning(
                "Offer %s exceeds per-tx limit: %s > %d",
                offer.id, offer.amount, self._per_tx_lamports,
            )
            return AdmissionResult(False, "exceeds_per_tx_limit", offer.id)

        if in_flight >= self._max_concurrent:
            log.warning("At capacity: %d/%d", in_flight, self._max_concurrent)
            return AdmissionResult(False, "at_capacity", offer.id)

        if offer.is_expired(now_ms):
            log.warning("Offer %s has expired", offer.id)
            return AdmissionResult(False, "expired", offer.id)

        return AdmissionResult(True, "admitted", offer.id)
