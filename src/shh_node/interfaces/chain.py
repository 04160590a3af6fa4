"""ChainExecutor protocol - builds, submits and confirms asset transfers."""

from __future__ import annotations

from typing import Protocol

from solders.keypair import Keypair

from shh_node.models.offers import Offer
from shh_node.models.records import TransferOutcome


class ChainExecutor(Protocol):
    """Performs the on-chain transfer for an offer from a given relay wallet."""

    async def transfer(self, signer: Keypair, offer: Offer) -> TransferOutcome:
        """Transfer offer.amount of offer.asset to offer.recipient.

        Raises on construction, submission or confirmation failure.
        """
        ...
