"""Offer lifecycle coordination."""

from shh_node.node.coordinator import OfferCoordinator

__all__ = ["OfferCoordinator"]
