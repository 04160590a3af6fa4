"""Dispatcher integration components."""

from shh_node.dispatch.gateway import HttpDispatchGateway
from shh_node.dispatch.subscription import OfferSubscription

__all__ = ["HttpDispatchGateway", "OfferSubscription"]
