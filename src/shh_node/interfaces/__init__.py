"""Protocol interfaces for all shh_node components."""

from shh_node.interfaces.chain import ChainExecutor
from shh_node.interfaces.engine import OfferExecutor
from shh_node.interfaces.gateway import DispatchGateway
from shh_node.interfaces.wallet_source import WalletSource

__all__ = [
    "ChainExecutor",
    "OfferExecutor",
    "DispatchGateway",
    "WalletSource",
]
