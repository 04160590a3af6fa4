"""Relay wallet management."""

from shh_node.wallet.keys import generate_keypair, keypair_from_secret, secret_to_base64
from shh_node.wallet.pool import WalletPool

__all__ = ["WalletPool", "generate_keypair", "keypair_from_secret", "secret_to_base64"]
