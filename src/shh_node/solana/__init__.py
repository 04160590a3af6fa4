"""Solana RPC integration components."""

from shh_node.solana.executor import SolanaChainExecutor
from shh_node.solana.source import SolanaWalletSource

__all__ = ["SolanaChainExecutor", "SolanaWalletSource"]
