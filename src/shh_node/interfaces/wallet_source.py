"""WalletSource protocol - balance and liveness queries against the chain."""

from __future__ import annotations

from typing import Protocol

from solders.pubkey import Pubkey


class WalletSource(Protocol):
    """Read-only account queries used by the wallet pool and startup checks."""

    async def get_native_balance(self, owner: Pubkey) -> int:
        """Native balance in lamports. Raises on RPC failure."""
        ...

    async def get_token_balance(self, owner: Pubkey) -> int | None:
        """Stable-token balance in smallest units, None if the owner has no token account."""
        ...

    async def get_slot(self) -> int:
        """Current slot, used as a liveness probe."""
        ...
