"""Solana wallet source - balance and slot queries over JSON-RPC."""

from __future__ import annotations

import logging

from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

log = logging.getLogger(__name__)


class SolanaWalletSource:
    """Read-only account queries against a Solana RPC node."""

    def __init__(self, client: AsyncClient, token_mint: str) -> None:
        self._client = client
        self._mint = Pubkey.from_string(token_mint)

    async def get_native_balance(self, owner: Pubkey) -> int:
        resp = await self._client.get_balance(owner)
        return resp.value

    async def get_token_balance(self, owner: Pubkey) -> int | None:
        """Token balance of the owner's associated token account, None if absent."""
        ata = get_associated_token_address(owner, self._mint)
        info = await self._client.get_account_info(ata)
        if info.value is None:
            return None
        resp = await self._client.get_token_account_balance(ata)
        return int(resp.value.amount)

    async def get_slot(self) -> int:
        resp = await self._client.get_slot()
        return resp.value
