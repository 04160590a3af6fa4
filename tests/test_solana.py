"""Solana adapters against a fake RPC client (no network)."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from shh_node.errors import UnsupportedAssetError
from shh_node.models.config import USDC_MINT_MAINNET
from shh_node.solana.executor import ATA_CREATION_FEE_LAMPORTS, SolanaChainExecutor
from shh_node.solana.source import SolanaWalletSource

from tests.conftest import RELAYS
from tests.factories import RECIPIENT, make_offer

MINT = Pubkey.from_string(USDC_MINT_MAINNET)


def resp(value):
    return SimpleNamespace(value=value)


class FakeRpcClient:
    """Just enough of solana.rpc.async_api.AsyncClient for the adapters."""

    def __init__(self, existing_accounts: set[Pubkey] | None = None) -> None:
        self.existing_accounts = existing_accounts or set()
        self.balances: dict[Pubkey, int] = {}
        self.token_amounts: dict[Pubkey, str] = {}
        self.sent: list[tuple] = []

    async def get_balance(self, owner):
        return resp(self.balances.get(owner, 0))

    async def get_account_info(self, pubkey):
        return resp(object() if pubkey in self.existing_accounts else None)

    async def get_token_account_balance(self, pubkey):
        return resp(SimpleNamespace(amount=self.token_amounts[pubkey]))

    async def get_slot(self):
        return resp(42)

    async def get_latest_blockhash(self, commitment=None):
        return resp(SimpleNamespace(blockhash=Hash.new_unique(), last_valid_block_height=1000))

    async def send_transaction(self, tx, opts=None):
        self.sent.append((tx, opts))
        return resp(tx.signatures[0])


def program_ids(tx) -> list[Pubkey]:
    keys = tx.message.account_keys
    return [keys[ix.program_id_index] for ix in tx.message.instructions]


# ── Chain executor ────────────────────────────────────────────────


async def test_sol_transfer_single_system_instruction():
    client = FakeRpcClient()
    executor = SolanaChainExecutor(client, USDC_MINT_MAINNET, max_retries=2)

    outcome = await executor.transfer(RELAYS[0], make_offer(amount="1000"))

    [(tx, opts)] = client.sent
    assert program_ids(tx) == [SYSTEM_PROGRAM_ID]
    assert tx.message.account_keys[0] == RELAYS[0].pubkey()
    assert outcome.signature == str(tx.signatures[0])
    assert outcome.account_creation_fee == 0
    assert opts.skip_confirmation is False
    assert opts.max_retries == 2
    assert opts.last_valid_block_height == 1000


async def test_usdc_transfer_creates_missing_token_account():
    client = FakeRpcClient()
    executor = SolanaChainExecutor(client, USDC_MINT_MAINNET)

    outcome = await executor.transfer(RELAYS[0], make_offer(asset="USDC", amount="2500000"))

    [(tx, _)] = client.sent
    assert program_ids(tx) == [ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID]
    assert outcome.account_creation_fee == ATA_CREATION_FEE_LAMPORTS


async def test_usdc_transfer_to_existing_token_account():
    dest_ata = get_associated_token_address(Pubkey.from_string(RECIPIENT), MINT)
    client = FakeRpcClient(existing_accounts={dest_ata})
    executor = SolanaChainExecutor(client, USDC_MINT_MAINNET)

    outcome = await executor.transfer(RELAYS[0], make_offer(asset="USDC", amount="2500000"))

    [(tx, _)] = client.sent
    assert program_ids(tx) == [TOKEN_PROGRAM_ID]
    assert outcome.account_creation_fee == 0


async def test_unsupported_asset_raises():
    executor = SolanaChainExecutor(FakeRpcClient(), USDC_MINT_MAINNET)
    with pytest.raises(UnsupportedAssetError):
        await executor.transfer(RELAYS[0], make_offer(asset="BTC"))


# ── Wallet source ─────────────────────────────────────────────────


async def test_wallet_source_balances():
    owner = RELAYS[0].pubkey()
    ata = get_associated_token_address(owner, MINT)
    client = FakeRpcClient(existing_accounts={ata})
    client.balances[owner] = 123
    client.token_amounts[ata] = "4500000"
    source = SolanaWalletSource(client, USDC_MINT_MAINNET)

    assert await source.get_native_balance(owner) == 123
    assert await source.get_token_balance(owner) == 4_500_000
    assert await source.get_slot() == 42


async def test_wallet_source_missing_token_account():
    source = SolanaWalletSource(FakeRpcClient(), USDC_MINT_MAINNET)
    assert await source.get_token_balance(RELAYS[1].pubkey()) is None
