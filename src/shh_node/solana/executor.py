"""Solana chain executor - SOL and SPL token transfers from relay wallets."""

from __future__ import annotations

import logging

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams as SystemTransferParams
from solders.system_program import transfer as system_transfer
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferParams as TokenTransferParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer as token_transfer,
)

from shh_node.errors import UnsupportedAssetError
from shh_node.models.offers import AssetKind, Offer
from shh_node.models.records import TransferOutcome

log = logging.getLogger(__name__)

# Estimated rent paid when the recipient has no associated token account yet
ATA_CREATION_FEE_LAMPORTS = 2_000_000  # 0.002 SOL


class SolanaChainExecutor:
    """Builds, signs, submits and confirms transfers via a Solana RPC node.

    SOL offers become a single system-program transfer. USDC offers become
    an SPL token transfer between associated token accounts, preceded by
    creation of the recipient's account when it does not exist yet (paid by
    the relay wallet).
    """

    def __init__(
        self,
        client: AsyncClient,
        token_mint: str,
        commitment: str = "confirmed",
        max_retries: int = 3,
    ) -> None:
        self._client = client
        self._mint = Pubkey.from_string(token_mint)
        self._commitment = Commitment(commitment)
        self._max_retries = max_retries

    async def transfer(self, signer: Keypair, offer: Offer) -> TransferOutcome:
        recipient = Pubkey.from_string(offer.recipient)

        if offer.asset == AssetKind.SOL:
            instructions = [self._sol_transfer(signer.pubkey(), recipient, offer.amount_units)]
            creation_fee = 0
        elif offer.asset == AssetKind.USDC:
            instructions, creation_fee = await self._token_transfer(
                signer.pubkey(), recipient, offer.amount_units,
            )
        else:
            raise UnsupportedAssetError(f"Unsupported asset: {offer.asset}")

        signature = await self._send(signer, instructions)
        return TransferOutcome(signature=signature, account_creation_fee=creation_fee)

    def _sol_transfer(self, source: Pubkey, recipient: Pubkey, lamports: int) -> Instruction:
        return system_transfer(SystemTransferParams(
            from_pubkey=source, to_pubkey=recipient, lamports=lamports,
        ))

    async def _token_transfer(
        self, owner: Pubkey, recipient: Pubkey, amount: int,
    ) -> tuple[list[Instruction], int]:
        source_ata = get_associated_token_address(owner, self._mint)
        dest_ata = get_associated_token_address(recipient, self._mint)

        instructions: list[Instruction] = []
        creation_fee = 0

        existing = await self._client.get_account_info(dest_ata)
        if existing.value is None:
            log.info("Creating token account for recipient: %s", dest_ata)
            instructions.append(create_associated_token_account(owner, recipient, self._mint))
            creation_fee = ATA_CREATION_FEE_LAMPORTS

        instructions.append(token_transfer(TokenTransferParams(
            program_id=TOKEN_PROGRAM_ID,
            source=source_ata,
            dest=dest_ata,
            owner=owner,
            amount=amount,
        )))
        return instructions, creation_fee

    async def _send(self, signer: Keypair, instructions: list[Instruction]) -> str:
        latest = (await self._client.get_latest_blockhash(self._commitment)).value
        tx = Transaction(
            [signer],
            Message(instructions, signer.pubkey()),
            latest.blockhash,
        )
        resp = await self._client.send_transaction(
            tx,
            opts=TxOpts(
                skip_confirmation=False,
                preflight_commitment=self._commitment,
                max_retries=self._max_retries,
                last_valid_block_height=latest.last_valid_block_height,
            ),
        )
        return str(resp.value)
