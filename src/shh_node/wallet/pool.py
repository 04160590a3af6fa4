"""Relay wallet pool - identity key, round-robin relay rotation, balances."""

from __future__ import annotations

import logging
from typing import Sequence

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from shh_node.errors import ConfigurationError, EmptyPoolError, InsufficientFundsError
from shh_node.interfaces.wallet_source import WalletSource
from shh_node.models.records import LAMPORTS_PER_SOL, USDC_DECIMALS, WalletBalance
from shh_node.wallet.keys import keypair_from_secret

log = logging.getLogger(__name__)

MIN_BALANCE_SOL = 0.01  # below this a relay wallet counts as under-funded
ACTIVE_BALANCE_SOL = 0.001  # below this a relay wallet counts as inactive


class WalletPool:
    """Holds the node identity key and an ordered set of relay keys.

    Relay selection is plain round-robin: no affinity to the offer and no
    weighting by balance. The cursor lives on the instance and restarts at
    zero with the process. Reading and advancing it happen with no await in
    between, which is all the exclusion a single event loop needs; a
    threaded caller would have to add a lock.
    """

    def __init__(
        self,
        identity: Keypair,
        relays: Sequence[Keypair],
        source: WalletSource | None = None,
        min_balance_sol: float = MIN_BALANCE_SOL,
    ) -> None:
        self.identity = identity
        self._relays: list[Keypair] = list(relays)
        self._source = source
        self._min_balance_sol = min_balance_sol
        self._cursor = 0

    @classmethod
    def from_secrets(
        cls,
        identity_secret: str,
        relay_secrets: Sequence[str] | None,
        source: WalletSource | None = None,
        min_balance_sol: float = MIN_BALANCE_SOL,
    ) -> WalletPool:
        """Load the pool from base64 secrets. Raises ConfigurationError."""
        if not identity_secret:
            raise ConfigurationError("NODE_SIGNER_SECRET is required")
        identity = keypair_from_secret(identity_secret, "node signer secret")
        log.info("Node signer loaded: %s", identity.pubkey())

        if relay_secrets is None:
            raise ConfigurationError("RELAY_SIGNERS is required")
        if isinstance(relay_secrets, str) or not isinstance(relay_secrets, Sequence):
            raise ConfigurationError("RELAY_SIGNERS must be a list of secrets")
        if len(relay_secrets) == 0:
            raise ConfigurationError("At least one relay signer is required")

        relays = []
        for index, secret in enumerate(relay_secrets, start=1):
            keypair = keypair_from_secret(secret, f"relay signer {index}")
            relays.append(keypair)
            log.info("Relay wallet %d loaded: %s", index, keypair.pubkey())

        return cls(identity, relays, source=source, min_balance_sol=min_balance_sol)

    def __len__(self) -> int:
        return len(self._relays)

    @property
    def identity_pubkey(self) -> str:
        return str(self.identity.pubkey())

    @property
    def relay_pubkeys(self) -> list[str]:
        return [str(kp.pubkey()) for kp in self._relays]

    @property
    def cursor(self) -> int:
        return self._cursor

    # ── Selection ─────────────────────────────────────────

    def next_wallet(self) -> Keypair:
        """Return the relay at the cursor and advance the cursor by one."""
        if not self._relays:
            raise EmptyPoolError("No relay wallets available")
        wallet = self._relays[self._cursor]
        self._cursor = (self._cursor + 1) % len(self._relays)
        return wallet

    def wallet_by_index(self, index: int) -> Keypair | None:
        if index < 0 or index >= len(self._relays):
            return None
        return self._relays[index]

    # ── Balances ──────────────────────────────────────────

    async def balances(self) -> list[WalletBalance]:
        """Query every relay's balance. One wallet's failure never aborts the batch."""
        if self._source is None:
            raise ConfigurationError("WalletPool has no wallet source for balance queries")

        results: list[WalletBalance] = []
        for index, keypair in enumerate(self._relays, start=1):
            pubkey = keypair.pubkey()
            try:
                lamports = await self._source.get_native_balance(pubkey)
            except Exception as exc:
                log.warning("Failed to get balance for wallet %d (%s): %s", index, pubkey, exc)
                results.append(WalletBalance(
                    public_key=str(pubkey), balance_sol=0.0, is_active=False,
                ))
                continue

            balance_sol = lamports / LAMPORTS_PER_SOL
            results.append(WalletBalance(
                public_key=str(pubkey),
                balance_sol=balance_sol,
                balance_usdc=await self._token_balance(pubkey),
                is_active=balance_sol >= ACTIVE_BALANCE_SOL,
            ))
        return results

    async def _token_balance(self, pubkey: Pubkey) -> float | None:
        """Best-effort stable-token balance; unknown on any failure."""
        try:
            units = await self._source.get_token_balance(pubkey)
        except Exception as exc:
            log.debug("Token balance lookup failed for %s: %s", pubkey, exc)
            return None
        if units is None:
            return None
        return units / 10 ** USDC_DECIMALS

    async def validate_balances(self) -> list[WalletBalance]:
        """Fail only when every relay wallet is under-funded."""
        balances = await self.balances()
        low = [b for b in balances if b.balance_sol < self._min_balance_sol]

        if low:
            log.warning(
                "Low balance wallets (< %s SOL): %s",
                self._min_balance_sol,
                ", ".join(b.public_key for b in low),
            )

        if len(low) == len(balances):
            raise InsufficientFundsError(
                "All wallets have insufficient balance. Please fund your relay wallets."
            )

        log.info("%d/%d wallets properly funded", len(balances) - len(low), len(balances))
        return balances
