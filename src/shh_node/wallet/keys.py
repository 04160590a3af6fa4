"""Relay and identity key loading from base64-encoded secret keys."""

from __future__ import annotations

import base64
import binascii
import json

from solders.keypair import Keypair

from shh_node.errors import ConfigurationError

SECRET_KEY_LENGTH = 64  # ed25519 seed + public key


def keypair_from_secret(secret: str, label: str = "secret key") -> Keypair:
    """Decode a base64 64-byte secret key into a Keypair."""
    if not secret or not secret.strip():
        raise ConfigurationError(f"{label} is empty")
    try:
        raw = base64.b64decode(secret.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError(f"{label} is not valid base64") from exc
    if len(raw) != SECRET_KEY_LENGTH:
        raise ConfigurationError(
            f"{label} must decode to {SECRET_KEY_LENGTH} bytes, got {len(raw)}"
        )
    try:
        return Keypair.from_bytes(raw)
    except Exception as exc:
        raise ConfigurationError(f"{label} is not a valid ed25519 keypair: {exc}") from exc


def parse_relay_signers(raw: str) -> list[str]:
    """Parse the RELAY_SIGNERS JSON array of base64 secrets."""
    try:
        secrets = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError("RELAY_SIGNERS must be valid JSON") from exc
    if not isinstance(secrets, list) or not all(isinstance(s, str) for s in secrets):
        raise ConfigurationError("RELAY_SIGNERS must be a JSON array of strings")
    return secrets


def secret_to_base64(keypair: Keypair) -> str:
    return base64.b64encode(bytes(keypair)).decode("ascii")


def generate_keypair() -> Keypair:
    return Keypair()
