"""Dispatcher request authentication.

Each request is signed with the node identity key over
``timestamp + method + path + body``, binding the signature to one endpoint
and one payload. Checking the timestamp window is the dispatcher's job.
"""

from __future__ import annotations

import base64

from solders.keypair import Keypair

from shh_node.models.offers import now_ms

HEADER_PUBKEY = "X-Node-Pubkey"
HEADER_SIGNATURE = "X-Signature"
HEADER_TIMESTAMP = "X-Timestamp"


def signing_message(timestamp: int, method: str, path: str, body: str) -> bytes:
    return f"{timestamp}{method}{path}{body}".encode("utf-8")


def auth_headers(
    identity: Keypair,
    method: str,
    path: str,
    body: str,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Build the X-Node-Pubkey / X-Signature / X-Timestamp header set."""
    ts = timestamp if timestamp is not None else now_ms()
    signature = identity.sign_message(signing_message(ts, method, path, body))
    return {
        HEADER_PUBKEY: str(identity.pubkey()),
        HEADER_SIGNATURE: base64.b64encode(bytes(signature)).decode("ascii"),
        HEADER_TIMESTAMP: str(ts),
    }
