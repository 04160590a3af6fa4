"""Exception taxonomy for the relay node."""

from __future__ import annotations


class ShhNodeError(Exception):
    """Base class for all relay node errors."""


class ConfigurationError(ShhNodeError):
    """Missing or malformed startup configuration (keys, settings)."""


# ── Wallet pool ───────────────────────────────────────────


class EmptyPoolError(ShhNodeError):
    """No relay wallets are loaded."""


class InsufficientFundsError(ShhNodeError):
    """Every relay wallet is below the minimum native balance."""


# ── Dispatcher ────────────────────────────────────────────


class DispatcherError(ShhNodeError):
    """Base class for dispatcher request failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DispatcherUnreachableError(DispatcherError):
    """The dispatcher liveness probe failed."""


class ClaimRequestError(DispatcherError):
    """A claim request failed for a reason other than a lost race."""


class ReceiptSubmissionError(DispatcherError):
    """The dispatcher did not accept an execution receipt."""


class OfferFetchError(DispatcherError):
    """Listing open offers failed."""


# ── Execution ─────────────────────────────────────────────


class ExecutionError(ShhNodeError):
    """Base class for failures inside a single transfer attempt."""


class UnsupportedAssetError(ExecutionError):
    """The offer names an asset this node cannot transfer."""


class ConfirmationTimeoutError(ExecutionError):
    """The transfer was not confirmed within the configured window."""
