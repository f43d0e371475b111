"""
Error types for Vault token acquisition.

Errors are split by retriability: configuration problems are fatal and never
retried, transient request failures are absorbed by the fetcher's backoff
loop, and a retrieval error is what callers see once the backoff budget is
spent.
"""

from typing import Optional


class VaultTokenError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(VaultTokenError, ValueError):
    """A required setting is missing or a setting has an invalid value."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class TransientRequestError(VaultTokenError):
    """
    A single request to Vault failed in a way worth retrying.

    Raised for transport failures (``status_code`` is None) and for
    non-2xx responses.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenRetrievalError(VaultTokenError, IOError):
    """No usable token could be obtained from Vault."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts
