"""
vault-gcp-token.

Obtains short-lived GCP access tokens from the HashiCorp Vault GCP secrets
engine, caches them in memory and refreshes them on demand.
"""

# Package version
__version__ = "1.0.0"

from vault_gcp_token.access_token import AccessToken
from vault_gcp_token.backoff import STOP, ExponentialBackOff
from vault_gcp_token.config import (
    Configuration,
    VaultSettings,
    load_configuration,
    resolve_settings,
)
from vault_gcp_token.errors import (
    ConfigurationError,
    TokenRetrievalError,
    TransientRequestError,
    VaultTokenError,
)
from vault_gcp_token.fetcher import VaultTokenFetcher
from vault_gcp_token.provider import VaultGCPAccessTokenProvider
from vault_gcp_token.utils.logging import configure_logging, get_logger, log_with_context

__all__ = [
    "__version__",
    # Provider
    "VaultGCPAccessTokenProvider",
    "VaultTokenFetcher",
    "AccessToken",
    # Configuration
    "Configuration",
    "VaultSettings",
    "load_configuration",
    "resolve_settings",
    # Backoff
    "ExponentialBackOff",
    "STOP",
    # Errors
    "VaultTokenError",
    "ConfigurationError",
    "TransientRequestError",
    "TokenRetrievalError",
    # Logging
    "configure_logging",
    "get_logger",
    "log_with_context",
]
