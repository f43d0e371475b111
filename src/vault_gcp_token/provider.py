"""
Caching access token provider backed by Vault.

This is the entry point used by storage clients: ``get_access_token`` returns
the cached token (fetching it on first use) and ``refresh`` always fetches a
new one.
"""

import threading
from typing import Optional

import requests

from vault_gcp_token.access_token import AccessToken
from vault_gcp_token.config import Configuration, VaultSettings, resolve_settings
from vault_gcp_token.errors import ConfigurationError
from vault_gcp_token.fetcher import VaultTokenFetcher
from vault_gcp_token.utils.logging import get_logger

logger = get_logger(__name__)


class VaultGCPAccessTokenProvider:
    """
    Provides GCP access tokens minted by the Vault GCP secrets engine.

    Thread safety:
        One lock serializes the first fetch, ``refresh`` and ``set_conf``.
        Concurrent callers of ``get_access_token`` on an empty cache cause
        exactly one request sequence and all receive the same token.

    The cached token is never re-fetched implicitly; callers that care about
    staleness check ``AccessToken.is_expired`` and call ``refresh``.
    """

    def __init__(
        self,
        conf: Optional[Configuration] = None,
        session: Optional[requests.Session] = None,
        **fetcher_options,
    ):
        """
        Args:
            conf: Configuration to attach right away (see ``set_conf``)
            session: HTTP session to share; when omitted the provider owns one
                and closes it in ``close``
            **fetcher_options: Passed to ``VaultTokenFetcher`` (sleep, clock,
                now, rng)
        """
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._fetcher_options = fetcher_options
        self._lock = threading.Lock()

        self._conf: Optional[Configuration] = None
        self._settings: Optional[VaultSettings] = None
        self._fetcher: Optional[VaultTokenFetcher] = None
        self._current_token: Optional[AccessToken] = None

        if conf is not None:
            try:
                self.set_conf(conf)
            except ConfigurationError:
                self.close()
                raise

    def set_conf(self, conf: Configuration) -> None:
        """
        Attach a configuration.

        Settings are resolved immediately so an incomplete configuration fails
        here, before any request is made. A cached token is dropped when the
        resolved settings change.

        Raises:
            ConfigurationError: If a required key is missing or invalid
        """
        settings = resolve_settings(conf)

        with self._lock:
            if self._settings is not None and settings != self._settings:
                logger.info("Vault settings changed, dropping cached token")
                self._current_token = None

            self._conf = conf
            self._settings = settings
            self._fetcher = VaultTokenFetcher(settings, session=self._session, **self._fetcher_options)

    def get_conf(self) -> Optional[Configuration]:
        """Return the last attached configuration."""
        return self._conf

    def _require_fetcher(self) -> VaultTokenFetcher:
        if self._fetcher is None:
            raise ConfigurationError("No configuration attached; call set_conf first")
        return self._fetcher

    def get_access_token(self) -> AccessToken:
        """
        Return the cached token, fetching it on first use.

        Raises:
            ConfigurationError: If no configuration has been attached
            TokenRetrievalError: If the first fetch fails
        """
        token = self._current_token
        if token is not None:
            return token

        with self._lock:
            if self._current_token is None:
                self._current_token = self._require_fetcher().retrieve_token()
            return self._current_token

    def refresh(self) -> None:
        """
        Fetch a new token and replace the cached one.

        On failure the previously cached token is kept.

        Raises:
            ConfigurationError: If no configuration has been attached
            TokenRetrievalError: If the fetch fails
        """
        with self._lock:
            self._current_token = self._require_fetcher().retrieve_token()
        logger.debug("Refreshed cached Vault token")

    def close(self) -> None:
        """Release the HTTP session if this provider created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "VaultGCPAccessTokenProvider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
