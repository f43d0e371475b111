"""
Token retrieval from the Vault GCP secrets engine.

This module builds the authenticated request, runs it under an exponential
backoff policy and parses the response into an ``AccessToken``.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import RetryError, Retrying, before_sleep_log, retry_if_exception_type

from vault_gcp_token.access_token import AccessToken
from vault_gcp_token.backoff import STOP, ExponentialBackOff
from vault_gcp_token.config import VaultSettings
from vault_gcp_token.errors import TokenRetrievalError, TransientRequestError
from vault_gcp_token.utils.logging import get_logger, log_with_context

logger = get_logger(__name__)

VAULT_TOKEN_HEADER = "X-Vault-Token"

# Used when Vault does not report an expiration for the token
DEFAULT_TOKEN_EXPIRATION_MILLIS = 3600000


class _BackOffDriver:
    """
    Adapts an ``ExponentialBackOff`` to tenacity's stop and wait hooks.

    The policy is consulted once per failed attempt, whichever hook tenacity
    calls first.
    """

    def __init__(self, back_off: ExponentialBackOff):
        self._back_off = back_off
        self._attempt = 0
        self._interval = STOP

    def _poll(self, retry_state) -> float:
        if retry_state.attempt_number != self._attempt:
            self._attempt = retry_state.attempt_number
            self._interval = self._back_off.next_back_off_millis()
        return self._interval

    def stop(self, retry_state) -> bool:
        return self._poll(retry_state) == STOP

    def wait(self, retry_state) -> float:
        interval = self._poll(retry_state)
        if interval == STOP:
            return 0.0
        return interval / 1000.0


class VaultTokenFetcher:
    """Fetches GCP access tokens from Vault over a shared HTTP session."""

    def __init__(
        self,
        settings: VaultSettings,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        """Initialize a new fetcher.

        Args:
            settings: Resolved Vault settings.
            session: HTTP session to reuse; a new one is created if omitted
                and released by ``close``.
            sleep: Called with the wait in seconds between attempts.
            clock: Monotonic clock (seconds) driving the backoff budget.
            now: Wall clock (epoch seconds) used to stamp token issuance.
            rng: Random source for backoff randomization.
        """
        self.settings = settings
        self._owns_session = session is None
        self.session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._rng = rng

    @property
    def url(self) -> str:
        return self.settings.url

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            VAULT_TOKEN_HEADER: self.settings.vault_token.get_secret_value(),
        }

    def _request_once(self) -> requests.Response:
        logger.debug("Requesting GCP token from Vault at %s", self.url)

        try:
            response = self.session.get(
                self.url,
                headers=self._get_headers(),
                timeout=self.settings.request_timeout_seconds,
            )
        except requests.RequestException as e:
            raise TransientRequestError(
                f"Request to Vault failed: {type(e).__name__}: {e}"
            ) from e

        if not response.ok:
            raise TransientRequestError(
                f"Vault returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return response

    def retrieve_token(self) -> AccessToken:
        """
        Fetch a fresh token, retrying transient failures with backoff.

        Returns:
            The parsed access token.

        Raises:
            TokenRetrievalError: If the backoff budget is exhausted or the
                response does not carry a token.
        """
        driver = _BackOffDriver(
            ExponentialBackOff.from_settings(self.settings, clock=self._clock, rng=self._rng)
        )
        retryer = Retrying(
            stop=driver.stop,
            wait=driver.wait,
            retry=retry_if_exception_type(TransientRequestError),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        try:
            response = retryer(self._request_once)
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            cause = e.last_attempt.exception()
            log_with_context(
                logger, "error", "Giving up on Vault token retrieval",
                url=self.url, attempts=attempts,
                status_code=getattr(cause, "status_code", None),
            )
            raise TokenRetrievalError(
                f"Failed to acquire token from {self.url} after {attempts} attempts: {cause}",
                status_code=getattr(cause, "status_code", None),
                attempts=attempts,
            ) from cause

        token = self._parse_response(response)
        log_with_context(
            logger, "info", "Acquired GCP token from Vault",
            url=self.url, expiration_time_millis=token.expiration_time_millis,
        )
        return token

    def _parse_response(self, response: requests.Response) -> AccessToken:
        issued_at_millis = int(self._now() * 1000)

        try:
            body = response.json()
        except ValueError as e:
            raise TokenRetrievalError(
                f"Vault response from {self.url} is not valid JSON",
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict):
            raise TokenRetrievalError(
                f"Vault response from {self.url} is not a JSON object",
                status_code=response.status_code,
            )

        data = body.get("data")
        if not isinstance(data, dict):
            data = {}

        token = data.get("token") or body.get("token")
        if not isinstance(token, str) or not token:
            raise TokenRetrievalError(
                f"Vault response from {self.url} does not contain a token",
                status_code=response.status_code,
            )

        return AccessToken(token, self._expiration_millis(data, issued_at_millis))

    @staticmethod
    def _expiration_millis(data: Dict[str, Any], issued_at_millis: int) -> int:
        expires_at = data.get("expires_at_seconds")
        if isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool) and expires_at > 0:
            return int(expires_at * 1000)

        ttl = data.get("token_ttl")
        if isinstance(ttl, (int, float)) and not isinstance(ttl, bool) and ttl > 0:
            return issued_at_millis + int(ttl * 1000)

        return issued_at_millis + DEFAULT_TOKEN_EXPIRATION_MILLIS

    def close(self) -> None:
        """Release the HTTP session if this fetcher created it."""
        if self._owns_session:
            self.session.close()
