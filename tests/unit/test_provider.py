"""
Unit tests for the caching Vault access token provider.
"""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests
import responses

from vault_gcp_token.access_token import AccessToken
from vault_gcp_token.config import Configuration
from vault_gcp_token.errors import ConfigurationError, TokenRetrievalError
from vault_gcp_token.provider import VaultGCPAccessTokenProvider


def _token_response(token):
    return {"data": {"token": token}}


class TestVaultGCPAccessTokenProvider:
    """Test suite for VaultGCPAccessTokenProvider."""

    @pytest.fixture(autouse=True)
    def _setup(self, vault_conf, fake_clock, token_url):
        self.conf = vault_conf
        self.clock = fake_clock
        self.url = token_url
        self.provider = VaultGCPAccessTokenProvider(
            vault_conf, sleep=fake_clock.sleep, clock=fake_clock
        )
        yield
        self.provider.close()

    @responses.activate
    def test_get_access_token_cached(self):
        """A second call is served from the cache without a request."""
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)

        first = self.provider.get_access_token()
        second = self.provider.get_access_token()

        assert first is second
        assert first.token == "t1"
        assert len(responses.calls) == 1

    @responses.activate
    def test_refresh_always_fetches(self):
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)
        responses.add(responses.GET, self.url, json=_token_response("t2"), status=200)

        assert self.provider.get_access_token().token == "t1"
        self.provider.refresh()

        assert len(responses.calls) == 2
        assert self.provider.get_access_token().token == "t2"
        assert len(responses.calls) == 2

    @responses.activate
    def test_refresh_on_empty_cache(self):
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)

        self.provider.refresh()

        assert self.provider.get_access_token().token == "t1"
        assert len(responses.calls) == 1

    @responses.activate
    def test_refresh_failure_keeps_previous_token(self):
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)
        self.provider.get_access_token()

        responses.reset()
        responses.add(responses.GET, self.url, status=500)

        with pytest.raises(TokenRetrievalError):
            self.provider.refresh()

        assert self.provider.get_access_token().token == "t1"

    @responses.activate
    def test_first_fetch_failure_leaves_cache_empty(self):
        responses.add(responses.GET, self.url, status=503)

        with pytest.raises(TokenRetrievalError):
            self.provider.get_access_token()

        responses.reset()
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)

        assert self.provider.get_access_token().token == "t1"

    def test_get_conf_returns_attached_configuration(self):
        assert self.provider.get_conf() is self.conf

    @responses.activate
    def test_set_conf_with_new_settings_drops_token(self, vault_values):
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)
        self.provider.get_access_token()

        other_url = "https://vault.example.com/v1/gcp/token/svc2"
        responses.add(responses.GET, other_url, json=_token_response("t2"), status=200)
        vault_values["vault.service-account"] = "svc2"

        self.provider.set_conf(Configuration(vault_values))

        assert self.provider.get_access_token().token == "t2"

    @responses.activate
    def test_set_conf_with_same_settings_keeps_token(self, vault_values):
        responses.add(responses.GET, self.url, json=_token_response("t1"), status=200)
        self.provider.get_access_token()

        self.provider.set_conf(Configuration(dict(vault_values)))
        self.provider.get_access_token()

        assert len(responses.calls) == 1

    @pytest.mark.parametrize("missing_key", [
        "vault.address.uri",
        "vault.token",
        "vault.service-account",
    ])
    def test_incomplete_configuration_fails_before_request(self, vault_values, missing_key):
        del vault_values[missing_key]

        with responses.RequestsMock() as rsps:
            with pytest.raises(ConfigurationError):
                VaultGCPAccessTokenProvider(Configuration(vault_values))
            assert len(rsps.calls) == 0

    def test_unconfigured_provider(self):
        with VaultGCPAccessTokenProvider() as provider:
            assert provider.get_conf() is None
            with pytest.raises(ConfigurationError):
                provider.get_access_token()
            with pytest.raises(ConfigurationError):
                provider.refresh()

    def test_concurrent_first_fetch_happens_once(self):
        """Threads racing on an empty cache share a single fetch."""
        calls = []

        def slow_retrieve():
            calls.append(threading.current_thread().name)
            time.sleep(0.05)
            return AccessToken("shared", 1)

        with patch("vault_gcp_token.provider.VaultTokenFetcher") as mock_fetcher_cls:
            mock_fetcher_cls.return_value.retrieve_token.side_effect = slow_retrieve
            provider = VaultGCPAccessTokenProvider(self.conf)

            results = []
            threads = [
                threading.Thread(target=lambda: results.append(provider.get_access_token()))
                for _ in range(8)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(token is results[0] for token in results)

    def test_refresh_calls_are_serialized(self):
        """Concurrent refreshes and a first fetch never overlap."""
        guard = threading.Lock()
        active = [0]
        peak = [0]
        calls = []

        def slow_retrieve():
            with guard:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
                calls.append(len(calls) + 1)
                token = AccessToken(f"t{len(calls)}", 1)
            time.sleep(0.02)
            with guard:
                active[0] -= 1
            return token

        with patch("vault_gcp_token.provider.VaultTokenFetcher") as mock_fetcher_cls:
            mock_fetcher_cls.return_value.retrieve_token.side_effect = slow_retrieve
            provider = VaultGCPAccessTokenProvider(self.conf)

            results = []
            threads = [threading.Thread(target=provider.refresh) for _ in range(5)]
            threads.append(
                threading.Thread(target=lambda: results.append(provider.get_access_token()))
            )
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert peak[0] == 1
        assert 5 <= len(calls) <= 6
        assert len(results) == 1
        assert provider.get_access_token().token == f"t{len(calls)}"

    def test_close_releases_owned_session(self):
        with patch("vault_gcp_token.provider.requests.Session") as mock_session_cls:
            provider = VaultGCPAccessTokenProvider(self.conf)
            provider.close()

        mock_session_cls.return_value.close.assert_called_once()

    def test_close_leaves_shared_session_open(self):
        session = MagicMock(spec=requests.Session)

        with VaultGCPAccessTokenProvider(self.conf, session=session):
            pass

        session.close.assert_not_called()


class TestAccessToken:
    """Test suite for the AccessToken value type."""

    def test_expiry_helpers(self):
        token = AccessToken("t", 10_000)

        assert token.expires_in_millis(now_millis=4_000) == 6_000
        assert not token.is_expired(now_millis=4_000)
        assert token.is_expired(now_millis=10_000)
        assert token.is_expired(now_millis=4_000, skew_millis=7_000)

    def test_repr_hides_token(self):
        assert "secret-value" not in repr(AccessToken("secret-value", 1))

    def test_immutable(self):
        token = AccessToken("t", 1)

        with pytest.raises(AttributeError):
            token.token = "other"
