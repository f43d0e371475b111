"""
Common test fixtures for the vault-gcp-token tests.
"""

import pytest

from vault_gcp_token.config import Configuration

VAULT_ADDRESS = "https://vault.example.com"
SERVICE_ACCOUNT = "svc1"
TOKEN_URL = f"{VAULT_ADDRESS}/v1/gcp/token/{SERVICE_ACCOUNT}"


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def vault_values():
    """Complete configuration with deterministic backoff."""
    return {
        "vault.address.uri": VAULT_ADDRESS,
        "vault.token": "s.test-vault-token",
        "vault.service-account": SERVICE_ACCOUNT,
        "vault.backoff.randomization-factor": 0.0,
    }


@pytest.fixture
def vault_conf(vault_values):
    return Configuration(vault_values)


@pytest.fixture
def token_url():
    return TOKEN_URL
