"""
Configuration handling for Vault token acquisition.

A ``Configuration`` is a flat, string-keyed bag of settings (``vault.*``
keys) that can be built from a mapping, a YAML file or the environment.
``resolve_settings`` validates it into an immutable ``VaultSettings`` model.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from vault_gcp_token.errors import ConfigurationError
from vault_gcp_token.utils.logging import get_logger

logger = get_logger(__name__)

VAULT_PREFIX = "vault."
BACKOFF_PREFIX = VAULT_PREFIX + "backoff."

ADDRESS_URI_KEY = VAULT_PREFIX + "address.uri"
ADDRESS_PATH_KEY = VAULT_PREFIX + "address.path"
TOKEN_KEY = VAULT_PREFIX + "token"
SERVICE_ACCOUNT_KEY = VAULT_PREFIX + "service-account"
REQUEST_TIMEOUT_KEY = VAULT_PREFIX + "request.timeout"

BACKOFF_INITIAL_KEY = BACKOFF_PREFIX + "initial"
BACKOFF_MAX_KEY = BACKOFF_PREFIX + "max"
BACKOFF_MULTIPLIER_KEY = BACKOFF_PREFIX + "multiplier"
BACKOFF_RANDOMIZATION_FACTOR_KEY = BACKOFF_PREFIX + "randomization-factor"

DEFAULT_ADDRESS_PATH = "v1/gcp/token/"
DEFAULT_BACKOFF_INITIAL_MILLIS = 100
DEFAULT_BACKOFF_MAX_ELAPSED_MILLIS = 10000
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_BACKOFF_RANDOMIZATION_FACTOR = 0.1
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0

# Environment variable -> configuration key
ENVIRONMENT_KEYS = {
    "VAULT_ADDR": ADDRESS_URI_KEY,
    "VAULT_TOKEN": TOKEN_KEY,
    "VAULT_GCP_SERVICE_ACCOUNT": SERVICE_ACCOUNT_KEY,
    "VAULT_GCP_PATH": ADDRESS_PATH_KEY,
}


def _flatten(mapping: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat = {}
    for key, value in mapping.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, dotted + "."))
        else:
            flat[dotted] = value
    return flat


class Configuration:
    """
    Read-only key/value configuration.

    Values may be strings, ints or floats; the typed getters convert on read
    and raise ``ConfigurationError`` for values that cannot be converted.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = _flatten(values or {})

    @classmethod
    def from_yaml(cls, file_path: Union[str, Path]) -> "Configuration":
        """Load configuration from a YAML file; nested mappings become dotted keys."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(f"Config file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Error parsing config file {file_path}: {e}") from e

        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Config file {file_path} must contain a mapping")

        logger.debug("Loaded configuration file %s", file_path)
        return cls(data)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "Configuration":
        """Load the settings that have a conventional environment variable."""
        if environ is None:
            environ = os.environ

        return cls({
            key: environ[name]
            for name, key in ENVIRONMENT_KEYS.items()
            if environ.get(name)
        })

    def merged(self, other: "Configuration") -> "Configuration":
        """Return a new configuration where keys from ``other`` win."""
        values = dict(self._values)
        values.update(other._values)
        return Configuration(values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int) -> int:
        value = self._values.get(key)
        if value is None or str(value).strip() == "":
            return default
        try:
            return int(str(value).strip())
        except ValueError as e:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key) from e

    def get_double(self, key: str, default: float) -> float:
        value = self._values.get(key)
        if value is None or str(value).strip() == "":
            return default
        try:
            return float(str(value).strip())
        except ValueError as e:
            raise ConfigurationError(f"{key} must be a number, got {value!r}", key=key) from e

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Configuration):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        # Keys only, values may hold secrets
        return f"Configuration(keys={sorted(self._values)})"


def load_configuration(
    file_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Configuration:
    """
    Build a configuration from an optional YAML file and the environment.

    Environment variables override values from the file.
    """
    conf = Configuration.from_yaml(file_path) if file_path else Configuration()
    return conf.merged(Configuration.from_environment(environ))


class VaultSettings(BaseModel):
    """Validated settings for fetching a GCP token from Vault."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address_uri: str = Field(description="Vault base URI, always ending with '/'")
    path: str = Field(default=DEFAULT_ADDRESS_PATH, description="GCP secrets engine token path")
    service_account: str = Field(description="Roleset or static account to mint a token for")
    vault_token: SecretStr = Field(description="Token sent as X-Vault-Token")
    backoff_initial_millis: int = Field(default=DEFAULT_BACKOFF_INITIAL_MILLIS, gt=0)
    backoff_max_elapsed_millis: int = Field(default=DEFAULT_BACKOFF_MAX_ELAPSED_MILLIS, gt=0)
    backoff_multiplier: float = Field(default=DEFAULT_BACKOFF_MULTIPLIER, ge=1.0)
    backoff_randomization_factor: float = Field(
        default=DEFAULT_BACKOFF_RANDOMIZATION_FACTOR, ge=0.0, lt=1.0
    )
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)

    @field_validator("address_uri")
    @classmethod
    def validate_address_uri(cls, v: str) -> str:
        """Ensure the address ends with a slash."""
        return v if v.endswith("/") else v + "/"

    @property
    def url(self) -> str:
        """Full token endpoint URL."""
        return f"{self.address_uri}{self.path}{self.service_account}"


def _require(conf: Configuration, key: str, message: str) -> str:
    value = conf.get(key)
    if value is None or not value.strip():
        raise ConfigurationError(message, key=key)
    return value.strip()


def resolve_settings(conf: Configuration) -> VaultSettings:
    """
    Validate a configuration into ``VaultSettings``.

    Args:
        conf: Configuration holding the ``vault.*`` keys

    Returns:
        Immutable, validated settings

    Raises:
        ConfigurationError: If a required key is missing or a value is invalid
    """
    address_uri = _require(
        conf, ADDRESS_URI_KEY,
        f"Configuration does not provide the Vault address. Use {ADDRESS_URI_KEY} property",
    )
    vault_token = _require(
        conf, TOKEN_KEY,
        f"Vault token is not provided in the configuration. Use {TOKEN_KEY} property",
    )
    service_account = _require(
        conf, SERVICE_ACCOUNT_KEY,
        f"Service account is not provided. Use {SERVICE_ACCOUNT_KEY} property",
    )

    try:
        settings = VaultSettings(
            address_uri=address_uri,
            path=conf.get(ADDRESS_PATH_KEY, DEFAULT_ADDRESS_PATH),
            service_account=service_account,
            vault_token=SecretStr(vault_token),
            backoff_initial_millis=conf.get_int(BACKOFF_INITIAL_KEY, DEFAULT_BACKOFF_INITIAL_MILLIS),
            backoff_max_elapsed_millis=conf.get_int(BACKOFF_MAX_KEY, DEFAULT_BACKOFF_MAX_ELAPSED_MILLIS),
            backoff_multiplier=conf.get_double(BACKOFF_MULTIPLIER_KEY, DEFAULT_BACKOFF_MULTIPLIER),
            backoff_randomization_factor=conf.get_double(
                BACKOFF_RANDOMIZATION_FACTOR_KEY, DEFAULT_BACKOFF_RANDOMIZATION_FACTOR
            ),
            request_timeout_seconds=conf.get_double(REQUEST_TIMEOUT_KEY, DEFAULT_REQUEST_TIMEOUT_SECONDS),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid Vault configuration: {e}") from e

    logger.info("Resolved Vault token settings for %s", settings.url)
    return settings
