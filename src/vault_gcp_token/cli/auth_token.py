"""
Command-line interface for getting a GCP access token from Vault.

Settings come from an optional YAML file and the VAULT_ADDR, VAULT_TOKEN,
VAULT_GCP_SERVICE_ACCOUNT and VAULT_GCP_PATH environment variables.
"""

import argparse
import json
import sys
from datetime import datetime, timezone

from vault_gcp_token.config import load_configuration
from vault_gcp_token.errors import ConfigurationError, TokenRetrievalError
from vault_gcp_token.provider import VaultGCPAccessTokenProvider
from vault_gcp_token.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Get a GCP access token from Vault")

    parser.add_argument(
        "--config", "-c",
        help="YAML file with vault.* settings",
    )

    parser.add_argument(
        "--output", "-o",
        help="Output format (json or text)",
        choices=["json", "text"],
        default="text"
    )

    parser.add_argument(
        "--log-level",
        help="Log level for diagnostics written to stderr",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING"
    )

    return parser


def main(argv=None):
    """Main entry point for the token CLI."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        conf = load_configuration(args.config)
        with VaultGCPAccessTokenProvider(conf) as provider:
            token = provider.get_access_token()
    except (ConfigurationError, TokenRetrievalError) as e:
        logger.error("Failed to get token: %s", e)

        if args.output == "json":
            print(json.dumps({"error": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)

        return 1

    expires_at = datetime.fromtimestamp(token.expiration_time_millis / 1000, tz=timezone.utc)

    if args.output == "json":
        print(json.dumps({
            "access_token": token.token,
            "expiration_time_millis": token.expiration_time_millis,
        }, indent=2))
    else:
        print(f"Access Token: {token.token}")
        print(f"Expires At: {expires_at.isoformat()}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
