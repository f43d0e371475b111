"""
Command-line interface package for vault-gcp-token.
"""

from vault_gcp_token.cli.auth_token import main as auth_token_main
