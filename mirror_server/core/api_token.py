"""API token generation and hashing."""

import hashlib
import secrets

TOKEN_PREFIX = "cm_"


def hash_api_token(token: str) -> str:
    """Hash a token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_api_token() -> tuple[str, str]:
    """Generate a new API token.

    Returns:
        (token, token_hash) tuple
        - token: The token to hand to the user (only shown once)
        - token_hash: Hash to store in the database
    """
    token = f"{TOKEN_PREFIX}{secrets.token_urlsafe(32)}"
    return token, hash_api_token(token)
