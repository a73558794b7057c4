# hashing.py
import hashlib
import secrets

TOKEN_BYTES = 32


class TokenGenerationError(RuntimeError):
    """Raised when the secure random source cannot produce a token."""


def digest(text: str) -> str:
    """Returns the SHA-256 hex digest (64 characters) of a string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def new_token() -> str:
    """Generates a random 64-character hex token from 32 bytes of OS entropy."""
    try:
        return secrets.token_hex(TOKEN_BYTES)
    except (NotImplementedError, OSError) as e:
        raise TokenGenerationError(f"Secure random source unavailable: {e}") from e
