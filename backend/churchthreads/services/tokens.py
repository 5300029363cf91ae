import secrets

INVITE_TOKEN_BYTES = 32


def generate_invite_token() -> str:
    """43 URL-safe characters (32 random bytes, base64url without padding)."""
    return secrets.token_urlsafe(INVITE_TOKEN_BYTES)
