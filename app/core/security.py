"""Security utilities: admin tokens, API keys and webhook signatures."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.config import settings
from app.core.exceptions import AuthenticationError

SECRET_KEY_PREFIX = "sk_test_"
PUBLIC_KEY_PREFIX = "pk_test_"
WEBHOOK_SECRET_PREFIX = "whsec_"


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        if payload.get("type") != token_type:
            raise AuthenticationError("Invalid token type")
        return payload
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")


def create_admin_token(email: str, expires_delta: timedelta | None = None) -> str:
    """Issue an access token carrying the admin role."""
    return create_access_token({"sub": email, "email": email, "role": "admin"}, expires_delta)


def generate_api_keys() -> dict[str, str]:
    """Generate a merchant's public/secret key pair."""
    return {
        "public_key": f"{PUBLIC_KEY_PREFIX}{secrets.token_hex(16)}",
        "secret_key": f"{SECRET_KEY_PREFIX}{secrets.token_hex(16)}",
    }


def generate_webhook_secret() -> str:
    return f"{WEBHOOK_SECRET_PREFIX}{secrets.token_hex(16)}"


def sign_webhook_payload(secret: str, body: bytes) -> str:
    """Sign an outbound webhook body.

    Returns:
        str: Header value like 'sha256=<hex digest>'
    """
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"
