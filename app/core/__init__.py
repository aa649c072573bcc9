"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
)
from app.core.security import (
    create_access_token,
    create_admin_token,
    generate_api_keys,
    sign_webhook_payload,
    verify_token,
)

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "InvalidStateError",
    "NotFoundError",
    "RateLimitExceeded",
    "ValidationError",
    "create_access_token",
    "create_admin_token",
    "generate_api_keys",
    "sign_webhook_payload",
    "verify_token",
]
