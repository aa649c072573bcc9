"""API dependencies for authentication and common operations."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.background_tasks import commit_and_dispatch, discard_deferred
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.security import SECRET_KEY_PREFIX, verify_token
from app.database import Database
from app.models.merchant import Merchant

# Security scheme
security = HTTPBearer(auto_error=False)


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session.

    Commits (and fires deferred tasks) when the endpoint returns normally;
    rolls back and drops deferred tasks when it raises.
    """
    async with database.session() as session:
        try:
            yield session
            await commit_and_dispatch(session)
        except Exception:
            discard_deferred(session)
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_merchant(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DbSession,
) -> Merchant:
    """Resolve the merchant from an `Authorization: Bearer sk_test_...` header."""
    if not credentials:
        raise AuthenticationError("Missing API key")

    secret_key = credentials.credentials
    if not secret_key.startswith(SECRET_KEY_PREFIX):
        raise AuthenticationError("Invalid API key")

    result = await db.execute(select(Merchant).where(Merchant.secret_key == secret_key))
    merchant = result.scalar_one_or_none()
    if not merchant:
        raise AuthenticationError("Invalid API key")
    return merchant


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated administrator (from a role=admin access token)."""

    email: str


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AdminPrincipal:
    """Get the admin from a JWT bearer token."""
    if not credentials:
        raise AuthenticationError("Missing admin token")

    payload = verify_token(credentials.credentials, token_type="access")
    if payload.get("role") != "admin":
        raise AuthorizationError("Admin access required")

    email = payload.get("email") or payload.get("sub")
    if not email:
        raise AuthenticationError("Invalid token payload")
    return AdminPrincipal(email=email)


CurrentMerchant = Annotated[Merchant, Depends(get_current_merchant)]
CurrentAdmin = Annotated[AdminPrincipal, Depends(get_current_admin)]
