"""FastAPI dependencies for database sessions and admin authentication."""
from typing import AsyncGenerator, Optional
from uuid import UUID

import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.auth.jwt import jwt_auth
from jewelry_store.database import AsyncSessionLocal
from jewelry_store.exceptions import UnauthorizedError
from jewelry_store.models.admin import Admin

logger = structlog.get_logger(__name__)

# auto_error=False so missing credentials go through the 401 envelope
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session dependency.

    Routes commit explicitly; anything left uncommitted when an exception
    escapes is rolled back.

    Yields:
        AsyncSession: Database session for the request lifecycle
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    """
    Resolve the authenticated admin from the bearer token.

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired or the admin is gone
    """
    if not credentials:
        raise UnauthorizedError("Authentication required")

    token = credentials.credentials
    try:
        payload = jwt_auth.verify_access_token(token)
    except jwt.ExpiredSignatureError:
        logger.warning("token_expired")
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("invalid_token", error=str(e))
        raise UnauthorizedError("Invalid authentication token")

    try:
        admin_id = UUID(payload["sub"])
    except ValueError:
        raise UnauthorizedError("Invalid authentication token")

    admin = await db.get(Admin, admin_id)
    if admin is None or not admin.is_active:
        raise UnauthorizedError("Admin account not found or disabled")

    structlog.contextvars.bind_contextvars(admin_id=str(admin.id))
    return admin
