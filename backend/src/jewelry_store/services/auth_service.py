"""Admin authentication service."""
from datetime import datetime
from typing import Callable, Tuple

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.auth.jwt import JWTAuth, jwt_auth
from jewelry_store.auth.passwords import hash_password, verify_password
from jewelry_store.exceptions import BadRequestError, ConflictError, UnauthorizedError
from jewelry_store.models.admin import Admin
from jewelry_store.models.base import utcnow

logger = structlog.get_logger(__name__)


class AuthService:
    """Login, admin creation and password changes."""

    def __init__(self, db: AsyncSession, tokens: JWTAuth = jwt_auth, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.tokens = tokens
        self.clock = clock

    async def authenticate(self, email: str, password: str) -> Tuple[Admin, str]:
        """
        Verify credentials and issue an access token.

        Returns:
            Tuple of (admin, token)

        Raises:
            UnauthorizedError: On unknown email, wrong password or disabled admin
        """
        admin = await self.db.scalar(select(Admin).where(func.lower(Admin.email) == email.lower()))
        if admin is None or not admin.is_active or not verify_password(password, admin.password_hash):
            logger.warning("admin_login_failed", email=email)
            raise UnauthorizedError("Invalid email or password")

        admin.last_login = self.clock()
        await self.db.flush()

        token = self.tokens.create_access_token(admin.id, admin.email, admin.role)
        logger.info("admin_logged_in", admin_id=str(admin.id))
        return admin, token

    async def create_admin(self, email: str, password: str, name: str, role: str = "admin") -> Admin:
        existing = await self.db.scalar(select(Admin.id).where(func.lower(Admin.email) == email.lower()))
        if existing:
            raise ConflictError(f"Admin {email} already exists")

        admin = Admin(email=email.lower(), password_hash=hash_password(password), name=name, role=role)
        self.db.add(admin)
        await self.db.flush()
        await self.db.refresh(admin)
        logger.info("admin_created", admin_id=str(admin.id))
        return admin

    async def change_password(self, admin: Admin, current_password: str, new_password: str) -> None:
        """
        Rotate an admin's password.

        Raises:
            UnauthorizedError: If the current password is wrong
            BadRequestError: If the new password equals the current one
        """
        if not verify_password(current_password, admin.password_hash):
            raise UnauthorizedError("Current password is incorrect")
        if current_password == new_password:
            raise BadRequestError("New password must differ from the current password")

        admin.password_hash = hash_password(new_password)
        await self.db.flush()
        logger.info("admin_password_changed", admin_id=str(admin.id))
