"""Admin authentication endpoints."""
import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.auth.jwt import jwt_auth
from jewelry_store.models.admin import Admin
from jewelry_store.schemas.auth import AdminProfile, ChangePasswordRequest, LoginRequest, LoginResponse
from jewelry_store.schemas.common import ApiResponse
from jewelry_store.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin/auth", tags=["Auth"])


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[LoginResponse]:
    """
    Exchange admin credentials for a bearer token.

    Returns 401 for unknown emails, wrong passwords and disabled accounts alike.
    """
    admin, token = await AuthService(db).authenticate(credentials.email, credentials.password)
    await db.commit()

    return ApiResponse(
        data=LoginResponse(
            token=token,
            expires_in=jwt_auth.expires_in_seconds,
            admin=AdminProfile.model_validate(admin),
        ),
        message="Login successful",
    )


@router.get("/profile", response_model=ApiResponse[AdminProfile])
async def get_profile(admin: Admin = Depends(get_current_admin)) -> ApiResponse[AdminProfile]:
    """Profile of the authenticated admin."""
    return ApiResponse(data=AdminProfile.model_validate(admin))


@router.put("/password", response_model=ApiResponse[None])
async def change_password(
    payload: ChangePasswordRequest,
    admin: Admin = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[None]:
    """Rotate the authenticated admin's password. Existing tokens stay valid until they expire."""
    await AuthService(db).change_password(admin, payload.current_password, payload.new_password)
    await db.commit()
    return ApiResponse(message="Password updated")
