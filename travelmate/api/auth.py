from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from travelmate.core.accounts import AccountService
from travelmate.core.limits import limiter
from travelmate.core.security import (
    authenticate_user,
    blacklist_token,
    get_current_user,
    get_current_user_from_refresh_token,
    issue_tokens,
    oauth2_scheme,
    performance_timer,
    require_admin,
)
from travelmate.core.settings import settings
from travelmate.db.session import get_session
from travelmate.db.models import User
from travelmate.api.schemas import MessageResponse, RefreshTokenRequest, Token, UserCreate, UserRead, UserUpdate

# Set up logging
logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "User registered successfully"},
        400: {"description": "Password does not meet requirements"},
        409: {"description": "Username, email or phone number already registered"},
    },
    summary="User registration",
    description="Register a new user account"
)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def register(
    request: Request,
    user_data: UserCreate,
    session: AsyncSession = Depends(get_session),
):
    async with performance_timer("user_registration"):
        user = await AccountService(session).register(user_data.model_dump())
        logger.info(
            "user_registration_success",
            username=user.username,
            user_id=str(user.id),
            ip_address=request.client.host if request.client else None
        )
        return user


@router.post("/login",
    response_model=Token,
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"description": "Invalid credentials"},
        429: {"description": "Too many login attempts"},
    },
    summary="User login",
    description="Authenticate with username or email and return access and refresh tokens"
)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    user = await authenticate_user(form_data.username, form_data.password, session)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(
        "user_login_success",
        username=user.username,
        user_id=str(user.id),
        ip_address=request.client.host if request.client else None
    )
    return issue_tokens(user)


@router.post("/refresh",
    response_model=Token,
    responses={401: {"description": "Invalid refresh token"}},
    summary="Refresh access token",
)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    session: AsyncSession = Depends(get_session),
):
    user = await get_current_user_from_refresh_token(refresh_data.refresh_token, session)
    logger.info("token_refreshed", user_id=str(user.id))
    return issue_tokens(user)


@router.post("/logout",
    response_model=MessageResponse,
    responses={401: {"description": "Invalid token"}},
    summary="User logout",
    description="Blacklist the presented access token"
)
async def logout(
    request: Request,
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_user),
):
    async with performance_timer("user_logout"):
        blacklist_token(token)
        logger.info(
            "user_logout",
            user_id=str(current_user.id),
            ip_address=request.client.host if request.client else None
        )
        return {"message": "Successfully logged out"}


@router.get("/me", response_model=UserRead, summary="Get current user")
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserRead, summary="Update own profile")
async def update_current_user(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await AccountService(session).update_user(
        current_user.id, payload.model_dump(exclude_unset=True)
    )


@router.post("/request-store-admin",
    response_model=UserRead,
    responses={409: {"description": "Already a store admin or request pending"}},
    summary="Request store admin access",
)
async def request_store_admin(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await AccountService(session).request_store_admin(current_user)


@router.get("/admin-requests", response_model=List[UserRead], summary="Pending store admin requests")
async def list_store_admin_requests(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await AccountService(session).list_store_admin_requests()


@router.put("/approve-store-admin/{user_id}", response_model=UserRead)
async def approve_store_admin(
    user_id: UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await AccountService(session).decide_store_admin(user_id, approve=True)


@router.put("/reject-store-admin/{user_id}", response_model=UserRead)
async def reject_store_admin(
    user_id: UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await AccountService(session).decide_store_admin(user_id, approve=False)
