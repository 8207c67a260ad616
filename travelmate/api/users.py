"""
Admin user management endpoints
"""

from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.accounts import AccountService
from travelmate.core.security import require_admin
from travelmate.db.models import User
from travelmate.db.session import get_session
from travelmate.api.schemas import AdminUserUpdate, MessageResponse, UserRead

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/", response_model=List[UserRead])
async def list_users_endpoint(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of records to return"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    return await AccountService(session).list_users(skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserRead)
async def get_user_endpoint(
    user_id: UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    return await AccountService(session).get_user(user_id)


@router.put("/{user_id}", response_model=UserRead)
async def update_user_endpoint(
    user_id: UUID,
    payload: AdminUserUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    """Update any user, including role fields"""
    return await AccountService(session).update_user(
        user_id, payload.model_dump(exclude_unset=True), allow_roles=True
    )


@router.delete("/{user_id}",
    response_model=MessageResponse,
    responses={409: {"description": "User still owns catalog listings"}},
)
async def delete_user_endpoint(
    user_id: UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session)
):
    """Delete a user together with their reviews, bookings and images"""
    await AccountService(session).delete_user(user_id)
    logger.info("user_deleted_by_admin", user_id=str(user_id), admin_id=str(admin.id))
    return {"message": "User deleted successfully"}
