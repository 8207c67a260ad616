from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.bookings import BookingService
from travelmate.core.limits import limiter
from travelmate.core.security import get_current_user, require_admin
from travelmate.core.settings import settings
from travelmate.db.models import User
from travelmate.db.session import get_session
from travelmate.api.schemas import BookingCreate, BookingRead, BookingUpdate, MessageResponse

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=List[BookingRead], summary="List all bookings (admin)")
async def list_bookings(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await BookingService(session).list_bookings(skip=skip, limit=limit)


@router.get("/user/{user_id}", response_model=List[BookingRead])
async def list_user_bookings(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await BookingService(session).list_user_bookings(current_user, user_id)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await BookingService(session).get_booking(current_user, booking_id)


@router.post("/",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Inconsistent booking target"},
        404: {"description": "Booked item not found"},
    },
)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    target = payload.target
    return await BookingService(session).create_booking(
        current_user,
        target.booking_type,
        target.item_id,
        payload.total_price,
        details=target.details_payload(),
        status=payload.status,
        payment_details=payload.payment_details.model_dump(mode="json", exclude_none=True)
        if payload.payment_details else None,
        user_id=payload.user_id,
    )


@router.put("/{booking_id}", response_model=BookingRead)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def update_booking(
    request: Request,
    booking_id: UUID,
    payload: BookingUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Partial update; sending a target re-points the booking and replaces its details"""
    patch = payload.model_dump(exclude_unset=True, exclude={"target", "payment_details"})
    if payload.payment_details is not None:
        patch["payment_details"] = payload.payment_details.model_dump(mode="json", exclude_none=True)

    target = None
    if payload.target is not None:
        target = (payload.target.booking_type, payload.target.item_id)
        patch["details"] = payload.target.details_payload()

    return await BookingService(session).update_booking(current_user, booking_id, patch, target=target)


@router.delete("/{booking_id}", response_model=MessageResponse, summary="Delete a booking (admin)")
async def delete_booking(
    booking_id: UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await BookingService(session).delete_booking(booking_id)
    return {"message": "Booking deleted successfully"}
