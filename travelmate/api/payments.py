"""
Mock payment endpoint; no gateway is contacted
"""

import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.bookings import BookingService
from travelmate.core.limits import limiter
from travelmate.core.security import get_current_user
from travelmate.core.settings import settings
from travelmate.db.models import User
from travelmate.db.session import get_session
from travelmate.api.schemas import PaymentRequest, PaymentResponse

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/",
    response_model=PaymentResponse,
    responses={404: {"description": "Booking not found"}},
    summary="Process a payment",
    description="Confirm a booking and stamp a generated transaction id"
)
@limiter.limit(settings.RATE_LIMIT_PAYMENT)
async def process_payment(
    request: Request,
    payload: PaymentRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    booking, transaction_id = await BookingService(session).process_payment(
        current_user, payload.booking_id, payload.payment_method
    )
    if payload.amount is not None and payload.amount != booking.total_price:
        logger.warning(
            "payment_amount_mismatch",
            booking_id=str(booking.id),
            amount=str(payload.amount),
            total_price=str(booking.total_price),
        )
    return {"success": True, "transaction_id": transaction_id, "booking": booking}
