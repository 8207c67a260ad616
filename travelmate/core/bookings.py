"""
Booking records: one reservation against exactly one bookable item, with a
status lifecycle and a mocked payment step.
"""

import secrets
import string
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import UUID

import structlog
from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import AuthorizationError, NotFoundError, ValidationError
from travelmate.core.targets import BOOKING_ITEM_TYPES, resolve_item
from travelmate.db.crud import EntityStore
from travelmate.db.models import (
    Booking,
    BookingStatus,
    BookingType,
    PaymentMethod,
    PaymentStatus,
    User,
)

logger = structlog.get_logger(__name__)

TRANSACTION_ALPHABET = string.ascii_uppercase + string.digits


def generate_transaction_id() -> str:
    """TXN- followed by nine uppercase alphanumerics"""
    return "TXN-" + "".join(secrets.choice(TRANSACTION_ALPHABET) for _ in range(9))


def parse_booking_type(value: Union[str, BookingType]) -> BookingType:
    if isinstance(value, BookingType):
        return value
    for kind in BookingType:
        if kind.value.lower() == str(value).strip().lower():
            return kind
    valid = ", ".join(t.value for t in BookingType)
    raise ValidationError(f"Invalid booking_type: {value}. Valid types are: {valid}")


class BookingService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.bookings = EntityStore(session, Booking)

    async def _point_at(self, booking: Booking, booking_type: BookingType, item_id: UUID) -> None:
        """Resolve the target item and make it the booking's only reference"""
        await resolve_item(self.session, BOOKING_ITEM_TYPES[booking_type], item_id)
        booking.set_target(booking_type, item_id)
        try:
            booking.check_target()
        except ValueError as e:
            raise ValidationError(str(e))

    def _check_access(self, actor: User, booking: Booking) -> None:
        if not actor.is_admin and booking.user_id != actor.id:
            raise AuthorizationError("Not authorized to access this booking")

    async def create_booking(
        self,
        actor: User,
        booking_type: Union[str, BookingType],
        item_id: UUID,
        total_price: Decimal,
        details: Optional[Dict[str, Any]] = None,
        status: Optional[BookingStatus] = None,
        payment_details: Optional[Dict[str, Any]] = None,
        user_id: Optional[UUID] = None,
    ) -> Booking:
        """Create a booking for the actor; admins may book on behalf of another user"""
        kind = parse_booking_type(booking_type)
        if total_price is None or Decimal(total_price) < 0:
            raise ValidationError("total_price must be a non-negative amount")

        owner_id = actor.id
        if user_id is not None and user_id != actor.id:
            if not actor.is_admin:
                raise AuthorizationError("Only admins can book on behalf of another user")
            if await EntityStore(self.session, User).find_by_id(user_id) is None:
                raise NotFoundError("User not found")
            owner_id = user_id

        booking = Booking(
            user_id=owner_id,
            booking_type=kind,
            total_price=Decimal(total_price),
            status=status or BookingStatus.PENDING,
            payment_details=dict(payment_details or {}),
            details=dict(details or {}),
        )
        await self._point_at(booking, kind, item_id)
        await self.bookings.create(booking)
        await self.session.commit()

        logger.info("booking_created", booking_id=str(booking.id), booking_type=kind.value,
                    item_id=str(item_id), user_id=str(owner_id))
        return booking

    async def get_booking(self, actor: User, booking_id: UUID) -> Booking:
        booking = await self.bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        self._check_access(actor, booking)
        return booking

    async def list_bookings(self, skip: int = 0, limit: Optional[int] = None) -> List[Booking]:
        return await self.bookings.find(order_by=[desc(Booking.booking_date)], skip=skip, limit=limit)

    async def list_user_bookings(self, actor: User, user_id: UUID) -> List[Booking]:
        if not actor.is_admin and actor.id != user_id:
            raise AuthorizationError("Not authorized to view these bookings")
        return await self.bookings.find(Booking.user_id == user_id, order_by=[desc(Booking.booking_date)])

    async def update_booking(
        self,
        actor: User,
        booking_id: UUID,
        patch: Dict[str, Any],
        target: Optional[Tuple[Union[str, BookingType], UUID]] = None,
    ) -> Booking:
        """Merge a partial update; any status may be written

        A new target replaces the kind payload instead of merging into it.
        """
        nulled = self.bookings.nulled_required(patch)
        if nulled:
            raise ValidationError(f"{', '.join(nulled)} cannot be null", extra={"fields": nulled})

        booking = await self.get_booking(actor, booking_id)

        if target is not None:
            booking_type, item_id = target
            await self._point_at(booking, parse_booking_type(booking_type), item_id)

        if "total_price" in patch and (patch["total_price"] is None or Decimal(patch["total_price"]) < 0):
            raise ValidationError("total_price must be a non-negative amount")
        if target is None and patch.get("details") is not None:
            patch["details"] = {**(booking.details or {}), **patch["details"]}
        if "payment_details" in patch and patch["payment_details"] is not None:
            patch["payment_details"] = {**(booking.payment_details or {}), **patch["payment_details"]}

        booking = await self.bookings.update_by_id(booking.id, patch)
        await self.session.commit()

        logger.info("booking_updated", booking_id=str(booking_id),
                    fields=sorted(patch), retargeted=target is not None)
        return booking

    async def delete_booking(self, booking_id: UUID) -> None:
        if not await self.bookings.delete_by_id(booking_id):
            raise NotFoundError("Booking not found")
        await self.session.commit()
        logger.info("booking_deleted", booking_id=str(booking_id))

    async def process_payment(
        self,
        actor: User,
        booking_id: UUID,
        payment_method: Union[str, PaymentMethod],
    ) -> Tuple[Booking, str]:
        """Mock gateway: always succeeds and confirms the booking"""
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            valid = ", ".join(m.value for m in PaymentMethod)
            raise ValidationError(f"Invalid payment_method: {payment_method}. Valid methods are: {valid}")

        booking = await self.get_booking(actor, booking_id)
        transaction_id = generate_transaction_id()
        booking = await self.bookings.update_by_id(booking.id, {
            "status": BookingStatus.CONFIRMED,
            "payment_details": {
                **(booking.payment_details or {}),
                "payment_method": method.value,
                "transaction_id": transaction_id,
                "payment_status": PaymentStatus.PAID.value,
            },
        })
        await self.session.commit()

        logger.info("payment_processed", booking_id=str(booking_id),
                    transaction_id=transaction_id, payment_method=method.value)
        return booking, transaction_id
