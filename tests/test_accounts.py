"""
Account tests: registration rules, store-admin requests and user removal
"""

from decimal import Decimal

import pytest

from travelmate.core.accounts import AccountService
from travelmate.core.bookings import BookingService
from travelmate.core.errors import ConflictError, NotFoundError, ValidationError
from travelmate.core.reviews import ReviewService
from travelmate.core.security import verify_password
from travelmate.db.crud import EntityStore
from travelmate.db.models import Booking, Review, StoreAdminRequest


def registration(**overrides):
    data = {"username": "NewUser", "email": "New.User@Example.com", "password": "Secret123"}
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_register_normalizes_and_hashes(session):
    user = await AccountService(session).register(registration())

    assert user.username == "newuser"
    assert user.email == "new.user@example.com"
    assert user.password_hash != "Secret123"
    assert verify_password("Secret123", user.password_hash)
    assert user.store_admin_request == StoreAdminRequest.NONE


@pytest.mark.asyncio
async def test_register_rejects_duplicates(session):
    service = AccountService(session)
    await service.register(registration())

    with pytest.raises(ConflictError):
        await service.register(registration(email="other@example.com"))
    with pytest.raises(ConflictError):
        await service.register(registration(username="someoneelse"))


@pytest.mark.asyncio
async def test_register_rejects_weak_password(session):
    with pytest.raises(ValidationError) as exc_info:
        await AccountService(session).register(registration(password="short"))
    assert exc_info.value.extra["errors"]


@pytest.mark.asyncio
async def test_update_user_ignores_roles_unless_allowed(session, traveler):
    service = AccountService(session)
    updated = await service.update_user(traveler.id, {"first_name": "Ana", "is_admin": True})
    assert updated.first_name == "Ana"
    assert not updated.is_admin

    promoted = await service.update_user(traveler.id, {"is_admin": True}, allow_roles=True)
    assert promoted.is_admin


@pytest.mark.asyncio
async def test_store_admin_request_lifecycle(session, traveler, other_traveler):
    service = AccountService(session)

    pending = await service.request_store_admin(traveler)
    assert pending.store_admin_request == StoreAdminRequest.PENDING
    with pytest.raises(ConflictError):
        await service.request_store_admin(pending)
    assert [u.id for u in await service.list_store_admin_requests()] == [traveler.id]

    approved = await service.decide_store_admin(traveler.id, approve=True)
    assert approved.is_store_admin
    with pytest.raises(ValidationError):
        await service.decide_store_admin(traveler.id, approve=False)

    await service.request_store_admin(other_traveler)
    rejected = await service.decide_store_admin(other_traveler.id, approve=False)
    assert rejected.store_admin_request == StoreAdminRequest.REJECTED
    assert not rejected.is_store_admin


@pytest.mark.asyncio
async def test_delete_user_cascades_and_recomputes(session, trip, traveler, other_traveler):
    reviews = ReviewService(session)
    await reviews.create_review(traveler, "trip", trip.id, 1)
    await reviews.create_review(other_traveler, "trip", trip.id, 5)
    await BookingService(session).create_booking(traveler, "Trip", trip.id, Decimal("49.00"))
    await session.refresh(trip)
    assert trip.average_rating == 3.0

    await AccountService(session).delete_user(traveler.id)

    await session.refresh(trip)
    assert trip.average_rating == 5.0
    assert await EntityStore(session, Review).count() == 1
    assert await EntityStore(session, Booking).count() == 0
    with pytest.raises(NotFoundError):
        await AccountService(session).get_user(traveler.id)


@pytest.mark.asyncio
async def test_delete_user_with_listings_conflicts(session, trip, store_admin):
    with pytest.raises(ConflictError) as exc_info:
        await AccountService(session).delete_user(store_admin.id)
    assert exc_info.value.extra["owned_model"] in {"Destination", "Trip"}
