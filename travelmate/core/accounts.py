"""
User accounts: registration, profile edits, store-admin requests and admin
user management
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import ConflictError, NotFoundError, ValidationError
from travelmate.core.images import ImageService
from travelmate.core.reviews import ReviewService
from travelmate.core.security import get_password_hash, validate_password_strength
from travelmate.core.targets import REVIEWABLE_MODELS
from travelmate.db.crud import EntityStore
from travelmate.db.models import Booking, Destination, EntityType, StoreAdminRequest, User

logger = structlog.get_logger(__name__)


class AccountService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = EntityStore(session, User)

    async def _check_unique(self, user_id: Optional[UUID] = None, **fields) -> None:
        """Reject a username/email/phone already held by another account"""
        for field, value in fields.items():
            if value is None:
                continue
            existing = await self.users.find_one(getattr(User, field) == value)
            if existing is not None and existing.id != user_id:
                raise ConflictError(f"{field.replace('_', ' ').capitalize()} already registered")

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("A user with these details already exists")

    def _hash_checked(self, password: str) -> str:
        validation = validate_password_strength(password)
        if not validation["is_valid"]:
            raise ValidationError(
                "Password does not meet requirements",
                extra={"errors": validation["errors"]},
            )
        return get_password_hash(password)

    async def register(self, data: Dict[str, Any]) -> User:
        data = dict(data)
        data["username"] = data["username"].strip().lower()
        data["email"] = data["email"].strip().lower()
        await self._check_unique(
            username=data["username"],
            email=data["email"],
            phone_number=data.get("phone_number"),
        )
        user = User(
            username=data["username"],
            email=data["email"],
            password_hash=self._hash_checked(data.pop("password")),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            phone_number=data.get("phone_number"),
        )
        self.session.add(user)
        await self._commit()
        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user

    async def get_user(self, user_id: UUID) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self, skip: int = 0, limit: Optional[int] = None) -> List[User]:
        return await self.users.find(order_by=[desc(User.created_at)], skip=skip, limit=limit)

    async def update_user(self, user_id: UUID, patch: Dict[str, Any], allow_roles: bool = False) -> User:
        """Partial profile update; role fields only when allow_roles is set"""
        user = await self.get_user(user_id)
        patch = {k: v for k, v in patch.items() if v is not None}
        if not allow_roles:
            patch.pop("is_admin", None)
            patch.pop("store_admin_request", None)
        for field in ("username", "email"):
            if field in patch:
                patch[field] = patch[field].strip().lower()
        await self._check_unique(
            user_id=user.id,
            username=patch.get("username"),
            email=patch.get("email"),
            phone_number=patch.get("phone_number"),
        )
        if "password" in patch:
            patch["password_hash"] = self._hash_checked(patch.pop("password"))

        user = await self.users.update_by_id(user.id, patch)
        await self._commit()
        logger.info("user_updated", user_id=str(user_id), fields=sorted(patch))
        return user

    async def request_store_admin(self, user: User) -> User:
        if user.is_admin or user.store_admin_request == StoreAdminRequest.APPROVED:
            raise ConflictError("You already have store admin access")
        if user.store_admin_request == StoreAdminRequest.PENDING:
            raise ConflictError("You already have a pending store admin request")
        user = await self.users.update_by_id(user.id, {"store_admin_request": StoreAdminRequest.PENDING})
        await self.session.commit()
        logger.info("store_admin_requested", user_id=str(user.id))
        return user

    async def list_store_admin_requests(self) -> List[User]:
        return await self.users.find(
            User.store_admin_request == StoreAdminRequest.PENDING,
            order_by=[desc(User.updated_at)],
        )

    async def decide_store_admin(self, user_id: UUID, approve: bool) -> User:
        user = await self.get_user(user_id)
        if user.store_admin_request != StoreAdminRequest.PENDING:
            raise ValidationError("User has no pending store admin request")
        decision = StoreAdminRequest.APPROVED if approve else StoreAdminRequest.REJECTED
        user = await self.users.update_by_id(user.id, {"store_admin_request": decision})
        await self.session.commit()
        logger.info("store_admin_request_decided", user_id=str(user_id), decision=decision.value)
        return user

    async def delete_user(self, user_id: UUID) -> None:
        """Remove a user with their reviews, bookings and uploaded images"""
        user = await self.get_user(user_id)
        for model in (Destination, *REVIEWABLE_MODELS.values()):
            owned = await EntityStore(self.session, model).count(model.owner_id == user.id)
            if owned:
                raise ConflictError(
                    "User still owns catalog listings; reassign or delete them first",
                    extra={"owned_model": model.__name__},
                )

        review_service = ReviewService(self.session)
        affected = await review_service.purge_user_reviews(user.id)
        await EntityStore(self.session, Booking).delete_many(Booking.user_id == user.id)
        image_service = ImageService(self.session)
        await image_service.delete_for_entity(EntityType.USER, user.id)
        await image_service.delete_uploaded_by(user.id)
        await self.users.delete_by_id(user.id)
        await self.session.commit()

        aggregations = await review_service.recompute_many(affected)

        logger.info(
            "user_deleted",
            user_id=str(user_id),
            recomputed_items=len(aggregations),
            stale_items=sum(1 for a in aggregations if not a.ok),
        )
