"""
CRUD for catalog listings (destinations and the five reviewable kinds)
"""

from typing import Any, Dict, List, Optional, Type
from uuid import UUID

import structlog
from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from travelmate.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from travelmate.core.images import ImageService
from travelmate.core.reviews import ReviewService
from travelmate.core.targets import REVIEWABLE_MODELS
from travelmate.db.crud import EntityStore
from travelmate.db.models import CatalogItem, Destination, EntityType, ReviewableItem, User

logger = structlog.get_logger(__name__)

ITEM_TYPES = {model: kind for kind, model in REVIEWABLE_MODELS.items()}
ENTITY_TYPES = {model: EntityType(kind.value) for model, kind in ITEM_TYPES.items()}
ENTITY_TYPES[Destination] = EntityType.DESTINATION

# Fields no caller may write through the catalog endpoints
PROTECTED_FIELDS = {"id", "owner_id", "average_rating", "primary_image_id", "created_at", "updated_at"}


class CatalogService:
    """Owner/admin guarded CRUD over one catalog table"""

    def __init__(self, session: AsyncSession, model: Type[CatalogItem]):
        if model not in ENTITY_TYPES:
            raise ValueError(f"{model.__name__} is not a catalog model")
        self.session = session
        self.model = model
        self.items = EntityStore(session, model)

    @property
    def label(self) -> str:
        return self.model.__name__

    @property
    def is_reviewable(self) -> bool:
        return issubclass(self.model, ReviewableItem)

    async def _check_destination(self, data: Dict[str, Any]) -> None:
        destination_id = data.get("destination_id")
        if destination_id is None:
            return
        if await EntityStore(self.session, Destination).find_by_id(destination_id) is None:
            raise NotFoundError(f"Destination with ID {destination_id} not found")

    def _check_owner(self, actor: User, item: CatalogItem, action: str) -> None:
        if actor.is_admin:
            return
        if not actor.is_store_admin or item.owner_id != actor.id:
            raise AuthorizationError(f"Not authorized to {action} this {self.label.lower()}")

    def _check_required(self, data: Dict[str, Any]) -> None:
        nulled = self.items.nulled_required(data)
        if nulled:
            raise ValidationError(f"{', '.join(nulled)} cannot be null", extra={"fields": nulled})

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("catalog_integrity_error", model=self.label, error=str(e.orig))
            raise ConflictError(f"{self.label} conflicts with an existing record")

    async def list_items(
        self,
        destination_id: Optional[UUID] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[SQLModel]:
        criteria = []
        if destination_id is not None:
            if not self.is_reviewable:
                raise ValidationError(f"{self.label} cannot be filtered by destination")
            criteria.append(self.model.destination_id == destination_id)
        return await self.items.find(*criteria, order_by=[desc(self.model.created_at)], skip=skip, limit=limit)

    async def get_item(self, item_id: UUID) -> SQLModel:
        item = await self.items.find_by_id(item_id)
        if item is None:
            raise NotFoundError(f"{self.label} not found")
        return item

    async def create_item(self, actor: User, data: Dict[str, Any]) -> SQLModel:
        if not actor.is_store_admin:
            raise AuthorizationError("Not authorized as a store admin")
        data = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        self._check_required(data)
        await self._check_destination(data)

        item = self.model(**data, owner_id=actor.id)
        self.session.add(item)
        await self._commit()
        logger.info("catalog_item_created", model=self.label, item_id=str(item.id), owner_id=str(actor.id))
        return item

    async def update_item(self, actor: User, item_id: UUID, patch: Dict[str, Any]) -> SQLModel:
        item = await self.get_item(item_id)
        self._check_owner(actor, item, "update")
        patch = {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}
        self._check_required(patch)
        await self._check_destination(patch)

        item = await self.items.update_by_id(item.id, patch)
        await self._commit()
        logger.info("catalog_item_updated", model=self.label, item_id=str(item_id), fields=sorted(patch))
        return item

    async def delete_item(self, actor: User, item_id: UUID) -> Dict[str, int]:
        """Delete a listing together with the reviews and images that point at it"""
        item = await self.get_item(item_id)
        self._check_owner(actor, item, "delete")

        removed = {"reviews": 0, "images": 0}
        if self.is_reviewable:
            removed["reviews"] = await ReviewService(self.session).purge_item_reviews(ITEM_TYPES[self.model], item.id)
        else:
            for model in REVIEWABLE_MODELS.values():
                await self.session.execute(
                    update(model)
                    .where(model.destination_id == item.id)
                    .values(destination_id=None)
                    .execution_options(synchronize_session="fetch")
                )
        removed["images"] = await ImageService(self.session).delete_for_entity(ENTITY_TYPES[self.model], item.id)
        await self.items.delete_by_id(item.id)
        await self.session.commit()

        logger.info("catalog_item_deleted", model=self.label, item_id=str(item_id), **removed)
        return removed
