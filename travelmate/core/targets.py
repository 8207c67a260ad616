"""
Resolution of polymorphic (type tag, target id) references.

Reviews point at an item through (item_type, item_id), images through
(entity_type, entity_id) and bookings through booking_type plus one kind
reference. Every tag maps to exactly one table via the lookup tables below.
"""

from typing import Dict, Type, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from travelmate.core.errors import NotFoundError, ValidationError
from travelmate.db.crud import EntityStore
from travelmate.db.models import (
    Activity,
    BookingType,
    Destination,
    EntityType,
    ItemType,
    Rental,
    Restaurant,
    Review,
    ReviewableItem,
    Stay,
    Trip,
    User,
)

REVIEWABLE_MODELS: Dict[ItemType, Type[ReviewableItem]] = {
    ItemType.ACTIVITY: Activity,
    ItemType.STAY: Stay,
    ItemType.TRIP: Trip,
    ItemType.RENTAL: Rental,
    ItemType.RESTAURANT: Restaurant,
}

ATTACHABLE_MODELS: Dict[EntityType, Type[SQLModel]] = {
    EntityType.TRIP: Trip,
    EntityType.ACTIVITY: Activity,
    EntityType.RESTAURANT: Restaurant,
    EntityType.STAY: Stay,
    EntityType.RENTAL: Rental,
    EntityType.DESTINATION: Destination,
    EntityType.USER: User,
    EntityType.REVIEW: Review,
}

BOOKING_ITEM_TYPES: Dict[BookingType, ItemType] = {
    BookingType.TRIP: ItemType.TRIP,
    BookingType.RESTAURANT: ItemType.RESTAURANT,
    BookingType.RENTAL: ItemType.RENTAL,
    BookingType.ACTIVITY: ItemType.ACTIVITY,
    BookingType.STAY: ItemType.STAY,
}


def parse_item_type(value: Union[str, ItemType]) -> ItemType:
    """Normalize a reviewable type tag; tags are case-insensitive"""
    if isinstance(value, ItemType):
        return value
    try:
        return ItemType(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in ItemType)
        raise ValidationError(f"Invalid item_type: {value}. Valid types are: {valid}")


def parse_entity_type(value: Union[str, EntityType]) -> EntityType:
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in EntityType)
        raise ValidationError(f"Invalid entity type: {value}. Valid types are: {valid}")


def reviewable_store(session: AsyncSession, item_type: ItemType) -> EntityStore:
    model = REVIEWABLE_MODELS.get(item_type)
    if model is None:
        raise ValidationError(f"Invalid item_type: {item_type}")
    return EntityStore(session, model)


async def resolve_item(session: AsyncSession, item_type: ItemType, item_id: UUID) -> ReviewableItem:
    """Load a reviewable/bookable item or raise NotFoundError"""
    item = await reviewable_store(session, item_type).find_by_id(item_id)
    if item is None:
        raise NotFoundError(f"{item_type.value} with ID {item_id} not found")
    return item


async def resolve_entity(session: AsyncSession, entity_type: EntityType, entity_id: UUID) -> SQLModel:
    """Load any image attachment target or raise NotFoundError"""
    model = ATTACHABLE_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(f"Invalid entity type: {entity_type}")
    entity = await EntityStore(session, model).find_by_id(entity_id)
    if entity is None:
        raise NotFoundError(f"{entity_type.value} with ID {entity_id} not found")
    return entity
