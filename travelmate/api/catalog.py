"""
Catalog API endpoints: one CRUD router per listing kind
"""

from typing import Any, Dict, List, Type
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.catalog import CatalogService
from travelmate.core.limits import limiter
from travelmate.core.security import get_current_user, require_store_admin
from travelmate.core.settings import settings
from travelmate.db.models import Activity, CatalogItem, Destination, Rental, Restaurant, Stay, Trip, User
from travelmate.db.session import get_session
from travelmate.api import schemas

logger = structlog.get_logger(__name__)


def named(name: str):
    """Give a generated endpoint a unique name for rate-limit keys and OpenAPI ids"""
    def rename(func):
        func.__name__ = name
        func.__qualname__ = name
        return func
    return rename


def to_record(model: Type[CatalogItem], payload: BaseModel) -> Dict[str, Any]:
    """Payload fields as column values; JSON columns get JSON-safe values"""
    data = payload.model_dump(exclude_unset=True)
    json_safe = payload.model_dump(mode="json", exclude_unset=True)
    columns = model.__table__.c
    for key in data:
        if key in columns and isinstance(columns[key].type, JSON):
            data[key] = json_safe[key]
    return data


def build_catalog_router(
    model: Type[CatalogItem],
    prefix: str,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    read_schema: Type[BaseModel],
) -> APIRouter:
    """List/get/create/update/delete endpoints for one catalog table"""
    label = model.__name__.lower()
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])

    @router.get("/", response_model=List[read_schema], summary=f"List {prefix.strip('/')}")
    async def list_items(
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=1000),
        session: AsyncSession = Depends(get_session),
    ):
        return await CatalogService(session, model).list_items(skip=skip, limit=limit)

    if model is not Destination:
        @router.get("/by-destination/{destination_id}", response_model=List[read_schema])
        async def list_by_destination(
            destination_id: UUID,
            session: AsyncSession = Depends(get_session),
        ):
            return await CatalogService(session, model).list_items(destination_id=destination_id)

    @router.get("/{item_id}",
        response_model=read_schema,
        responses={404: {"description": f"{model.__name__} not found"}},
    )
    async def get_item(item_id: UUID, session: AsyncSession = Depends(get_session)):
        return await CatalogService(session, model).get_item(item_id)

    @router.post("/",
        response_model=read_schema,
        status_code=status.HTTP_201_CREATED,
        responses={403: {"description": "Not a store admin"}},
    )
    @limiter.limit(settings.RATE_LIMIT_WRITE)
    @named(f"create_{label}")
    async def create_item(
        request: Request,
        payload: create_schema,
        current_user: User = Depends(require_store_admin),
        session: AsyncSession = Depends(get_session),
    ):
        return await CatalogService(session, model).create_item(current_user, to_record(model, payload))

    @router.put("/{item_id}",
        response_model=read_schema,
        responses={403: {"description": "Neither owner nor admin"}},
    )
    @limiter.limit(settings.RATE_LIMIT_WRITE)
    @named(f"update_{label}")
    async def update_item(
        request: Request,
        item_id: UUID,
        payload: update_schema,
        current_user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ):
        return await CatalogService(session, model).update_item(current_user, item_id, to_record(model, payload))

    @router.delete("/{item_id}", response_model=schemas.DeleteResponse)
    async def delete_item(
        item_id: UUID,
        current_user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_session),
    ):
        removed = await CatalogService(session, model).delete_item(current_user, item_id)
        return {"message": f"{model.__name__} deleted successfully", "removed": removed}

    logger.debug("catalog_router_built", model=label, prefix=prefix)
    return router


destinations = build_catalog_router(
    Destination, "/destinations",
    schemas.DestinationCreate, schemas.DestinationUpdate, schemas.DestinationRead,
)
trips = build_catalog_router(Trip, "/trips", schemas.TripCreate, schemas.TripUpdate, schemas.TripRead)
stays = build_catalog_router(Stay, "/stays", schemas.StayCreate, schemas.StayUpdate, schemas.StayRead)
restaurants = build_catalog_router(
    Restaurant, "/restaurants",
    schemas.RestaurantCreate, schemas.RestaurantUpdate, schemas.RestaurantRead,
)
rentals = build_catalog_router(Rental, "/rentals", schemas.RentalCreate, schemas.RentalUpdate, schemas.RentalRead)
activities = build_catalog_router(
    Activity, "/activities",
    schemas.ActivityCreate, schemas.ActivityUpdate, schemas.ActivityRead,
)

routers = [destinations, trips, stays, restaurants, rentals, activities]
