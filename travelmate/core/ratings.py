"""
Average rating recomputation for reviewable items.

The average is rebuilt from the full review set of an item on every call.
Failures are logged and returned in an AggregationResult, never raised; the
review write that triggered the recompute stays committed either way.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence, Union
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import ValidationError
from travelmate.core.targets import parse_item_type, reviewable_store
from travelmate.db.models import ItemType, Review

logger = structlog.get_logger(__name__)

ONE_DECIMAL = Decimal("0.1")


@dataclass
class AggregationResult:
    item_type: str
    item_id: UUID
    ok: bool
    average_rating: Optional[float] = None
    review_count: int = 0
    error: Optional[str] = None


def average_of(ratings: Sequence[int]) -> float:
    """Arithmetic mean rounded half-up to one decimal; 0 for no ratings"""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


async def recompute_average(
    session: AsyncSession,
    item_type: Union[str, ItemType],
    item_id: UUID,
) -> AggregationResult:
    """Rewrite average_rating of one item from its reviews and commit"""
    try:
        kind = parse_item_type(item_type)
    except ValidationError as e:
        logger.error("average_rating_unknown_item_type", item_type=str(item_type), item_id=str(item_id))
        return AggregationResult(item_type=str(item_type), item_id=item_id, ok=False, error=e.message)

    try:
        result = await session.execute(
            select(Review.rating).where(Review.item_type == kind, Review.item_id == item_id)
        )
        ratings = list(result.scalars().all())
        average = average_of(ratings)

        updated = await reviewable_store(session, kind).update_by_id(item_id, {"average_rating": average})
        if updated is None:
            logger.warning("average_rating_item_missing", item_type=kind.value, item_id=str(item_id))
            return AggregationResult(
                item_type=kind.value, item_id=item_id, ok=False,
                review_count=len(ratings), error="Item not found",
            )

        await session.commit()
        logger.info(
            "average_rating_recomputed",
            item_type=kind.value,
            item_id=str(item_id),
            average_rating=average,
            review_count=len(ratings),
        )
        return AggregationResult(
            item_type=kind.value, item_id=item_id, ok=True,
            average_rating=average, review_count=len(ratings),
        )

    except Exception as e:
        await session.rollback()
        logger.error(
            "average_rating_recompute_failed",
            item_type=kind.value,
            item_id=str(item_id),
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return AggregationResult(item_type=kind.value, item_id=item_id, ok=False, error=str(e))
