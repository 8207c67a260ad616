"""
Review ledger: one review per (reviewer, item_type, item_id), with the item's
average rating recomputed after every create, update and delete.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple, Union
from uuid import UUID

import structlog
from sqlalchemy import desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from travelmate.core.images import ImageService, ImageUpload
from travelmate.core.ratings import AggregationResult, recompute_average
from travelmate.core.targets import parse_item_type, resolve_item
from travelmate.db.crud import EntityStore
from travelmate.db.models import EntityType, Image, ItemType, Review, User

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class ReviewMutation:
    """Outcome of a review write plus the aggregate recompute it triggered"""
    review: Optional[Review]
    aggregation: AggregationResult
    images: List[Image] = field(default_factory=list)

    @property
    def rating_updated(self) -> bool:
        return self.aggregation.ok


@dataclass
class ReviewEligibility:
    can_review: bool
    existing_review: Optional[Review] = None

    @property
    def has_existing_review(self) -> bool:
        return self.existing_review is not None


def validate_rating(rating) -> int:
    if isinstance(rating, bool):
        raise ValidationError("Rating must be an integer between 1 and 5")
    try:
        value = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if value != rating and not isinstance(rating, str):
        raise ValidationError("Rating must be an integer between 1 and 5")
    if value < MIN_RATING or value > MAX_RATING:
        raise ValidationError("Rating must be between 1 and 5")
    return value


class ReviewService:

    def __init__(self, session: AsyncSession):
        self.session = session
        self.reviews = EntityStore(session, Review)
        self.image_service = ImageService(session)

    async def _find_existing(self, reviewer_id: UUID, item_type: ItemType, item_id: UUID) -> Optional[Review]:
        return await self.reviews.find_one(
            Review.user_id == reviewer_id,
            Review.item_type == item_type,
            Review.item_id == item_id,
        )

    async def _get_owned(self, review_id: UUID, reviewer: User, action: str) -> Review:
        review = await self.reviews.find_by_id(review_id)
        if review is None:
            raise NotFoundError("Review not found")
        if review.user_id != reviewer.id:
            raise AuthorizationError(f"You can only {action} your own reviews")
        return review

    async def _recompute(self, review: Review, item_type: ItemType, item_id: UUID) -> AggregationResult:
        aggregation = await recompute_average(self.session, item_type, item_id)
        if not aggregation.ok:
            # a failed recompute rolls the session back, which expires the committed review
            await self.session.refresh(review)
        return aggregation

    async def create_review(
        self,
        reviewer: User,
        item_type: Union[str, ItemType],
        item_id: UUID,
        rating: int,
        comment: Optional[str] = None,
        images: Sequence[ImageUpload] = (),
        image_tags: Optional[Sequence[str]] = None,
        image_descriptions: Sequence[str] = (),
    ) -> ReviewMutation:
        rating = validate_rating(rating)
        kind = parse_item_type(item_type)
        await resolve_item(self.session, kind, item_id)

        existing = await self._find_existing(reviewer.id, kind, item_id)
        if existing is not None:
            raise ConflictError(
                "You have already reviewed this item. You can update your existing review instead.",
                extra={"existing_review_id": str(existing.id)},
            )

        review = Review(
            user_id=reviewer.id,
            item_type=kind,
            item_id=item_id,
            rating=rating,
            comment=comment or "",
        )
        try:
            await self.reviews.create(review)
            staged = await self.image_service.stage_review_images(
                reviewer, review.id, images, image_tags, image_descriptions,
            )
            review.images = [str(image.id) for image in staged]
            await self.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent create for the same triple
            await self.session.rollback()
            existing = await self._find_existing(reviewer.id, kind, item_id)
            raise ConflictError(
                "You have already reviewed this item. You can update your existing review instead.",
                extra={"existing_review_id": str(existing.id)} if existing else None,
            )

        logger.info("review_created", review_id=str(review.id), item_type=kind.value,
                    item_id=str(item_id), rating=rating)
        aggregation = await self._recompute(review, kind, item_id)
        return ReviewMutation(review=review, aggregation=aggregation, images=staged)

    async def update_review(
        self,
        review_id: UUID,
        reviewer: User,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        images: Sequence[ImageUpload] = (),
        image_tags: Optional[Sequence[str]] = None,
        image_descriptions: Sequence[str] = (),
    ) -> ReviewMutation:
        if rating is None and comment is None and not images:
            raise ValidationError("At least rating, comment, or images must be provided")
        if rating is not None:
            rating = validate_rating(rating)

        review = await self._get_owned(review_id, reviewer, "update")

        staged = await self.image_service.stage_review_images(
            reviewer, review.id, images, image_tags, image_descriptions,
        )
        patch = {"images": list(review.images or []) + [str(image.id) for image in staged]}
        if rating is not None:
            patch["rating"] = rating
        if comment is not None:
            patch["comment"] = comment
        review = await self.reviews.update_by_id(review.id, patch)
        await self.session.commit()

        logger.info("review_updated", review_id=str(review.id), fields=sorted(patch),
                    new_images=len(staged))
        aggregation = await self._recompute(review, review.item_type, review.item_id)
        return ReviewMutation(review=review, aggregation=aggregation, images=staged)

    async def delete_review(self, review_id: UUID, reviewer: User) -> ReviewMutation:
        review = await self._get_owned(review_id, reviewer, "delete")
        item_type, item_id = review.item_type, review.item_id

        await self._delete_with_images([review])
        await self.session.commit()

        logger.info("review_deleted", review_id=str(review_id), item_type=item_type.value,
                    item_id=str(item_id))
        aggregation = await recompute_average(self.session, item_type, item_id)
        return ReviewMutation(review=None, aggregation=aggregation)

    async def _delete_with_images(self, reviews: Sequence[Review]) -> None:
        review_ids = [review.id for review in reviews]
        image_ids = [UUID(image_id) for review in reviews for image_id in (review.images or [])]
        if not review_ids:
            return
        criteria = [(Image.entity_type == EntityType.REVIEW) & (Image.entity_id.in_(review_ids))]
        if image_ids:
            criteria.append(Image.id.in_(image_ids))
        await EntityStore(self.session, Image).delete_many(or_(*criteria))
        await self.reviews.delete_many(Review.id.in_(review_ids))

    async def can_review(
        self,
        reviewer: User,
        item_type: Union[str, ItemType],
        item_id: UUID,
    ) -> ReviewEligibility:
        """Report whether the reviewer may still post a review for the item"""
        kind = parse_item_type(item_type)
        await resolve_item(self.session, kind, item_id)
        existing = await self._find_existing(reviewer.id, kind, item_id)
        return ReviewEligibility(can_review=existing is None, existing_review=existing)

    async def list_item_reviews(self, item_type: Union[str, ItemType], item_id: UUID) -> List[Review]:
        kind = parse_item_type(item_type)
        return await self.reviews.find(
            Review.item_type == kind,
            Review.item_id == item_id,
            order_by=[desc(Review.created_at)],
        )

    async def list_user_reviews(self, user_id: UUID) -> List[Review]:
        return await self.reviews.find(Review.user_id == user_id, order_by=[desc(Review.created_at)])

    async def purge_item_reviews(self, item_type: ItemType, item_id: UUID) -> int:
        """Drop every review of an item being deleted, inside the caller's transaction"""
        reviews = await self.reviews.find(Review.item_type == item_type, Review.item_id == item_id)
        await self._delete_with_images(reviews)
        return len(reviews)

    async def purge_user_reviews(self, user_id: UUID) -> Set[Tuple[ItemType, UUID]]:
        """Delete a user's reviews inside the caller's transaction

        Returns the items whose averages must be refreshed once it commits.
        """
        reviews = await self.list_user_reviews(user_id)
        await self._delete_with_images(reviews)
        return {(review.item_type, review.item_id) for review in reviews}

    async def recompute_many(self, items: Set[Tuple[ItemType, UUID]]) -> List[AggregationResult]:
        return [await recompute_average(self.session, kind, item_id) for kind, item_id in items]
