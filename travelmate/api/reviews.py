"""
Review endpoints; create and update accept multipart forms with optional photos
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import ValidationError
from travelmate.core.images import ImageUpload
from travelmate.core.limits import limiter
from travelmate.core.reviews import ReviewMutation, ReviewService
from travelmate.core.security import get_current_user
from travelmate.core.settings import settings
from travelmate.db.models import User
from travelmate.db.session import get_session
from travelmate.api.images import parse_tags
from travelmate.api.schemas import CanReviewResponse, ReviewMutationResponse, ReviewRead

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/reviews", tags=["reviews"])


async def read_uploads(images: Optional[List[UploadFile]]) -> List[ImageUpload]:
    uploads = [await ImageUpload.from_upload_file(image) for image in images or [] if image.filename]
    if len(uploads) > settings.MAX_IMAGES_PER_UPLOAD:
        raise ValidationError(f"At most {settings.MAX_IMAGES_PER_UPLOAD} images per review")
    return uploads


def parse_descriptions(descriptions: Optional[str]) -> List[str]:
    """Comma separated captions, positionally matched to the uploaded photos"""
    if not descriptions:
        return []
    return [description.strip() for description in descriptions.split(",")]


def mutation_response(message: str, result: ReviewMutation) -> dict:
    if not result.rating_updated:
        logger.warning(
            "average_rating_stale",
            item_type=result.aggregation.item_type,
            item_id=str(result.aggregation.item_id),
            error=result.aggregation.error,
        )
    return {
        "message": message,
        "review": result.review,
        "rating_updated": result.rating_updated,
        "average_rating": result.aggregation.average_rating,
    }


@router.post("/",
    response_model=ReviewMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid rating or item type"},
        404: {"description": "Reviewed item not found"},
        409: {"description": "Reviewer already reviewed this item"},
    },
    summary="Create a review",
)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def create_review(
    request: Request,
    item_type: str = Form(...),
    item_id: UUID = Form(...),
    rating: int = Form(...),
    comment: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    tags: Optional[str] = Form(None, description="Comma separated tags for every photo"),
    image_descriptions: Optional[str] = Form(None, description="Comma separated, one per photo"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    uploads = await read_uploads(images)
    result = await ReviewService(session).create_review(
        current_user, item_type, item_id, rating, comment=comment, images=uploads,
        image_tags=parse_tags(tags), image_descriptions=parse_descriptions(image_descriptions),
    )
    return mutation_response("Review created successfully", result)


@router.get("/item/{item_type}/{item_id}", response_model=List[ReviewRead])
async def list_item_reviews(
    item_type: str,
    item_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    return await ReviewService(session).list_item_reviews(item_type, item_id)


@router.get("/user/{user_id}", response_model=List[ReviewRead])
async def list_user_reviews(
    user_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    return await ReviewService(session).list_user_reviews(user_id)


@router.get("/can-review", response_model=CanReviewResponse)
async def can_review(
    item_type: str = Query(...),
    item_id: UUID = Query(...),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Whether the current user has not yet reviewed the item"""
    eligibility = await ReviewService(session).can_review(current_user, item_type, item_id)
    return {
        "can_review": eligibility.can_review,
        "has_existing_review": eligibility.has_existing_review,
        "existing_review": eligibility.existing_review,
    }


@router.put("/{review_id}",
    response_model=ReviewMutationResponse,
    responses={403: {"description": "Not the review owner"}},
)
@limiter.limit(settings.RATE_LIMIT_WRITE)
async def update_review(
    request: Request,
    review_id: UUID,
    rating: Optional[int] = Form(None),
    comment: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    tags: Optional[str] = Form(None, description="Comma separated tags for every photo"),
    image_descriptions: Optional[str] = Form(None, description="Comma separated, one per photo"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update rating/comment and append photos"""
    uploads = await read_uploads(images)
    result = await ReviewService(session).update_review(
        review_id, current_user, rating=rating, comment=comment, images=uploads,
        image_tags=parse_tags(tags), image_descriptions=parse_descriptions(image_descriptions),
    )
    return mutation_response("Review updated successfully", result)


@router.delete("/{review_id}",
    response_model=ReviewMutationResponse,
    responses={403: {"description": "Not the review owner"}},
)
async def delete_review(
    review_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await ReviewService(session).delete_review(review_id, current_user)
    return mutation_response("Review deleted successfully", result)
