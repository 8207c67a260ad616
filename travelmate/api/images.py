"""
Image upload, metadata and raw payload endpoints
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.images import ImageService, ImageUpload, decode_image
from travelmate.core.limits import limiter
from travelmate.core.security import get_current_user
from travelmate.core.settings import settings
from travelmate.db.models import User
from travelmate.db.session import get_session
from travelmate.api.schemas import ImageRead, ImageUpdate, MessageResponse

router = APIRouter(prefix="/images", tags=["images"])


def parse_tags(tags: Optional[str]) -> List[str]:
    """Comma separated form field to a tag list"""
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


@router.post("/upload",
    response_model=ImageRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Empty, oversized or unsupported image"}},
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_image(
    request: Request,
    entity_type: str = Form(...),
    entity_id: UUID = Form(...),
    is_primary: bool = Form(False),
    tags: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    upload = await ImageUpload.from_upload_file(image)
    return await ImageService(session).upload(
        current_user, entity_type, entity_id, upload,
        is_primary=is_primary, tags=parse_tags(tags), description=description,
    )


@router.post("/upload-multiple",
    response_model=List[ImageRead],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_images(
    request: Request,
    entity_type: str = Form(...),
    entity_id: UUID = Form(...),
    tags: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    images: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Upload several images; the first becomes the primary"""
    uploads = [await ImageUpload.from_upload_file(image) for image in images]
    return await ImageService(session).upload_many(
        current_user, entity_type, entity_id, uploads,
        tags=parse_tags(tags), description=description,
    )


@router.get("/entity/{entity_type}/{entity_id}", response_model=List[ImageRead])
async def list_entity_images(
    entity_type: str,
    entity_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    return await ImageService(session).list_for_entity(entity_type, entity_id)


@router.get("/user/{user_id}", response_model=List[ImageRead])
async def list_user_images(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await ImageService(session).list_for_user(current_user, user_id)


@router.get("/{image_id}",
    response_class=Response,
    responses={200: {"content": {"image/*": {}}}, 404: {"description": "Image not found"}},
)
async def get_image(image_id: UUID, session: AsyncSession = Depends(get_session)):
    """Raw image bytes with the stored content type"""
    image = await ImageService(session).get_image(image_id)
    return Response(
        content=decode_image(image),
        media_type=image.mimetype,
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.put("/{image_id}", response_model=ImageRead)
async def update_image(
    image_id: UUID,
    payload: ImageUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await ImageService(session).update_image(
        current_user, image_id,
        is_primary=payload.is_primary, tags=payload.tags, description=payload.description,
    )


@router.delete("/{image_id}", response_model=MessageResponse)
async def delete_image(
    image_id: UUID,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await ImageService(session).delete_image(current_user, image_id)
    return {"message": "Image deleted successfully"}
