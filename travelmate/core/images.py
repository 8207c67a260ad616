"""
Image attachments for catalog items, users and reviews
"""

import base64
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union
from uuid import UUID

import structlog
from fastapi import UploadFile
from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travelmate.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from travelmate.core.settings import settings
from travelmate.core.targets import ATTACHABLE_MODELS, parse_entity_type, resolve_entity
from travelmate.db.crud import EntityStore
from travelmate.db.models import EntityType, Image, Review, User

logger = structlog.get_logger(__name__)


@dataclass
class ImageUpload:
    """Raw upload handed over by the HTTP layer"""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    async def from_upload_file(cls, upload: UploadFile) -> "ImageUpload":
        data = await upload.read()
        return cls(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            data=data,
        )


def decode_image(image: Image) -> bytes:
    """Payload bytes; tolerates data-URL prefixed base64"""
    payload = image.data.split(",", 1)[1] if image.data.startswith("data:") else image.data
    return base64.b64decode(payload)


class ImageService:
    """Stores image payloads and keeps one primary image per entity"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.images = EntityStore(session, Image)

    def validate_upload(self, upload: ImageUpload) -> None:
        if upload.size == 0:
            raise ValidationError(f"Image {upload.filename} is empty")
        if upload.content_type not in settings.ALLOWED_IMAGE_TYPES:
            raise ValidationError(
                f"Unsupported image type {upload.content_type}. "
                f"Allowed: {', '.join(settings.ALLOWED_IMAGE_TYPES)}"
            )
        if upload.size > settings.MAX_IMAGE_SIZE_BYTES:
            raise ValidationError(
                f"Image {upload.filename} exceeds {settings.MAX_IMAGE_SIZE_BYTES} bytes"
            )

    async def _unset_primary(self, entity_type: EntityType, entity_id: UUID, keep: Optional[UUID] = None) -> None:
        query = update(Image).where(
            Image.entity_type == entity_type,
            Image.entity_id == entity_id,
            Image.is_primary.is_(True),
        )
        if keep is not None:
            query = query.where(Image.id != keep)
        await self.session.execute(
            query.values(is_primary=False).execution_options(synchronize_session="fetch")
        )

    async def _record_primary(self, entity_type: EntityType, entity_id: UUID, image_id: Optional[UUID]) -> None:
        """Mirror the primary image onto the owning entity when it tracks one"""
        model = ATTACHABLE_MODELS[entity_type]
        field = "profile_image_id" if entity_type == EntityType.USER else "primary_image_id"
        if field not in model.model_fields:
            return
        await EntityStore(self.session, model).update_by_id(entity_id, {field: image_id})

    async def _stage(
        self,
        owner: User,
        entity_type: EntityType,
        entity_id: UUID,
        upload: ImageUpload,
        is_primary: bool,
        tags: Optional[Sequence[str]],
        description: Optional[str],
    ) -> Image:
        self.validate_upload(upload)
        if is_primary:
            await self._unset_primary(entity_type, entity_id)
        image = await self.images.create(Image(
            original_name=upload.filename,
            mimetype=upload.content_type,
            size=upload.size,
            data=base64.b64encode(upload.data).decode("ascii"),
            uploaded_by=owner.id,
            entity_type=entity_type,
            entity_id=entity_id,
            is_primary=is_primary,
            tags=list(tags or []),
            description=description,
        ))
        if is_primary:
            await self._record_primary(entity_type, entity_id, image.id)
        return image

    async def stage_review_images(
        self,
        owner: User,
        review_id: UUID,
        uploads: Iterable[ImageUpload],
        tags: Optional[Sequence[str]] = None,
        descriptions: Sequence[str] = (),
    ) -> List[Image]:
        """Attach review photos inside the caller's transaction

        Every photo carries the same tags; descriptions[i] belongs to the i-th upload.
        """
        return [
            await self._stage(
                owner, EntityType.REVIEW, review_id, upload, False, tags,
                (descriptions[index] if index < len(descriptions) else None) or None,
            )
            for index, upload in enumerate(uploads)
        ]

    def _check_attach(self, owner: User, kind: EntityType, entity) -> None:
        """Profile and review images come from their owner or an admin"""
        if owner.is_admin:
            return
        if kind == EntityType.USER and entity.id != owner.id:
            raise AuthorizationError("Not authorized to attach images to this user")
        if kind == EntityType.REVIEW and entity.user_id != owner.id:
            raise AuthorizationError("You can only attach images to your own reviews")

    async def _link_review_images(self, review: Review, images: Sequence[Image]) -> None:
        """Append image ids to the review's ordered image list"""
        linked = list(review.images or []) + [str(image.id) for image in images]
        await EntityStore(self.session, Review).update_by_id(review.id, {"images": linked})

    async def _unlink_review_image(self, review_id: UUID, image_id: UUID) -> None:
        review = await EntityStore(self.session, Review).find_by_id(review_id)
        if review is None or str(image_id) not in (review.images or []):
            return
        remaining = [linked for linked in review.images if linked != str(image_id)]
        await EntityStore(self.session, Review).update_by_id(review.id, {"images": remaining})

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Another primary image was set concurrently; retry the request")

    async def upload(
        self,
        owner: User,
        entity_type: Union[str, EntityType],
        entity_id: UUID,
        upload: ImageUpload,
        is_primary: bool = False,
        tags: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
    ) -> Image:
        kind = parse_entity_type(entity_type)
        entity = await resolve_entity(self.session, kind, entity_id)
        self._check_attach(owner, kind, entity)
        image = await self._stage(owner, kind, entity_id, upload, is_primary, tags, description)
        if kind == EntityType.REVIEW:
            await self._link_review_images(entity, [image])
        await self._commit()
        logger.info("image_uploaded", image_id=str(image.id), entity_type=kind.value,
                    entity_id=str(entity_id), is_primary=is_primary)
        return image

    async def upload_many(
        self,
        owner: User,
        entity_type: Union[str, EntityType],
        entity_id: UUID,
        uploads: Sequence[ImageUpload],
        tags: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
    ) -> List[Image]:
        """Upload a batch; the first image becomes the entity's primary"""
        if not uploads:
            raise ValidationError("No images provided")
        if len(uploads) > settings.MAX_IMAGES_PER_UPLOAD:
            raise ValidationError(f"At most {settings.MAX_IMAGES_PER_UPLOAD} images per upload")
        kind = parse_entity_type(entity_type)
        entity = await resolve_entity(self.session, kind, entity_id)
        self._check_attach(owner, kind, entity)
        images = []
        for index, upload in enumerate(uploads):
            images.append(await self._stage(owner, kind, entity_id, upload, index == 0, tags, description))
        if kind == EntityType.REVIEW:
            await self._link_review_images(entity, images)
        await self._commit()
        logger.info("images_uploaded", count=len(images), entity_type=kind.value, entity_id=str(entity_id))
        return images

    async def get_image(self, image_id: UUID) -> Image:
        image = await self.images.find_by_id(image_id)
        if image is None:
            raise NotFoundError("Image not found")
        return image

    async def list_for_entity(self, entity_type: Union[str, EntityType], entity_id: UUID) -> List[Image]:
        kind = parse_entity_type(entity_type)
        return await self.images.find(
            Image.entity_type == kind,
            Image.entity_id == entity_id,
            order_by=[desc(Image.is_primary), desc(Image.created_at)],
        )

    async def list_for_user(self, actor: User, user_id: UUID) -> List[Image]:
        if not actor.is_admin and actor.id != user_id:
            raise AuthorizationError("Not authorized to view these images")
        return await self.images.find(Image.uploaded_by == user_id, order_by=[desc(Image.created_at)])

    def _check_owner(self, actor: User, image: Image, action: str) -> None:
        if not actor.is_admin and image.uploaded_by != actor.id:
            raise AuthorizationError(f"Not authorized to {action} this image")

    async def update_image(
        self,
        actor: User,
        image_id: UUID,
        is_primary: Optional[bool] = None,
        tags: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
    ) -> Image:
        image = await self.get_image(image_id)
        self._check_owner(actor, image, "edit")

        if is_primary:
            await self._unset_primary(image.entity_type, image.entity_id, keep=image.id)
            await self._record_primary(image.entity_type, image.entity_id, image.id)
        elif is_primary is False and image.is_primary:
            await self._record_primary(image.entity_type, image.entity_id, None)

        patch = {}
        if is_primary is not None:
            patch["is_primary"] = is_primary
        if tags is not None:
            patch["tags"] = list(tags)
        if description is not None:
            patch["description"] = description
        image = await self.images.update_by_id(image.id, patch)
        await self._commit()
        logger.info("image_updated", image_id=str(image_id), fields=sorted(patch))
        return image

    async def delete_image(self, actor: User, image_id: UUID) -> None:
        image = await self.get_image(image_id)
        self._check_owner(actor, image, "delete")
        if image.is_primary:
            await self._record_primary(image.entity_type, image.entity_id, None)
        if image.entity_type == EntityType.REVIEW:
            await self._unlink_review_image(image.entity_id, image.id)
        await self.images.delete_by_id(image.id)
        await self.session.commit()
        logger.info("image_deleted", image_id=str(image_id))

    async def delete_for_entity(self, entity_type: EntityType, entity_id: UUID) -> int:
        """Remove every image attached to an entity inside the caller's transaction"""
        return await self.images.delete_many(
            Image.entity_type == entity_type,
            Image.entity_id == entity_id,
        )

    async def delete_uploaded_by(self, user_id: UUID) -> int:
        """Remove a user's uploads, clearing primary pointers they held; no commit"""
        primaries = await self.images.find(Image.uploaded_by == user_id, Image.is_primary.is_(True))
        for image in primaries:
            await self._record_primary(image.entity_type, image.entity_id, None)
        return await self.images.delete_many(Image.uploaded_by == user_id)
