"""
Image service tests: primary image bookkeeping and access rules
"""

from uuid import uuid4

import pytest

from travelmate.core.errors import AuthorizationError, NotFoundError, ValidationError
from travelmate.core.images import ImageService, ImageUpload, decode_image
from travelmate.core.settings import settings
from travelmate.db.models import EntityType, ItemType, Review


def png(name="photo.png", data=b"\x89PNG\r\n\x1a\npixels"):
    return ImageUpload(filename=name, content_type="image/png", data=data)


async def primaries(service, entity_type, entity_id):
    images = await service.list_for_entity(entity_type, entity_id)
    return [image.id for image in images if image.is_primary]


@pytest.mark.asyncio
async def test_new_primary_unsets_previous(session, trip, store_admin):
    service = ImageService(session)
    first = await service.upload(store_admin, "trip", trip.id, png(), is_primary=True)
    second = await service.upload(store_admin, "trip", trip.id, png(), is_primary=True)

    assert await primaries(service, "trip", trip.id) == [second.id]
    await session.refresh(first)
    assert not first.is_primary
    await session.refresh(trip)
    assert trip.primary_image_id == second.id


@pytest.mark.asyncio
async def test_update_to_primary_unsets_siblings(session, trip, store_admin):
    service = ImageService(session)
    images = await service.upload_many(store_admin, "trip", trip.id, [png("a.png"), png("b.png"), png("c.png")])
    assert await primaries(service, "trip", trip.id) == [images[0].id]

    await service.update_image(store_admin, images[2].id, is_primary=True, tags=["cover"])

    assert await primaries(service, "trip", trip.id) == [images[2].id]
    listed = await service.list_for_entity("trip", trip.id)
    assert listed[0].id == images[2].id
    assert listed[0].tags == ["cover"]


@pytest.mark.asyncio
async def test_deleting_primary_clears_entity_pointer(session, trip, store_admin):
    service = ImageService(session)
    image = await service.upload(store_admin, "trip", trip.id, png(), is_primary=True)

    await service.delete_image(store_admin, image.id)

    await session.refresh(trip)
    assert trip.primary_image_id is None
    with pytest.raises(NotFoundError):
        await service.get_image(image.id)


@pytest.mark.asyncio
async def test_profile_image_is_recorded_on_user(session, traveler):
    service = ImageService(session)
    image = await service.upload(traveler, EntityType.USER, traveler.id, png(), is_primary=True)

    await session.refresh(traveler)
    assert traveler.profile_image_id == image.id


@pytest.mark.asyncio
async def test_payload_round_trip(session, destination, store_admin):
    service = ImageService(session)
    data = b"\xff\xd8\xff\xe0jpeg-bytes"
    image = await service.upload(
        store_admin, "destination", destination.id,
        ImageUpload(filename="city.jpg", content_type="image/jpeg", data=data),
    )

    assert image.size == len(data)
    assert image.url == f"/api/v1/images/{image.id}"
    assert decode_image(await service.get_image(image.id)) == data


@pytest.mark.asyncio
async def test_upload_validation(session, trip, store_admin):
    service = ImageService(session)
    with pytest.raises(ValidationError):
        await service.upload(store_admin, "trip", trip.id, png(data=b""))
    with pytest.raises(ValidationError):
        await service.upload(
            store_admin, "trip", trip.id,
            ImageUpload(filename="notes.txt", content_type="text/plain", data=b"hi"),
        )
    with pytest.raises(ValidationError):
        await service.upload(store_admin, "trip", trip.id, png(data=b"x" * (settings.MAX_IMAGE_SIZE_BYTES + 1)))
    with pytest.raises(ValidationError):
        await service.upload(store_admin, "boat", trip.id, png())
    with pytest.raises(NotFoundError):
        await service.upload(store_admin, "stay", uuid4(), png())
    with pytest.raises(ValidationError):
        await service.upload_many(store_admin, "trip", trip.id, [png()] * (settings.MAX_IMAGES_PER_UPLOAD + 1))


@pytest.mark.asyncio
async def test_only_uploader_or_admin_may_edit(session, trip, store_admin, traveler, admin):
    service = ImageService(session)
    image = await service.upload(store_admin, "trip", trip.id, png())

    with pytest.raises(AuthorizationError):
        await service.update_image(traveler, image.id, description="mine now")
    with pytest.raises(AuthorizationError):
        await service.delete_image(traveler, image.id)
    with pytest.raises(AuthorizationError):
        await service.list_for_user(traveler, store_admin.id)

    updated = await service.update_image(admin, image.id, description="Sunset over the river")
    assert updated.description == "Sunset over the river"
    assert [i.id for i in await service.list_for_user(store_admin, store_admin.id)] == [image.id]


@pytest.mark.asyncio
async def test_delete_uploaded_by_clears_primary_pointers(session, trip, store_admin):
    service = ImageService(session)
    await service.upload(store_admin, "trip", trip.id, png(), is_primary=True)

    removed = await service.delete_uploaded_by(store_admin.id)
    await session.commit()

    assert removed == 1
    await session.refresh(trip)
    assert trip.primary_image_id is None
    assert await service.list_for_entity("trip", trip.id) == []


@pytest.mark.asyncio
async def test_review_images_only_from_review_author(session, trip, traveler, other_traveler):
    review = Review(user_id=traveler.id, item_type=ItemType.TRIP, item_id=trip.id, rating=4)
    session.add(review)
    await session.commit()
    service = ImageService(session)

    with pytest.raises(AuthorizationError):
        await service.upload(other_traveler, "review", review.id, png())
    with pytest.raises(AuthorizationError):
        await service.upload_many(other_traveler, "review", review.id, [png()])
    assert await service.list_for_entity("review", review.id) == []


@pytest.mark.asyncio
async def test_profile_images_only_from_that_user(session, traveler, other_traveler, admin):
    service = ImageService(session)
    with pytest.raises(AuthorizationError):
        await service.upload(other_traveler, EntityType.USER, traveler.id, png())

    image = await service.upload(admin, EntityType.USER, traveler.id, png())
    assert image.entity_id == traveler.id


@pytest.mark.asyncio
async def test_review_uploads_are_linked_to_the_review(session, trip, traveler):
    review = Review(user_id=traveler.id, item_type=ItemType.TRIP, item_id=trip.id, rating=4)
    session.add(review)
    await session.commit()
    service = ImageService(session)

    single = await service.upload(traveler, "review", review.id, png())
    batch = await service.upload_many(traveler, "review", review.id, [png("a.png"), png("b.png")])

    await session.refresh(review)
    assert review.images == [str(single.id)] + [str(image.id) for image in batch]

    await service.delete_image(traveler, single.id)

    await session.refresh(review)
    assert review.images == [str(image.id) for image in batch]
