"""
HTTP-level tests through the ASGI app
"""

import re

import pytest

PNG_BYTES = b"\x89PNG\r\n\x1a\nphoto"


@pytest.mark.asyncio
async def test_register_login_and_me(client):
    response = await client.post("/api/v1/auth/register", json={
        "username": "Ana_Silva",
        "email": "ana@example.com",
        "password": "Secret123",
    })
    assert response.status_code == 201
    assert response.json()["username"] == "ana_silva"
    assert "password_hash" not in response.json()

    duplicate = await client.post("/api/v1/auth/register", json={
        "username": "ana_silva", "email": "other@example.com", "password": "Secret123",
    })
    assert duplicate.status_code == 409

    bad_login = await client.post("/api/v1/auth/login", data={"username": "ana_silva", "password": "nope"})
    assert bad_login.status_code == 401

    login = await client.post("/api/v1/auth/login", data={"username": "ana@example.com", "password": "Secret123"})
    assert login.status_code == 200
    tokens = login.json()

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "ana@example.com"

    refreshed = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    headers = {"Authorization": f"Bearer {refreshed.json()['access_token']}"}
    assert (await client.post("/api/v1/auth/logout", headers=headers)).status_code == 200
    assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 401


@pytest.mark.asyncio
async def test_weak_password_is_rejected(client):
    response = await client.post("/api/v1/auth/register", json={
        "username": "weakling", "email": "weak@example.com", "password": "alllowercase",
    })
    assert response.status_code == 400
    assert response.json()["errors"]


@pytest.mark.asyncio
async def test_review_flow(client, auth, trip, traveler):
    form = {"item_type": "trip", "item_id": str(trip.id), "rating": "4", "comment": "Great guide"}
    created = await client.post(
        "/api/v1/reviews/",
        data=form,
        files=[("images", ("view.png", PNG_BYTES, "image/png"))],
        headers=auth(traveler),
    )
    assert created.status_code == 201
    body = created.json()
    assert body["rating_updated"] is True
    assert body["average_rating"] == 4.0
    assert len(body["review"]["images"]) == 1

    again = await client.post("/api/v1/reviews/", data=form, headers=auth(traveler))
    assert again.status_code == 409
    assert again.json()["existing_review_id"] == body["review"]["id"]

    eligibility = await client.get(
        "/api/v1/reviews/can-review",
        params={"item_type": "trip", "item_id": str(trip.id)},
        headers=auth(traveler),
    )
    assert eligibility.json()["can_review"] is False
    assert eligibility.json()["existing_review"]["id"] == body["review"]["id"]

    updated = await client.put(
        f"/api/v1/reviews/{body['review']['id']}", data={"rating": "2"}, headers=auth(traveler),
    )
    assert updated.status_code == 200
    assert updated.json()["average_rating"] == 2.0

    listed = await client.get(f"/api/v1/reviews/item/trip/{trip.id}")
    assert [r["rating"] for r in listed.json()] == [2]

    trip_read = await client.get(f"/api/v1/trips/{trip.id}")
    assert trip_read.json()["average_rating"] == 2.0

    deleted = await client.delete(f"/api/v1/reviews/{body['review']['id']}", headers=auth(traveler))
    assert deleted.status_code == 200
    assert deleted.json()["average_rating"] == 0.0


@pytest.mark.asyncio
async def test_review_rejects_bad_rating_and_type(client, auth, trip, traveler):
    out_of_range = await client.post(
        "/api/v1/reviews/",
        data={"item_type": "trip", "item_id": str(trip.id), "rating": "9"},
        headers=auth(traveler),
    )
    assert out_of_range.status_code == 400

    unknown = await client.post(
        "/api/v1/reviews/",
        data={"item_type": "castle", "item_id": str(trip.id), "rating": "3"},
        headers=auth(traveler),
    )
    assert unknown.status_code == 400

    fractional = await client.post(
        "/api/v1/reviews/",
        data={"item_type": "trip", "item_id": str(trip.id), "rating": "3.5"},
        headers=auth(traveler),
    )
    assert fractional.status_code == 422


@pytest.mark.asyncio
async def test_review_requires_authentication(client, trip):
    response = await client.post(
        "/api/v1/reviews/", data={"item_type": "trip", "item_id": str(trip.id), "rating": "3"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_review_photo_metadata_and_attachment_owner(client, auth, trip, traveler, other_traveler):
    created = await client.post(
        "/api/v1/reviews/",
        data={
            "item_type": "trip", "item_id": str(trip.id), "rating": "5",
            "tags": "tram, hills", "image_descriptions": "Tram 28,Miradouro",
        },
        files=[("images", ("a.png", PNG_BYTES, "image/png")), ("images", ("b.png", PNG_BYTES, "image/png"))],
        headers=auth(traveler),
    )
    assert created.status_code == 201
    review_id = created.json()["review"]["id"]

    listed = await client.get(f"/api/v1/images/entity/review/{review_id}")
    photos = {image["description"]: image["tags"] for image in listed.json()}
    assert photos == {"Tram 28": ["tram", "hills"], "Miradouro": ["tram", "hills"]}

    intruder = await client.post(
        "/api/v1/images/upload",
        data={"entity_type": "review", "entity_id": review_id},
        files={"image": ("c.png", PNG_BYTES, "image/png")},
        headers=auth(other_traveler),
    )
    assert intruder.status_code == 403

    added = await client.post(
        "/api/v1/images/upload",
        data={"entity_type": "review", "entity_id": review_id},
        files={"image": ("c.png", PNG_BYTES, "image/png")},
        headers=auth(traveler),
    )
    assert added.status_code == 201
    reviews = await client.get(f"/api/v1/reviews/item/trip/{trip.id}")
    assert reviews.json()[0]["images"][-1] == added.json()["id"]
    assert len(reviews.json()[0]["images"]) == 3


@pytest.mark.asyncio
async def test_booking_and_payment(client, auth, trip, traveler, other_traveler):
    created = await client.post("/api/v1/bookings/", json={
        "target": {
            "booking_type": "Trip",
            "trip_id": str(trip.id),
            "trip_details": {
                "travel_date": {"start_date": "2026-05-01", "end_date": "2026-05-03"},
                "travelers": 2,
            },
        },
        "total_price": "98.00",
    }, headers=auth(traveler))
    assert created.status_code == 201
    booking = created.json()
    assert booking["status"] == "Pending"
    assert booking["target_id"] == str(trip.id)
    assert booking["details"]["trip_details"]["travelers"] == 2

    forbidden = await client.get(f"/api/v1/bookings/{booking['id']}", headers=auth(other_traveler))
    assert forbidden.status_code == 403

    paid = await client.post("/api/v1/payments/", json={
        "booking_id": booking["id"], "payment_method": "Credit Card", "amount": "98.00",
    }, headers=auth(traveler))
    assert paid.status_code == 200
    result = paid.json()
    assert result["success"] is True
    assert re.fullmatch(r"TXN-[A-Z0-9]{9}", result["transaction_id"])
    assert result["booking"]["status"] == "Confirmed"
    assert result["booking"]["payment_details"]["transaction_id"] == result["transaction_id"]


@pytest.mark.asyncio
async def test_booking_target_must_match_variant(client, auth, trip, traveler):
    mismatched = await client.post("/api/v1/bookings/", json={
        "target": {"booking_type": "Stay", "trip_id": str(trip.id)},
        "total_price": "10",
    }, headers=auth(traveler))
    assert mismatched.status_code == 422

    missing = await client.post("/api/v1/bookings/", json={
        "target": {"booking_type": "Trip", "trip_id": "00000000-0000-0000-0000-000000000000"},
        "total_price": "10",
    }, headers=auth(traveler))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_booking_update_rejects_null_status(client, auth, trip, traveler):
    created = await client.post("/api/v1/bookings/", json={
        "target": {"booking_type": "Trip", "trip_id": str(trip.id)},
        "total_price": "10",
    }, headers=auth(traveler))
    booking_id = created.json()["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}", json={"status": None}, headers=auth(traveler))
    assert response.status_code == 400
    assert response.json()["fields"] == ["status"]

    fetched = await client.get(f"/api/v1/bookings/{booking_id}", headers=auth(traveler))
    assert fetched.json()["status"] == "Pending"


@pytest.mark.asyncio
async def test_admin_only_booking_listing(client, auth, traveler, admin):
    assert (await client.get("/api/v1/bookings/", headers=auth(traveler))).status_code == 403
    assert (await client.get("/api/v1/bookings/", headers=auth(admin))).status_code == 200


@pytest.mark.asyncio
async def test_image_upload_and_fetch(client, auth, trip, store_admin):
    uploaded = await client.post(
        "/api/v1/images/upload",
        data={"entity_type": "trip", "entity_id": str(trip.id), "is_primary": "true", "tags": "cover, river"},
        files={"image": ("cover.png", PNG_BYTES, "image/png")},
        headers=auth(store_admin),
    )
    assert uploaded.status_code == 201
    image = uploaded.json()
    assert image["tags"] == ["cover", "river"]
    assert image["is_primary"] is True

    raw = await client.get(f"/api/v1/images/{image['id']}")
    assert raw.status_code == 200
    assert raw.content == PNG_BYTES
    assert raw.headers["content-type"] == "image/png"
    assert "max-age=31536000" in raw.headers["cache-control"]

    listed = await client.get(f"/api/v1/images/entity/trip/{trip.id}")
    assert [i["id"] for i in listed.json()] == [image["id"]]

    trip_read = await client.get(f"/api/v1/trips/{trip.id}")
    assert trip_read.json()["primary_image_id"] == image["id"]


@pytest.mark.asyncio
async def test_image_upload_rejects_unsupported_type(client, auth, trip, store_admin):
    response = await client.post(
        "/api/v1/images/upload",
        data={"entity_type": "trip", "entity_id": str(trip.id)},
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=auth(store_admin),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_catalog_create_requires_store_admin(client, auth, traveler, store_admin):
    payload = {"title": "Sintra day trip", "duration": "1 day", "price": "75.50"}

    assert (await client.post("/api/v1/trips/", json=payload, headers=auth(traveler))).status_code == 403

    created = await client.post("/api/v1/trips/", json=payload, headers=auth(store_admin))
    assert created.status_code == 201
    assert created.json()["owner_id"] == str(store_admin.id)
    assert created.json()["average_rating"] == 0.0


@pytest.mark.asyncio
async def test_catalog_update_rejects_null_title(client, auth, trip, store_admin):
    response = await client.put(f"/api/v1/trips/{trip.id}", json={"title": None}, headers=auth(store_admin))
    assert response.status_code == 400
    assert response.json()["fields"] == ["title"]

    trip_read = await client.get(f"/api/v1/trips/{trip.id}")
    assert trip_read.json()["title"] == "Alfama walking tour"


@pytest.mark.asyncio
async def test_unknown_item_is_404(client):
    response = await client.get("/api/v1/stays/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["detail"] == "Stay not found"


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert "database" in response.json()["components"]
