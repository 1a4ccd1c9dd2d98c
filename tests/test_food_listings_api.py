from __future__ import annotations

import json
from datetime import datetime, timezone

from starlette.testclient import TestClient

from foodrescue.api import create_app
from foodrescue.models import FoodListing
from foodrescue.storage import MemoryStorage
from tests.conftest import FakeAI, listing_form

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_create_listing_echoes_fields_and_sets_defaults(client) -> None:
    response = client.post("/api/food-listings", data=listing_form())

    assert response.status_code == 201
    body = response.json()
    assert body["id"]
    assert body["status"] == "available"
    assert body["createdAt"].endswith("Z")
    assert body["title"] == "Bread"
    assert body["description"] == "d"
    assert body["quantity"] == "1"
    assert body["category"] == "bakery"
    assert body["location"] == "X"
    assert body["latitude"] == 1
    assert body["longitude"] == 2
    assert body["pickupTimeStart"] == "2025-06-01T10:00:00Z"
    assert body["pickupTimeEnd"] == "2025-06-01T16:00:00Z"
    assert body["freshnessScore"] == 85
    assert body["qualityScore"] == 85
    assert body["imageUrl"] is None
    assert body["cost"] is None
    assert body["defectsDetected"] == []


def test_create_listing_ignores_client_supplied_status(client) -> None:
    body = client.post("/api/food-listings", data=listing_form(status="claimed", id="mine")).json()
    assert body["status"] == "available"
    assert body["id"] != "mine"


def test_missing_or_blank_scores_default_to_85(client) -> None:
    body = client.post(
        "/api/food-listings", data=listing_form(freshnessScore=None, qualityScore="")
    ).json()
    assert body["freshnessScore"] == 85
    assert body["qualityScore"] == 85


def test_unparseable_score_is_rejected(client) -> None:
    response = client.post("/api/food-listings", data=listing_form(freshnessScore="very fresh"))

    assert response.status_code == 400
    body = response.json()
    assert body["error"]
    assert any("freshnessScore" in detail["loc"] for detail in body["details"])


def test_out_of_range_score_is_rejected(client) -> None:
    response = client.post("/api/food-listings", data=listing_form(qualityScore="101"))
    assert response.status_code == 400


def test_missing_required_field_is_rejected(client) -> None:
    response = client.post("/api/food-listings", data=listing_form(title=None))

    assert response.status_code == 400
    assert any("title" in detail["loc"] for detail in response.json()["details"])


def test_pickup_end_before_start_is_rejected(client) -> None:
    response = client.post(
        "/api/food-listings",
        data=listing_form(pickupTimeStart="2025-06-01T16:00:00Z", pickupTimeEnd="2025-06-01T10:00:00Z"),
    )
    assert response.status_code == 400


def test_json_encoded_fields_are_decoded(client) -> None:
    body = client.post(
        "/api/food-listings",
        data=listing_form(
            defectsDetected=json.dumps(["bruising"]),
            aiAnalysis=json.dumps({"model": "vision", "confidence": 0.9}),
            cost="Free",
        ),
    ).json()

    assert body["defectsDetected"] == ["bruising"]
    assert body["aiAnalysis"] == {"model": "vision", "confidence": 0.9}
    assert body["cost"] == "Free"


def test_malformed_json_field_is_rejected(client) -> None:
    response = client.post("/api/food-listings", data=listing_form(defectsDetected="[bruising"))
    assert response.status_code == 400


def test_json_body_is_accepted(client) -> None:
    payload = {**listing_form(), "latitude": 1.5, "defectsDetected": ["dented can"]}
    response = client.post("/api/food-listings", json=payload)

    assert response.status_code == 201
    assert response.json()["defectsDetected"] == ["dented can"]


def test_image_upload_is_stored_and_served(client, settings) -> None:
    response = client.post(
        "/api/food-listings",
        data=listing_form(),
        files={"image": ("bread.png", PNG_BYTES, "image/png")},
    )

    assert response.status_code == 201
    image_url = response.json()["imageUrl"]
    assert image_url.startswith("/uploads/") and image_url.endswith(".png")
    assert (settings.upload_dir / image_url.rsplit("/", 1)[1]).read_bytes() == PNG_BYTES

    served = client.get(image_url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES
    assert served.headers["access-control-allow-origin"] == "*"


def test_non_image_upload_is_rejected(client) -> None:
    response = client.post(
        "/api/food-listings",
        data=listing_form(),
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Only image files are allowed!"}
    assert client.get("/api/food-listings").json() == []


def test_unknown_upload_is_404(client) -> None:
    assert client.get("/uploads/nothing-here.png").status_code == 404


def test_claimed_listing_leaves_available_list(client, make_listing) -> None:
    listing = make_listing()
    other = make_listing(title="Milk", category="dairy")

    patched = client.patch(f"/api/food-listings/{listing['id']}", json={"status": "claimed"})
    assert patched.status_code == 200
    assert patched.json()["status"] == "claimed"

    available_ids = [l["id"] for l in client.get("/api/food-listings").json()]
    assert available_ids == [other["id"]]

    fetched = client.get(f"/api/food-listings/{listing['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "claimed"


def test_patch_only_writes_status(client, make_listing) -> None:
    listing = make_listing(donorId="donor-1")

    response = client.patch(
        f"/api/food-listings/{listing['id']}",
        json={"donorId": "x", "freshnessScore": 1, "title": "Hijacked"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["donorId"] == "donor-1"
    assert body["freshnessScore"] == 85
    assert body["title"] == "Bread"
    assert body["status"] == "available"


def test_patch_rejects_unknown_status(client, make_listing) -> None:
    listing = make_listing()
    response = client.patch(f"/api/food-listings/{listing['id']}", json={"status": "eaten"})
    assert response.status_code == 400


def test_patch_unknown_listing_is_404(client) -> None:
    response = client.patch("/api/food-listings/missing", json={"status": "claimed"})
    assert response.status_code == 404
    assert response.json() == {"error": "Food listing not found"}


def test_get_unknown_listing_is_404_even_when_others_exist(client, make_listing) -> None:
    make_listing()

    response = client.get("/api/food-listings/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Food listing not found"}


def test_delete_twice(client, make_listing) -> None:
    listing = make_listing()

    first = client.delete(f"/api/food-listings/{listing['id']}")
    second = client.delete(f"/api/food-listings/{listing['id']}")

    assert first.status_code == 204
    assert first.content == b""
    assert second.status_code == 404


def test_repeated_get_is_byte_identical(client, make_listing) -> None:
    listing = make_listing(defectsDetected=json.dumps(["dent"]))

    first = client.get(f"/api/food-listings/{listing['id']}")
    second = client.get(f"/api/food-listings/{listing['id']}")

    assert first.content == second.content


def test_storage_failure_is_a_generic_500(settings) -> None:
    class BrokenStorage(MemoryStorage):
        def list_food_listings(self, available_only=False):
            raise RuntimeError("connection to db-host:5432 refused")

    app = create_app(settings=settings, storage=BrokenStorage(), ai=FakeAI())
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/food-listings")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert "db-host" not in response.text


def test_claimed_listing_cannot_be_reopened(client, make_listing) -> None:
    listing = make_listing()
    client.patch(f"/api/food-listings/{listing['id']}", json={"status": "claimed"})

    response = client.patch(f"/api/food-listings/{listing['id']}", json={"status": "available"})

    assert response.status_code == 400
    assert client.get(f"/api/food-listings/{listing['id']}").json()["status"] == "claimed"
    assert client.get("/api/food-listings").json() == []


def test_malformed_json_body_is_a_400(client) -> None:
    response = client.post(
        "/api/food-listings",
        content=b'{"title": "Bread",',
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Request body is not valid JSON"}
    assert client.get("/api/food-listings").json() == []


def test_stored_row_outside_create_rules_is_still_readable(client, storage) -> None:
    row = storage._insert(FoodListing(
        title="Legacy import",
        description="Imported before score limits existed",
        quantity="1 crate",
        category="produce",
        location="Old warehouse",
        latitude=44.6,
        longitude=-63.5,
        pickup_time_start=datetime(2025, 6, 1, 16, 0, tzinfo=timezone.utc),
        pickup_time_end=datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc),
        freshness_score=150,
        quality_score=-5,
    ))

    response = client.get(f"/api/food-listings/{row.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["freshnessScore"] == 150
    assert body["pickupTimeEnd"] == "2025-06-01T10:00:00Z"
    assert [l["id"] for l in client.get("/api/food-listings").json()] == [row.id]
