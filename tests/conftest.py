from __future__ import annotations

from pathlib import Path
from typing import Iterator, List, Optional

import pytest
from starlette.testclient import TestClient

from foodrescue.api import create_app
from foodrescue.config import Settings
from foodrescue.database import make_engine
from foodrescue.rate_limit import RateLimiter
from foodrescue.storage import DatabaseStorage, MemoryStorage, Storage


class FakeAI:
    """Stands in for AIGateway in route tests; never touches the network."""

    def __init__(self, configured: bool = True, reply: str = "Happy to help!",
                 suggestion: Optional[dict] = None, error: Optional[Exception] = None):
        self.configured = configured
        self.reply = reply
        self.suggestion = suggestion or {
            "title": "Sourdough Loaves",
            "description": "Crusty sourdough, baked today.",
            "quantity": "6 loaves",
            "category": "bakery",
            "freshness_score": 92,
            "quality_score": 88,
            "defects_detected": [],
        }
        self.error = error
        self.calls: List[tuple] = []

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def chat(self, messages):
        self.calls.append(("chat", messages))
        self._maybe_fail()
        return self.reply

    def detect_food(self, image_bytes, mime_type="image/jpeg"):
        self.calls.append(("detect_food", len(image_bytes), mime_type))
        self._maybe_fail()
        return self.suggestion

    def analyze_supplier(self, rating, supplier_name):
        self.calls.append(("analyze_supplier", rating.id, supplier_name))
        self._maybe_fail()
        return {"reasoning": f"{supplier_name} is reliable.", "factors": {}, "confidence": 0.8}


def listing_form(**overrides) -> dict:
    form = {
        "title": "Bread",
        "description": "d",
        "quantity": "1",
        "category": "bakery",
        "location": "X",
        "latitude": "1",
        "longitude": "2",
        "pickupTimeStart": "2025-06-01T10:00:00.000Z",
        "pickupTimeEnd": "2025-06-01T16:00:00.000Z",
        "freshnessScore": "85",
        "qualityScore": "85",
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


@pytest.fixture(params=["memory", "database"])
def storage(request) -> Iterator[Storage]:
    if request.param == "memory":
        yield MemoryStorage()
        return
    engine = make_engine("sqlite://")
    db_storage = DatabaseStorage(engine)
    db_storage.init()
    yield db_storage
    engine.dispose()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(storage_backend="memory", upload_dir=tmp_path / "uploads")


@pytest.fixture
def fake_ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def app(settings, storage, fake_ai):
    return create_app(settings=settings, storage=storage, rate_limiter=RateLimiter(), ai=fake_ai)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_listing(client):
    def _make(**overrides) -> dict:
        response = client.post("/api/food-listings", data=listing_form(**overrides))
        assert response.status_code == 201, response.text
        return response.json()
    return _make
