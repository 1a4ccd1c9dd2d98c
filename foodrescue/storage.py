# foodrescue/storage.py
"""Entity storage behind one interface.

``Storage`` exposes the per-entity CRUD calls used by the routes and is
written against five primitives (insert, fetch, query, patch, remove).
``MemoryStorage`` keeps entities in dicts; ``DatabaseStorage`` keeps them in
the relational database through SQLModel sessions. Neither validates input.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select

from .config import Settings
from .database import init_db, make_engine
from .logging import get_logger
from .models import Claim, FoodListing, Organization, SensorData, SupplierRating, User, utcnow
from .schemas import (
    ClaimCreate,
    FoodListingCreate,
    OrganizationCreate,
    SensorDataCreate,
    SupplierRatingCreate,
    UserCreate,
)

log = get_logger("storage")

T = TypeVar("T", bound=SQLModel)


def _merge(entity: SQLModel, fields: Dict[str, Any]) -> None:
    known = type(entity).model_fields
    for key, value in fields.items():
        if key in known and key != "id":
            setattr(entity, key, value)


class Storage(ABC):

    # --- primitives ---

    @abstractmethod
    def _insert(self, entity: T) -> T: ...

    @abstractmethod
    def _fetch(self, model: Type[T], entity_id: str) -> Optional[T]: ...

    @abstractmethod
    def _query(self, model: Type[T], filters: Optional[Dict[str, Any]] = None,
               newest_first_by: Optional[str] = None) -> List[T]: ...

    @abstractmethod
    def _patch(self, model: Type[T], entity_id: str, fields: Dict[str, Any]) -> Optional[T]: ...

    @abstractmethod
    def _remove(self, model: Type[T], entity_id: str) -> bool: ...

    def init(self) -> None:
        """Prepare the backend (create tables etc.). No-op by default."""

    # --- users ---

    def create_user(self, data: UserCreate) -> User:
        return self._insert(User(**data.model_dump()))

    def get_user(self, user_id: str) -> Optional[User]:
        return self._fetch(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        found = self._query(User, {"username": username})
        return found[0] if found else None

    def list_users(self) -> List[User]:
        return self._query(User)

    # --- food listings ---

    def create_food_listing(self, data: FoodListingCreate) -> FoodListing:
        return self._insert(FoodListing(**data.model_dump()))

    def get_food_listing(self, listing_id: str) -> Optional[FoodListing]:
        return self._fetch(FoodListing, listing_id)

    def list_food_listings(self, available_only: bool = False) -> List[FoodListing]:
        return self._query(FoodListing, {"status": "available"} if available_only else None)

    def update_food_listing(self, listing_id: str, fields: Dict[str, Any]) -> Optional[FoodListing]:
        return self._patch(FoodListing, listing_id, fields)

    def delete_food_listing(self, listing_id: str) -> bool:
        return self._remove(FoodListing, listing_id)

    # --- sensor data ---

    def create_sensor_data(self, data: SensorDataCreate) -> SensorData:
        return self._insert(SensorData(**data.model_dump()))

    def get_sensor_data(self, reading_id: str) -> Optional[SensorData]:
        return self._fetch(SensorData, reading_id)

    def list_sensor_data(self, listing_id: str) -> List[SensorData]:
        return self._query(SensorData, {"listing_id": listing_id}, newest_first_by="timestamp")

    # --- claims ---

    def create_claim(self, listing_id: str, data: ClaimCreate) -> Claim:
        return self._insert(Claim(listing_id=listing_id, **data.model_dump()))

    def get_claim(self, claim_id: str) -> Optional[Claim]:
        return self._fetch(Claim, claim_id)

    def list_claims(self) -> List[Claim]:
        return self._query(Claim)

    def update_claim(self, claim_id: str, fields: Dict[str, Any]) -> Optional[Claim]:
        return self._patch(Claim, claim_id, fields)

    # --- organizations ---

    def create_organization(self, data: OrganizationCreate) -> Organization:
        return self._insert(Organization(**data.model_dump()))

    def get_organization(self, organization_id: str) -> Optional[Organization]:
        return self._fetch(Organization, organization_id)

    def list_organizations(self) -> List[Organization]:
        return self._query(Organization)

    def update_organization(self, organization_id: str, fields: Dict[str, Any]) -> Optional[Organization]:
        return self._patch(Organization, organization_id, fields)

    # --- supplier ratings ---

    def create_supplier_rating(self, data: SupplierRatingCreate) -> SupplierRating:
        return self._insert(SupplierRating(**data.model_dump()))

    def get_supplier_rating(self, rating_id: str) -> Optional[SupplierRating]:
        return self._fetch(SupplierRating, rating_id)

    def list_supplier_ratings(self) -> List[SupplierRating]:
        return self._query(SupplierRating)

    def update_supplier_rating(self, rating_id: str, fields: Dict[str, Any]) -> Optional[SupplierRating]:
        return self._patch(SupplierRating, rating_id, {**fields, "updated_at": utcnow()})


class MemoryStorage(Storage):
    """Process-local storage for tests and development. Nothing survives a restart."""

    def __init__(self):
        self._tables: Dict[type, Dict[str, SQLModel]] = defaultdict(dict)

    def _insert(self, entity):
        self._tables[type(entity)][entity.id] = entity
        return entity

    def _fetch(self, model, entity_id):
        return self._tables[model].get(entity_id)

    def _query(self, model, filters=None, newest_first_by=None):
        rows = [
            row for row in self._tables[model].values()
            if all(getattr(row, key) == value for key, value in (filters or {}).items())
        ]
        if newest_first_by:
            rows.sort(key=lambda row: getattr(row, newest_first_by), reverse=True)
        return rows

    def _patch(self, model, entity_id, fields):
        entity = self._tables[model].get(entity_id)
        if entity is None:
            return None
        _merge(entity, fields)
        return entity

    def _remove(self, model, entity_id):
        return self._tables[model].pop(entity_id, None) is not None


class DatabaseStorage(Storage):
    """Relational storage; one short-lived session per call."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def init(self) -> None:
        init_db(self.engine)

    def _session(self) -> Session:
        # Returned entities stay readable after the session closes
        return Session(self.engine, expire_on_commit=False)

    def _insert(self, entity):
        with self._session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
        return entity

    def _fetch(self, model, entity_id):
        with self._session() as session:
            return session.get(model, entity_id)

    def _query(self, model, filters=None, newest_first_by=None):
        statement = select(model)
        for key, value in (filters or {}).items():
            statement = statement.where(getattr(model, key) == value)
        if newest_first_by:
            statement = statement.order_by(getattr(model, newest_first_by).desc())
        with self._session() as session:
            return list(session.exec(statement).all())

    def _patch(self, model, entity_id, fields):
        with self._session() as session:
            entity = session.get(model, entity_id)
            if entity is None:
                return None
            _merge(entity, fields)
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def _remove(self, model, entity_id):
        with self._session() as session:
            entity = session.get(model, entity_id)
            if entity is None:
                return False
            session.delete(entity)
            session.commit()
            return True


def create_storage(settings: Settings) -> Storage:
    backend = settings.storage_backend
    if backend == "memory":
        log.info("Using in-memory storage; data will not survive a restart")
        return MemoryStorage()
    if backend == "database":
        return DatabaseStorage(make_engine(settings.database_url))
    raise ValueError(f"Unknown STORAGE_BACKEND {backend!r} (expected 'memory' or 'database')")
