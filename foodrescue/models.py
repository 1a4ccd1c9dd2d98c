# foodrescue/models.py
from typing import Optional, List
from datetime import datetime, timezone
from uuid import uuid4
from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.types import TypeDecorator


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware column that reads back as UTC on every dialect, SQLite included."""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True, unique=True)
    password: str


class FoodListing(SQLModel, table=True):
    __tablename__ = "food_listings"
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: str
    quantity: str
    category: str
    image_url: Optional[str] = None
    cost: Optional[str] = None
    location: str
    latitude: float
    longitude: float
    expiry_date: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    pickup_time_start: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False))
    pickup_time_end: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False))
    freshness_score: int
    quality_score: int
    defects_detected: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    ai_analysis: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    status: str = Field(default="available", index=True)
    donor_id: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))


class SensorData(SQLModel, table=True):
    __tablename__ = "sensor_data"
    id: str = Field(default_factory=new_id, primary_key=True)
    listing_id: str = Field(index=True)
    temperature: float
    humidity: float
    timestamp: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))


class Claim(SQLModel, table=True):
    __tablename__ = "claims"
    id: str = Field(default_factory=new_id, primary_key=True)
    listing_id: str = Field(index=True)
    claimer_name: str
    claimer_contact: str
    claimed_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    status: str = Field(default="pending")


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    type: str
    description: str
    location: str
    latitude: float
    longitude: float
    contact_email: str
    contact_phone: str
    website: Optional[str] = None
    image_url: Optional[str] = None
    verified: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))


class SupplierRating(SQLModel, table=True):
    __tablename__ = "supplier_ratings"
    id: str = Field(default_factory=new_id, primary_key=True)
    supplier_id: str = Field(index=True)
    organization_id: str = Field(index=True)
    overall_rating: float
    google_review_score: Optional[float] = None
    food_safety_certified: int = Field(default=0)
    reliability_score: float
    quality_score: float
    total_donations: int = Field(default=0)
    ai_analysis: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(UTCDateTime(), nullable=False))
