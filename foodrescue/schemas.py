# foodrescue/schemas.py
"""Request and response shapes shared by the API.

Fields are snake_case in Python and camelCase on the wire. Create schemas
carry the validation rules; read schemas only describe stored rows, so a row
that predates a rule is still returned. Storage never validates.
"""
import json
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import as_utc

DEFAULT_SCORE = 85
FOOD_CATEGORIES = ("produce", "bakery", "dairy", "prepared", "packaged", "other")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# --- Users ---

class UserCreate(ApiModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class UserRead(ApiModel):
    id: str
    username: str


# --- Food listings ---

class FoodListingCreate(ApiModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    quantity: str = Field(min_length=1)
    category: str = Field(min_length=1)
    image_url: Optional[str] = None
    cost: Optional[str] = None
    location: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    expiry_date: Optional[datetime] = None
    pickup_time_start: datetime
    pickup_time_end: datetime
    freshness_score: int = Field(default=DEFAULT_SCORE, ge=0, le=100)
    quality_score: int = Field(default=DEFAULT_SCORE, ge=0, le=100)
    defects_detected: List[str] = Field(default_factory=list)
    ai_analysis: Optional[dict] = None
    donor_id: Optional[str] = None

    @field_validator("image_url", "cost", "expiry_date", "donor_id", mode="before")
    @classmethod
    def _optional_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("freshness_score", "quality_score", mode="before")
    @classmethod
    def _score_default(cls, value):
        # Multipart forms send "" for untouched score inputs
        if _blank_to_none(value) is None:
            return DEFAULT_SCORE
        return value

    @field_validator("defects_detected", "ai_analysis", mode="before")
    @classmethod
    def _decode_json(cls, value, info):
        value = _blank_to_none(value)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("must be a JSON-encoded value")
        if value is None and info.field_name == "defects_detected":
            return []
        return value

    @field_validator("pickup_time_start", "pickup_time_end", "expiry_date")
    @classmethod
    def _to_utc(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def _check_pickup_window(self):
        if self.pickup_time_end < self.pickup_time_start:
            raise ValueError("pickupTimeEnd must not be before pickupTimeStart")
        return self


class FoodListingRead(ApiModel):
    id: str
    title: str
    description: str
    quantity: str
    category: str
    image_url: Optional[str] = None
    cost: Optional[str] = None
    location: str
    latitude: float
    longitude: float
    expiry_date: Optional[datetime] = None
    pickup_time_start: Optional[datetime] = None
    pickup_time_end: Optional[datetime] = None
    freshness_score: int
    quality_score: int
    defects_detected: Optional[List[str]] = None
    ai_analysis: Optional[dict] = None
    status: str
    donor_id: Optional[str] = None
    created_at: datetime


class FoodListingStatusUpdate(ApiModel):
    """Only ``status`` is accepted; any other key in the body is ignored.

    ``claimed`` is the only target: a claimed listing cannot be reopened.
    """
    status: Optional[Literal["claimed"]] = None


# --- Sensor data ---

class SensorDataCreate(ApiModel):
    listing_id: str = Field(min_length=1)
    temperature: float
    humidity: float


class SensorDataRead(ApiModel):
    id: str
    listing_id: str
    temperature: float
    humidity: float
    timestamp: datetime


# --- Claims ---

class ClaimCreate(ApiModel):
    claimer_name: str = Field(min_length=1)
    claimer_contact: str = Field(min_length=1)


class ClaimRead(ApiModel):
    id: str
    listing_id: str
    claimer_name: str
    claimer_contact: str
    status: str
    claimed_at: datetime


class ClaimStatusUpdate(ApiModel):
    # pending -> confirmed only
    status: Optional[Literal["confirmed"]] = None


class DonorListing(FoodListingRead):
    claims: List[ClaimRead] = Field(default_factory=list)


# --- Organizations & supplier ratings ---

class OrganizationCreate(ApiModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    description: str
    location: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    contact_email: str = Field(min_length=3)
    contact_phone: str = Field(min_length=1)
    website: Optional[str] = None
    image_url: Optional[str] = None
    verified: int = Field(default=0, ge=0, le=1)


class OrganizationRead(ApiModel):
    id: str
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
    verified: int
    created_at: datetime


class SupplierRatingCreate(ApiModel):
    supplier_id: str = Field(min_length=1)
    organization_id: str = Field(min_length=1)
    overall_rating: float = Field(ge=0)
    google_review_score: Optional[float] = Field(default=None, ge=0)
    food_safety_certified: int = Field(default=0, ge=0, le=1)
    reliability_score: float = Field(ge=0)
    quality_score: float = Field(ge=0)
    total_donations: int = Field(default=0, ge=0)
    ai_analysis: Optional[dict] = None


class SupplierRatingRead(ApiModel):
    id: str
    supplier_id: str
    organization_id: str
    overall_rating: float
    google_review_score: Optional[float] = None
    food_safety_certified: int
    reliability_score: float
    quality_score: float
    total_donations: int
    ai_analysis: Optional[dict] = None
    created_at: datetime
    updated_at: datetime


class SupplierSummary(SupplierRatingRead):
    supplier_name: str
    active_listings: int
    total_listings: int


class OrganizationDetail(OrganizationRead):
    suppliers: List[SupplierSummary] = Field(default_factory=list)


# --- AI ---

class ChatMessage(ApiModel):
    role: Literal["user", "assistant", "system"]
    content: str = Field(min_length=1, max_length=2000)


class ChatRequest(ApiModel):
    messages: List[ChatMessage] = Field(min_length=1, max_length=20)


class AssistantMessage(ApiModel):
    role: str = "assistant"
    content: str


class ChatResponse(ApiModel):
    message: AssistantMessage


class FoodSuggestion(ApiModel):
    title: str
    description: str
    quantity: str
    category: str
    freshness_score: Optional[int] = None
    quality_score: Optional[int] = None
    defects_detected: List[str] = Field(default_factory=list)
