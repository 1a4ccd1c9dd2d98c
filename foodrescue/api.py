# foodrescue/api.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, File, HTTPException, Query, Request, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .ai_engine import NOT_CONFIGURED, AIGateway, AIServiceError
from .config import Settings
from .logging import get_logger
from .rate_limit import RateLimiter
from .schemas import (
    AssistantMessage,
    ChatRequest,
    ChatResponse,
    ClaimCreate,
    ClaimRead,
    ClaimStatusUpdate,
    DonorListing,
    FoodListingCreate,
    FoodListingRead,
    FoodListingStatusUpdate,
    FoodSuggestion,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationRead,
    SensorDataCreate,
    SensorDataRead,
    SupplierRatingCreate,
    SupplierRatingRead,
    SupplierSummary,
    UserCreate,
    UserRead,
)
from .storage import Storage, create_storage
from .uploads import UploadRejected, read_image, resolve_upload, save_image

log = get_logger("api")

router = APIRouter()


# --- Dependencies ---

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_ai(request: Request) -> AIGateway:
    return request.app.state.ai


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


# --- Food listings ---

@router.get("/api/food-listings", response_model=List[FoodListingRead])
def list_food_listings(storage: Storage = Depends(get_storage)):
    return storage.list_food_listings(available_only=True)


@router.get("/api/food-listings/{listing_id}", response_model=FoodListingRead)
def get_food_listing(listing_id: str, storage: Storage = Depends(get_storage)):
    listing = storage.get_food_listing(listing_id)
    if not listing:
        raise _not_found("Food listing")
    return listing


@router.post("/api/food-listings", response_model=FoodListingRead, status_code=201)
async def create_food_listing(
    request: Request,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    image: Optional[StarletteUploadFile] = None
    image_bytes = None
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Request body is not valid JSON")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    else:
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}
        upload = form.get("image")
        if isinstance(upload, StarletteUploadFile) and upload.filename:
            image = upload

    if image is not None:
        try:
            image_bytes = await read_image(image)
        except UploadRejected as e:
            raise HTTPException(status_code=400, detail=str(e))

    try:
        listing = FoodListingCreate.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    if image_bytes is not None:
        image_url = await run_in_threadpool(save_image, settings.upload_dir, image.filename, image_bytes)
        listing = listing.model_copy(update={"image_url": image_url})

    created = await run_in_threadpool(storage.create_food_listing, listing)
    log.info("Created food listing %s (%s)", created.id, created.title)
    return created


@router.patch("/api/food-listings/{listing_id}", response_model=FoodListingRead)
def update_food_listing(
    listing_id: str,
    body: FoodListingStatusUpdate = Body(...),
    storage: Storage = Depends(get_storage),
):
    updates = body.model_dump(exclude_none=True)
    updated = storage.update_food_listing(listing_id, updates)
    if not updated:
        raise _not_found("Food listing")
    return updated


@router.delete("/api/food-listings/{listing_id}", status_code=204)
def delete_food_listing(listing_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_food_listing(listing_id):
        raise _not_found("Food listing")
    return Response(status_code=204)


@router.get("/api/my-listings", response_model=List[DonorListing])
def list_donor_listings(
    donor_id: str = Query(..., alias="donorId", min_length=1),
    storage: Storage = Depends(get_storage),
):
    """Every listing of one donor, in any status, with the claims made on it."""
    listings = [listing for listing in storage.list_food_listings() if listing.donor_id == donor_id]
    claims = storage.list_claims()
    return [
        DonorListing(
            **listing.model_dump(),
            claims=[claim.model_dump() for claim in claims if claim.listing_id == listing.id],
        )
        for listing in listings
    ]


# --- Claims ---

@router.post("/api/food-listings/{listing_id}/claims", response_model=ClaimRead, status_code=201)
def create_claim(listing_id: str, body: ClaimCreate, storage: Storage = Depends(get_storage)):
    if not storage.get_food_listing(listing_id):
        raise _not_found("Food listing")
    claim = storage.create_claim(listing_id, body)
    log.info("New claim %s on listing %s by %s", claim.id, listing_id, claim.claimer_name)
    return claim


@router.get("/api/food-listings/{listing_id}/claims", response_model=List[ClaimRead])
def list_claims(listing_id: str, storage: Storage = Depends(get_storage)):
    if not storage.get_food_listing(listing_id):
        raise _not_found("Food listing")
    return [claim for claim in storage.list_claims() if claim.listing_id == listing_id]


@router.patch("/api/claims/{claim_id}", response_model=ClaimRead)
def update_claim(claim_id: str, body: ClaimStatusUpdate = Body(...), storage: Storage = Depends(get_storage)):
    claim = storage.update_claim(claim_id, body.model_dump(exclude_none=True))
    if not claim:
        raise _not_found("Claim")
    if claim.status == "confirmed":
        storage.update_food_listing(claim.listing_id, {"status": "claimed"})
    return claim


# --- Sensor data ---

@router.get("/api/sensor-data/{listing_id}", response_model=List[SensorDataRead])
def list_sensor_data(listing_id: str, storage: Storage = Depends(get_storage)):
    return storage.list_sensor_data(listing_id)


@router.post("/api/sensor-data", response_model=SensorDataRead, status_code=201)
def create_sensor_data(body: SensorDataCreate, storage: Storage = Depends(get_storage)):
    return storage.create_sensor_data(body)


# --- Users ---

@router.post("/api/users", response_model=UserRead, status_code=201)
def register_user(body: UserCreate, storage: Storage = Depends(get_storage)):
    if storage.get_user_by_username(body.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    return storage.create_user(body)


@router.get("/api/users/{user_id}", response_model=UserRead)
def get_user(user_id: str, storage: Storage = Depends(get_storage)):
    user = storage.get_user(user_id)
    if not user:
        raise _not_found("User")
    return user


# --- Organizations & supplier ratings ---

@router.get("/api/organizations", response_model=List[OrganizationRead])
def list_organizations(storage: Storage = Depends(get_storage)):
    return storage.list_organizations()


@router.post("/api/organizations", response_model=OrganizationRead, status_code=201)
def create_organization(body: OrganizationCreate, storage: Storage = Depends(get_storage)):
    return storage.create_organization(body)


@router.get("/api/organizations/{organization_id}", response_model=OrganizationDetail)
def get_organization(organization_id: str, storage: Storage = Depends(get_storage)):
    organization = storage.get_organization(organization_id)
    if not organization:
        raise _not_found("Organization")

    listings = storage.list_food_listings()
    suppliers = []
    for rating in storage.list_supplier_ratings():
        if rating.organization_id != organization.id:
            continue
        supplier = storage.get_user(rating.supplier_id)
        donated = [listing for listing in listings if listing.donor_id == rating.supplier_id]
        suppliers.append(SupplierSummary(
            **rating.model_dump(),
            supplier_name=supplier.username if supplier else "Unknown supplier",
            active_listings=sum(1 for listing in donated if listing.status == "available"),
            total_listings=len(donated),
        ))
    suppliers.sort(key=lambda s: s.overall_rating, reverse=True)
    return OrganizationDetail(**organization.model_dump(), suppliers=suppliers)


@router.post("/api/supplier-ratings", response_model=SupplierRatingRead, status_code=201)
def create_supplier_rating(body: SupplierRatingCreate, storage: Storage = Depends(get_storage)):
    return storage.create_supplier_rating(body)


@router.post("/api/supplier-ratings/{rating_id}/analysis", response_model=SupplierRatingRead)
def analyze_supplier_rating(
    rating_id: str,
    storage: Storage = Depends(get_storage),
    ai: AIGateway = Depends(get_ai),
):
    rating = storage.get_supplier_rating(rating_id)
    if not rating:
        raise _not_found("Supplier rating")
    supplier = storage.get_user(rating.supplier_id)
    analysis = ai.analyze_supplier(rating, supplier.username if supplier else "Unknown supplier")
    return storage.update_supplier_rating(rating_id, {"ai_analysis": analysis})


# --- AI assistant ---

@router.post("/api/chat", response_model=ChatResponse)
def chat(
    body: ChatRequest,
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    ai: AIGateway = Depends(get_ai),
):
    client_address = request.client.host if request.client else "unknown"
    if not limiter.allow(client_address):
        log.warning("Chat rate limit hit for %s", client_address)
        raise HTTPException(status_code=429, detail="Too many requests. Please wait a minute and try again.")
    if not ai.configured:
        raise HTTPException(status_code=503, detail=NOT_CONFIGURED)

    reply = ai.chat([message.model_dump() for message in body.messages])
    return ChatResponse(message=AssistantMessage(content=reply))


@router.post("/api/detect-food", response_model=FoodSuggestion)
async def detect_food(image: UploadFile = File(...), ai: AIGateway = Depends(get_ai)):
    if not ai.configured:
        raise HTTPException(status_code=503, detail=NOT_CONFIGURED)
    try:
        image_bytes = await read_image(image)
    except UploadRejected as e:
        raise HTTPException(status_code=400, detail=str(e))
    return await run_in_threadpool(ai.detect_food, image_bytes, image.content_type or "image/jpeg")


# --- Uploaded images ---

@router.get("/uploads/{filename}")
def get_upload(filename: str, settings: Settings = Depends(get_settings)):
    path = resolve_upload(settings.upload_dir, filename)
    if path is None:
        raise _not_found("File")
    return FileResponse(path, headers={"Access-Control-Allow-Origin": "*"})


# --- Application ---

def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Invalid request data", "details": jsonable_encoder(exc.errors())},
            status_code=400,
        )

    @app.exception_handler(AIServiceError)
    async def ai_error(request: Request, exc: AIServiceError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    rate_limiter: Optional[RateLimiter] = None,
    ai: Optional[AIGateway] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.storage = storage or create_storage(settings)
    app.state.rate_limiter = rate_limiter or RateLimiter(
        limit=settings.chat_rate_limit, window_seconds=settings.chat_rate_window_seconds
    )
    app.state.ai = ai or AIGateway.from_settings(settings)
    if not app.state.ai.configured:
        log.warning("OPENROUTER_API_KEY is not set; AI features will answer 503")

    @app.on_event("startup")
    def on_startup():
        app.state.storage.init()

    _register_error_handlers(app)
    app.include_router(router)
    return app
