# foodrescue/seed.py
"""Populate storage with Halifax demo data.

    python -m foodrescue.seed

Drops and recreates all tables first when the database backend is configured.
"""
import sys
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlmodel import SQLModel

from .config import Settings
from .logging import get_logger
from .models import utcnow
from .schemas import (
    ClaimCreate,
    FoodListingCreate,
    OrganizationCreate,
    SupplierRatingCreate,
    UserCreate,
)
from .storage import DatabaseStorage, Storage, create_storage

log = get_logger("seed")

DEMO_PASSWORD = "demo123"
DEMO_USERS = ["hope_food_bank", "green_grocers_halifax", "sarah_baker", "marios_restaurant"]

LOCATIONS = [
    (44.6488, -63.5752, "1234 Barrington St, Downtown Halifax"),
    (44.6650, -63.5820, "567 Gottingen St, North End"),
    (44.6710, -63.5683, "890 Portland St, Dartmouth"),
    (44.6580, -63.6350, "234 Lacewood Dr, Clayton Park"),
    (44.6430, -63.5770, "789 Spring Garden Rd, Halifax"),
]

# (title, description, quantity, category, donor index, location index, freshness, quality, cost)
LISTINGS = [
    ("Fresh Organic Vegetables",
     "Assorted carrots, broccoli, lettuce and tomatoes from local farms, all in excellent condition.",
     "50 lbs", "produce", 0, 0, 95, 95, "Free"),
    ("Whole Wheat Bread Loaves",
     "Fresh whole wheat loaves baked this morning. Great for sandwiches or toast.",
     "20 loaves", "bakery", 0, 0, 92, 90, "Free"),
    ("Mixed Fruit Boxes",
     "Apples, oranges and bananas. A few bananas are spotting but perfect for baking.",
     "15 boxes", "produce", 1, 1, 80, 85, "$5 per box"),
    ("Greek Yogurt Tubs",
     "Sealed 750g tubs, best before in four days. Kept refrigerated.",
     "24 tubs", "dairy", 1, 1, 88, 92, "Free"),
    ("Sourdough and Croissants",
     "End-of-day bakery surplus: sourdough boules and butter croissants.",
     "30 items", "bakery", 2, 4, 85, 88, "Free"),
    ("Prepared Pasta Trays",
     "Catering trays of penne in tomato sauce, cooked today and chilled immediately.",
     "8 trays", "prepared", 3, 3, 90, 87, "Free"),
    ("Canned Goods Assortment",
     "Beans, soups and tomatoes, all within date.",
     "60 cans", "packaged", 3, 3, 100, 95, "Free"),
]

# (listing index, claimer, contact, status)
CLAIMS = [
    (0, "Sarah Johnson", "902-555-0123", "confirmed"),
    (0, "Community Kitchen Halifax", "902-555-0456", "pending"),
    (1, "Michael Chen", "902-555-0789", "confirmed"),
    (5, "Halifax Shelter", "902-555-0321", "confirmed"),
    (5, "Emma Wilson", "902-555-0654", "pending"),
    (2, "David Martinez", "902-555-0987", "confirmed"),
]


def seed(storage: Storage, now: Optional[datetime] = None) -> Dict[str, int]:
    """Insert the demo records and return how many of each were created."""
    now = now or utcnow()
    tomorrow = (now + timedelta(days=1)).replace(minute=0, second=0, microsecond=0)

    users = [storage.create_user(UserCreate(username=name, password=DEMO_PASSWORD)) for name in DEMO_USERS]
    log.info("✅ Created %d demo users", len(users))

    listings = []
    for i, (title, description, quantity, category, donor, loc, fresh, quality, cost) in enumerate(LISTINGS):
        lat, lng, address = LOCATIONS[loc]
        start = tomorrow.replace(hour=9 + i % 4)
        listings.append(storage.create_food_listing(FoodListingCreate(
            title=title,
            description=description,
            quantity=quantity,
            category=category,
            location=address,
            latitude=lat,
            longitude=lng,
            pickup_time_start=start,
            pickup_time_end=start + timedelta(hours=6),
            freshness_score=fresh,
            quality_score=quality,
            donor_id=users[donor].id,
            cost=cost,
        )))
    log.info("✅ Created %d demo food listings", len(listings))

    claims = 0
    for listing_index, name, contact, status in CLAIMS:
        listing = listings[listing_index]
        claim = storage.create_claim(listing.id, ClaimCreate(claimer_name=name, claimer_contact=contact))
        if status == "confirmed":
            storage.update_claim(claim.id, {"status": status})
            storage.update_food_listing(listing.id, {"status": "claimed"})
        claims += 1
    log.info("✅ Created %d demo claims", claims)

    food_bank = storage.create_organization(OrganizationCreate(
        name="Hope Food Bank",
        type="NGO",
        description="Downtown food bank serving families across the Halifax peninsula.",
        location=LOCATIONS[0][2],
        latitude=LOCATIONS[0][0],
        longitude=LOCATIONS[0][1],
        contact_email="info@hopefoodbank.example",
        contact_phone="902-555-0100",
        website="https://hopefoodbank.example",
        verified=1,
    ))
    kitchen = storage.create_organization(OrganizationCreate(
        name="Dartmouth Community Kitchen",
        type="Community Kitchen",
        description="Volunteer kitchen cooking daily meals from rescued food.",
        location=LOCATIONS[2][2],
        latitude=LOCATIONS[2][0],
        longitude=LOCATIONS[2][1],
        contact_email="hello@dartmouthkitchen.example",
        contact_phone="902-555-0200",
    ))

    ratings = [
        (food_bank, users[1], 4.7, 4.5, 1, 92.0, 90.0, 48),
        (food_bank, users[2], 4.4, 4.8, 1, 88.0, 94.0, 21),
        (kitchen, users[3], 4.1, 4.2, 0, 81.0, 86.0, 15),
    ]
    for organization, supplier, overall, google, certified, reliability, quality, donations in ratings:
        storage.create_supplier_rating(SupplierRatingCreate(
            supplier_id=supplier.id,
            organization_id=organization.id,
            overall_rating=overall,
            google_review_score=google,
            food_safety_certified=certified,
            reliability_score=reliability,
            quality_score=quality,
            total_donations=donations,
        ))
    log.info("✅ Created 2 organizations and %d supplier ratings", len(ratings))

    return {
        "users": len(users),
        "listings": len(listings),
        "claims": claims,
        "organizations": 2,
        "supplier_ratings": len(ratings),
    }


def main() -> int:
    settings = Settings.from_env()
    storage = create_storage(settings)
    if isinstance(storage, DatabaseStorage):
        log.info("🌱 Resetting database tables...")
        SQLModel.metadata.drop_all(storage.engine)
    storage.init()
    try:
        counts = seed(storage)
    except Exception:
        log.exception("❌ Seed failed")
        return 1
    log.info("🎉 Seeded: %s", ", ".join(f"{n} {k}" for k, n in counts.items()))
    log.info("Demo credentials: %s / %s", ", ".join(DEMO_USERS), DEMO_PASSWORD)
    return 0


if __name__ == "__main__":
    sys.exit(main())
