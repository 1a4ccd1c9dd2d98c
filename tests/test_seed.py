from __future__ import annotations

from datetime import datetime, timezone

from foodrescue.seed import CLAIMS, DEMO_USERS, LISTINGS, seed


def test_seed_populates_every_entity(storage) -> None:
    counts = seed(storage, now=datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc))

    assert counts == {
        "users": len(DEMO_USERS),
        "listings": len(LISTINGS),
        "claims": len(CLAIMS),
        "organizations": 2,
        "supplier_ratings": 3,
    }
    assert {u.username for u in storage.list_users()} == set(DEMO_USERS)
    assert len(storage.list_claims()) == len(CLAIMS)


def test_seed_marks_confirmed_claims_as_claimed(storage) -> None:
    seed(storage, now=datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc))

    confirmed_titles = {LISTINGS[i][0] for i, _, _, status in CLAIMS if status == "confirmed"}
    available_titles = {l.title for l in storage.list_food_listings(available_only=True)}

    assert available_titles.isdisjoint(confirmed_titles)
    assert len(available_titles) == len(LISTINGS) - len(confirmed_titles)
    for listing in storage.list_food_listings():
        assert listing.pickup_time_end >= listing.pickup_time_start
