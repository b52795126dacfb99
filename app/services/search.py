"""
Ride search: text matching on addresses (not geospatial) and ranking.

Matching is case-insensitive and whitespace-normalised.  Two addresses match
when they are equal, one contains the other, or at least one word (>= 2 chars)
of the query overlaps a word of the ride address.

Score per ride (higher first):
  exact address match     +50 per side
  query is a substring    +30 per side
  fuzzy match             +20 per side
  ride date within 1 day  +20 (within 3 days +10)
"""
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable

from app.models.ride import Ride
from app.schemas.schemas import RideStatusEnum
from app.services import inventory
from app.services.booking import sync_ride_status

EXACT_SCORE = 50
CONTAINS_SCORE = 30
FUZZY_SCORE = 20
NEAR_DATE_SCORE = 20
SOON_DATE_SCORE = 10
MIN_TOKEN_LENGTH = 2

_WS = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    return _WS.sub(" ", (text or "").strip().lower())


def _tokens(text: str) -> list[str]:
    return [w for w in text.split(" ") if len(w) >= MIN_TOKEN_LENGTH]


def fuzzy_match(query: str | None, candidate: str | None) -> bool:
    q, c = normalize(query), normalize(candidate)
    if not q or not c:
        return False
    if q == c or q in c or c in q:
        return True

    query_words, candidate_words = _tokens(q), _tokens(c)
    return any(
        qw in cw or cw in qw
        for qw in query_words
        for cw in candidate_words
    )


def match_score(ride: Ride, origin: str, destination: str, today: date) -> int:
    score = 0
    for query, address in ((origin, ride.origin_address), (destination, ride.destination_address)):
        q, a = normalize(query), normalize(address)
        if q and q == a:
            score += EXACT_SCORE
        if q and q in a:
            score += CONTAINS_SCORE
        if fuzzy_match(q, a):
            score += FUZZY_SCORE

    days_apart = abs((ride.ride_date - today).days)
    if days_apart <= 1:
        score += NEAR_DATE_SCORE
    elif days_apart <= 3:
        score += SOON_DATE_SCORE
    return score


def rank_rides(rides: Iterable[Ride], origin: str, destination: str, today: date) -> list[tuple[Ride, int]]:
    """Rides matching both ends, best score first (earlier departure breaks ties)."""
    matched = [
        (ride, match_score(ride, origin, destination, today))
        for ride in rides
        if fuzzy_match(origin, ride.origin_address) and fuzzy_match(destination, ride.destination_address)
    ]
    matched.sort(key=lambda item: (-item[1], inventory.departure_at(item[0])))
    return matched


async def search_rides(
    store,
    origin: str,
    destination: str,
    day: date,
    searcher_id: str | None = None,
    max_price: Decimal | None = None,
    vehicle_type: str | None = None,
    min_seats: int = 1,
    now: datetime | None = None,
) -> list[tuple[Ride, int]]:
    now = now or datetime.now(timezone.utc)
    if vehicle_type and vehicle_type.lower() == "any":
        vehicle_type = None

    candidates = await store.find_rides(
        day=day,
        exclude_driver_id=searcher_id,
        max_price=max_price,
        vehicle_type=vehicle_type,
        min_seats=min_seats,
    )

    # stored "active" may be stale once departure passes
    live = []
    for ride in candidates:
        ride = await sync_ride_status(store, ride, now)
        if ride.status == RideStatusEnum.active.value:
            live.append(ride)

    return rank_rides(live, origin, destination, now.date())
