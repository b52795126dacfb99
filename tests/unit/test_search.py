"""
Unit tests for address matching and ride ranking.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.services import search


class TestFuzzyMatch:
    @pytest.mark.parametrize(
        "query, candidate",
        [
            ("Koramangala", "koramangala"),
            ("  koramangala   5th  block ", "Koramangala 5th Block"),
            ("Koramangala", "Koramangala, Bengaluru"),
            ("Electronic City Phase 1", "Electronic City"),
            ("whitefield bus stop", "ITPL Whitefield"),
        ],
    )
    def test_matches(self, query, candidate):
        assert search.fuzzy_match(query, candidate)

    @pytest.mark.parametrize(
        "query, candidate",
        [
            ("Indiranagar", "Jayanagar"),
            ("", "Koramangala"),
            ("Koramangala", None),
            ("a b", "x y"),
        ],
    )
    def test_no_match(self, query, candidate):
        assert not search.fuzzy_match(query, candidate)


class TestRanking:
    def test_exact_match_outranks_partial(self, ride_factory, now):
        exact = ride_factory(origin="Koramangala", destination="Electronic City")
        partial = ride_factory(origin="Koramangala 4th Block", destination="Electronic City Phase 2")

        ranked = search.rank_rides([partial, exact], "koramangala", "electronic city", now.date())

        assert [ride for ride, _ in ranked] == [exact, partial]
        assert ranked[0][1] > ranked[1][1]

    def test_both_ends_must_match(self, ride_factory, now):
        ride = ride_factory(origin="Koramangala", destination="Hebbal")
        assert search.rank_rides([ride], "Koramangala", "Electronic City", now.date()) == []

    def test_date_proximity_bonus(self, ride_factory, now):
        ride = ride_factory(origin="Koramangala", destination="Hebbal", departure=now + timedelta(hours=2))
        later = ride_factory(origin="Koramangala", destination="Hebbal", departure=now + timedelta(days=2))
        far = ride_factory(origin="Koramangala", destination="Hebbal", departure=now + timedelta(days=6))

        near_score = search.match_score(ride, "Koramangala", "Hebbal", now.date())
        assert near_score - search.match_score(later, "Koramangala", "Hebbal", now.date()) == 10
        assert near_score - search.match_score(far, "Koramangala", "Hebbal", now.date()) == 20

    def test_ties_broken_by_departure(self, ride_factory, now):
        late = ride_factory(origin="A Street", destination="B Road", departure=now + timedelta(hours=5))
        early = ride_factory(origin="A Street", destination="B Road", departure=now + timedelta(hours=3))

        ranked = search.rank_rides([late, early], "A Street", "B Road", now.date())
        assert [ride for ride, _ in ranked] == [early, late]


@pytest.mark.asyncio
class TestSearchRides:
    async def test_filters_and_excludes_own_rides(self, store, ride_factory, now):
        day = (now + timedelta(hours=30)).date()
        mine = ride_factory(driver_id="me", departure=now + timedelta(hours=30))
        cheap = ride_factory(driver_id="d2", departure=now + timedelta(hours=30), price_per_seat="80")
        pricey = ride_factory(driver_id="d3", departure=now + timedelta(hours=31), price_per_seat="300")
        suv = ride_factory(driver_id="d4", departure=now + timedelta(hours=32), vehicle_type="suv")
        for ride in (mine, cheap, pricey, suv):
            await store.add_ride(ride)

        results = await search.search_rides(
            store, "Koramangala", "Electronic City", day,
            searcher_id="me", max_price=Decimal("150"), vehicle_type="sedan", now=now,
        )
        assert [ride.id for ride, _ in results] == [cheap.id]

        results = await search.search_rides(
            store, "Koramangala", "Electronic City", day, searcher_id="me", vehicle_type="any", now=now,
        )
        assert {ride.id for ride, _ in results} == {cheap.id, pricey.id, suv.id}

    async def test_seat_filter(self, store, ride_factory, now):
        day = (now + timedelta(hours=30)).date()
        small = ride_factory(total_seats=1, departure=now + timedelta(hours=30))
        big = ride_factory(total_seats=4, departure=now + timedelta(hours=30))
        await store.add_ride(small)
        await store.add_ride(big)

        results = await search.search_rides(store, "Koramangala", "Electronic City", day, min_seats=2, now=now)
        assert [ride.id for ride, _ in results] == [big.id]

    async def test_departed_rides_drop_out_and_are_persisted_completed(self, store, ride_factory, now):
        departed = ride_factory(departure=now - timedelta(minutes=30))
        await store.add_ride(departed)

        results = await search.search_rides(store, "Koramangala", "Electronic City", now.date(), now=now)

        assert results == []
        assert store.rides[departed.id].status == "completed"
