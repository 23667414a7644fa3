"""
End-to-end catalog search against an in-memory SQLite store.
"""

from datetime import date, datetime, timedelta

import pytest

from atma_catalog.core.security import ViewerContext
from atma_catalog.db.repositories import CatalogUnavailableError
from atma_catalog.search.models import EntityKind, ListingQuery, SortKey
from atma_catalog.search.service import CatalogService, build_listing_query

from conftest import TODAY

ADMIN = ViewerContext(role="admin")


@pytest.fixture
def service(db):
    return CatalogService(db, today=TODAY)


def ids(result):
    return [item.id for item in result.items]


class TestDateRangeScenario:

    def test_only_retreats_with_overlapping_instance_match(self, service, factory):
        overlapping = factory.retreat("Midsummer Reset")
        factory.retreat_instance(overlapping, date(2025, 6, 8), date(2025, 6, 14))
        elsewhere = factory.retreat("Autumn Reset")
        factory.retreat_instance(elsewhere, date(2025, 9, 1), date(2025, 9, 5))

        query = build_listing_query(
            EntityKind.RETREAT,
            {"dateStart": "2025-06-01", "dateEnd": "2025-06-10", "page": "1", "pageSize": "10"},
        )
        result = service.search(query)

        assert ids(result) == [overlapping.id]
        assert result.total_count == 1

    def test_instance_touching_range_edge_counts(self, service, factory):
        retreat = factory.retreat()
        factory.retreat_instance(retreat, date(2025, 5, 25), date(2025, 6, 1))
        result = service.search_params(EntityKind.RETREAT, {"dateStart": "2025-06-01", "dateEnd": "2025-06-10"})
        assert ids(result) == [retreat.id]

    def test_program_instances_are_used_for_programs(self, service, factory):
        program = factory.program()
        factory.program_instance(program, date(2025, 6, 2), date(2025, 6, 3))
        factory.program("No dates")
        result = service.search_params(EntityKind.PROGRAM, {"dateStart": "2025-06-01", "dateEnd": "2025-06-10"})
        assert ids(result) == [program.id]

    def test_one_sided_range_is_ignored(self, service, factory):
        factory.retreat("A")
        factory.retreat("B")
        result = service.search_params(EntityKind.RETREAT, {"dateStart": "2025-06-01"})
        assert result.total_count == 2


class TestPaging:

    def test_window_bounds(self, service, factory):
        for i in range(7):
            factory.property(f"Property {i}")
        result = service.search_params(EntityKind.PROPERTY, {"pageSize": "3", "page": "3"})
        assert len(result.items) == 1
        assert result.total_count == 7
        assert result.total_pages == 3

    def test_full_sweep_covers_every_row_once(self, service, factory):
        same_time = datetime(2025, 2, 1, 9, 0)
        created = [factory.property(f"P{i}", created_at=same_time if i % 2 else None) for i in range(11)]

        seen = []
        page = 1
        while True:
            result = service.search(ListingQuery(EntityKind.PROPERTY, page=page, page_size=4))
            assert len(result.items) <= 4
            assert result.total_count >= len(result.items)
            if not result.items:
                break
            seen.extend(ids(result))
            page += 1

        assert sorted(seen) == sorted(p.id for p in created)
        assert len(seen) == len(set(seen)) == result.total_count

    def test_repeated_query_orders_identically(self, service, factory):
        same_time = datetime(2025, 2, 1, 9, 0)
        for i in range(5):
            factory.retreat(f"R{i}", created_at=same_time)
        query = ListingQuery(EntityKind.RETREAT, page=1, page_size=3)
        assert ids(service.search(query)) == ids(service.search(query))

    def test_past_last_page_is_empty_with_total(self, service, factory):
        factory.program()
        result = service.search_params(EntityKind.PROGRAM, {"page": "5"})
        assert result.items == []
        assert result.total_count == 1
        assert not result.is_empty


class TestSorting:

    def test_default_is_newest_first_with_id_tiebreak(self, service, factory):
        t1 = datetime(2025, 3, 1)
        t2 = datetime(2025, 3, 2)
        old = factory.retreat("Old", created_at=t1)
        first_t2 = factory.retreat("Twin A", created_at=t2)
        second_t2 = factory.retreat("Twin B", created_at=t2)

        result = service.search_params(EntityKind.RETREAT, {})
        assert ids(result) == [first_t2.id, second_t2.id, old.id]
        assert result.sort_key == SortKey.CREATED

    def test_unknown_sort_uses_default(self, service, factory):
        older = factory.property("Zen", created_at=datetime(2025, 1, 1))
        newer = factory.property("Aloha", created_at=datetime(2025, 1, 2))
        result = service.search_params(EntityKind.PROPERTY, {"sort": "rating", "order": "asc"})
        assert ids(result) == [newer.id, older.id]

    def test_name_sort_is_case_insensitive(self, service, factory):
        b = factory.property("banyan house")
        a = factory.property("Amber Villa")
        c = factory.property("Cedar Lodge")
        assert ids(service.search_params(EntityKind.PROPERTY, {"sort": "name"})) == [a.id, b.id, c.id]
        assert ids(service.search_params(EntityKind.PROPERTY, {"sort": "name", "order": "desc"})) == [c.id, b.id, a.id]

    def test_price_sort_puts_unavailable_last(self, service, factory):
        cheap = factory.retreat("Cheap")
        pricey = factory.retreat("Pricey")
        unpriced = factory.retreat("Unpriced")
        factory.price(400, retreat_id=cheap.id)
        factory.price(900, retreat_id=pricey.id)
        factory.price(100, retreat_id=unpriced.id, date_end=TODAY - timedelta(days=1))

        asc = service.search_params(EntityKind.RETREAT, {"sort": "price"})
        desc = service.search_params(EntityKind.RETREAT, {"sort": "price", "order": "desc"})
        assert ids(asc) == [cheap.id, pricey.id, unpriced.id]
        assert ids(desc) == [pricey.id, cheap.id, unpriced.id]
        assert asc.items[2].price.available is False

    def test_verified_sort_newest_verification_first(self, service, factory):
        never = factory.property("Never")
        early = factory.property("Early", verified=datetime(2024, 1, 1))
        late = factory.property("Late", verified=datetime(2025, 1, 1))
        assert ids(service.search_params(EntityKind.PROPERTY, {"sort": "verified"})) == [late.id, early.id, never.id]


class TestFilters:

    def test_category_unknown_token_matches_known_only(self, service, factory):
        spa = factory.retreat("Spa Days", category="spa")
        factory.retreat("Sun Salutations", category="yoga")
        result = service.search_params(EntityKind.RETREAT, {"category": "spa,unknownkind"})
        assert ids(result) == [spa.id]

    def test_category_all_unknown_passes_everything(self, service, factory):
        factory.retreat("Spa Days", category="spa")
        factory.retreat("Sun Salutations", category="yoga")
        result = service.search_params(EntityKind.RETREAT, {"category": "unknownkind"})
        assert result.total_count == 2

    def test_category_matches_any_selected(self, service, factory):
        factory.program("A", category="Yoga")
        factory.program("B", category="detox")
        factory.program("C", category="fitness")
        result = service.search_params(EntityKind.PROGRAM, {"category": "yoga,detox", "sort": "name"})
        assert [i.name for i in result.items] == ["A", "B"]

    def test_malformed_guest_range_is_unfiltered(self, service, factory):
        factory.retreat("Small", min_guests=1, max_guests=2)
        factory.retreat("Large", min_guests=10, max_guests=30)
        result = service.search_params(EntityKind.RETREAT, {"guestMin": "5", "guestMax": "2"})
        assert result.total_count == 2

    def test_guest_range_overlaps_capacity(self, service, factory):
        small = factory.retreat("Small", min_guests=1, max_guests=2)
        factory.retreat("Large", min_guests=10, max_guests=30)
        open_ended = factory.retreat("Open", min_guests=2, max_guests=-1)
        result = service.search_params(EntityKind.RETREAT, {"guestMin": "2", "guestMax": "4", "sort": "name"})
        assert ids(result) == [open_ended.id, small.id]

    def test_verified_property_filter(self, service, factory):
        verified = factory.property("Checked", verified=datetime(2025, 4, 1))
        factory.property("Unchecked")
        result = service.search_params(EntityKind.PROPERTY, {"verified": "true"})
        assert ids(result) == [verified.id]
        assert result.items[0].verified is True

    def test_text_matches_substring_case_insensitively(self, service, factory):
        hit = factory.program("Ocean Breathwork")
        factory.program("Mountain Hike", desc="long walks")
        result = service.search_params(EntityKind.PROGRAM, {"text": "ocean"})
        assert ids(result) == [hit.id]

    def test_text_wildcards_are_literal(self, service, factory):
        factory.property("Plain House")
        hit = factory.property("100% Organic Farm")
        result = service.search_params(EntityKind.PROPERTY, {"text": "0%"})
        assert ids(result) == [hit.id]

    def test_continent_uses_parent_property_country(self, service, factory):
        nz = factory.property("Lakeside", city="Queenstown", country="NZ")
        fr = factory.property("Chateau", city="Lyon", country="FR")
        down_under = factory.retreat("Southern Lights", prop=nz)
        factory.retreat("Vineyard Calm", prop=fr)
        result = service.search_params(EntityKind.RETREAT, {"continent": "oceania"})
        assert ids(result) == [down_under.id]

    def test_price_range_uses_active_prices(self, service, factory):
        in_range = factory.property("In range")
        expired_only = factory.property("Expired only")
        factory.price(200, property_id=in_range.id)
        factory.price(200, property_id=expired_only.id, date_end=TODAY - timedelta(days=1))
        result = service.search_params(EntityKind.PROPERTY, {"priceMin": "100", "priceMax": "300"})
        assert ids(result) == [in_range.id]

    def test_price_range_matches_the_lowest_active_price(self, service, factory):
        cheap_too = factory.property("Cheap and dear")
        only_dear = factory.property("Only dear")
        factory.price(50, property_id=cheap_too.id)
        factory.price(200, property_id=cheap_too.id)
        factory.price(200, property_id=only_dear.id)
        # an expired cheaper rate does not pull the lowest price down
        factory.price(10, property_id=only_dear.id, date_end=TODAY - timedelta(days=1))

        result = service.search_params(EntityKind.PROPERTY, {"priceMin": "150", "priceMax": "300"})

        assert ids(result) == [only_dear.id]
        assert result.items[0].price.amount == 200
        low = service.search_params(EntityKind.PROPERTY, {"priceMin": "0", "priceMax": "100"})
        assert ids(low) == [cheap_too.id]

    def test_radius_keeps_nearby_properties(self, service, factory):
        ubud = factory.property("Jungle Lodge", lat=-8.5069, lng=115.2625)
        seminyak = factory.property("Beach House", city="Seminyak", lat=-8.6913, lng=115.1682)
        factory.property("Tokyo Tower Inn", city="Tokyo", country="JP", lat=35.6762, lng=139.6503)
        factory.property("Somewhere", lat=None, lng=None)

        result = service.search_params(
            EntityKind.PROPERTY, {"lat": "-8.5069", "lng": "115.2625", "radiusMiles": "30", "sort": "name"},
        )

        assert ids(result) == [seminyak.id, ubud.id]
        assert result.total_count == 2
        distances = {item.id: item.details["distance_miles"] for item in result.items}
        assert distances[ubud.id] == 0.0
        assert 10 < distances[seminyak.id] < 20

    def test_radius_uses_parent_property_for_retreats(self, service, factory):
        near = factory.property("Near", lat=40.7128, lng=-74.0060)
        far = factory.property("Far", lat=34.0522, lng=-118.2437)
        close_by = factory.retreat("Hudson Calm", prop=near)
        factory.retreat("Pacific Calm", prop=far)
        factory.retreat("Homeless Calm")

        result = service.search_params(EntityKind.RETREAT, {"lat": "40.73", "lng": "-73.93"})

        assert ids(result) == [close_by.id]

    def test_radius_default_covers_two_hundred_miles(self, service, factory):
        # Boston is roughly 190 miles from New York
        boston = factory.property("Harbor Inn", lat=42.3601, lng=-71.0589)
        result = service.search_params(EntityKind.PROPERTY, {"lat": "40.7128", "lng": "-74.0060"})
        assert ids(result) == [boston.id]
        assert service.search_params(
            EntityKind.PROPERTY, {"lat": "40.7128", "lng": "-74.0060", "radiusMiles": "150"},
        ).total_count == 0


class TestViewerScope:

    def test_public_sees_published_only(self, service, factory):
        live = factory.retreat("Live")
        factory.retreat("Draft", status="draft")
        assert ids(service.search_params(EntityKind.RETREAT, {"status": "draft"})) == [live.id]

    def test_admin_sees_all_and_can_filter_status(self, service, factory):
        factory.retreat("Live")
        draft = factory.retreat("Draft", status="draft")
        assert service.search_params(EntityKind.RETREAT, {}, ADMIN).total_count == 2
        assert ids(service.search_params(EntityKind.RETREAT, {"status": "draft"}, ADMIN)) == [draft.id]


class TestProjection:

    def test_property_price_reflects_active_modifier_only(self, service, factory):
        prop = factory.property()
        factory.price(100, property_id=prop.id,
                      date_start=TODAY - timedelta(days=10), date_end=TODAY + timedelta(days=10))
        factory.price(50, property_id=prop.id,
                      date_start=TODAY - timedelta(days=90), date_end=TODAY - timedelta(days=30))
        item = service.search_params(EntityKind.PROPERTY, {}).items[0]
        assert (item.price.available, item.price.amount, item.price.currency) == (True, 100, "USD")

    def test_images_location_and_next_instance(self, service, factory):
        prop = factory.property("Cliff House", city="Uluwatu", country="ID")
        factory.image("/img/property.jpg", order=0, property_id=prop.id)
        with_own = factory.retreat("Own Images", prop=prop)
        factory.image("/img/second.jpg", order=2, retreat_id=with_own.id)
        factory.image("/img/first.jpg", order=1, retreat_id=with_own.id)
        borrowing = factory.retreat("Borrowed Image", prop=prop)
        homeless = factory.retreat("No Property")
        factory.retreat_instance(with_own, TODAY - timedelta(days=3), TODAY - timedelta(days=1))
        factory.retreat_instance(with_own, TODAY + timedelta(days=40), TODAY + timedelta(days=45))
        factory.retreat_instance(with_own, TODAY + timedelta(days=10), TODAY + timedelta(days=12), is_full=True)

        items = {i.id: i for i in service.search_params(EntityKind.RETREAT, {}).items}

        assert items[with_own.id].image == "/img/first.jpg"
        assert items[borrowing.id].image == "/img/property.jpg"
        assert items[homeless.id].image.endswith("placeholder.jpg")
        assert items[with_own.id].location_label == "Uluwatu, Indonesia"
        assert items[homeless.id].location_label == "Location TBD"
        assert items[with_own.id].details["next_start"] == TODAY + timedelta(days=40)
        assert items[borrowing.id].details["next_start"] is None


class TestFailures:

    def test_empty_catalog_is_not_an_error(self, service):
        result = service.search_params(EntityKind.PROGRAM, {"category": "yoga"})
        assert result.items == [] and result.total_count == 0
        assert result.is_empty

    def test_store_failure_is_raised(self, broken_db):
        with pytest.raises(CatalogUnavailableError):
            CatalogService(broken_db, today=TODAY).search_params(EntityKind.RETREAT, {})

    @pytest.mark.parametrize("kind,params", [
        (EntityKind.PROPERTY, {"priceMin": "0", "priceMax": str(10 ** 20)}),
        (EntityKind.RETREAT, {"guestMin": "1", "guestMax": str(10 ** 20)}),
        (EntityKind.PROPERTY, {"page": str(10 ** 20)}),
    ])
    def test_oversized_numbers_degrade_instead_of_failing(self, service, factory, kind, params):
        factory.property()
        factory.retreat()
        result = service.search_params(kind, params)
        assert result.total_count == 1

    def test_service_needs_a_store(self):
        with pytest.raises(ValueError):
            CatalogService()

    def test_search_all_returns_every_kind(self, service, factory):
        factory.property()
        results = service.search_all({})
        assert set(results) == set(EntityKind)
        assert results[EntityKind.PROPERTY].total_count == 1
