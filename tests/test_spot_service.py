import pytest
from sqlalchemy import insert

from spotmap.models.dto import BoundingBox, FilterCriteria
from spotmap.services.pagination import PageWindow, next_offset
from spotmap.services.spot_service import SpotService, SpotStoreError, parse_or_default, row_to_spot
from spotmap.services.spot_store import build_engine, spots_table

from conftest import make_spot


BOX = BoundingBox(min_lat=10, max_lat=20, min_lon=10, max_lon=20)


@pytest.fixture
def service(engine):
    return SpotService(engine)


def test_first_page_has_more_when_dataset_larger(service, seed):
    seed(*[make_spot(i, f"Spot {i}", 1.0, 1.0) for i in range(1, 8)])
    page = service.query(FilterCriteria(limit=5))
    assert [s.id for s in page.spots] == [1, 2, 3, 4, 5]
    assert page.has_more is True


def test_page_reports_no_more_when_dataset_fits(service, seed):
    seed(*[make_spot(i, f"Spot {i}") for i in range(1, 4)])
    page = service.query(FilterCriteria(limit=3))
    assert len(page.spots) == 3
    assert page.has_more is False


def test_unbounded_paging_is_ordered_by_id_and_repeatable(service, seed):
    seed(*[make_spot(i, f"Spot {i}") for i in (9, 3, 7, 1, 5)])
    first = service.query(FilterCriteria(limit=2, offset=1))
    again = service.query(FilterCriteria(limit=2, offset=1))
    assert [s.id for s in first.spots] == [3, 5]
    assert [s.id for s in again.spots] == [3, 5]


def test_bounding_box_orders_by_planar_distance_from_center(service, seed):
    seed(
        make_spot(1, "Far corner", 10.0, 10.0),
        make_spot(2, "Near center", 15.5, 15.0),
        make_spot(3, "Mid", 13.0, 17.0),
        make_spot(4, "Outside", 25.0, 15.0),
        make_spot(5, "No coords"),
    )
    first = service.query(FilterCriteria(limit=2, bounds=BOX))
    assert [s.id for s in first.spots] == [2, 3]
    assert first.has_more is True

    second = service.query(FilterCriteria(limit=2, offset=2, bounds=BOX))
    assert [s.id for s in second.spots] == [1]
    assert second.has_more is False


def test_bounding_box_is_inclusive(service, seed):
    seed(make_spot(1, "Edge", 20.0, 10.0), make_spot(2, "Just out", 20.0001, 10.0))
    page = service.query(FilterCriteria(bounds=BOX))
    assert [s.id for s in page.spots] == [1]


def test_search_matches_title_or_address_case_insensitively(service, seed):
    seed(
        make_spot(1, "Riverside Gym", address="123 Bar Street"),
        make_spot(2, "Bars Park"),
        make_spot(3, "Beach Rings"),
    )
    page = service.query(FilterCriteria(search="bar"))
    assert sorted(s.id for s in page.spots) == [1, 2]


def test_search_matches_non_ascii_titles(service, seed):
    seed(make_spot(1, "Östermalm Park"), make_spot(2, "Ostermalm Gym"), make_spot(3, "Elsewhere"))
    page = service.query(FilterCriteria(search="Östermalm"))
    assert [s.id for s in page.spots] == [1]


def test_search_treats_wildcards_literally(service, seed):
    seed(make_spot(1, "100% Calisthenics"), make_spot(2, "1000 Steps"))
    page = service.query(FilterCriteria(search="100%"))
    assert [s.id for s in page.spots] == [1]


def test_total_uses_same_predicate(engine, seed):
    seed(*[make_spot(i, "Bar spot" if i % 2 else "Other") for i in range(1, 11)])
    page = SpotService(engine, include_total=True).query(FilterCriteria(limit=2, search="bar"))
    assert page.total == 5
    assert len(page.spots) == 2


def test_store_failure_raises_store_error():
    bare = build_engine("sqlite://")
    with pytest.raises(SpotStoreError):
        SpotService(bare).query(FilterCriteria())


def test_malformed_json_field_degrades_to_absent(engine, service):
    with engine.begin() as conn:
        conn.execute(
            insert(spots_table),
            [
                {
                    "id": 1,
                    "title": "Broken",
                    "equipment": "[not json",
                    "disciplines": '["street", "street", "", "static"]',
                    "images": '{"a": 1}',
                    "rating": 80,
                },
                {
                    "id": 2,
                    "title": "Fine",
                    "equipment": '["Pull-up bar"]',
                    "disciplines": None,
                    "images": None,
                    "rating": None,
                },
            ],
        )
    page = service.query(FilterCriteria())
    broken, fine = page.spots
    assert broken.details.equipment is None
    assert broken.details.images is None
    assert broken.details.disciplines == ["street", "static"]
    assert broken.details.rating == 80
    assert fine.details.equipment == ["Pull-up bar"]


def test_row_shaping_drops_half_coordinates_and_bad_rating():
    row = {
        "id": 4,
        "title": "Half",
        "name": None,
        "lat": 12.0,
        "lon": None,
        "address": None,
        "equipment": None,
        "disciplines": None,
        "description": "desc",
        "features_type": "park",
        "images": '["a.jpg", "b.jpg"]',
        "rating": 250,
    }
    spot = row_to_spot(row)
    assert spot.lat is None and spot.lon is None
    assert spot.details.rating is None
    assert spot.details.features.type == "park"
    assert spot.details.images == ["a.jpg", "b.jpg"]


def test_parse_or_default():
    assert parse_or_default('["a"]', []) == ["a"]
    assert parse_or_default("{broken", []) == []
    assert parse_or_default(None, "fallback") == "fallback"
    assert parse_or_default(b'[1, 2]', None) == [1, 2]


def test_page_window_trims_lookahead_row():
    window = PageWindow(limit=2, offset=4)
    assert window.fetch_size == 3
    assert window.trim(["a", "b", "c"]) == (["a", "b"], True)
    assert window.trim(["a"]) == (["a"], False)
    assert next_offset(4, 2, True) == 6
    assert next_offset(4, 1, False) is None


def _row(**overrides):
    row = {
        "id": 7,
        "title": "Spot",
        "name": None,
        "lat": None,
        "lon": None,
        "address": None,
        "equipment": None,
        "disciplines": None,
        "description": None,
        "features_type": None,
        "images": None,
        "rating": None,
    }
    row.update(overrides)
    return row


def test_row_shaping_blank_title_falls_back_to_name():
    spot = row_to_spot(_row(title="  ", name="Street workout corner"))
    assert spot.title == "Street workout corner"
    assert row_to_spot(_row(title=None, name="")) is None


def test_record_without_any_title_is_left_out_of_the_page(engine, service):
    with engine.begin() as conn:
        conn.execute(insert(spots_table), [{"id": 1, "title": "Good"}, {"id": 2, "title": ""}])
    page = service.query(FilterCriteria())
    assert [s.id for s in page.spots] == [1]
    assert page.has_more is False
