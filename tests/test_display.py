from spotmap.client.display import filter_spots, prepare_for_display, with_distances
from spotmap.client.url_state import FilterOptions
from spotmap.models.dto import Spot, SpotDetails
from spotmap.utils.haversine import format_distance, haversine


def _spot(spot_id, title, lat=None, lon=None, equipment=None, **kwargs):
    details = SpotDetails(equipment=equipment) if equipment is not None else None
    return Spot(id=spot_id, title=title, lat=lat, lon=lon, details=details, **kwargs)


SPOTS = [
    _spot(1, "Far Park", 48.2, 16.4, ["Pull-up bars", "Parallel bars"]),
    _spot(2, "No coordinates", equipment=["Gymnastic rings"]),
    _spot(3, "Close Track", 48.001, 16.001, ["Tartan track", "Rings"]),
    _spot(4, "Plain", 48.01, 16.01, name="Street workout corner"),
]


def test_haversine_known_distance():
    # Vienna -> Budapest is roughly 214 km
    assert 210 < haversine(48.2082, 16.3738, 47.4979, 19.0402) < 220
    assert haversine(10, 10, 10, 10) == 0


def test_format_distance():
    assert format_distance(0.25) == "250m"
    assert format_distance(3.14159) == "3.1km"


def test_sorted_by_distance_with_unlocated_last():
    annotated = with_distances(SPOTS, (48.0, 16.0))
    assert [s.spot.id for s in annotated] == [3, 4, 1, 2]
    assert annotated[0].distance_km == 0.1
    assert annotated[-1].distance_km is None


def test_without_user_location_order_kept():
    annotated = with_distances(SPOTS, None)
    assert [s.spot.id for s in annotated] == [1, 2, 3, 4]
    assert all(s.distance_km is None for s in annotated)


def test_search_covers_title_name_and_address():
    annotated = with_distances(SPOTS, None)
    assert [s.spot.id for s in filter_spots(annotated, "street", FilterOptions())] == [4]
    assert [s.spot.id for s in filter_spots(annotated, "  PARK ", FilterOptions())] == [1]


def test_equipment_quick_filters():
    annotated = with_distances(SPOTS, None)
    assert [s.spot.id for s in filter_spots(annotated, "", FilterOptions(has_bars=True))] == [1]
    assert [s.spot.id for s in filter_spots(annotated, "", FilterOptions(has_rings=True))] == [2, 3]
    assert [s.spot.id for s in filter_spots(annotated, "", FilterOptions(has_rings=True, has_track=True))] == [3]


def test_prepare_for_display_combines_steps():
    result = prepare_for_display(SPOTS, (48.0, 16.0), "", FilterOptions(has_rings=True))
    assert [s.spot.id for s in result] == [3, 2]
