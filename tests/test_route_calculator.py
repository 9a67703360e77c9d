import pytest

from models import Waypoint
from route_calculator import (
    WaypointRoute,
    bearing_deg,
    build_maraude_payload,
    estimate_route_metrics,
    haversine_km,
    offset_point,
    route_buffer_polygons,
    segment_buffer_polygon,
    validate_parameters,
)

START = (44.8378, -0.5792)


def test_haversine_known_distance():
    # Paris -> Lyon
    assert haversine_km(48.8566, 2.3522, 45.7640, 4.8357) == pytest.approx(391.5, abs=1.0)
    assert haversine_km(10.0, 10.0, 10.0, 10.0) == 0


def test_metrics_single_waypoint():
    distance, minutes = estimate_route_metrics(*START, [Waypoint(44.8400, -0.5800, 0)])
    # ~245 m north and ~63 m west of the start: 0.2526 km with R = 6371 km, a little over a quarter kilometre
    assert distance == pytest.approx(0.2526, abs=1e-3)
    assert minutes == 3


def test_metrics_without_waypoints():
    assert estimate_route_metrics(*START, []) == (0.0, 0)


def test_metrics_follow_waypoint_order():
    a = Waypoint(44.8400, -0.5800, 1)
    b = Waypoint(44.8500, -0.5700, 0)
    ordered, _ = estimate_route_metrics(*START, [b, a])
    shuffled, _ = estimate_route_metrics(*START, [a, b])
    assert ordered == pytest.approx(shuffled)


def test_bearing_cardinal_directions():
    assert bearing_deg(0, 0, 1, 0) == pytest.approx(0)
    assert bearing_deg(0, 0, 0, 1) == pytest.approx(90)
    assert bearing_deg(0, 0, -1, 0) == pytest.approx(180)
    assert bearing_deg(0, 0, 0, -1) == pytest.approx(270)


def test_offset_point_east_at_equator():
    lat, lon = offset_point(0, 0, 90, 150)
    assert lat == pytest.approx(0, abs=1e-9)
    assert lon == pytest.approx(0.0013490, abs=1e-6)


def test_segment_buffer_corners():
    polygon = segment_buffer_polygon((0, 0), (0.01, 0))
    (l1_lat, l1_lon), (l2_lat, l2_lon), (r2_lat, r2_lon), (r1_lat, r1_lon) = polygon
    assert l1_lon == pytest.approx(-0.0013490, abs=1e-6)
    assert r1_lon == pytest.approx(0.0013490, abs=1e-6)
    assert l2_lat == pytest.approx(0.01, abs=1e-9)
    assert r2_lat == pytest.approx(0.01, abs=1e-9)
    assert l1_lat == pytest.approx(0, abs=1e-9)


def test_buffer_skips_zero_length_segments():
    points = [(44.0, -0.5), (44.0, -0.5), (44.01, -0.5)]
    assert len(route_buffer_polygons(points)) == 1
    assert route_buffer_polygons([(44.0, -0.5)]) == []


def test_waypoint_route_editing():
    route = WaypointRoute(*START)
    first = route.add_waypoint(44.8400, -0.5800)
    route.add_waypoint(44.8450, -0.5750, name="Gare")
    route.add_waypoint(44.8500, -0.5700, address="Quai")

    assert first.name == "Point 1"
    assert [w.order for w in route.waypoints] == [0, 1, 2]
    assert route.duration_min > 0

    assert route.move_up(0) is False
    assert route.move_down(2) is False
    assert route.move_down(0) is True
    assert [w.name for w in route.waypoints] == ["Gare", "Point 1", "Point 3"]
    assert [w.order for w in route.waypoints] == [0, 1, 2]

    removed = route.remove_waypoint(0)
    assert removed.name == "Gare"
    assert [w.order for w in route.waypoints] == [0, 1]
    assert len(route.buffer_polygons()) == 2

    route.clear()
    assert (route.distance_km, route.duration_min) == (0.0, 0)
    assert route.points == [START]


def test_waypoint_route_recomputes_on_new_start():
    route = WaypointRoute(*START, [Waypoint(44.8400, -0.5800, 0)])
    before = route.distance_km
    route.set_start(44.8300, -0.5900)
    assert route.distance_km > before


def test_waypoint_route_normalizes_loaded_orders():
    route = WaypointRoute(*START, [Waypoint(44.85, -0.57, 7), Waypoint(44.84, -0.58, 3)])
    assert [w.order for w in route.waypoints] == [0, 1]
    assert route.waypoints[0].latitude == 44.84


def test_validate_parameters_reports_missing_fields():
    errors = validate_parameters({"title": " ", "is_recurring": False, "latitude": 100, "longitude": 0})
    assert "Le titre est requis" in errors
    assert "L'heure de début est requise" in errors
    assert "La date est requise pour les maraudes ponctuelles" in errors
    assert "Latitude invalide" in errors
    assert "Longitude invalide" not in errors


def test_validate_parameters_accepts_recurring():
    params = {"title": "Tournée", "start_time": "19:00", "is_recurring": True, "day_of_week": 3,
              "latitude": 44.8, "longitude": -0.5}
    assert validate_parameters(params) == []


def test_build_payload_with_route():
    route = WaypointRoute(*START)
    route.add_waypoint(44.8400, -0.5800)
    params = {"title": " Tournée ", "start_time": "19:00", "is_recurring": True, "day_of_week": 3,
              "scheduled_date": "2024-01-17", "latitude": START[0], "longitude": START[1],
              "description": "  ", "participants_count": "4"}

    payload = build_maraude_payload(params, route)

    assert payload["title"] == "Tournée"
    assert payload["dayOfWeek"] == 3
    assert "scheduledDate" not in payload
    assert "description" not in payload
    assert payload["participantsCount"] == 4
    assert payload["estimatedDistance"] == 0.25
    assert payload["estimatedDuration"] == 3
    assert payload["waypoints"] == [{"latitude": 44.84, "longitude": -0.58, "order": 0, "name": "Point 1"}]


def test_build_payload_one_off():
    params = {"title": "Ponctuelle", "start_time": "09:00", "is_recurring": False, "day_of_week": 3,
              "scheduled_date": "2024-01-17", "latitude": 1.0, "longitude": 2.0}
    payload = build_maraude_payload(params)
    assert payload["scheduledDate"] == "2024-01-17"
    assert "dayOfWeek" not in payload
    assert "waypoints" not in payload
