from datetime import date

import pytest
from geopy.exc import GeocoderTimedOut

import map_utils
from filters import FilterState
from map_utils import (
    MaraudeMapRenderer,
    create_route_map,
    format_date_fr,
    maraude_icon,
    maraude_popup_html,
    merchant_popup_html,
    reverse_geocode,
    search_location,
    should_pulse,
)
from models import Association, MaraudeAction, Merchant, Waypoint
from route_calculator import WaypointRoute

WEDNESDAY = date(2024, 1, 17)


def maraude(id="m1", status="planned", waypoints=None, located=True, **kwargs):
    return MaraudeAction(
        id=id, title=f"Maraude {id}", status=status, start_time="19:00",
        start_latitude=44.8378 if located else None,
        start_longitude=-0.5792 if located else None,
        waypoints=waypoints or [], is_recurring=True, day_of_week=1, **kwargs)


def merchant(id="c1", latitude=44.84):
    return Merchant(id=id, name="Chez Paul", category="cafe", latitude=latitude, longitude=-0.57,
                    services=["free_coffee", "mystery"])


def counts(renderer):
    return tuple(len(layer._children) for layer in renderer.layers)


def test_update_draws_markers_routes_and_merchants():
    renderer = MaraudeMapRenderer()
    route = [Waypoint(44.8400, -0.5800, 0), Waypoint(44.8450, -0.5750, 1)]
    maraudes = [maraude("m1", waypoints=route), maraude("m2"), maraude("m3", located=False)]
    merchants = [merchant("c1"), merchant("c2", latitude=None)]

    renderer.update(maraudes, merchants, FilterState(), WEDNESDAY)

    # 2 buffer polygons + 1 polyline for the routed maraude
    assert counts(renderer) == (2, 3, 1)


def test_update_replaces_previous_contents():
    renderer = MaraudeMapRenderer()
    renderer.update([maraude("m1"), maraude("m2")], [merchant()], FilterState(), WEDNESDAY)
    renderer.update([maraude("m3")], [], FilterState(), WEDNESDAY)

    assert counts(renderer) == (1, 0, 0)


def test_hidden_layers_stay_empty():
    renderer = MaraudeMapRenderer()
    state = FilterState(show_maraudes=False, show_merchants=True)
    renderer.update([maraude()], [merchant()], state, WEDNESDAY)

    assert counts(renderer) == (0, 0, 1)


def test_pulse_for_in_progress_or_today():
    assert should_pulse(maraude(status="in_progress"), WEDNESDAY)
    assert not should_pulse(maraude(), WEDNESDAY)
    assert should_pulse(maraude(), date(2024, 1, 15))

    assert "marker-pulse" in maraude_icon("in_progress", pulse=True).options["html"]
    assert "marker-pulse" not in maraude_icon("planned").options["html"]


def test_unknown_status_falls_back_to_code():
    html = maraude_popup_html(maraude(status="paused"), WEDNESDAY)
    assert "paused" in html
    assert "#6b7280" in maraude_icon("paused").options["html"]


def test_popup_escapes_user_text():
    record = maraude(description="<script>alert(1)</script>",
                     association=Association(id="a1", name="Tom & Jerry"))
    html = maraude_popup_html(record, WEDNESDAY)

    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "Tom &amp; Jerry" in html
    assert "Tous les Lundis" in html


def test_popup_shows_today_badge():
    assert "Aujourd'hui" in maraude_popup_html(maraude(), date(2024, 1, 15))
    assert "Aujourd'hui" not in maraude_popup_html(maraude(), WEDNESDAY)


def test_merchant_popup_labels_services():
    html = merchant_popup_html(merchant())
    assert "Café gratuit" in html
    assert "mystery" in html


def test_format_date_fr():
    assert format_date_fr("2024-01-17T00:00:00.000Z") == "17/01/2024"
    assert format_date_fr(None) == ""


def test_route_map_preview():
    route = WaypointRoute(44.8378, -0.5792)
    route.add_waypoint(44.8400, -0.5800)
    m = create_route_map(route, "Départ gare")
    assert m.location == [44.8378, -0.5792]


class FakeLocation:
    latitude = 44.84
    longitude = -0.58
    address = "Place de la Bourse, Bordeaux"


class FakeGeolocator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def geocode(self, query):
        if self.error:
            raise self.error
        return self.result

    def reverse(self, point, exactly_one=True):
        if self.error:
            raise self.error
        return self.result


def test_geocoding_success(monkeypatch):
    monkeypatch.setattr(map_utils, "_geolocator", lambda: FakeGeolocator(FakeLocation()))
    assert search_location("Bourse") == (44.84, -0.58)
    assert reverse_geocode(44.84, -0.58) == "Place de la Bourse, Bordeaux"


@pytest.mark.parametrize("geolocator", [FakeGeolocator(None), FakeGeolocator(error=GeocoderTimedOut("slow"))])
def test_geocoding_failures(monkeypatch, geolocator):
    monkeypatch.setattr(map_utils, "_geolocator", lambda: geolocator)
    assert search_location("Nowhere") == (None, None)
    assert reverse_geocode(0, 0) is None
