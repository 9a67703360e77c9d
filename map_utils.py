import html
import logging
from datetime import date

import folium
from folium.plugins import Geocoder
from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.geocoders import Nominatim

from config import DEFAULT_CENTER, DEFAULT_ZOOM, NOMINATIM_TIMEOUT, NOMINATIM_USER_AGENT
from filters import FilterState, is_happening_today
from labels import (
    MERCHANT_COLOR,
    category_icon,
    category_label,
    day_name,
    service_label,
    status_color,
    status_label,
)
from models import parse_date
from route_calculator import route_buffer_polygons, route_points

logger = logging.getLogger(__name__)

BASEMAPS = {
    "CartoDB positron": "CartoDB positron",
    "OpenStreetMap": "OpenStreetMap",
}

MARKER_CSS = """
<style>
.marker-pin { width: 32px; height: 32px; border-radius: 50% 50% 50% 0; transform: rotate(-45deg);
              display: flex; align-items: center; justify-content: center; box-shadow: 0 2px 6px rgba(0,0,0,.3); }
.marker-icon { width: 18px; height: 18px; transform: rotate(45deg); }
.marker-pulse { position: absolute; top: 4px; left: 4px; width: 32px; height: 32px; border-radius: 50%;
                opacity: .4; animation: pulse 1.6s ease-out infinite; z-index: -1; }
@keyframes pulse { 0% { transform: scale(.6); opacity: .6; } 100% { transform: scale(1.8); opacity: 0; } }
.popup-title { margin: 0 0 4px 0; font-size: 15px; }
.popup-detail { margin: 2px 0; }
</style>
"""

MARAUDE_SVG = (
    '<path d="M17 20h5v-2a3 3 0 00-5.356-1.857M17 20H7m10 0v-2c0-.656-.126-1.283-.356-1.857M7 20H2v-2a3 3 '
    '0 015.356-1.857M7 20v-2c0-.656.126-1.283.356-1.857m0 0a5.002 5.002 0 019.288 0M15 7a3 3 0 11-6 0 3 3 0 016 '
    '0zm6 3a2 2 0 11-4 0 2 2 0 014 0zM7 10a2 2 0 11-4 0 2 2 0 014 0z"/>'
)


# ─────────────── Geocoding ───────────────

def _geolocator():
    return Nominatim(user_agent=NOMINATIM_USER_AGENT, timeout=NOMINATIM_TIMEOUT)


def search_location(query):
    """Search for a location using Nominatim geocoding service"""
    try:
        location = _geolocator().geocode(query)
        if location:
            return location.latitude, location.longitude
        return None, None
    except (GeocoderTimedOut, GeocoderServiceError) as e:
        logger.warning(f"Location search error for '{query}': {e}")
        return None, None


def reverse_geocode(lat, lon):
    """Display address for a coordinate, or None when the lookup fails"""
    try:
        location = _geolocator().reverse((lat, lon), exactly_one=True)
        return location.address if location else None
    except (GeocoderTimedOut, GeocoderServiceError) as e:
        logger.warning(f"Reverse geocoding error for ({lat}, {lon}): {e}")
        return None


# ─────────────── Popups ───────────────

def _esc(value):
    return html.escape(str(value)) if value is not None else ""


def format_date_fr(value):
    parsed = parse_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else ""


def should_pulse(maraude, today=None):
    return maraude.status == "in_progress" or is_happening_today(maraude, today)


def maraude_popup_html(maraude, today=None):
    color = status_color(maraude.status)

    if maraude.is_recurring:
        schedule = f"Tous les {_esc(maraude.day_name or day_name(maraude.day_of_week))}s à {_esc(maraude.start_time)}"
    else:
        schedule = f"{format_date_fr(maraude.scheduled_date)} à {_esc(maraude.start_time)}"

    details = [
        f"<div class='popup-detail'><strong>📍</strong> {_esc(maraude.address)}</div>",
        f"<div class='popup-detail'><strong>📅</strong> {schedule}</div>",
    ]
    if maraude.end_time:
        details.append(f"<div class='popup-detail'><strong>⏰</strong> Fin prévue: {_esc(maraude.end_time)}</div>")
    details.append(f"<div class='popup-detail'><strong>👥</strong> {maraude.participants_count} bénévoles</div>")
    if maraude.beneficiaries_helped > 0:
        details.append(
            f"<div class='popup-detail'><strong>❤️</strong> {maraude.beneficiaries_helped} personnes aidées</div>")
    if maraude.waypoints and maraude.estimated_distance:
        details.append(
            f"<div class='popup-detail'><strong>🧭</strong> {maraude.estimated_distance:.2f} km"
            f" · {maraude.estimated_duration or 0} min</div>")
    if maraude.next_occurrence and maraude.is_recurring:
        details.append(
            f"<div class='popup-detail'><strong>🔄</strong> Prochaine: {format_date_fr(maraude.next_occurrence)}</div>")
    association_name = maraude.association.name if maraude.association else "Association"
    details.append(f"<div class='popup-detail'><strong>🏢</strong> {_esc(association_name)}</div>")

    today_badge = ""
    if is_happening_today(maraude, today):
        today_badge = "<span class='popup-today' style='background-color: #f59e0b20; color: #f59e0b;'>Aujourd'hui</span>"

    return f"""
    <div class="popup-content">
      <h3 class="popup-title">{_esc(maraude.title)}</h3>
      <span class="popup-status" style="background-color: {color}20; color: {color}">{_esc(status_label(maraude.status))}</span>
      {today_badge}
      <p class="popup-description">{_esc(maraude.description or '')}</p>
      {''.join(details)}
    </div>
    """


def merchant_popup_html(merchant):
    services = ", ".join(service_label(s) for s in merchant.services)

    details = [f"<div class='popup-detail'><strong>📍</strong> {_esc(merchant.address)}</div>"]
    if merchant.phone:
        details.append(f"<div class='popup-detail'><strong>📞</strong> {_esc(merchant.phone)}</div>")
    if services:
        details.append(f"<div class='popup-detail'><strong>🎯</strong> {_esc(services)}</div>")
    if merchant.contact_person:
        details.append(f"<div class='popup-detail'><strong>👤</strong> {_esc(merchant.contact_person)}</div>")
    if merchant.special_instructions:
        details.append(
            f"<div class='popup-instructions'><strong>ℹ️ Instructions:</strong> {_esc(merchant.special_instructions)}</div>")

    verified = "<span class='popup-verified'>✓ Vérifié</span>" if merchant.is_verified else ""

    return f"""
    <div class="popup-content">
      <h3 class="popup-title">{_esc(merchant.name)}</h3>
      <span class="popup-category">{_esc(category_label(merchant.category))}</span>
      {verified}
      <p class="popup-description">{_esc(merchant.description or '')}</p>
      {''.join(details)}
    </div>
    """


# ─────────────── Icons ───────────────

def maraude_icon(status, pulse=False):
    color = status_color(status)
    pulse_html = f'<div class="marker-pulse" style="background-color: {color}"></div>' if pulse else ""
    return folium.DivIcon(
        class_name="custom-maraude-marker",
        html=f"""
        <div class="marker-pin" style="background-color: {color}">
          <svg class="marker-icon" viewBox="0 0 24 24" fill="white">{MARAUDE_SVG}</svg>
        </div>
        {pulse_html}
        """,
        icon_size=(40, 40),
        icon_anchor=(20, 40),
        popup_anchor=(0, -40),
    )


def merchant_icon(category):
    return folium.DivIcon(
        class_name="custom-merchant-marker",
        html=f"""
        <div class="marker-pin" style="background-color: {MERCHANT_COLOR}">
          <svg class="marker-icon" viewBox="0 0 24 24" fill="white">{category_icon(category)}</svg>
        </div>
        """,
        icon_size=(30, 30),
        icon_anchor=(15, 30),
        popup_anchor=(0, -30),
    )


# ─────────────── Map ───────────────

def create_map(center=None, zoom=DEFAULT_ZOOM, basemap="CartoDB positron"):
    """Create a Folium map with the marker styles injected."""
    m = folium.Map(location=center or DEFAULT_CENTER, zoom_start=zoom, tiles=None, zoom_control=False)
    folium.TileLayer(BASEMAPS.get(basemap, basemap), name=basemap).add_to(m)
    m.get_root().header.add_child(folium.Element(MARKER_CSS))
    return m


class MaraudeMapRenderer:
    """
    Draws maraudes, their routes and merchants on a folium map.

    Every ``update`` clears the three layers and rebuilds them from the
    records it is given.
    """

    def __init__(self, center=None, zoom=DEFAULT_ZOOM, basemap="CartoDB positron"):
        self.map = create_map(center, zoom, basemap)
        self.maraude_layer = folium.FeatureGroup(name="Maraudes").add_to(self.map)
        self.route_layer = folium.FeatureGroup(name="Parcours").add_to(self.map)
        self.merchant_layer = folium.FeatureGroup(name="Commerçants").add_to(self.map)
        folium.LayerControl().add_to(self.map)

    @property
    def layers(self):
        return [self.maraude_layer, self.route_layer, self.merchant_layer]

    def clear(self):
        for layer in self.layers:
            layer._children.clear()

    def update(self, maraudes, merchants, filters: FilterState = None, today=None):
        filters = filters or FilterState()
        today = today or date.today()
        self.clear()

        if filters.show_maraudes:
            for maraude in maraudes:
                self.add_maraude(maraude, today)
        if filters.show_merchants:
            for merchant in merchants:
                self.add_merchant(merchant)

        logger.debug(
            f"Map updated: {len(self.maraude_layer._children)} maraude markers, "
            f"{len(self.route_layer._children)} route shapes, "
            f"{len(self.merchant_layer._children)} merchant markers")
        return self.map

    def add_maraude(self, maraude, today=None):
        if not maraude.has_location:
            logger.debug(f"Maraude {maraude.id} has no start coordinates, skipped")
            return
        popup_html = maraude_popup_html(maraude, today)
        folium.Marker(
            location=[maraude.start_latitude, maraude.start_longitude],
            icon=maraude_icon(maraude.status, should_pulse(maraude, today)),
            popup=folium.Popup(popup_html, max_width=300),
            tooltip=maraude.title,
        ).add_to(self.maraude_layer)

        if maraude.waypoints:
            self.add_route(maraude, popup_html)

    def add_route(self, maraude, popup_html=None):
        color = status_color(maraude.status)
        points = route_points(maraude.start_latitude, maraude.start_longitude, maraude.waypoints)
        for polygon in route_buffer_polygons(points):
            folium.Polygon(
                locations=polygon,
                color=color,
                weight=1,
                fill=True,
                fill_color=color,
                fill_opacity=0.15,
                popup=folium.Popup(popup_html, max_width=300) if popup_html else None,
            ).add_to(self.route_layer)
        folium.PolyLine(points, color=color, weight=3, opacity=0.8, dash_array="6 6").add_to(self.route_layer)

    def add_merchant(self, merchant):
        if merchant.latitude is None or merchant.longitude is None:
            logger.debug(f"Merchant {merchant.id} has no coordinates, skipped")
            return
        folium.Marker(
            location=[merchant.latitude, merchant.longitude],
            icon=merchant_icon(merchant.category),
            popup=folium.Popup(merchant_popup_html(merchant), max_width=300),
            tooltip=merchant.name,
        ).add_to(self.merchant_layer)

    def center_on(self, lat, lon, zoom=15):
        self.map.location = [lat, lon]
        self.map.options["zoom"] = zoom


def create_route_map(route, title="Départ", zoom=15):
    """Preview of a route being edited: start, numbered waypoints, path and buffer zones."""
    m = create_map(center=[route.start_lat, route.start_lon], zoom=zoom)
    Geocoder(collapsed=True, add_marker=False).add_to(m)
    folium.Marker(
        location=[route.start_lat, route.start_lon],
        tooltip=f"🚩 {title}",
        icon=folium.Icon(color="green", icon="flag"),
    ).add_to(m)
    for waypoint in route.waypoints:
        folium.Marker(
            location=[waypoint.latitude, waypoint.longitude],
            tooltip=f"{waypoint.order + 1}. {waypoint.name or ''}",
            popup=_esc(waypoint.address or waypoint.name or ""),
            icon=folium.Icon(color="blue"),
        ).add_to(m)
    if route.waypoints:
        for polygon in route.buffer_polygons():
            folium.Polygon(locations=polygon, color="#3b82f6", weight=1, fill=True, fill_opacity=0.15).add_to(m)
        folium.PolyLine(route.points, color="#3b82f6", weight=3, opacity=0.8).add_to(m)
    return m
