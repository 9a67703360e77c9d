import math
import logging

import numpy as np

from models import Waypoint

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000
WALKING_MINUTES_PER_KM = 12  # ~5 km/h
BUFFER_RADIUS_M = 150


def haversine_km(lat1, lon1, lat2, lon2):
    """
    Great circle distance in km between points given in decimal degrees.
    Accepts scalars or numpy arrays.
    """
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = np.sin(dlat / 2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2)**2
    c = 2 * np.arcsin(np.sqrt(a))
    return c * EARTH_RADIUS_KM


def route_points(start_lat, start_lon, waypoints):
    """(lat, lon) sequence start -> wp1 -> wp2 ... in waypoint order."""
    points = [(start_lat, start_lon)]
    points.extend((w.latitude, w.longitude) for w in sorted(waypoints, key=lambda w: w.order))
    return points


def route_distance_km(points):
    if len(points) < 2:
        return 0.0
    coords = np.asarray(points, dtype=float)
    segments = haversine_km(coords[:-1, 0], coords[:-1, 1], coords[1:, 0], coords[1:, 1])
    return float(np.sum(segments))


def estimate_route_metrics(start_lat, start_lon, waypoints):
    """Return (distance_km, duration_minutes) for a walking route."""
    if not waypoints:
        return 0.0, 0
    dist_km = route_distance_km(route_points(start_lat, start_lon, waypoints))
    minutes = round(dist_km * WALKING_MINUTES_PER_KM)
    return dist_km, minutes


def bearing_deg(lat1, lon1, lat2, lon2):
    """Initial bearing (forward azimuth) from point 1 to point 2, 0-360."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    x = math.sin(dlon) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlon)
    return (math.degrees(math.atan2(x, y)) + 360) % 360


def offset_point(lat, lon, bearing, distance_m):
    theta = math.radians(bearing)
    dlat = distance_m * math.cos(theta) / EARTH_RADIUS_M
    dlon = distance_m * math.sin(theta) / (EARTH_RADIUS_M * math.cos(math.radians(lat)))
    return lat + math.degrees(dlat), lon + math.degrees(dlon)


def segment_buffer_polygon(p1, p2, radius_m=BUFFER_RADIUS_M):
    """Quadrilateral flanking segment p1-p2 at radius_m on both sides."""
    bearing = bearing_deg(p1[0], p1[1], p2[0], p2[1])
    left, right = bearing - 90, bearing + 90
    return [
        offset_point(p1[0], p1[1], left, radius_m),
        offset_point(p2[0], p2[1], left, radius_m),
        offset_point(p2[0], p2[1], right, radius_m),
        offset_point(p1[0], p1[1], right, radius_m),
    ]


def route_buffer_polygons(points, radius_m=BUFFER_RADIUS_M):
    polygons = []
    for p1, p2 in zip(points, points[1:]):
        if tuple(p1) == tuple(p2):
            logger.debug(f"Skipping zero-length segment at {p1}")
            continue
        polygons.append(segment_buffer_polygon(p1, p2, radius_m))
    return polygons


def renumber_waypoints(waypoints):
    for i, waypoint in enumerate(waypoints):
        waypoint.order = i
    return waypoints


class WaypointRoute:
    """Editable waypoint list; distance and duration follow every change."""

    def __init__(self, start_lat, start_lon, waypoints=None):
        self.start_lat = start_lat
        self.start_lon = start_lon
        self.waypoints = renumber_waypoints(sorted(waypoints or [], key=lambda w: w.order))
        self.distance_km = 0.0
        self.duration_min = 0
        self._recalculate()

    def _recalculate(self):
        self.distance_km, self.duration_min = estimate_route_metrics(
            self.start_lat, self.start_lon, self.waypoints)

    def set_start(self, lat, lon):
        self.start_lat, self.start_lon = lat, lon
        self._recalculate()

    def add_waypoint(self, lat, lon, name=None, address=None):
        waypoint = Waypoint(
            latitude=lat,
            longitude=lon,
            order=len(self.waypoints),
            name=name or f"Point {len(self.waypoints) + 1}",
            address=address,
        )
        self.waypoints.append(waypoint)
        self._recalculate()
        return waypoint

    def remove_waypoint(self, index):
        removed = self.waypoints.pop(index)
        renumber_waypoints(self.waypoints)
        self._recalculate()
        return removed

    def move_up(self, index):
        if index <= 0 or index >= len(self.waypoints):
            return False
        self.waypoints[index - 1], self.waypoints[index] = self.waypoints[index], self.waypoints[index - 1]
        renumber_waypoints(self.waypoints)
        self._recalculate()
        return True

    def move_down(self, index):
        if index < 0 or index >= len(self.waypoints) - 1:
            return False
        return self.move_up(index + 1)

    def clear(self):
        self.waypoints = []
        self._recalculate()

    @property
    def points(self):
        return route_points(self.start_lat, self.start_lon, self.waypoints)

    def buffer_polygons(self, radius_m=BUFFER_RADIUS_M):
        return route_buffer_polygons(self.points, radius_m)


def validate_parameters(params):
    errors = []
    if not (params.get("title") or "").strip():
        errors.append("Le titre est requis")
    if not params.get("start_time"):
        errors.append("L'heure de début est requise")
    if params.get("is_recurring") and not params.get("day_of_week"):
        errors.append("Le jour de la semaine est requis pour les maraudes récurrentes")
    if not params.get("is_recurring") and not params.get("scheduled_date"):
        errors.append("La date est requise pour les maraudes ponctuelles")
    lat = params.get("latitude")
    lon = params.get("longitude")
    if lat is None or not -90 <= lat <= 90:
        errors.append("Latitude invalide")
    if lon is None or not -180 <= lon <= 180:
        errors.append("Longitude invalide")
    return errors


def build_maraude_payload(params, route=None):
    def blank_to_none(value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    payload = {
        "title": params["title"].strip(),
        "startLatitude": params["latitude"],
        "startLongitude": params["longitude"],
        "isRecurring": bool(params.get("is_recurring")),
        "startTime": params["start_time"],
        "participantsCount": int(params.get("participants_count") or 0),
        "description": blank_to_none(params.get("description")),
        "address": blank_to_none(params.get("address")),
        "notes": blank_to_none(params.get("notes")),
        "endTime": blank_to_none(params.get("end_time")),
        "dayOfWeek": params.get("day_of_week") if params.get("is_recurring") else None,
        "scheduledDate": params.get("scheduled_date") if not params.get("is_recurring") else None,
    }
    if route is not None:
        payload["waypoints"] = [w.to_payload() for w in route.waypoints]
        payload["estimatedDistance"] = round(route.distance_km, 2)
        payload["estimatedDuration"] = route.duration_min
    return {key: value for key, value in payload.items() if value is not None}
