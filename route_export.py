# route_export.py
import io
import zipfile
from datetime import datetime

import pandas as pd
from simplekml import Kml

from route_calculator import route_points


def waypoints_dataframe(maraude):
    rows = [{
        "order": 0,
        "name": "Départ",
        "latitude": maraude.start_latitude,
        "longitude": maraude.start_longitude,
        "address": maraude.address or "",
    }]
    for w in maraude.waypoints:
        rows.append({
            "order": w.order + 1,
            "name": w.name or "",
            "latitude": w.latitude,
            "longitude": w.longitude,
            "address": w.address or "",
        })
    return pd.DataFrame(rows, columns=["order", "name", "latitude", "longitude", "address"])


def create_route_kml(maraude):
    kml = Kml(name=maraude.title)
    start = kml.newpoint(name="Départ", coords=[(maraude.start_longitude, maraude.start_latitude)])
    start.description = maraude.address or ""
    for w in maraude.waypoints:
        point = kml.newpoint(name=w.name or f"Point {w.order + 1}", coords=[(w.longitude, w.latitude)])
        point.description = w.address or ""
    if maraude.waypoints:
        points = route_points(maraude.start_latitude, maraude.start_longitude, maraude.waypoints)
        line = kml.newlinestring(name=maraude.title, coords=[(lon, lat) for lat, lon in points])
        line.style.linestyle.width = 3
    return kml


def create_route_kmz(maraude):
    buff = io.BytesIO()
    with zipfile.ZipFile(buff, "w", zipfile.ZIP_DEFLATED) as kmz:
        kmz.writestr("doc.kml", create_route_kml(maraude).kml())
    buff.seek(0)
    return buff


def create_export_zip(maraude):
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    df = waypoints_dataframe(maraude)

    zip_buff = io.BytesIO()
    with zipfile.ZipFile(zip_buff, "w") as zipf:
        zipf.writestr("parcours.csv", df.to_csv(index=False))
        zipf.writestr("parcours.kmz", create_route_kmz(maraude).getvalue())
    zip_buff.seek(0)
    return zip_buff, f"maraude_{timestamp}.zip"
