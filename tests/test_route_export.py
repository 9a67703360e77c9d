import io
import zipfile

import pytest

pytest.importorskip("simplekml")

from models import MaraudeAction, Waypoint  # noqa: E402
from route_export import create_export_zip, create_route_kml, create_route_kmz, waypoints_dataframe  # noqa: E402


def maraude():
    return MaraudeAction(
        id="m1", title="Tournée gare", start_latitude=44.8378, start_longitude=-0.5792, address="Gare",
        waypoints=[Waypoint(44.8400, -0.5800, 0, name="Quai"), Waypoint(44.8450, -0.5750, 1)],
    )


def test_waypoints_dataframe_starts_with_departure():
    df = waypoints_dataframe(maraude())
    assert list(df.columns) == ["order", "name", "latitude", "longitude", "address"]
    assert list(df["order"]) == [0, 1, 2]
    assert df.iloc[0]["name"] == "Départ"
    assert df.iloc[1]["name"] == "Quai"


def test_kml_contains_route_line():
    text = create_route_kml(maraude()).kml()
    assert "<LineString" in text
    assert "-0.5792,44.8378" in text


def test_kmz_is_a_zip_with_doc_kml():
    with zipfile.ZipFile(create_route_kmz(maraude())) as kmz:
        assert kmz.namelist() == ["doc.kml"]


def test_export_zip_bundle():
    buff, name = create_export_zip(maraude())
    assert name.startswith("maraude_") and name.endswith(".zip")
    with zipfile.ZipFile(io.BytesIO(buff.getvalue())) as bundle:
        assert sorted(bundle.namelist()) == ["parcours.csv", "parcours.kmz"]
        assert bundle.read("parcours.csv").decode().startswith("order,name,latitude,longitude,address")
