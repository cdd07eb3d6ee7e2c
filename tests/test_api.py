from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.errors import NotFound, ProviderOverloaded
from app.main import app
from app.models import Coordinate, PlaceMatch, RawPOI, WeatherReport

HOI_AN = Coordinate(lat=15.8794, lon=108.3350)


async def fake_resolve(session, query, country_scope=None, *, settings=None):
    if query.strip() == "Hội An":
        return PlaceMatch(coordinate=HOI_AN, display_name="Hội An, Việt Nam")
    raise NotFound(f"Location not found: {query.strip()}")


async def fake_query_nearby(session, center, radius_m=1000.0, *, settings=None):
    return [
        RawPOI(
            id=f"node/{i}",
            osm_type="node",
            osm_id=i,
            coordinate=Coordinate(lat=center.lat + (7 - i) * 0.0003, lon=center.lon) if i != 3 else None,
            tags={"amenity": "cafe", "name": f"Quán {i}"},
        )
        for i in range(8)
    ]


async def fake_fetch_weather(session, coordinate, location_name=None, *, settings=None):
    return WeatherReport(temperature_c=30, feels_like_c=34, humidity_pct=75, wind_speed_ms=2.5, location_name=location_name or "")


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr("app.main.resolve", fake_resolve)
    monkeypatch.setattr("app.main.query_nearby", fake_query_nearby)
    monkeypatch.setattr("app.services.geocoder.resolve", fake_resolve)
    monkeypatch.setattr("app.services.overpass.query_nearby", fake_query_nearby)
    monkeypatch.setattr("app.services.weather.fetch_weather", fake_fetch_weather)
    with TestClient(app) as c:
        yield c


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_geocoding_endpoint(client):
    resp = client.post("/api/geocoding", json={"query": "Hội An", "country_code": "vn"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["coordinate"] == {"lat": 15.8794, "lon": 108.335}

    resp = client.post("/api/geocoding", json={"query": "xqzzvplk"})
    assert resp.status_code == 404


def test_pois_endpoint_returns_ranked_top_five(client):
    resp = client.post("/api/pois", json={"lat": HOI_AN.lat, "lon": HOI_AN.lon, "radius": 1000})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 5
    assert [p["id"] for p in body] == ["node/7", "node/6", "node/5", "node/4", "node/2"]
    assert body[0]["name"] == "Quán 7"
    assert body[0]["category"] == "cafe"


def test_pois_endpoint_maps_overload_to_503(client, monkeypatch):
    async def overloaded(*args, **kwargs):
        raise ProviderOverloaded("Overpass unavailable: HTTP 429")

    monkeypatch.setattr("app.main.query_nearby", overloaded)
    resp = client.post("/api/pois", json={"lat": HOI_AN.lat, "lon": HOI_AN.lon})
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Overpass unavailable: HTTP 429"


def test_search_flow(client):
    resp = client.post("/api/search", json={"client_id": "tab-1", "query": "Hội An"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["search"]["phase"] == "Ready"
    assert body["search"]["zoom_hint"] == 15
    assert len(body["search"]["results"]) == 5
    assert body["history_enabled"] is False

    resp = client.post("/api/search", json={"client_id": "tab-1", "query": "xqzzvplk"})
    body = resp.json()
    assert body["search"]["phase"] == "Failed"
    assert body["search"]["error"]["kind"] == "NotFound"
    assert body["search"]["results"] == []
    assert body["search"]["reference_coordinate"] == {"lat": 15.8794, "lon": 108.335}

    state = client.get("/api/search/tab-1").json()
    assert state["search"]["generation"] == 2


def test_search_blank_query_is_400(client):
    resp = client.post("/api/search", json={"client_id": "tab-2", "query": "  "})
    assert resp.status_code == 400


def test_unknown_client_state_is_404(client):
    assert client.get("/api/search/never-seen").status_code == 404


def test_sign_in_enables_history(client):
    assert client.get("/api/auth/session").json() == {"authenticated": False, "session": None}

    resp = client.post(
        "/api/auth/sign-up",
        json={"email": "mai@example.com", "password": "secret123", "display_name": "Mai"},
    )
    assert resp.status_code == 200
    assert resp.json()["authenticated"] is True

    body = client.post("/api/search", json={"client_id": "tab-3", "query": "Hội An"}).json()
    assert body["history_enabled"] is True

    client.post("/api/auth/sign-out")
    assert client.get("/api/search/tab-3").json()["history_enabled"] is False

    resp = client.post("/api/auth/sign-in", json={"email": "mai@example.com", "password": "wrong"})
    assert resp.status_code == 401
    resp = client.post("/api/auth/sign-in", json={"email": "mai@example.com", "password": "secret123"})
    assert resp.json()["session"]["display_name"] == "Mai"
