from __future__ import annotations

import pytest

from app.errors import InvalidInput, ProviderError, ProviderOverloaded
from app.models import Coordinate
from app.services.overpass import build_query, parse_elements, query_nearby
from conftest import FakeResponse, FakeSession, overpass_node

CENTER = Coordinate(lat=15.8794, lon=108.3350)


def test_build_query_unions_three_categories():
    q = build_query(15.8794, 108.335, 1000, cap=20)
    for key in ("amenity", "shop", "tourism"):
        for element in ("node", "way", "relation"):
            assert f"{element}(around:1000,15.8794,108.335)[{key}];" in q
    assert q.startswith("[out:json]")
    assert "out center tags 20;" in q


def test_parse_elements_normalizes_points_and_centers():
    elements = [
        overpass_node(1, 15.88, 108.33, amenity="cafe", name="Cà phê"),
        {"type": "way", "id": 2, "center": {"lat": 15.881, "lon": 108.331}, "tags": {"tourism": "museum"}},
        {"type": "relation", "id": 3, "tags": {"shop": "mall"}},
        {"type": "way", "id": 4, "center": {"lat": 15.882}, "tags": {"shop": "books"}},
        overpass_node(5, None, 108.33, amenity="bank"),
    ]
    pois = parse_elements(elements)

    assert [p.id for p in pois] == ["node/1", "way/2", "relation/3", "way/4", "node/5"]
    assert pois[0].coordinate == Coordinate(lat=15.88, lon=108.33)
    assert pois[0].name == "Cà phê"
    assert pois[1].coordinate == Coordinate(lat=15.881, lon=108.331)
    assert pois[1].category == "museum"
    assert pois[2].coordinate is None
    assert pois[3].coordinate is None
    assert pois[4].coordinate is None


def test_parse_elements_keeps_upstream_duplicates():
    el = overpass_node(9, 15.88, 108.33, amenity="atm")
    assert len(parse_elements([el, el])) == 2


def test_out_of_range_position_is_treated_as_missing():
    (poi,) = parse_elements([overpass_node(1, 95.0, 108.33, amenity="cafe")])
    assert poi.coordinate is None


@pytest.mark.asyncio
async def test_query_nearby_posts_single_query(settings):
    payload = {"elements": [overpass_node(i, 15.879 + i * 1e-4, 108.335, shop="x") for i in range(8)]}
    session = FakeSession(FakeResponse(payload))

    pois = await query_nearby(session, CENTER, settings=settings)

    # truncation is left to the ranking step
    assert len(pois) == 8
    (call,) = session.calls
    assert call["method"] == "POST"
    assert call["url"] == str(settings.overpass_base_url)
    assert "around:1000," in call["data"]["data"]


@pytest.mark.asyncio
async def test_query_nearby_error_mapping(settings):
    with pytest.raises(ProviderOverloaded):
        await query_nearby(FakeSession(FakeResponse(None, status=429)), CENTER, settings=settings)
    with pytest.raises(ProviderOverloaded):
        await query_nearby(FakeSession(FakeResponse(None, status=504)), CENTER, settings=settings)
    with pytest.raises(ProviderError):
        await query_nearby(FakeSession(FakeResponse(None, status=400)), CENTER, settings=settings)
    with pytest.raises(ProviderError):
        await query_nearby(FakeSession(FakeResponse(ValueError("bad json"))), CENTER, settings=settings)


@pytest.mark.asyncio
async def test_query_nearby_rejects_non_positive_radius(settings):
    session = FakeSession()
    with pytest.raises(InvalidInput):
        await query_nearby(session, CENTER, 0, settings=settings)
    assert session.calls == []


@pytest.mark.asyncio
async def test_query_nearby_empty_response(settings):
    assert await query_nearby(FakeSession(FakeResponse({"elements": []})), CENTER, settings=settings) == []


def test_parse_elements_skips_malformed_entries():
    elements = [
        "oops",
        None,
        {"type": "node", "id": 7, "lat": 15.88, "lon": 108.33, "tags": ["amenity", "cafe"]},
        {"type": "way", "id": 8, "center": "15.88,108.33", "tags": {"shop": "books"}},
    ]
    pois = parse_elements(elements)

    assert [p.id for p in pois] == ["node/7", "way/8"]
    assert pois[0].tags == {}
    assert pois[0].coordinate == Coordinate(lat=15.88, lon=108.33)
    assert pois[1].coordinate is None


@pytest.mark.asyncio
@pytest.mark.parametrize("elements", ["oops", {"0": {"type": "node"}}, 42])
async def test_query_nearby_rejects_non_list_elements(settings, elements):
    session = FakeSession(FakeResponse({"elements": elements}))
    with pytest.raises(ProviderError):
        await query_nearby(session, CENTER, settings=settings)
