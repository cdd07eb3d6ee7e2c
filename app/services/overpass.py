from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.errors import InvalidInput, ProviderError
from app.models import CATEGORY_KEYS, Coordinate, RawPOI
from app.services.http import provider_call, read_json, request_timeout

logger = logging.getLogger(__name__)

PROVIDER = "Overpass"
DEFAULT_RADIUS_M = 1000.0


def build_query(lat: float, lon: float, radius_m: float, cap: int, timeout_s: int = 25) -> str:
    """Union of node/way/relation around the point for every category key.

    Ways and relations have no position of their own, so we request their center.
    """
    radius = int(round(radius_m))
    statements = "\n".join(
        f"  {element}(around:{radius},{lat},{lon})[{key}];"
        for key in CATEGORY_KEYS
        for element in ("node", "way", "relation")
    )
    return f"""[out:json][timeout:{timeout_s}];
(
{statements}
);
out center tags {cap};
"""


def _position(el: Dict[str, Any]) -> Optional[Coordinate]:
    # Coordinates: node => lat/lon, others => center
    if el.get("type") == "node" or ("lat" in el and "lon" in el):
        plat, plon = el.get("lat"), el.get("lon")
    else:
        center = el.get("center")
        if not isinstance(center, dict):
            return None
        plat, plon = center.get("lat"), center.get("lon")

    if plat is None or plon is None:
        return None
    try:
        return Coordinate(lat=float(plat), lon=float(plon))
    except (TypeError, ValueError, ValidationError):
        return None


def parse_elements(elements: Any) -> List[RawPOI]:
    """Normalize Overpass elements to RawPOI, keeping provider order and duplicates.

    Elements that are not objects are skipped; a non-object tags field counts as no tags.
    """
    if not isinstance(elements, list):
        raise ProviderError(f"{PROVIDER} returned an unexpected payload", provider=PROVIDER)

    pois: List[RawPOI] = []
    for el in elements:
        if not isinstance(el, dict):
            logger.debug("Skipping non-object Overpass element: %r", el)
            continue
        osm_type = str(el.get("type", "node"))
        try:
            osm_id = int(el.get("id", 0))
        except (TypeError, ValueError):
            logger.debug("Skipping Overpass element with bad id: %r", el.get("id"))
            continue
        raw_tags = el.get("tags")
        tags = {str(k): str(v) for k, v in raw_tags.items()} if isinstance(raw_tags, dict) else {}
        pois.append(
            RawPOI(
                id=f"{osm_type}/{osm_id}",
                osm_type=osm_type,
                osm_id=osm_id,
                coordinate=_position(el),
                tags=tags,
            )
        )
    return pois


async def query_nearby(
    session: aiohttp.ClientSession,
    center: Coordinate,
    radius_m: float = DEFAULT_RADIUS_M,
    *,
    settings: Optional[Settings] = None,
) -> List[RawPOI]:
    """Fetch amenity/shop/tourism candidates within radius_m of center (Overpass).

    The provider may return more candidates than the caller keeps; ranking and
    truncation happen in app.services.ranking.
    """
    settings = settings or get_settings()
    if radius_m <= 0:
        raise InvalidInput("Search radius must be positive")

    query = build_query(center.lat, center.lon, radius_m, settings.overpass_result_cap)

    async with provider_call(PROVIDER):
        async with session.post(
            str(settings.overpass_base_url),
            data={"data": query},
            headers={"User-Agent": settings.user_agent},
            timeout=request_timeout(settings.http_timeout_s),
        ) as resp:
            data = await read_json(resp, PROVIDER)

    if not isinstance(data, dict):
        raise ProviderError(f"{PROVIDER} returned an unexpected payload", provider=PROVIDER)

    pois = parse_elements(data.get("elements", []))
    logger.info(
        "Overpass returned %d candidates around %.6f,%.6f (r=%sm)",
        len(pois),
        center.lat,
        center.lon,
        radius_m,
    )
    return pois
