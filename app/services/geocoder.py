from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import aiohttp

from app.config import Settings, get_settings
from app.errors import InvalidInput, NotFound, ProviderError
from app.models import Coordinate, PlaceMatch
from app.services.http import provider_call, read_json, request_timeout

logger = logging.getLogger(__name__)

PROVIDER = "Nominatim"

# Appended to the free-text query so Nominatim ranks national matches first.
COUNTRY_NAMES: dict[str, str] = {
    "vn": "Vietnam",
    "th": "Thailand",
    "kh": "Cambodia",
    "la": "Laos",
    "jp": "Japan",
    "us": "United States",
    "gb": "United Kingdom",
}


def country_qualifier(country_scope: str) -> str:
    code = country_scope.strip().lower()
    return COUNTRY_NAMES.get(code, code.upper())


def _parse_match(item: Dict[str, Any]) -> PlaceMatch:
    try:
        coordinate = Coordinate(lat=float(item["lat"]), lon=float(item["lon"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(f"{PROVIDER} returned a match without a usable position", provider=PROVIDER) from e
    return PlaceMatch(coordinate=coordinate, display_name=str(item.get("display_name", "")))


async def resolve(
    session: aiohttp.ClientSession,
    query: str,
    country_scope: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
) -> PlaceMatch:
    """Geocode a free-text place name (Nominatim), scoped to one country.

    Exactly one request is made and the provider's best match is trusted as is.

    Raises:
        InvalidInput: the query is blank; nothing is sent.
        NotFound: the provider returned no match.
        ProviderError: transport or HTTP failure (ProviderOverloaded on 429/5xx).
    """
    settings = settings or get_settings()
    if not query or not query.strip():
        raise InvalidInput("Query must not be empty")

    scope = (country_scope or settings.country_scope).strip().lower()
    params: Dict[str, Any] = {
        "q": f"{query.strip()} {country_qualifier(scope)}",
        "format": "jsonv2",
        "addressdetails": 1,
        "limit": 1,
        "countrycodes": scope,
    }
    if settings.nominatim_email:
        params["email"] = settings.nominatim_email

    headers = {"User-Agent": settings.user_agent, "Accept-Language": settings.accept_language}

    async with provider_call(PROVIDER):
        async with session.get(
            str(settings.nominatim_base_url),
            params=params,
            headers=headers,
            timeout=request_timeout(settings.http_timeout_s),
        ) as resp:
            data = await read_json(resp, PROVIDER)

    if data and not isinstance(data, list):
        raise ProviderError(f"{PROVIDER} returned an unexpected payload", provider=PROVIDER)
    if not data:
        logger.info("No geocoding match for %r (scope=%s)", query, scope)
        raise NotFound(f"Location not found: {query.strip()}")

    match = _parse_match(data[0])
    logger.info("Geocoded %r -> %.6f,%.6f", query, match.coordinate.lat, match.coordinate.lon)
    return match
