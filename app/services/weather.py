from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import aiohttp

from app.config import Settings, get_settings
from app.errors import ProviderError
from app.models import Coordinate, WeatherReport
from app.services.http import provider_call, read_json, request_timeout

logger = logging.getLogger(__name__)

PROVIDER = "OpenWeatherMap"


def parse_weather(data: Dict[str, Any], location_name: Optional[str] = None) -> WeatherReport:
    try:
        main = data["main"]
        condition = (data.get("weather") or [{}])[0]
        return WeatherReport(
            temperature_c=float(main["temp"]),
            feels_like_c=float(main["feels_like"]),
            humidity_pct=int(main["humidity"]),
            wind_speed_ms=float((data.get("wind") or {}).get("speed", 0.0)),
            description=str(condition.get("description", "")),
            icon=str(condition.get("icon", "")),
            location_name=location_name or str(data.get("name", "")),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(f"{PROVIDER} returned an incomplete report", provider=PROVIDER) from e


async def fetch_weather(
    session: aiohttp.ClientSession,
    coordinate: Coordinate,
    location_name: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
) -> WeatherReport:
    """Current conditions at a coordinate."""
    settings = settings or get_settings()
    if not settings.openweather_api_key:
        raise ProviderError(f"{PROVIDER} API key is not configured", provider=PROVIDER)

    params = {
        "lat": coordinate.lat,
        "lon": coordinate.lon,
        "appid": settings.openweather_api_key,
        "units": settings.weather_units,
        "lang": settings.weather_lang,
    }
    async with provider_call(PROVIDER):
        async with session.get(
            str(settings.weather_base_url),
            params=params,
            timeout=request_timeout(settings.http_timeout_s),
        ) as resp:
            data = await read_json(resp, PROVIDER)

    report = parse_weather(data, location_name)
    logger.info("Weather at %.4f,%.4f: %.1fC %s", coordinate.lat, coordinate.lon, report.temperature_c, report.description)
    return report
