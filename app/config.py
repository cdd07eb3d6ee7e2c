from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App configuration (env-friendly).

    Tip: create a .env file and override settings there.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Nearby POI Finder API"
    version: str = "0.1.0"
    env: str = "development"
    log_level: str = "INFO"

    nominatim_base_url: AnyHttpUrl = "https://nominatim.openstreetmap.org/search"
    overpass_base_url: AnyHttpUrl = "https://overpass-api.de/api/interpreter"
    weather_base_url: AnyHttpUrl = "https://api.openweathermap.org/data/2.5/weather"
    translate_base_url: AnyHttpUrl = "https://translate.googleapis.com/translate_a/single"

    # Nominatim's usage policy expects a proper User-Agent and (optionally) contact info.
    user_agent: str = "poi-finder/0.1.0 (nearby points of interest lookup)"
    nominatim_email: Optional[str] = None
    accept_language: str = "vi"

    openweather_api_key: Optional[str] = None
    weather_units: str = "metric"
    weather_lang: str = "vi"

    http_timeout_s: float = 30.0

    country_scope: str = "vn"
    # Ho Chi Minh City
    default_lat: float = 10.762622
    default_lon: float = 106.660172
    default_location_name: str = "Ho Chi Minh City"
    default_zoom: int = 13
    place_zoom: int = 15

    search_radius_m: float = 1000.0
    # Upper bound on what Overpass returns; ranking trims to result_limit afterwards.
    overpass_result_cap: int = 20
    result_limit: int = Field(5, ge=1, le=5)

    client_ttl_s: float = 1800.0
    client_max_size: int = 256


@lru_cache
def get_settings() -> Settings:
    return Settings()
