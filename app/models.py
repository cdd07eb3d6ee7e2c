from __future__ import annotations

from enum import Enum
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

T = TypeVar("T")

CATEGORY_KEYS = ("amenity", "shop", "tourism")


class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    PROVIDER_ERROR = "ProviderError"
    PROVIDER_OVERLOADED = "ProviderOverloaded"
    STALE_RESULT = "StaleResult"


class SearchPhase(str, Enum):
    IDLE = "Idle"
    GEOCODING = "Geocoding"
    QUERYING_POIS = "QueryingPOIs"
    READY = "Ready"
    FAILED = "Failed"


class ChannelPhase(str, Enum):
    IDLE = "Idle"
    LOADING = "Loading"
    READY = "Ready"
    FAILED = "Failed"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class PlaceMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    display_name: str = ""


class RawPOI(BaseModel):
    """A candidate as returned by the POI provider, position already normalized."""

    model_config = ConfigDict(frozen=True)

    id: str
    osm_type: str
    osm_id: int
    coordinate: Optional[Coordinate] = None
    tags: Dict[str, str] = Field(default_factory=dict)

    @computed_field
    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name") or self.tags.get("brand") or self.tags.get("operator") or None

    @computed_field
    @property
    def category(self) -> Optional[str]:
        for key in CATEGORY_KEYS:
            if self.tags.get(key):
                return self.tags[key]
        return None


class RankedPOI(RawPOI):
    coordinate: Coordinate
    distance_m: float = Field(..., ge=0.0)


class SearchError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str


class SearchState(BaseModel):
    model_config = ConfigDict(frozen=True)

    generation: int = 0
    query_text: str = ""
    display_name: str = ""
    reference_coordinate: Coordinate
    zoom_hint: int
    results: List[RankedPOI] = Field(default_factory=list, max_length=5)
    phase: SearchPhase = SearchPhase.IDLE
    error: Optional[SearchError] = None


class ChannelState(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True)

    phase: ChannelPhase = ChannelPhase.IDLE
    value: Optional[T] = None
    error: Optional[str] = None


class WeatherReport(BaseModel):
    temperature_c: float
    feels_like_c: float
    humidity_pct: int
    wind_speed_ms: float
    description: str = ""
    icon: str = ""
    location_name: str = ""


class Translation(BaseModel):
    text: str
    translated_text: str
    source_lang: str
    target_lang: str


class AuthSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    email: str
    display_name: Optional[str] = None


class GeocodeRequest(BaseModel):
    query: str = Field(..., description="Free-text place name, e.g. 'Hội An'")
    country_code: str = Field("vn", min_length=2, max_length=2)


class PoiRequest(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    radius: float = Field(1000.0, gt=0, le=50_000)


class WeatherRequest(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    location_name: Optional[str] = None


class TranslateRequest(BaseModel):
    text: str
    source_lang: str = "en"
    target_lang: str = "vi"


class SearchRequest(BaseModel):
    client_id: str = Field("default", min_length=1, max_length=128)
    query: str


class SearchResponse(BaseModel):
    search: SearchState
    weather: ChannelState[WeatherReport]
    translation: ChannelState[Translation]
    history_enabled: bool = False


class Credentials(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    display_name: Optional[str] = None


class SessionResponse(BaseModel):
    authenticated: bool
    session: Optional[AuthSession] = None
