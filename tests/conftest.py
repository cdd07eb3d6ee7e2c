from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from app.config import Settings


class FakeResponse:
    def __init__(self, payload: Any = None, status: int = 200) -> None:
        self.payload = payload
        self.status = status

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    """Stands in for aiohttp.ClientSession; replays queued responses in order."""

    def __init__(self, *responses: Any) -> None:
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, openweather_api_key="test-key")


def overpass_node(osm_id: int, lat: Optional[float], lon: Optional[float], **tags: str) -> Dict[str, Any]:
    el: Dict[str, Any] = {"type": "node", "id": osm_id, "tags": tags}
    if lat is not None:
        el["lat"] = lat
    if lon is not None:
        el["lon"] = lon
    return el
