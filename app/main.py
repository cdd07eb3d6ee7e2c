from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List

import aiohttp
from fastapi import FastAPI, HTTPException, Request

from app.config import get_settings
from app.errors import InvalidInput, NotFound, PipelineError, ProviderOverloaded
from app.logging import RequestLoggingMiddleware, configure_logging
from app.models import (
    Coordinate,
    Credentials,
    GeocodeRequest,
    PlaceMatch,
    PoiRequest,
    RankedPOI,
    SearchRequest,
    SearchResponse,
    SessionResponse,
    TranslateRequest,
    Translation,
    WeatherReport,
    WeatherRequest,
)
from app.services.auth import InMemoryAuthBackend, SessionObserver
from app.services.geocoder import resolve
from app.services.orchestrator import SearchOrchestrator
from app.services.overpass import query_nearby
from app.services.ranking import rank
from app.services.registry import ClientRegistry
from app.services.translation import translate_text
from app.services.weather import fetch_weather

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own the shared aiohttp session, the auth backend and the per-client registry.

    The in-memory auth backend is process-wide and meant for development; a
    deployment swaps in a real AuthBackend here. Search state only reads the
    current session through the SessionObserver.
    """
    logger.info("Starting %s v%s", settings.app_name, settings.version)
    session = aiohttp.ClientSession()
    auth = InMemoryAuthBackend()
    observer = SessionObserver(auth)

    def new_orchestrator(client_id: str) -> SearchOrchestrator:
        orchestrator = SearchOrchestrator(session, settings=settings, sessions=observer)
        orchestrator.start()
        logger.info("Created search state for client %s", client_id)
        return orchestrator

    app.state.http = session
    app.state.auth = auth
    app.state.sessions = observer
    app.state.clients = ClientRegistry(
        ttl_s=settings.client_ttl_s,
        max_size=settings.client_max_size,
        factory=new_orchestrator,
    )
    try:
        yield
    finally:
        for orchestrator in app.state.clients.values():
            await orchestrator.drain()
        observer.close()
        await session.close()
        logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Resolve a place name and list the nearest points of interest using OpenStreetMap data.",
    lifespan=lifespan,
)
app.add_middleware(RequestLoggingMiddleware)


def _http_error(e: PipelineError) -> HTTPException:
    if isinstance(e, InvalidInput):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, ProviderOverloaded):
        return HTTPException(status_code=503, detail=e.message)
    return HTTPException(status_code=502, detail=e.message)


@app.get("/", tags=["Root"])
async def root():
    return {"ok": True, "service": settings.app_name, "version": settings.version}


@app.get("/api/health", tags=["Healthcheck"])
async def health():
    return {"status": "healthy", "service": settings.app_name, "version": settings.version}


@app.post("/api/geocoding", response_model=PlaceMatch, tags=["Api Geocode"])
async def api_geocoding(req: GeocodeRequest, request: Request):
    try:
        return await resolve(request.app.state.http, req.query, req.country_code, settings=settings)
    except PipelineError as e:
        raise _http_error(e)


@app.post("/api/pois", response_model=List[RankedPOI], tags=["Api POIs"])
async def api_pois(req: PoiRequest, request: Request):
    center = Coordinate(lat=req.lat, lon=req.lon)
    try:
        candidates = await query_nearby(request.app.state.http, center, req.radius, settings=settings)
    except PipelineError as e:
        raise _http_error(e)
    return rank(candidates, center, settings.result_limit)


@app.post("/api/weather", response_model=WeatherReport, tags=["Api Weather"])
async def api_weather(req: WeatherRequest, request: Request):
    try:
        return await fetch_weather(
            request.app.state.http,
            Coordinate(lat=req.lat, lon=req.lon),
            req.location_name,
            settings=settings,
        )
    except PipelineError as e:
        raise _http_error(e)


@app.post("/api/translate", response_model=Translation, tags=["Api Translate"])
async def api_translate(req: TranslateRequest, request: Request):
    try:
        return await translate_text(
            request.app.state.http, req.text, req.source_lang, req.target_lang, settings=settings
        )
    except PipelineError as e:
        raise _http_error(e)


@app.post("/api/search", response_model=SearchResponse, tags=["Search"])
async def api_search(req: SearchRequest, request: Request):
    """Geocode, query and rank in one go for a client; weather follows in the background."""
    orchestrator: SearchOrchestrator = request.app.state.clients.get_or_create(req.client_id)
    try:
        await orchestrator.submit(req.query)
    except InvalidInput as e:
        raise _http_error(e)
    return orchestrator.snapshot()


@app.get("/api/search/{client_id}", response_model=SearchResponse, tags=["Search"])
async def api_search_state(client_id: str, request: Request):
    orchestrator = request.app.state.clients.get(client_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Unknown client")
    return orchestrator.snapshot()


@app.post("/api/search/{client_id}/translate", response_model=SearchResponse, tags=["Search"])
async def api_search_translate(client_id: str, req: TranslateRequest, request: Request):
    orchestrator: SearchOrchestrator = request.app.state.clients.get_or_create(client_id)
    await orchestrator.translate(req.text, req.source_lang, req.target_lang)
    return orchestrator.snapshot()


def _session_response(request: Request) -> SessionResponse:
    observer: SessionObserver = request.app.state.sessions
    return SessionResponse(authenticated=observer.is_authenticated, session=observer.current)


@app.post("/api/auth/sign-up", response_model=SessionResponse, tags=["Auth"])
async def api_sign_up(req: Credentials, request: Request):
    try:
        await request.app.state.auth.sign_up(req.email, req.password, req.display_name)
    except PipelineError as e:
        raise _http_error(e)
    return _session_response(request)


@app.post("/api/auth/sign-in", response_model=SessionResponse, tags=["Auth"])
async def api_sign_in(req: Credentials, request: Request):
    try:
        await request.app.state.auth.sign_in(req.email, req.password)
    except InvalidInput as e:
        raise HTTPException(status_code=401, detail=e.message)
    return _session_response(request)


@app.post("/api/auth/sign-out", response_model=SessionResponse, tags=["Auth"])
async def api_sign_out(request: Request):
    await request.app.state.auth.sign_out()
    return _session_response(request)


@app.get("/api/auth/session", response_model=SessionResponse, tags=["Auth"])
async def api_session(request: Request):
    return _session_response(request)
