"""HTTP route layer: menu, auth and trip endpoints over the bridge services"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api_client import PortalClient
from .config import API_VERSION
from .exceptions import (
    AuthenticationError,
    MalformedInputError,
    PortalError,
    RefreshError,
    TokenError,
    TokenInvalidError,
    UpstreamUnavailableError,
    ValidationError,
)
from .menu_cache import MenuCacheEngine
from .retry import RetryScheduler
from .scheduler import WeeklyRefreshJob
from .schemas import LoginRequest, LogoutRequest, RefreshRequest, TripCancelRequest, TripRequest
from .session import SessionBridge
from .storage import JsonFileStore, MemoryStore
from .trips import TripService

ERROR_STATUS = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (TokenError, 401),
    (RefreshError, 401),
    (UpstreamUnavailableError, 502),
    (MalformedInputError, 502),
)


@dataclass
class Services:
    """Every long-lived service, constructed once and injected into the routes"""

    client: PortalClient
    store: MemoryStore
    sessions: SessionBridge
    menu: MenuCacheEngine
    trips: TripService
    weekly_job: WeeklyRefreshJob


def build_services(
    store: Optional[MemoryStore] = None,
    client: Optional[PortalClient] = None,
    retry: Optional[RetryScheduler] = None,
) -> Services:
    store = store if store is not None else MemoryStore()
    client = client or PortalClient()
    sessions = SessionBridge(client, store)
    menu = MenuCacheEngine(client, store, retry=retry)
    return Services(
        client=client,
        store=store,
        sessions=sessions,
        menu=menu,
        trips=TripService(client, sessions),
        weekly_job=WeeklyRefreshJob(menu),
    )


def error_response(status_code: int, category: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": category, "message": message})


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.category}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.category}: {exc}")
    return error_response(status_code, exc.category, str(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, ValidationError.category, f"Invalid request: {exc.errors()}")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, "HTTPError", str(exc.detail))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "InternalServerError", "An unexpected error occurred")


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header"""
    if not authorization or not authorization.startswith("Bearer "):
        raise TokenInvalidError("Bearer token required")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise TokenInvalidError("Bearer token required")
    return token


def create_app(
    services: Optional[Services] = None,
    initial_fetch: bool = True,
    schedule_weekly: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (default: in-memory store, live portal)
        initial_fetch: Fetch the menu once at startup
        schedule_weekly: Run the weekly refresh job while the app is up
    """
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if isinstance(services.store, JsonFileStore):
            await services.store.load()
        if initial_fetch:
            try:
                await services.menu.refresh()
                logger.info("Initial menu data fetch completed")
            except PortalError as e:
                logger.error(f"Initial menu fetch failed: {e}")
        if schedule_weekly:
            services.weekly_job.start()

        yield

        await services.weekly_job.stop()
        services.menu.close()

    app = FastAPI(title="KNUE Portal API", version=API_VERSION, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    menu = services.menu
    sessions = services.sessions
    trips = services.trips

    @app.get("/")
    async def root():
        return {"version": API_VERSION, "status": "running"}

    # Menu

    @app.get("/menu")
    async def get_menu():
        snapshot = await menu.get_snapshot()
        return snapshot.to_dict()

    @app.get("/menu/cafeteria/{kind}")
    async def get_cafeteria_menu(kind: str):
        return await menu.get_by_cafeteria(kind)

    @app.get("/menu/day/today")
    async def get_today_menu():
        return await menu.get_today()

    @app.get("/menu/day/{day}")
    async def get_day_menu(day: str):
        return await menu.get_by_day(day)

    # TODO: require an admin credential here before exposing the service publicly
    @app.post("/admin/menu/refresh")
    async def refresh_menu():
        snapshot = await menu.refresh()
        return {"message": "Menu data refreshed successfully", "data": snapshot.to_dict()}

    # Auth

    @app.post("/auth/login")
    async def login(body: LoginRequest):
        tokens = await sessions.login(body.userNo, body.password)
        return {"status": "success", "message": "Login succeeded", "data": tokens.to_dict()}

    @app.post("/auth/refresh-token")
    async def refresh_token(body: RefreshRequest):
        tokens = await sessions.refresh(body.refreshToken, body.userNo, body.password)
        return {"status": "success", "message": "Tokens refreshed", "data": tokens.to_dict()}

    @app.post("/auth/logout")
    async def logout(
        body: Optional[LogoutRequest] = None,
        token: str = Depends(bearer_token),
    ):
        await sessions.logout(token, body.refreshToken if body else None)
        return {"status": "success", "message": "Logged out"}

    @app.get("/auth/verify")
    async def verify(token: str = Depends(bearer_token)):
        user_id = await sessions.verify(token)
        return {"valid": True, "userId": user_id}

    # Trips

    @app.get("/trip/request-info")
    async def trip_request_info(token: str = Depends(bearer_token)):
        return await trips.fetch_request_page(token)

    @app.get("/trip/list")
    async def trip_list(token: str = Depends(bearer_token)):
        items = await trips.list_trips(token)
        return {"tripList": [item.to_dict() for item in items]}

    @app.post("/trip/request")
    async def trip_request(body: TripRequest, token: str = Depends(bearer_token)):
        success = await trips.request_trip(token, body.model_dump())
        return {"success": success}

    @app.post("/trip/cancel")
    async def trip_cancel(body: TripCancelRequest, token: str = Depends(bearer_token)):
        success = await trips.cancel_trip(token, body.model_dump())
        return {"success": success}

    return app
