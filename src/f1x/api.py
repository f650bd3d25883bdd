"""Cache-only read service.

Each endpoint derives one cache key from its query parameters and returns the
stored document verbatim. Nothing here calls upstream; documents are written
by the refresh jobs. A key that has not been cached yet yields ``[]``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from f1x import keys
from f1x.clock import current_year
from f1x.context import AppContext
from f1x.errors import INTERNAL_ERROR, register_error_handlers
from f1x.exceptions import MissingParameterError
from f1x.middleware import register_middleware

logger = logging.getLogger(__name__)

router = APIRouter()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _require(value: str | None) -> str:
    if not value:
        raise MissingParameterError()
    return value


def _year(ctx: AppContext, year: str | None) -> str | int:
    return year or current_year(ctx.clock())


def _serve(ctx: AppContext, key: str) -> Any:
    try:
        data = ctx.store.read(key)
    except Exception:
        logger.exception("Cache read failed for %s", key)
        return JSONResponse(INTERNAL_ERROR, status_code=500)
    if data is None:
        # Not cached yet
        return []
    return data


@router.get("/ready")
def ready() -> dict:
    """Lightweight readiness check; does not touch the store."""
    return {"status": "ok", "service": "f1x-api"}


@router.get("/getMeetings")
def get_meetings(year: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.meetings(_year(ctx, year)))


@router.get("/getSessions")
def get_sessions(meeting_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.sessions(_require(meeting_key)))


@router.get("/getSessionsByYear")
def get_sessions_by_year(year: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.sessions_by_year(_year(ctx, year)))


@router.get("/getDrivers")
def get_drivers(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.drivers(_require(session_key)))


@router.get("/getLatestDrivers")
def get_latest_drivers(ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.LATEST_DRIVERS)


@router.get("/getPositions")
def get_positions(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.positions(_require(session_key)))


@router.get("/getIntervals")
def get_intervals(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.intervals(_require(session_key)))


@router.get("/getSessionResult")
def get_session_result(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.session_result(_require(session_key)))


@router.get("/getLaps")
def get_laps(
    session_key: str | None = None,
    driver_number: str | None = None,
    ctx: AppContext = Depends(get_context),
):
    return _serve(ctx, keys.laps(_require(session_key), driver_number))


@router.get("/getWeather")
def get_weather(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.weather(_require(session_key)))


@router.get("/getRaceControl")
def get_race_control(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.race_control(_require(session_key)))


@router.get("/getStints")
def get_stints(session_key: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.stints(_require(session_key)))


@router.get("/getLatestSession")
def get_latest_session(ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.LATEST_SESSION)


@router.get("/getDriverStandings")
def get_driver_standings(year: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.driver_standings(_year(ctx, year)))


@router.get("/getConstructorStandings")
def get_constructor_standings(year: str | None = None, ctx: AppContext = Depends(get_context)):
    return _serve(ctx, keys.constructor_standings(_year(ctx, year)))


def create_app(context: AppContext | None = None) -> FastAPI:
    context = context or AppContext.build()
    app = FastAPI(title="F1X API", version="1.0.0")
    app.state.context = context

    register_middleware(app, context.ip_limiter)
    register_error_handlers(app)
    app.include_router(router)
    return app
