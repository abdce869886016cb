"""FastAPI application that fronts a rate-limited sample endpoint."""
from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Receive, Scope, Send

from guard.config import Settings, get_settings
from guard.logging_config import configure_logging
from guard.rate_limit import ClientNotFoundError, Decision, DecisionStatus, RateLimiter
from guard.sweeper import BanSweeper
from guard.utils import extract_client_key, monotonic_to_iso

LOGGER = logging.getLogger(__name__)

ROUTES = [
    "GET    /api                       - rate-limited endpoint",
    "GET    /status                    - service info",
    "GET    /admin/clients             - view all tracked clients",
    "POST   /admin/unban/{client_key}  - unban a client",
    "DELETE /admin/reset/{client_key}  - delete a client's record",
    "DELETE /admin/reset-all           - clear all records",
]

_DECISION_STATUS_CODES = {
    DecisionStatus.ALLOWED: 200,
    DecisionStatus.RATE_LIMITED: 429,
    DecisionStatus.BANNED: 403,
}


def get_limiter(request: Request) -> RateLimiter:
    """Provide the limiter owned by the running application."""

    return request.app.state.limiter


def get_client_key(request: Request) -> str:
    """Identify the caller by forwarded-for header or socket address."""

    return extract_client_key(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
    )


def _denied_message(decision: Decision, limiter: RateLimiter) -> str:
    if decision.status is DecisionStatus.RATE_LIMITED:
        left = limiter.ban_threshold - (decision.violations or 0)
        return f"Rate limit exceeded. {left} violation(s) remaining before ban."
    if decision.ban_started:
        minutes = limiter.ban_duration_ms / 1000 / 60
        return f"Too many violations. Client banned for {minutes:g} minutes."
    return "Client is banned. Too many violations."


class StripTrailingSlashMiddleware:
    """Drop trailing slashes so ``/api/`` is served as ``/api`` without a redirect."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = scope["path"]
            stripped = path.rstrip("/") or "/"
            if stripped != path:
                scope = dict(scope, path=stripped)
        await self.app(scope, receive, send)


def create_app(
    settings: Optional[Settings] = None, limiter: Optional[RateLimiter] = None
) -> FastAPI:
    """Build the application around a single limiter instance."""

    settings = settings or get_settings()
    limiter = limiter or RateLimiter.from_settings(settings)
    sweeper = BanSweeper(limiter, settings.sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        LOGGER.info(
            "rate limiter ready: window=%ss max_requests=%d ban_after=%d ban_for=%ss",
            limiter.window_ms // 1000,
            limiter.max_requests,
            limiter.ban_threshold,
            limiter.ban_duration_ms // 1000,
        )
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            LOGGER.info("shutting down")

    app = FastAPI(title="API Rate Limiting Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.limiter = limiter
    app.state.sweeper = sweeper
    app.state.started_at = time.monotonic()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(StripTrailingSlashMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        client_key = get_client_key(request)
        LOGGER.info(
            "request",
            extra={"method": request.method, "path": request.url.path, "client_key": client_key},
        )
        try:
            response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unhandled exception", extra={"client_key": client_key})
            raise exc
        return response

    @app.exception_handler(ClientNotFoundError)
    async def client_not_found(request: Request, exc: ClientNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def route_not_found(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code not in (404, 405):
            return await http_exception_handler(request, exc)
        return JSONResponse(
            status_code=404,
            content={
                "error": f"Route not found: {request.method} {request.url.path}",
                "routes": ROUTES,
            },
        )

    @app.get("/api")
    def sample_api(
        response: Response,
        client_key: str = Depends(get_client_key),
        limiter: RateLimiter = Depends(get_limiter),
    ):
        """Rate-limited sample endpoint."""

        decision = limiter.evaluate(client_key)
        headers = {
            "X-RateLimit-Limit": str(limiter.max_requests),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(decision.reset_in_seconds),
        }

        if not decision.allowed:
            headers["Retry-After"] = str(decision.reset_in_seconds)
            status_code = _DECISION_STATUS_CODES[decision.status]
            LOGGER.warning(
                "request denied",
                extra={"client_key": client_key, "status": status_code},
            )
            return JSONResponse(
                status_code=status_code,
                headers=headers,
                content={
                    "error": _denied_message(decision, limiter),
                    "remaining": decision.remaining,
                    "reset_in_s": decision.reset_in_seconds,
                    "violations": decision.violations,
                },
            )

        response.headers.update(headers)
        return {
            "success": True,
            "message": "Hello from the rate-limited API endpoint!",
            "client": client_key,
            "remaining": decision.remaining,
            "reset_in_s": decision.reset_in_seconds,
        }

    @app.get("/status")
    def status(request: Request, limiter: RateLimiter = Depends(get_limiter)) -> dict:
        """Report service configuration and tracked-client counts."""

        return {
            "service": "Rate Limiter",
            "uptime_seconds": int(time.monotonic() - request.app.state.started_at),
            "window_ms": limiter.window_ms,
            "max_requests": limiter.max_requests,
            "ban_threshold": limiter.ban_threshold,
            "ban_duration_ms": limiter.ban_duration_ms,
            **limiter.stats(),
        }

    @app.get("/admin/clients")
    def admin_clients(limiter: RateLimiter = Depends(get_limiter)) -> dict:
        now = limiter.now()
        clients = {
            key: {
                "active_requests_in_window": snap.active_requests_in_window,
                "violations": snap.violations,
                "banned": snap.banned,
                "banned_until": (
                    monotonic_to_iso(snap.banned_until, now)
                    if snap.banned_until is not None
                    else None
                ),
            }
            for key, snap in limiter.snapshot(now).items()
        }
        return {"clients": clients}

    @app.post("/admin/unban/{client_key:path}")
    def admin_unban(client_key: str, limiter: RateLimiter = Depends(get_limiter)) -> dict:
        limiter.unban(client_key)
        return {"message": f"Client unbanned: {client_key}"}

    @app.delete("/admin/reset-all")
    def admin_reset_all(limiter: RateLimiter = Depends(get_limiter)) -> dict:
        count = limiter.reset_all()
        return {"message": "All records cleared.", "count": count}

    @app.delete("/admin/reset/{client_key:path}")
    def admin_reset(client_key: str, limiter: RateLimiter = Depends(get_limiter)) -> dict:
        limiter.reset(client_key)
        return {"message": f"Client record deleted: {client_key}"}

    return app


configure_logging(get_settings().log_level)
app = create_app()
