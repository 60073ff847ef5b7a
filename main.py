# main.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from logging_config import setup_logging
from models import MISSING_PLAN_FIELDS
from request_context import new_request_id, get_request_id
from routes import ai, auth, travel
from security import SecurityValidator, security_headers_middleware

# Initialize logging BEFORE creating the app
setup_logging(settings.log_level)
log = logging.getLogger("app")

MAX_BODY_BYTES = 1024 * 50
PLAN_FIELDS = {"destination", "startDate", "endDate"}

app = FastAPI(
    title="TravelMind API",
    version=settings.API_VERSION,
    description="AI travel plans with real places, photos and routes",
)

@app.on_event("startup")
async def on_startup():
    log.info("App starting", extra={
        "request_id": get_request_id(),
        "env": settings.APP_ENV,
        "debug": settings.DEBUG,
        "providers": settings.LLM_PROVIDER_ORDER,
        "google_places": bool(settings.GOOGLE_PLACES_API_KEY),
        "unsplash": bool(settings.UNSPLASH_ACCESS_KEY),
        "supabase": settings.supabase_configured,
    })

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
    expose_headers=settings.CORS_EXPOSE_HEADERS,
    max_age=settings.CORS_MAX_AGE,
)

app.middleware("http")(security_headers_middleware())

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})

@app.middleware("http")
async def request_logging_mw(request: Request, call_next):
    rid = new_request_id(request.headers.get("x-request-id"))
    start = time.perf_counter()
    response: Response | None = None

    if request.method in ("POST", "PUT", "PATCH"):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            try:
                SecurityValidator.validate_request_size(int(content_length), max_size=MAX_BODY_BYTES)
            except HTTPException as e:
                log.warning("Request size validation failed", extra={
                    "request_id": rid,
                    "size": content_length,
                    "client_ip": request.client.host if request.client else "unknown",
                })
                response = _error(e.status_code, e.detail)
                response.headers["X-Request-Id"] = rid
                return response

    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.perf_counter() - start) * 1000)
        if response is not None:
            response.headers["X-Request-Id"] = rid
        log.info(
            f"{request.method} {request.url.path} -> {getattr(response, 'status_code', '?')} in {dur_ms}ms",
            extra={
                "request_id": rid,
                "path": request.url.path,
                "method": request.method,
                "status": getattr(response, "status_code", None),
                "duration_ms": dur_ms,
            },
        )

# --- Error envelope ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return _error(exc.status_code, str(exc.detail))

def _validation_message(request: Request, exc: RequestValidationError) -> str:
    errors = exc.errors()
    if request.url.path == "/api/travel/plan":
        for err in errors:
            loc = tuple(err.get("loc") or ())
            field = loc[-1] if loc else None
            if field in PLAN_FIELDS and (err.get("type") == "missing" or err.get("input") is None):
                return MISSING_PLAN_FIELDS
            if loc == ("body",) and err.get("type") == "missing":
                return MISSING_PLAN_FIELDS
    if not errors:
        return "Invalid request"

    first = errors[0]
    msg = str(first.get("msg") or "Invalid request")
    if first.get("type") == "value_error":
        return msg.removeprefix("Value error, ")
    path = ".".join(str(p) for p in (first.get("loc") or ())[1:])
    return f"{path}: {msg}" if path else msg

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = _validation_message(request, exc)
    log.info("Request rejected: %s", message, extra={"request_id": get_request_id(), "path": request.url.path})
    return _error(400, message)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled error", extra={"request_id": get_request_id(), "path": request.url.path})
    return _error(500, str(exc) if settings.DEBUG else "Internal server error")

# --- Routes ---

@app.get("/health")
def health():
    return {
        "status": "ok",
        "message": "TravelMind Backend is running",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }

@app.get("/api")
def api_info():
    return {"message": "Welcome to TravelMind API", "version": settings.API_VERSION}

app.include_router(auth.router)
app.include_router(ai.router)
app.include_router(travel.router)

log.info("TravelMind Backend starting", extra={
    "environment": settings.APP_ENV,
    "debug_mode": settings.DEBUG,
    "host": settings.HOST,
    "port": settings.PORT,
    "cors_origins_count": len(settings.CORS_ALLOW_ORIGINS),
})

# Production entry point
if __name__ == "__main__":
    import uvicorn

    log.info(f"Starting server on {settings.HOST}:{settings.PORT}")

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        access_log=True,
        log_level="info" if settings.APP_ENV == "production" else "debug",
    )
