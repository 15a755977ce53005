from fastapi import FastAPI, Response, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import os
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .codes import code_tables
from .errors import AutomudError
from .logging_config import configure_logging
from .routes import requests, images
from .storage import LocalBlobStore, create_blob_store_from_env

configure_logging()
_logger = logging.getLogger(__name__)

dsn = os.getenv("SENTRY_DSN")
if dsn:
    sentry_sdk.init(dsn=dsn, integrations=[FastApiIntegration()])

REQUEST_COUNT = Counter("request_count", "Total requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "request_latency_seconds", "Request latency", ["endpoint"]
)

app = FastAPI(title="AutoMud API")

cors_origins = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = Limiter(key_func=get_remote_address, default_limits=[os.getenv("RATE_LIMIT", "120/minute")])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, lambda r, e: Response("Too Many Requests", status_code=429))
if os.getenv("TESTING") != "1":
    app.add_middleware(SlowAPIMiddleware)

app.state.blob_store = create_blob_store_from_env()
if isinstance(app.state.blob_store, LocalBlobStore) and os.getenv("SERVE_LOCAL_BLOBS", "1") == "1":
    # public URLs of the local backend point at /blobs/{bucket}/{key}
    app.mount(
        "/blobs",
        StaticFiles(directory=os.getenv("UPLOAD_DIR", "uploaded_files")),
        name="blobs",
    )


def _error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message},
            "detail": message,
        },
    )


@app.exception_handler(AutomudError)
async def handle_automud_error(request: Request, exc: AutomudError):
    if exc.http_status >= 500:
        _logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.code, exc.message, exc.http_status)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error_response("INVALID_INPUT", "; ".join(parts) or "Invalid request", 400)


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    _logger.exception("Database error on %s %s", request.method, request.url.path)
    if dsn:
        sentry_sdk.capture_exception(exc)
    return _error_response("STORE_UNAVAILABLE", "The data store is unavailable", 500)


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return _error_response(code, str(exc.detail), exc.status_code)


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, endpoint, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
    return response


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/api/codes")
def codes():
    return code_tables()


@app.get("/ping")
def ping():
    return {"status": "ok", "message": "pong"}


app.include_router(requests.router)
app.include_router(images.router)
