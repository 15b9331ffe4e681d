import asyncio
import hmac
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware
from fleettrail.api.routes import router
from fleettrail.config import settings

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the telemetry sampler for the app's lifetime.

    On shutdown the sampler is signalled and joined; a cycle in flight is
    allowed to finish its I/O and commit.
    """
    from fleettrail.database import init_db
    from fleettrail.modules.ingest_sampler import Sampler, start_sampler_thread
    from fleettrail.modules.token_provider import TokenProvider

    init_db()

    sampler_thread = stop_event = None
    if settings.POLLER_ENABLED:
        if settings.VIN:
            sampler = Sampler(vin=settings.VIN, token_provider=TokenProvider())
            sampler_thread, stop_event = start_sampler_thread(sampler)
        else:
            logger.warning("VIN not set — telemetry sampler disabled")
    yield
    if stop_event is not None:
        stop_event.set()
        # Joining can wait out a whole HTTP timeout; keep the event loop free
        await asyncio.to_thread(sampler_thread.join)


app = FastAPI(
    title="FleetTrail",
    description=(
        "Vehicle telemetry sampler and trip trail service. "
        "Polls the upstream telematics API hourly and derives movement trails from stored positions."
    ),
    version=settings.VERSION,
    lifespan=lifespan,
)

# CORS origins from settings (comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API key authentication middleware
class APIKeyMiddleware(BaseHTTPMiddleware):
    """Simple API key check. If FLEETTRAIL_API_KEY is unset, all requests pass."""

    async def dispatch(self, request: Request, call_next):
        if settings.FLEETTRAIL_API_KEY is not None:
            # Allow liveness checks and OpenAPI docs without auth
            if request.url.path not in ("/", "/health", "/docs", "/openapi.json", "/redoc"):
                api_key = request.headers.get("X-API-Key")
                if not hmac.compare_digest(api_key or "", settings.FLEETTRAIL_API_KEY):
                    return JSONResponse(
                        status_code=401,
                        content={"detail": "Invalid or missing API key"},
                    )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)

# Rate limiting: default limit applied to every route
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.API_RATE_LIMIT])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.include_router(router, prefix="/api")


# ── Structured error handlers ─────────────────────────────────────────────────

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": "Validation error", "detail": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    return JSONResponse(status_code=409, content={"error": "Conflict", "detail": str(exc.orig) if exc.orig else str(exc)})


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content={"error": "Internal server error", "detail": "An unexpected error occurred."})


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "FleetTrail service is running..."


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": settings.VERSION}
