import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import SessionLocal, ensure_schema
from .errors import register_exception_handlers
from .limiter import limiter
from .routers import api_auth, api_branches, api_guests, api_reservations
from .routers import api_room_types, api_rooms, api_taxes, api_users
from .services.outbox import dispatch_pending
from .services.users import ensure_default_superadmin

# --- Logging configuration ---
_level = logging.DEBUG if getattr(settings, "DEBUG", False) else logging.INFO
logging.basicConfig(
    level=_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# Align uvicorn loggers with our level (useful under Docker Compose)
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).setLevel(_level)
logger = logging.getLogger("app.startup")
logger.info("Starting %s (DEBUG=%s)", settings.APP_NAME, getattr(settings, "DEBUG", False))

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        f"{settings.APP_NAME}: branch-scoped hotel property management.\n\n"
        "JSON API under /api with session-cookie auth."
    ),
)

register_exception_handlers(app)


@app.on_event("startup")
def startup_event():
    """Runs startup tasks: schema, default superadmin, leftover outbox events."""
    logger.info("Running startup tasks...")
    ensure_schema()
    db = SessionLocal()
    try:
        ensure_default_superadmin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
        logger.info("Default superadmin ensured.")
        # Events committed just before a previous shutdown
        dispatch_pending(db)
    finally:
        db.close()
    logger.info("Startup tasks complete.")


# Add the limiter to the app state
app.state.limiter = limiter
# Add the exception handler for rate limit exceeded errors
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
# Applies RATE_LIMIT_DEFAULT to every route not marked exempt
app.add_middleware(SlowAPIMiddleware)

app.include_router(api_auth.router)
app.include_router(api_branches.router)
app.include_router(api_room_types.router)
app.include_router(api_rooms.router)
app.include_router(api_guests.router)
app.include_router(api_taxes.router)
app.include_router(api_reservations.router)
app.include_router(api_users.router)


@app.get("/healthz")
@limiter.exempt
def healthz():
    return {"status": "ok"}
