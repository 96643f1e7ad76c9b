from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import time

from app.core.config import settings
from app.core.exceptions import ValidationError, NotFoundError, OperationCancelled
from app.core.logging import setup_logging, get_logger
from app.core.rate_limit import limiter
from app.infrastructure.database import models  # noqa: F401
from app.infrastructure.database.session import Base, SessionLocal, engine
from app.infrastructure.repositories.config_store import ConfigStore
from app.api.routes import tasks, history, settings as settings_routes, urgency

# ──── Init ────────────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger(__name__)
Base.metadata.create_all(bind=engine)


def seed_default_settings():
    db = SessionLocal()
    try:
        ConfigStore(db).ensure_defaults()
    finally:
        db.close()


if settings.SEED_DEFAULT_SETTINGS:
    seed_default_settings()

# ──── App ─────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="TASKLEDGER API",
    version=settings.APP_VERSION,
    description="""
## Task ledger

Two-level task hierarchy (task → subtasks), urgency ranking with a
configurable formula, and a completion history with effort statistics.

Formula variables: `effort`, `importance`, `daysLeft`.
Allowed: numbers, `+ - * / % **`, parentheses, `max`, `min`, `pow`, `abs`.
    """,
)

# ──── Middleware ──────────────────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.info(
        "HTTP request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=duration
    )
    return response


# ──── Domain errors ───────────────────────────────────────────────────────────
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Rejected request", error=exc.message, path=request.url.path)
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(OperationCancelled)
async def cancelled_handler(request: Request, exc: OperationCancelled):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ──── Routers ─────────────────────────────────────────────────────────────────
app.include_router(tasks.router, prefix="/api/v1")
app.include_router(history.router, prefix="/api/v1")
app.include_router(settings_routes.router, prefix="/api/v1")
app.include_router(urgency.router, prefix="/api/v1")


# ──── Health ──────────────────────────────────────────────────────────────────
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}


@app.get("/", tags=["System"])
def root():
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "docs": "/docs",
        "redoc": "/redoc",
        "version": settings.APP_VERSION,
    }
