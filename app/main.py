import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_integration,  # noqa: F401
)
from .database import Base, engine
from .domain.scheduling.errors import (
    AuthExpiredError,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    SchedulingError,
    SlotUnavailableError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from .domain.scheduling.router import pending_router, router as scheduling_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Most specific first: InvalidTransitionError is a ValidationError
ERROR_STATUS_CODES = (
    (InvalidTransitionError, 409),
    (ValidationError, 400),
    (SlotUnavailableError, 409),
    (NotFoundError, 404),
    (UnsupportedOperationError, 501),
    (AuthExpiredError, 401),
    (ProviderError, 502),
    (StorageError, 503),
)


def status_code_for(exc: SchedulingError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Scheduling API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {type(exc).__name__}: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(scheduling_router)
app.include_router(pending_router)


@app.get("/")
def root():
    return {"message": "Scheduling API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
