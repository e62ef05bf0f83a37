"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.api.dependencies import EntityStoreDep, get_entity_store, get_storage, limiter
from app.infrastructure.external_api_client import get_api_client
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.api.v1.routers import analyses, data, directories, fields

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Storage: backend={settings.storage_backend}, dir={settings.storage_dir}")
    logger.info(f"Limits: fields={settings.max_fields}, directories={settings.max_directories}, "
                f"results={settings.max_stored_results}")
    logger.info(f"Analysis rate limit: {settings.analysis_rate_limit}")

    # Synthesises the default directory and upgrades legacy records
    counts = get_entity_store(get_storage()).counts()
    logger.info(f"Loaded {counts.fields} fields, {counts.directories} directories, "
                f"{counts.analyses} analysis results")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await get_api_client().close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    AgriLens field health API

    Draw agricultural fields, group them into directories, run vegetation
    health analyses and keep the results across sessions.

    ## Features

    - **Fields and directories**: Polygons with crop and notes, grouped into
      directories sharing a default crop
    - **Vegetation health**: NDVI, NDMI and NDRE statistics classified against
      crop-specific thresholds, with a diagnosis and recommended actions
    - **Reference validation**: Measured NDVI compared against external
      reference sources with reliability-based tolerances
    - **Analysis archive**: Past results with a history log and per-status
      statistics, capped at `MAX_STORED_RESULTS`
    - **Import/Export**: JSON snapshots of the whole store, merged on import
    - **Analysis throttling**: Per-client limit on analysis runs
      (`ANALYSIS_RATE_LIMIT`)
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Analysis rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorHandlerMiddleware)

API_PREFIX = "/api/v1"

app.include_router(fields.router, prefix=API_PREFIX)
app.include_router(directories.router, prefix=API_PREFIX)
app.include_router(analyses.router, prefix=API_PREFIX)
app.include_router(data.router, prefix=API_PREFIX)


@app.get("/", tags=["health"])
async def root():
    """Service identity and where to find the field and analysis API."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "api": API_PREFIX,
        "resources": ["fields", "directories", "analyses", "data"],
        "docs": app.docs_url,
    }


@app.get("/health", tags=["health"])
async def health_check(store: EntityStoreDep):
    """
    Health check endpoint.

    Reading the counts touches every collection, so a broken storage
    backend surfaces here as a 503.

    Returns:
        Health status with record counts
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "storage": settings.storage_backend,
        "counts": store.counts().model_dump(),
    }
