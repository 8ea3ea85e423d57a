"""GreenKeep Sync API - FastAPI application."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .logging_config import get_logger, setup_logging
from .rate_limit import limiter
from .routes import sync_router
from .tenancy import (
    TenantError,
    TenantNotFound,
    TenantRouter,
    TenantSuspended,
    build_tenant_router,
    get_tenant_router,
)

logger = get_logger("greenkeep.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    setup_logging(settings.debug)
    if getattr(app.state, "tenant_router", None) is None:
        app.state.tenant_router = build_tenant_router()
    logger.info(f"Starting GreenKeep Sync API (debug={settings.debug})")
    yield
    # Shutdown
    logger.info("Shutting down GreenKeep Sync API")


app = FastAPI(
    title="GreenKeep Sync API",
    description="Multi-tenant sync server for the GreenKeep offline-first client",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Tenant resolution failures
_TENANT_ERROR_STATUS = {
    TenantNotFound: status.HTTP_404_NOT_FOUND,
    TenantSuspended: status.HTTP_403_FORBIDDEN,
}


@app.exception_handler(TenantError)
async def tenant_error_handler(request: Request, exc: TenantError):
    status_code = _TENANT_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(f"TENANT {status_code} | {exc.tenant_id} | {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sync_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "greenkeep-sync",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health(router: Annotated[TenantRouter, Depends(get_tenant_router)]):
    """Health check including the tenant directory."""
    ping = getattr(router.directory, "ping", None)
    directory_ok = True if ping is None else await ping()
    return {
        "status": "healthy" if directory_ok else "degraded",
        "tenant_directory": "connected" if directory_ok else "unreachable",
        "open_tenant_stores": router.open_store_count,
    }
