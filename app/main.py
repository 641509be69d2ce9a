"""
Loft Reseller Bookkeeping API
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.config import get_settings
from app.errors import LoftError
from app.utils.logger import log
from app import __version__

# Import routers
from app.api import health, dashboard, inventory, sales, expenses, users

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    from app.models.base import init_db
    init_db()
    log.info("Database initialized")

    yield

    # Shutdown
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Bookkeeping backend for resellers

    - Inventory with derived stock status (active / low stock / out of stock)
    - Sales across marketplaces with fee tracking and a status lifecycle
    - Business expenses by category
    - Period dashboards: revenue, fees, net profit, margin and growth
    - Alerts for low stock, out of stock, plan limits and pending sales
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoftError)
async def loft_error_handler(request: Request, exc: LoftError):
    """Map domain errors to their HTTP status and the standard error envelope."""
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        log.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "detail": exc.detail},
    )


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(users.router)
app.include_router(dashboard.router)
app.include_router(inventory.router)
app.include_router(sales.router)
app.include_router(expenses.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
