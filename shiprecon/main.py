"""
Shipping Reconciliation Service
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from shiprecon.config import get_settings
from shiprecon.utils.logger import log
from shiprecon import __version__

# Import routers
from shiprecon.api import health, webhooks, invoices, admin, shipments

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from shiprecon.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for the daily tracking poll
    from shiprecon.scheduler import start_scheduler, stop_scheduler
    if settings.run_scheduler:
        try:
            start_scheduler()
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")
    else:
        log.info("Scheduler disabled (RUN_SCHEDULER=false)")

    yield

    # Shutdown
    try:
        stop_scheduler()
    except Exception as e:
        log.warning(f"Scheduler shutdown error: {str(e)}")
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Shipping cost reconciliation

    - Receives ShipStation shipment webhooks (V1 SHIP_NOTIFY and V2 LABEL_CREATED_V2)
    - Links shipments to Shopify orders and splits order revenue/COGS per package
    - Tracks UPS delivery status daily until delivered
    - Matches uploaded UPS invoice line items to shipments
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(webhooks.router)
app.include_router(invoices.router)
app.include_router(admin.router)
app.include_router(shipments.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shiprecon.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
