"""
Plantcare API - Main application entry point.

Tracks a plant collection and when each plant next needs water.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plantcare.core.config import get_settings
from plantcare.core.database import Database
from plantcare.plants.views import router as plants_router, status_router as plants_status_router
from plantcare.watering.views import router as watering_router

settings = get_settings()
API_PREFIX = "/api/v1"

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    if settings.STORAGE_BACKEND == "mongo":
        await Database.connect()
    yield
    # Shutdown
    await Database.disconnect()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## Plantcare API

Keeps track of your plants and tells you which ones need water.

### Features

- 🌱 **Plant Collection**: Add, update and remove plants
- 💧 **Watering Log**: Record waterings, fix wrong dates, delete mistakes
- 📅 **Schedules**: Next watering date and cycle progress for every plant
- 🚦 **Status Filters**: Needs water, upcoming, healthy, unknown
    """,
    lifespan=lifespan,
    docs_url=f"{API_PREFIX}/docs",
    redoc_url=f"{API_PREFIX}/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
routers = [
    plants_router,
    plants_status_router,
    watering_router,
]

for router in routers:
    app.include_router(router, prefix=API_PREFIX)


@app.get("/", tags=["Health"])
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    if settings.STORAGE_BACKEND == "memory":
        database = "in-memory"
    else:
        database = "connected" if Database.client else "disconnected"
    return {
        "status": "healthy",
        "database": database,
        "version": settings.APP_VERSION,
    }
