"""NetworkMap backend application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from netmap.api.routes import networkmaps
from netmap.config import settings
from netmap.db import dispose_db, init_db

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started")
    yield
    await dispose_db()


# Create FastAPI application
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Network topology maps laid out with Graphviz",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(networkmaps.router)


@app.get("/", tags=["health"])
async def root():
    """API health check."""
    return {
        "service": f"{settings.APP_NAME} API",
        "status": "running",
        "docs": "/docs",
    }
