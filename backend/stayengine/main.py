"""Homestay Stay Engine: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stayengine.api.errors import register_error_handlers
from stayengine.api.v1.availability import router as availability_router
from stayengine.api.v1.bookings import router as bookings_router
from stayengine.api.v1.homestays import router as homestays_router
from stayengine.api.v1.quotes import router as quotes_router
from stayengine.api.v1.webhooks import router as webhooks_router
from stayengine.config import settings

# Root logger: every stayengine.* logger writes to stderr.
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    from stayengine.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Pricing, availability and booking lifecycle for homestays.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

# Routers
app.include_router(homestays_router)
app.include_router(availability_router)
app.include_router(quotes_router)
app.include_router(bookings_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("stayengine.main:app", host=settings.host, port=settings.port, reload=settings.debug)
