"""FastAPI application entry point for the soundshelf API.

This module initializes the FastAPI application with its routers, middleware
and lifecycle management. The API exposes the library indexer to operators:

- System health and configuration
- Administrative scan control (trigger, status, live progress stream)

Scans run as background tasks inside the API process, so catalog reads stay
available while a scan writes.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from soundshelf.api.middleware import RequestContextMiddleware, SlowRequestMiddleware
from soundshelf.api.routers import admin, system
from soundshelf.core.db import init_db
from soundshelf.core.logger import setup_logging

# Initialize Logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    # Startup
    await init_db()
    setup_logging()
    yield
    # Shutdown


app = FastAPI(
    title="soundshelf API",
    version="0.1.0",
    description="Incremental music library indexer",
    lifespan=lifespan,
)

# CORS - Allow Vite Frontend
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SlowRequestMiddleware)
app.add_middleware(RequestContextMiddleware)

# Include Routers
app.include_router(system.router, prefix="/api/v1/system", tags=["System"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.get("/")
async def root():
    return {"message": "soundshelf API is running"}
