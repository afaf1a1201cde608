"""Pairing service FastAPI application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pairing.config import DEFAULT_JWT_SECRET, Settings, settings
from pairing.routes import rooms
from pairing.sweeper import ExpirySweeper

# Configure logging.
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def warn_on_default_secret(config: Settings = settings) -> bool:
    """Log a warning if tokens are verified with the published default secret."""
    if config.jwt_jwks_url or config.jwt_secret != DEFAULT_JWT_SECRET:
        return False
    logger.warning(
        "JWT_SECRET is the published default; any caller can mint valid tokens. "
        "Set JWT_SECRET or JWT_JWKS_URL before exposing the service."
    )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    warn_on_default_secret()
    sweeper = None
    if settings.sweeper_enabled:
        sweeper = ExpirySweeper(rooms.pairing_coordinator)
        sweeper.start()
    yield
    if sweeper is not None:
        await sweeper.stop()


app = FastAPI(
    title="Doodle Pairing Service",
    description="Pairs two users into a shared drawing room via invitation codes",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend access.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include room routes.
app.include_router(rooms.router)


@app.get("/")
async def root() -> dict:
    """Root endpoint.

    Returns:
        Service information.
    """
    return {
        "service": "doodle-pairing",
        "version": "0.1.0",
        "status": "running",
    }


def run() -> None:
    logger.info(f"Starting pairing service on {settings.pairing_host}:{settings.pairing_port}")
    uvicorn.run(app, host=settings.pairing_host, port=settings.pairing_port)


if __name__ == "__main__":
    run()
