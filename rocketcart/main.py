# rocketcart/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from rocketcart.core.config import get_settings
from rocketcart.database import create_db_and_tables

# Routers
from rocketcart.routers.cart import router as cart_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Create the cart snapshot table if needed.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: preparing cart snapshot storage...")
    try:
        create_db_and_tables()
        logger.info("Startup: snapshot storage ready.")
    except Exception as e:
        logger.error(f"Startup: snapshot storage FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "RocketCart",
    version="0.1.0",
    lifespan=lifespan,
)

# Versioned API prefix, e.g. /api/v1
app.include_router(cart_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "rocketcart"}
