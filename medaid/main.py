import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from medaid.database import close_db, init_db
from medaid.routers import chat, facilities, profile
from medaid.services.profile_store import get_profile_store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MedAId...")
    await init_db()
    await get_profile_store().load()
    logger.info("Profile store ready")
    yield
    await close_db()
    logger.info("MedAId shut down")


app = FastAPI(
    title="MedAId",
    description="Clinical document ingestion, patient record aggregation and grounded assistant",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(profile.router)
app.include_router(chat.router)
app.include_router(facilities.router)
