"""
Database initialization for Beanie (MongoDB ODM).
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from core.config import settings
from core.models.mongo_models import MONGO_MODELS

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient = None


async def init_db():
    """Initialize Beanie with MongoDB connection"""
    global client
    if client is not None:
        return
    client = AsyncIOMotorClient(settings.MONGO_URI)

    await init_beanie(
        database=client[settings.MONGO_DB_NAME],
        document_models=MONGO_MODELS
    )
    logger.info(f"✅ Beanie initialized on database '{settings.MONGO_DB_NAME}'")


async def close_db():
    """Close MongoDB connection"""
    global client
    if client:
        client.close()
        client = None
