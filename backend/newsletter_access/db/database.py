# newsletter_access/db/database.py
import motor.motor_asyncio
import logging
from typing import Optional

from newsletter_access.core.config import settings

logger = logging.getLogger(__name__)

# Module-level connection state, set by connect_to_mongo at application startup
_client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None
_db: Optional[motor.motor_asyncio.AsyncIOMotorDatabase] = None


async def connect_to_mongo() -> bool:
    """
    Establishes the Motor client and database handle.

    Returns:
        bool: True if connection successful, False otherwise.
    """
    global _client, _db

    if _db is not None:
        logger.info("Database connection already established.")
        return True

    if not settings.MONGODB_URL:
        logger.error("MONGODB_URL is not configured; cannot connect to MongoDB.")
        return False

    logger.info(f"Attempting to connect to MongoDB database: '{settings.DB_NAME}'...")
    try:
        _client = motor.motor_asyncio.AsyncIOMotorClient(
            settings.MONGODB_URL,
            serverSelectionTimeoutMS=10000,
            maxPoolSize=10,
            uuidRepresentation='standard',
            appname=settings.PROJECT_NAME,
        )
        # Ping the server to verify connection before proceeding
        await _client.admin.command('ping')
        logger.info("MongoDB server ping successful.")

        _db = _client[settings.DB_NAME]
        logger.info(f"Successfully connected to MongoDB database: '{settings.DB_NAME}'")
        return True

    except Exception as e:
        logger.error(f"Could not connect to MongoDB: {e}", exc_info=True)
        _client = None
        _db = None
        return False


async def close_mongo_connection():
    """Closes the MongoDB connection and resets state."""
    global _client, _db
    if _client:
        logger.info("Closing MongoDB connection...")
        _client.close()
        logger.info("MongoDB connection closed.")
        _client = None
        _db = None
    else:
        logger.info("No active MongoDB connection to close.")


def get_database() -> Optional[motor.motor_asyncio.AsyncIOMotorDatabase]:
    """
    Returns the database instance.
    Relies on connect_to_mongo() being called successfully at app startup.
    """
    if _db is None:
        logger.warning("Database instance is not initialized! Check connection.")
    return _db
