"""
MongoDB database connection and utilities.
"""

import logging

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from plantcare.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def get_client(uri: str) -> AsyncIOMotorClient:
    """Create a motor client; Atlas/TLS URIs get the certifi CA bundle."""
    client_kwargs = {"tz_aware": True}
    if "mongodb+srv://" in uri or "ssl=true" in uri.lower():
        client_kwargs["tlsCAFile"] = certifi.where()
    return AsyncIOMotorClient(uri, **client_kwargs)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        cls.client = get_client(settings.MONGO_URI)
        cls.db = cls.client[settings.MONGO_DB_NAME]

        # Create indexes
        await cls._create_indexes()

        logger.info(f"Connected to MongoDB: {settings.MONGO_DB_NAME}")

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls):
        """Create database indexes for better query performance."""
        # Plant instances collection
        await cls.db.plant_instances.create_index("plant_id")
        await cls.db.plant_instances.create_index("next_water_date")

        # Watering events: serves both history listing and "latest event" lookups
        await cls.db.watering_events.create_index([
            ("plant_instance_id", ASCENDING),
            ("watered_at", DESCENDING),
            ("recorded_at", DESCENDING),
        ])

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        return cls.db[name]


def get_db() -> AsyncIOMotorDatabase:
    """Get the database instance."""
    return Database.db
