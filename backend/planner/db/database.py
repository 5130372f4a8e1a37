"""
MongoDB Database Configuration and Connection
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.server_api import ServerApi

from planner.core.config import DATABASE_NAME, MONGODB_URI

logger = logging.getLogger(__name__)

# Global database client
_client = None
_database = None


def get_database():
    """
    Get MongoDB database instance
    Creates a new connection if one doesn't exist
    """
    global _client, _database

    if _database is None:
        if not MONGODB_URI:
            raise ValueError("MONGODB_URI environment variable is not set")

        # tz_aware so updated_at round-trips as an aware UTC datetime
        _client = AsyncIOMotorClient(MONGODB_URI, server_api=ServerApi("1"), tz_aware=True)
        _database = _client[DATABASE_NAME]

        logger.info("Connected to MongoDB database: %s", DATABASE_NAME)

    return _database


async def init_indexes():
    """
    Initialize database indexes for the trip tree lookups
    """
    try:
        await get_trips_collection().create_index("status")
        await get_trip_days_collection().create_index(
            [("trip_id", 1), ("day_number", 1)], unique=True, name="trip_day_number"
        )
        await get_day_patterns_collection().create_index([("trip_day_id", 1), ("sort_order", 1)])
        await get_schedules_collection().create_index([("trip_id", 1), ("day_pattern_id", 1), ("sort_order", 1)])
        await get_schedules_collection().create_index("day_pattern_id")

        logger.info("Database indexes created successfully")
    except Exception as e:
        logger.warning("Index creation warning: %s", e)


async def close_database_connection():
    """
    Close the MongoDB connection
    Call this when shutting down the application
    """
    global _client, _database

    if _client:
        _client.close()
        _client = None
        _database = None
        logger.info("Closed MongoDB connection")


async def test_connection():
    """
    Test the MongoDB connection
    """
    try:
        db = get_database()
        await db.command("ping")
        logger.info("MongoDB connection successful")
        return True
    except Exception as e:
        logger.error("MongoDB connection failed: %s", e)
        return False


def get_trips_collection():
    db = get_database()
    return db.trips


def get_trip_days_collection():
    db = get_database()
    return db.trip_days


def get_day_patterns_collection():
    db = get_database()
    return db.day_patterns


def get_schedules_collection():
    """
    Placed schedules and candidates share one collection
    """
    db = get_database()
    return db.schedules
