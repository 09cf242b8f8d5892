from motor.motor_asyncio import AsyncIOMotorClient

from config import settings

client = AsyncIOMotorClient(settings.mongo_url)
db = client[settings.db_name]


async def get_db():
    """FastAPI dependency; overridden in tests."""
    return db
