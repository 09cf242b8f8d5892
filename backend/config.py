"""
Application Settings
Environment-driven configuration, loaded once at import time.
"""
from pathlib import Path
from typing import List
import os

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


class Settings(BaseModel):
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "blood_network"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    priority_queue_limit: int = 100


def load_settings() -> Settings:
    cors = os.environ.get("CORS_ORIGINS", "*")
    return Settings(
        mongo_url=os.environ.get("MONGO_URL", Settings.model_fields["mongo_url"].default),
        db_name=os.environ.get("DB_NAME", Settings.model_fields["db_name"].default),
        cors_origins=[origin.strip() for origin in cors.split(",") if origin.strip()],
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        priority_queue_limit=int(os.environ.get("PRIORITY_QUEUE_LIMIT", "100")),
    )


settings = load_settings()
