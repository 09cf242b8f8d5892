"""
Smart Emergency Blood Network API
Priority queue for hospital blood requests and nearest-source blood search.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import client
from routers import requests_router, priority_router, search_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Closing MongoDB client")
    client.close()


app = FastAPI(title="Smart Emergency Blood Network API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(requests_router, prefix="/api")
app.include_router(priority_router, prefix="/api")
app.include_router(search_router, prefix="/api")


@app.get("/api/")
async def root():
    return {"status": "healthy", "service": "Smart Emergency Blood Network API"}


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=True)
