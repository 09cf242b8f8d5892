from fastapi import Depends, HTTPException

from database import get_db
from services import MongoRepository, PriorityQueueService, RequestNotFoundError


async def get_repository(db=Depends(get_db)) -> MongoRepository:
    return MongoRepository(db)


async def get_queue_service(repository: MongoRepository = Depends(get_repository)) -> PriorityQueueService:
    return PriorityQueueService(repository)


def not_found(e: RequestNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Request {e.args[0]} not found")
