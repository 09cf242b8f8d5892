from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional

from config import settings
from models import PriorityCategory, QueueScope
from services import (
    PriorityQueueService, InvalidInputError, RequestNotFoundError, priority_configuration
)
from .dependencies import get_queue_service, not_found

router = APIRouter(prefix="/priority", tags=["Priority Queue"])


@router.get("/queue")
async def get_priority_queue(
    scope: QueueScope = QueueScope.ALL,
    organization_id: Optional[str] = None,
    category: Optional[PriorityCategory] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    queue: PriorityQueueService = Depends(get_queue_service)
):
    """Pending requests, highest priority first; scores are recomputed on every read."""
    try:
        requests = await queue.get_priority_queue(
            scope, organization_id,
            limit=limit or settings.priority_queue_limit,
            category=category,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": f"{len(requests)} pending request(s)",
        "data": [r.to_document() for r in requests],
    }


@router.get("/requests/{request_id}")
async def recalculate_request_priority(
    request_id: str,
    queue: PriorityQueueService = Depends(get_queue_service)
):
    try:
        request, result = await queue.recalculate_request(request_id)
    except RequestNotFoundError as e:
        raise not_found(e)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": f"Priority {result.category.value} ({result.score})",
        "data": {
            "request_id": request.id,
            "request_code": request.request_code,
            "priority": result.model_dump(mode="json"),
        },
    }


@router.post("/recalculate")
async def recalculate_all(queue: PriorityQueueService = Depends(get_queue_service)):
    summary = await queue.batch_recalculate()
    return {
        "success": summary["success"],
        "message": f"Recalculated {summary['updated']} of {summary['total_processed']} pending request(s)",
        "data": summary,
    }


@router.get("/stats")
async def get_priority_stats(
    scope: QueueScope = QueueScope.ALL,
    organization_id: Optional[str] = None,
    queue: PriorityQueueService = Depends(get_queue_service)
):
    try:
        stats = await queue.dashboard_stats(scope, organization_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": stats}


@router.get("/config")
async def get_priority_config():
    return {"success": True, "data": priority_configuration()}
