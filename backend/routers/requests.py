from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from models import BloodRequest, BloodRequestCreate, RequestStatus, StatusChange, AuditAction
from services import (
    MongoRepository, PriorityQueueService, InvalidInputError, InvalidTransitionError,
    RequestNotFoundError, suggest_urgency, transition_request, distance_info,
    audit_create, audit_priority
)
from .dependencies import get_repository, get_queue_service, not_found

router = APIRouter(prefix="/requests", tags=["Blood Requests"])


async def _move(
    repository: MongoRepository,
    request_id: str,
    target: RequestStatus,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
    blood_bank_id: Optional[str] = None,
) -> BloodRequest:
    try:
        return await transition_request(
            repository.db, request_id, target,
            reason=reason, actor_id=actor_id, blood_bank_id=blood_bank_id
        )
    except RequestNotFoundError as e:
        raise not_found(e)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("")
async def create_blood_request(
    request_data: BloodRequestCreate,
    repository: MongoRepository = Depends(get_repository),
    queue: PriorityQueueService = Depends(get_queue_service)
):
    payload = request_data.model_dump()
    urgency_factors = None
    if request_data.urgency is None:
        urgency, _, urgency_factors = suggest_urgency(request_data.patient_info, request_data.units_required)
        payload["urgency"] = urgency

    request = BloodRequest(**payload)
    request.request_code = await repository.generate_request_code()
    try:
        scored, result = await queue.enrich_new_request(request)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await repository.insert_request(scored)
    await audit_create(repository.db, scored, actor_id=scored.hospital_id)
    await audit_priority(repository.db, request, result, action=AuditAction.PRIORITY_CALCULATED)
    return {
        "success": True,
        "message": f"Blood request {scored.request_code} created",
        "data": {
            "id": scored.id,
            "request_code": scored.request_code,
            "urgency": scored.urgency.value,
            "urgency_factors": urgency_factors,
            "priority_score": scored.priority_score,
            "priority_category": scored.priority_category.value,
            "category_details": result.category_details.model_dump(),
        }
    }


@router.get("/{request_id}")
async def get_blood_request(request_id: str, repository: MongoRepository = Depends(get_repository)):
    try:
        request = await repository.get_request(request_id)
    except RequestNotFoundError as e:
        raise not_found(e)
    return {"success": True, "data": request.to_document()}


@router.put("/{request_id}/accept")
async def accept_request(
    request_id: str,
    blood_bank_id: Optional[str] = None,
    repository: MongoRepository = Depends(get_repository)
):
    request = await _move(
        repository, request_id, RequestStatus.ACCEPTED,
        actor_id=blood_bank_id, blood_bank_id=blood_bank_id
    )

    distance = None
    if request.blood_bank_id:
        hospital = await repository.get_organization_location(request.hospital_id)
        bank = await repository.get_organization_location(request.blood_bank_id)
        distance = distance_info(hospital, bank)

    return {
        "success": True,
        "message": f"Request {request.request_code or request.id} accepted",
        "data": {**request.to_document(), "distance": distance},
    }


@router.put("/{request_id}/reject")
async def reject_request(
    request_id: str,
    change: StatusChange,
    repository: MongoRepository = Depends(get_repository)
):
    if not change.reason or not change.reason.strip():
        raise HTTPException(status_code=400, detail="A rejection reason is required")
    request = await _move(repository, request_id, RequestStatus.REJECTED, reason=change.reason.strip())
    return {
        "success": True,
        "message": f"Request {request.request_code or request.id} rejected",
        "data": request.to_document(),
    }


@router.put("/{request_id}/complete")
async def complete_request(request_id: str, repository: MongoRepository = Depends(get_repository)):
    request = await _move(repository, request_id, RequestStatus.COMPLETED)
    return {
        "success": True,
        "message": f"Request {request.request_code or request.id} completed",
        "data": request.to_document(),
    }


@router.put("/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    change: Optional[StatusChange] = None,
    repository: MongoRepository = Depends(get_repository)
):
    reason = change.reason if change else None
    request = await _move(repository, request_id, RequestStatus.CANCELLED, reason=reason)
    return {
        "success": True,
        "message": f"Request {request.request_code or request.id} cancelled",
        "data": request.to_document(),
    }
