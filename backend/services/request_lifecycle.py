"""
Blood request status transitions.

    PENDING  -> ACCEPTED | REJECTED | CANCELLED
    ACCEPTED -> COMPLETED | CANCELLED

REJECTED, COMPLETED and CANCELLED are terminal. Every move is a
compare-and-set on the current status, so two blood banks racing to accept
the same request cannot both succeed.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import ReturnDocument

from models import RequestStatus, BloodRequest
from .audit_service import audit_transition
from .exceptions import InvalidTransitionError, RequestNotFoundError
from .priority_engine import coerce_request

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.ACCEPTED, RequestStatus.REJECTED, RequestStatus.CANCELLED},
    RequestStatus.ACCEPTED: {RequestStatus.COMPLETED, RequestStatus.CANCELLED},
}

TIMESTAMP_FIELDS = {
    RequestStatus.ACCEPTED: "accepted_at",
    RequestStatus.REJECTED: "rejected_at",
    RequestStatus.COMPLETED: "completed_at",
    RequestStatus.CANCELLED: "cancelled_at",
}

REASON_FIELDS = {
    RequestStatus.REJECTED: "rejection_reason",
    RequestStatus.CANCELLED: "cancellation_reason",
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


async def transition_request(
    db,
    request_id: str,
    target: RequestStatus,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
    blood_bank_id: Optional[str] = None,
) -> BloodRequest:
    """
    Move a request to ``target`` if its lifecycle allows it.

    Raises RequestNotFoundError, or InvalidTransitionError when the move is
    illegal or the status changed between read and write.
    """
    doc = await db.blood_requests.find_one(
        {"$or": [{"id": request_id}, {"request_code": request_id}]},
        {"_id": 0}
    )
    if not doc:
        raise RequestNotFoundError(request_id)

    current = RequestStatus(doc["status"])
    if not can_transition(current, target):
        raise InvalidTransitionError(doc["id"], current, target)

    update = {
        "status": target.value,
        TIMESTAMP_FIELDS[target]: datetime.now(timezone.utc).isoformat(),
    }
    if reason and target in REASON_FIELDS:
        update[REASON_FIELDS[target]] = reason
    if target == RequestStatus.ACCEPTED and blood_bank_id:
        update["blood_bank_id"] = blood_bank_id

    updated = await db.blood_requests.find_one_and_update(
        {"id": doc["id"], "status": current.value},
        {"$set": update},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Someone else moved it first
        latest = await db.blood_requests.find_one({"id": doc["id"]}, {"_id": 0})
        raise InvalidTransitionError(doc["id"], RequestStatus(latest["status"]) if latest else current, target)

    request = coerce_request(updated)
    logger.info(f"Request {request.id}: {current.value} -> {target.value}")
    await audit_transition(db, request, current, actor_id=actor_id, reason=reason)
    return request
