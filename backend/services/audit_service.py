"""
Audit Logging Service
Records priority recalculations and request status transitions.
"""
import logging
from typing import Optional

from models import AuditLog, AuditAction, AuditModule, BloodRequest, PriorityResult, RequestStatus

logger = logging.getLogger(__name__)

TRANSITION_ACTIONS = {
    RequestStatus.ACCEPTED: AuditAction.ACCEPT,
    RequestStatus.REJECTED: AuditAction.REJECT,
    RequestStatus.COMPLETED: AuditAction.COMPLETE,
    RequestStatus.CANCELLED: AuditAction.CANCEL,
}


class AuditService:
    """Service class for creating audit logs."""

    @staticmethod
    async def log(
        db,
        action: AuditAction,
        module: AuditModule,
        actor_id: Optional[str] = None,
        record_id: Optional[str] = None,
        record_type: Optional[str] = None,
        description: Optional[str] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        org_id: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> str:
        """
        Create an audit log entry.

        Args:
            db: Database handle the log is written to
            action: The action being performed
            module: The module where action occurred
            actor_id: ID of the user or system job acting
            record_id: ID of the affected record
            record_type: Type of record (e.g., "blood_request")
            description: Human-readable description
            old_values: Previous values (for updates)
            new_values: New values (for creates/updates)
            org_id: Organization the record belongs to
            metadata: Additional metadata

        Returns:
            ID of created audit log
        """
        audit_log = AuditLog(
            org_id=org_id,
            actor_id=actor_id,
            action=action,
            module=module,
            record_id=record_id,
            record_type=record_type,
            description=description,
            old_values=old_values,
            new_values=new_values,
            metadata=metadata
        )

        await db.audit_logs.insert_one(audit_log.model_dump(mode="json"))
        logger.debug(f"Audit {action.value} on {record_type} {record_id}")
        return audit_log.id


async def audit_create(db, request: BloodRequest, actor_id: Optional[str] = None):
    """Log creation of a blood request."""
    return await AuditService.log(
        db, AuditAction.CREATE, AuditModule.REQUESTS,
        actor_id=actor_id,
        record_id=request.id, record_type="blood_request",
        new_values={
            "blood_group": request.blood_group.value,
            "units_required": request.units_required,
            "urgency": request.urgency.value,
            "priority_score": request.priority_score,
        },
        description=f"Created blood request {request.request_code or request.id}",
        org_id=request.hospital_id,
    )


async def audit_transition(
    db,
    request: BloodRequest,
    previous: RequestStatus,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
):
    """Log a status transition."""
    return await AuditService.log(
        db, TRANSITION_ACTIONS[request.status], AuditModule.REQUESTS,
        actor_id=actor_id,
        record_id=request.id, record_type="blood_request",
        old_values={"status": previous.value},
        new_values={"status": request.status.value},
        description=f"Request {request.id}: {previous.value} -> {request.status.value}",
        org_id=request.blood_bank_id or request.hospital_id,
        metadata={"reason": reason} if reason else None,
    )


async def audit_priority(
    db,
    request: BloodRequest,
    result: PriorityResult,
    action: AuditAction = AuditAction.PRIORITY_RECALCULATED,
):
    """Log a priority (re)calculation with the score it replaced."""
    return await AuditService.log(
        db, action, AuditModule.PRIORITY,
        record_id=request.id, record_type="blood_request",
        old_values={
            "priority_score": request.priority_score,
            "priority_category": request.priority_category.value if request.priority_category else None,
        },
        new_values={"priority_score": result.score, "priority_category": result.category.value},
        description=f"Priority {result.category.value} ({result.score}) for request {request.id}",
        org_id=request.blood_bank_id or request.hospital_id,
    )
