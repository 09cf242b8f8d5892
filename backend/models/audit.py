"""
Audit Log Models
Audit trail for priority recalculations and request status transitions.
"""
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional
from enum import Enum
import uuid


class AuditAction(str, Enum):
    CREATE = "create"

    # Workflow Actions
    ACCEPT = "accept"
    REJECT = "reject"
    COMPLETE = "complete"
    CANCEL = "cancel"

    # Priority Actions
    PRIORITY_CALCULATED = "priority_calculated"
    PRIORITY_RECALCULATED = "priority_recalculated"
    BATCH_RECALCULATION = "batch_recalculation"


class AuditModule(str, Enum):
    REQUESTS = "requests"
    PRIORITY = "priority"


class AuditLog(BaseModel):
    """Audit log entry for one action on one record."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Organization context
    org_id: Optional[str] = None

    # Who acted; passed explicitly by the caller
    actor_id: Optional[str] = None

    action: AuditAction
    module: AuditModule
    record_id: Optional[str] = None
    record_type: Optional[str] = None  # e.g., "blood_request"
    description: Optional[str] = None

    old_values: Optional[dict] = None
    new_values: Optional[dict] = None

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[dict] = None
