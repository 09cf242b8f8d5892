from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone
import uuid
from .enums import BloodGroup, Urgency, RequestStatus, PriorityCategory
from .priority import PriorityResult

class PatientInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    condition: Optional[str] = None
    department: Optional[str] = None

class BloodRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request_code: str = ""
    hospital_id: str
    blood_bank_id: Optional[str] = None
    blood_group: BloodGroup
    units_required: int = Field(gt=0)
    urgency: Urgency
    patient_info: PatientInfo = Field(default_factory=PatientInfo)
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    required_by: Optional[datetime] = None
    status: RequestStatus = RequestStatus.PENDING

    # Derived; written only through apply_priority()
    priority_score: Optional[int] = Field(default=None, ge=0, le=255)
    priority_category: Optional[PriorityCategory] = None
    priority_details: Optional[dict] = None
    priority_calculated_at: Optional[datetime] = None

    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def apply_priority(self, result: PriorityResult) -> "BloodRequest":
        """Return a copy carrying the score, category and breakdown of ``result``."""
        return self.model_copy(update={
            "priority_score": result.score,
            "priority_category": result.category,
            "priority_details": result.breakdown.model_dump(mode="json"),
            "priority_calculated_at": result.calculated_at,
        })

    def to_document(self) -> dict:
        return self.model_dump(mode="json")

class BloodRequestCreate(BaseModel):
    hospital_id: str
    blood_bank_id: Optional[str] = None
    blood_group: BloodGroup
    units_required: int = Field(gt=0)
    # Suggested from patient_info when omitted
    urgency: Optional[Urgency] = None
    patient_info: PatientInfo = Field(default_factory=PatientInfo)
    required_by: Optional[datetime] = None
    notes: Optional[str] = None

class StatusChange(BaseModel):
    reason: Optional[str] = None
