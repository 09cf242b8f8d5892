"""
Priority Models
Result shapes returned by the priority engine. The breakdown is part of the
contract: dashboards render every weighted factor, not just the total.
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime
from .enums import BloodGroup, Urgency, PriorityCategory


class ScoreComponent(BaseModel):
    raw: float
    weighted: float
    weight: float


class UrgencyComponent(ScoreComponent):
    label: Urgency


class RarityComponent(ScoreComponent):
    label: BloodGroup


class TimeComponent(ScoreComponent):
    minutes_old: int
    minutes_to_deadline: Optional[int] = None


class AvailabilityComponent(ScoreComponent):
    current_units: Optional[int] = None
    min_safe_level: int
    stock_known: bool = True


class PriorityBreakdown(BaseModel):
    urgency: UrgencyComponent
    rarity: RarityComponent
    time: TimeComponent
    availability: AvailabilityComponent


class CategoryDetails(BaseModel):
    label: PriorityCategory
    action_required: str
    response_time: str


class PriorityResult(BaseModel):
    request_id: Optional[str] = None
    score: int = Field(ge=0, le=255)
    category: PriorityCategory
    breakdown: PriorityBreakdown
    category_details: CategoryDetails
    calculated_at: datetime


class PriorityStats(BaseModel):
    total: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_urgency: Dict[str, int] = Field(default_factory=dict)
    average_score: int = 0
    average_age_minutes: int = 0
