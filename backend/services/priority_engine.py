"""
Priority Engine
Scores pending blood requests on a 0-255 scale and orders the queue.

    score = urgency x 1.50 + rarity x 0.40 + time x 0.40 + availability x 0.25

Each factor is a raw value in 0-100, so the weighted maximum is exactly 255.
Urgency dominates; rarity separates requests of equal urgency; time and
availability break ties and keep old requests from starving.

Categories:
    CRITICAL: 180-255
    HIGH:     140-179
    MEDIUM:    80-139
    LOW:        0-79

Scores depend on the wall clock and on mutable stock, so callers recompute
at read time rather than trusting a stored score for ordering.
"""
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from models import (
    BloodGroup, Urgency, PriorityCategory, BloodRequest, StockSnapshot,
    UrgencyComponent, RarityComponent, TimeComponent, AvailabilityComponent,
    PriorityBreakdown, CategoryDetails, PriorityResult, PriorityStats
)
from .exceptions import InvalidInputError


# ============= SCORING CONSTANTS =============

URGENCY_SCORES = {
    Urgency.CRITICAL: 100,
    Urgency.HIGH: 75,
    Urgency.MEDIUM: 50,
    Urgency.LOW: 25,
}

# Inverse population prevalence
BLOOD_RARITY_SCORES = {
    BloodGroup.AB_NEGATIVE: 100,
    BloodGroup.B_NEGATIVE: 90,
    BloodGroup.A_NEGATIVE: 85,
    BloodGroup.O_NEGATIVE: 80,
    BloodGroup.AB_POSITIVE: 70,
    BloodGroup.B_POSITIVE: 55,
    BloodGroup.A_POSITIVE: 40,
    BloodGroup.O_POSITIVE: 30,
}

MIN_SAFE_STOCK_LEVELS = {
    BloodGroup.AB_NEGATIVE: 10,
    BloodGroup.B_NEGATIVE: 15,
    BloodGroup.A_NEGATIVE: 15,
    BloodGroup.O_NEGATIVE: 20,
    BloodGroup.AB_POSITIVE: 20,
    BloodGroup.A_POSITIVE: 30,
    BloodGroup.B_POSITIVE: 30,
    BloodGroup.O_POSITIVE: 50,
}

URGENCY_WEIGHT = 1.50
RARITY_WEIGHT = 0.40
TIME_WEIGHT = 0.40
AVAILABILITY_WEIGHT = 0.25

MAX_FACTOR_SCORE = 100
MAX_PRIORITY_SCORE = 255

# Age-based time score reaches its cap after ten hours
MINUTES_TO_MAX_TIME = 600
# Deadline pressure: 100 * exp(-0.3 * hours left)
DEADLINE_DECAY_PER_HOUR = 0.3

# Used when no stock snapshot exists for the target bank
NEUTRAL_AVAILABILITY_SCORE = 50

CATEGORY_THRESHOLDS = (
    (180, PriorityCategory.CRITICAL),
    (140, PriorityCategory.HIGH),
    (80, PriorityCategory.MEDIUM),
)

CATEGORY_DETAILS = {
    PriorityCategory.CRITICAL: ("Immediate action - escalate now", "< 5 minutes"),
    PriorityCategory.HIGH: ("Urgent - process immediately", "5-15 minutes"),
    PriorityCategory.MEDIUM: ("Standard - process normally", "15-45 minutes"),
    PriorityCategory.LOW: ("Routine - can be scheduled", "> 45 minutes"),
}


# ============= INPUT HANDLING =============

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_request(request: Union[BloodRequest, dict]) -> BloodRequest:
    """Validate a request (model or raw document) or raise InvalidInputError."""
    if isinstance(request, dict):
        try:
            return BloodRequest.model_validate(request)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise InvalidInputError(f"Invalid blood request ({fields})") from e
    if not isinstance(request, BloodRequest):
        raise InvalidInputError(f"Unsupported request type: {type(request).__name__}")

    # Guards against instances built with model_construct()
    if not isinstance(request.blood_group, BloodGroup):
        raise InvalidInputError(f"Unknown blood group: {request.blood_group!r}")
    if not isinstance(request.urgency, Urgency):
        raise InvalidInputError(f"Unknown urgency: {request.urgency!r}")
    if not isinstance(request.units_required, int) or request.units_required <= 0:
        raise InvalidInputError("units_required must be a positive integer")
    if not isinstance(request.requested_at, datetime):
        raise InvalidInputError("requested_at must be a datetime")
    return request


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ============= FACTOR SCORES =============

def get_urgency_score(urgency: Urgency) -> int:
    return URGENCY_SCORES[urgency]


def get_rarity_score(blood_group: BloodGroup) -> int:
    return BLOOD_RARITY_SCORES[blood_group]


def get_time_score(requested_at: datetime, now: datetime, required_by: Optional[datetime] = None):
    """
    Time pressure (0-100) with the minutes elapsed and minutes left to deadline.

    Grows linearly with age and saturates. A deadline adds a second curve that
    rises as the deadline approaches; the larger of the two wins, so the score
    never falls as the request ages.
    """
    minutes_old = max(0.0, (now - _as_utc(requested_at)).total_seconds() / 60)
    score = min(MAX_FACTOR_SCORE, minutes_old * MAX_FACTOR_SCORE / MINUTES_TO_MAX_TIME)

    minutes_to_deadline = None
    if required_by is not None:
        minutes_to_deadline = (_as_utc(required_by) - now).total_seconds() / 60
        if minutes_to_deadline <= 0:
            deadline_score = MAX_FACTOR_SCORE
        else:
            hours_left = minutes_to_deadline / 60
            deadline_score = MAX_FACTOR_SCORE * math.exp(-DEADLINE_DECAY_PER_HOUR * hours_left)
        score = max(score, min(deadline_score, MAX_FACTOR_SCORE))
        minutes_to_deadline = int(round(minutes_to_deadline))

    return score, int(minutes_old), minutes_to_deadline


def get_availability_score(blood_group: BloodGroup, units: Optional[int]) -> float:
    """Shortage at the target bank (0-100); neutral when stock is unknown."""
    if units is None:
        return NEUTRAL_AVAILABILITY_SCORE
    min_safe = MIN_SAFE_STOCK_LEVELS[blood_group]
    if units >= min_safe:
        return 0
    deficit = min_safe - max(units, 0)
    return min(MAX_FACTOR_SCORE, deficit / min_safe * MAX_FACTOR_SCORE)


# ============= CATEGORIES =============

def categorize_priority(score: int) -> PriorityCategory:
    for threshold, category in CATEGORY_THRESHOLDS:
        if score >= threshold:
            return category
    return PriorityCategory.LOW


def category_details(category: PriorityCategory) -> CategoryDetails:
    action, response_time = CATEGORY_DETAILS[category]
    return CategoryDetails(label=category, action_required=action, response_time=response_time)


# ============= MAIN CALCULATION =============

def compute_priority(
    request: Union[BloodRequest, dict],
    stock: Optional[StockSnapshot] = None,
    now: Optional[datetime] = None,
) -> PriorityResult:
    """
    Score one request against the stock of its target bank.

    Pure apart from ``now``, which defaults to the wall clock. Raises
    InvalidInputError for malformed input; a missing snapshot is not an error
    and yields the neutral availability score.
    """
    req = coerce_request(request)
    now = _as_utc(now) if now else datetime.now(timezone.utc)

    if stock is not None and stock.blood_group != req.blood_group:
        raise InvalidInputError(
            f"Stock snapshot is for {stock.blood_group.value}, request needs {req.blood_group.value}"
        )

    urgency_raw = get_urgency_score(req.urgency)
    rarity_raw = get_rarity_score(req.blood_group)
    time_raw, minutes_old, minutes_to_deadline = get_time_score(req.requested_at, now, req.required_by)
    units = stock.units if stock is not None else None
    availability_raw = get_availability_score(req.blood_group, units)

    weighted_total = (
        urgency_raw * URGENCY_WEIGHT
        + rarity_raw * RARITY_WEIGHT
        + time_raw * TIME_WEIGHT
        + availability_raw * AVAILABILITY_WEIGHT
    )
    score = max(0, min(MAX_PRIORITY_SCORE, _round_half_up(weighted_total)))
    category = categorize_priority(score)

    breakdown = PriorityBreakdown(
        urgency=UrgencyComponent(
            raw=urgency_raw,
            weighted=round(urgency_raw * URGENCY_WEIGHT, 2),
            weight=URGENCY_WEIGHT,
            label=req.urgency,
        ),
        rarity=RarityComponent(
            raw=rarity_raw,
            weighted=round(rarity_raw * RARITY_WEIGHT, 2),
            weight=RARITY_WEIGHT,
            label=req.blood_group,
        ),
        time=TimeComponent(
            raw=round(time_raw, 2),
            weighted=round(time_raw * TIME_WEIGHT, 2),
            weight=TIME_WEIGHT,
            minutes_old=minutes_old,
            minutes_to_deadline=minutes_to_deadline,
        ),
        availability=AvailabilityComponent(
            raw=round(availability_raw, 2),
            weighted=round(availability_raw * AVAILABILITY_WEIGHT, 2),
            weight=AVAILABILITY_WEIGHT,
            current_units=units,
            min_safe_level=MIN_SAFE_STOCK_LEVELS[req.blood_group],
            stock_known=stock is not None,
        ),
    )

    return PriorityResult(
        request_id=req.id,
        score=score,
        category=category,
        breakdown=breakdown,
        category_details=category_details(category),
        calculated_at=now,
    )


# ============= QUEUE ORDERING =============

def _queue_key(request: BloodRequest):
    return (-(request.priority_score or 0), _as_utc(request.requested_at), request.id)


def order_queue(requests: Iterable[BloodRequest]) -> List[BloodRequest]:
    """
    Highest score first; equal scores in FIFO order of requested_at, then id.

    Requests that were never scored sort as 0. Returns a new list.
    """
    return sorted(requests, key=_queue_key)


def filter_by_category(requests: Iterable[BloodRequest], category: PriorityCategory) -> List[BloodRequest]:
    return [r for r in requests if r.priority_category == category]


def priority_stats(requests: List[BloodRequest], now: Optional[datetime] = None) -> PriorityStats:
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    stats = PriorityStats(
        total=len(requests),
        by_category={c.value: 0 for c in PriorityCategory},
        by_urgency={u.value: 0 for u in Urgency},
    )
    if not requests:
        return stats

    by_category = Counter(r.priority_category.value for r in requests if r.priority_category)
    by_urgency = Counter(r.urgency.value for r in requests)
    stats.by_category.update(by_category)
    stats.by_urgency.update(by_urgency)

    total_score = sum(r.priority_score or 0 for r in requests)
    total_age = sum(
        max(0.0, (now - _as_utc(r.requested_at)).total_seconds() / 60) for r in requests
    )
    stats.average_score = round(total_score / len(requests))
    stats.average_age_minutes = round(total_age / len(requests))
    return stats


def score_distribution(requests: Iterable[BloodRequest], bucket_size: int = 20) -> dict:
    """Counts per fixed-width score bucket over 0-255, labelled "lo-hi"."""
    if bucket_size <= 0:
        raise InvalidInputError("bucket_size must be positive")
    buckets = {}
    for low in range(0, MAX_PRIORITY_SCORE + 1, bucket_size):
        buckets[f"{low}-{low + bucket_size - 1}"] = 0
    for r in requests:
        low = ((r.priority_score or 0) // bucket_size) * bucket_size
        buckets[f"{low}-{low + bucket_size - 1}"] += 1
    return buckets


def priority_configuration() -> dict:
    """The fixed scoring constants, for display."""
    return {
        "weights": {
            "urgency": URGENCY_WEIGHT,
            "rarity": RARITY_WEIGHT,
            "time": TIME_WEIGHT,
            "availability": AVAILABILITY_WEIGHT,
        },
        "urgency_scores": {k.value: v for k, v in URGENCY_SCORES.items()},
        "rarity_scores": {k.value: v for k, v in BLOOD_RARITY_SCORES.items()},
        "min_safe_stock_levels": {k.value: v for k, v in MIN_SAFE_STOCK_LEVELS.items()},
        "minutes_to_max_time": MINUTES_TO_MAX_TIME,
        "neutral_availability_score": NEUTRAL_AVAILABILITY_SCORE,
        "category_thresholds": {c.value: t for t, c in CATEGORY_THRESHOLDS},
        "max_score": MAX_PRIORITY_SCORE,
    }
