"""
Urgency suggestion from patient details, for requests submitted without one.

    condition (25-100) + department (30-80) + age (10-40) + quantity (5-30)

    CRITICAL >= 240, HIGH >= 180, MEDIUM >= 100, otherwise LOW
"""
from typing import List, Optional, Tuple

from models import Urgency, PatientInfo

CONDITION_SCORES = {
    "critical": 100,
    "severe": 75,
    "moderate": 50,
    "stable": 25,
}

DEPARTMENT_SCORES = {
    "icu": 80,
    "trauma": 80,
    "emergency": 75,
    "operation theatre": 70,
    "cardiology": 60,
    "general ward": 30,
    "other": 40,
}

URGENCY_THRESHOLDS = (
    (240, Urgency.CRITICAL),
    (180, Urgency.HIGH),
    (100, Urgency.MEDIUM),
)


def _age_score(age: Optional[int]) -> Tuple[int, Optional[str]]:
    if age is None:
        return 10, None
    if age < 5:
        return 40, "Very young patient (<5 years)"
    if age > 70:
        return 35, "Elderly patient (>70 years)"
    if age < 18:
        return 30, "Pediatric patient"
    if age > 60:
        return 20, None
    return 10, None


def _quantity_score(units: int) -> int:
    if units >= 8:
        return 30
    if units >= 5:
        return 20
    if units >= 3:
        return 10
    return 5


def suggest_urgency(patient: PatientInfo, units_required: int) -> Tuple[Urgency, int, List[str]]:
    """Return (urgency, total score, contributing factors)."""
    factors = []

    condition = (patient.condition or "").strip()
    condition_score = CONDITION_SCORES.get(condition.lower(), 25)
    if condition_score >= 75:
        factors.append(f"Critical condition ({condition})")

    department = (patient.department or "").strip()
    department_score = DEPARTMENT_SCORES.get(department.lower(), 30)
    if department_score >= 70:
        factors.append(f"High-risk department ({department})")

    age_score, age_factor = _age_score(patient.age)
    if age_factor:
        factors.append(age_factor)

    quantity_score = _quantity_score(units_required)
    if quantity_score == 30:
        factors.append(f"Large quantity required ({units_required} units)")

    total = condition_score + department_score + age_score + quantity_score
    for threshold, urgency in URGENCY_THRESHOLDS:
        if total >= threshold:
            return urgency, total, factors
    return Urgency.LOW, total, factors
