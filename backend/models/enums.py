from enum import Enum

class BloodGroup(str, Enum):
    A_POSITIVE = "A+"
    A_NEGATIVE = "A-"
    B_POSITIVE = "B+"
    B_NEGATIVE = "B-"
    AB_POSITIVE = "AB+"
    AB_NEGATIVE = "AB-"
    O_POSITIVE = "O+"
    O_NEGATIVE = "O-"

class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

class PriorityCategory(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

class RequestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class QueueScope(str, Enum):
    ALL = "all"
    BLOOD_BANK = "blood_bank"
    HOSPITAL = "hospital"

class SearchSource(str, Enum):
    BLOOD_BANK = "bloodbank"
    DONOR = "donor"

class SearchMode(str, Enum):
    GEO = "geo"
    CITY = "city"

class SearchState(str, Enum):
    STAGE = "stage"
    DONOR_FALLBACK = "donor_fallback"
    EXHAUSTED = "exhausted"

class DistanceCategory(str, Enum):
    VERY_CLOSE = "VERY_CLOSE"
    CLOSE = "CLOSE"
    MODERATE = "MODERATE"
    FAR = "FAR"
    VERY_FAR = "VERY_FAR"
