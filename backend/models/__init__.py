from .enums import (
    BloodGroup, Urgency, PriorityCategory, RequestStatus, QueueScope,
    SearchSource, SearchMode, SearchState, DistanceCategory
)
from .geo import GeoPoint
from .stock import StockSnapshot, StockLevel
from .priority import (
    ScoreComponent, UrgencyComponent, RarityComponent, TimeComponent,
    AvailabilityComponent, PriorityBreakdown, CategoryDetails, PriorityResult,
    PriorityStats
)
from .request import BloodRequest, BloodRequestCreate, PatientInfo, StatusChange
from .search import (
    BloodBankCandidate, DonorCandidate, BloodBankMatch, DonorMatch, SearchMatch,
    SearchStage, StageTransition, SearchResult, BloodSearchRequest
)
from .audit import AuditLog, AuditAction, AuditModule
