from .exceptions import InvalidInputError, InvalidTransitionError, RequestNotFoundError
from .geo import haversine_km, distance_category, distance_info, is_usable
from .priority_engine import (
    compute_priority, categorize_priority, category_details, order_queue,
    filter_by_category, priority_stats, score_distribution, priority_configuration
)
from .urgency_calculator import suggest_urgency
from .proximity_search import (
    OrganizationDirectory, SearchSession, search, iter_stages, stage_plan,
    match_blood_banks, match_donors
)
from .repository import MongoRepository
from .request_lifecycle import transition_request, can_transition
from .priority_queue import PriorityQueueService
from .audit_service import AuditService, audit_create, audit_transition, audit_priority
