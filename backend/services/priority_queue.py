"""
Priority queue orchestration: recompute at read time, persist for display and
audit, then order.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models import AuditAction, BloodRequest, PriorityCategory, PriorityResult, QueueScope, StockSnapshot
from .audit_service import audit_priority
from .exceptions import InvalidInputError
from .priority_engine import (
    compute_priority, filter_by_category, order_queue, priority_stats, score_distribution
)
from .repository import MongoRepository

logger = logging.getLogger(__name__)


class PriorityQueueService:

    def __init__(self, repository: MongoRepository):
        self.repository = repository
        self._stock_cache: Dict[Tuple[str, str], Optional[StockSnapshot]] = {}

    async def stock_for(self, request: BloodRequest) -> Optional[StockSnapshot]:
        """Stock of the target bank; None while the request is unassigned."""
        if not request.blood_bank_id:
            return None
        key = (request.blood_bank_id, request.blood_group.value)
        if key not in self._stock_cache:
            self._stock_cache[key] = await self.repository.get_stock(request.blood_bank_id, request.blood_group)
        return self._stock_cache[key]

    async def enrich_new_request(self, request: BloodRequest, now: Optional[datetime] = None) -> Tuple[BloodRequest, PriorityResult]:
        """Score a request before its first insert."""
        result = compute_priority(request, await self.stock_for(request), now=now)
        return request.apply_priority(result), result

    async def recalculate_request(self, request_id: str, now: Optional[datetime] = None) -> Tuple[BloodRequest, PriorityResult]:
        request = await self.repository.get_request(request_id)
        result = compute_priority(request, await self.stock_for(request), now=now)
        await self.repository.save_priority(request.id, result)
        await audit_priority(self.repository.db, request, result)
        logger.info(f"Priority recalculated for request {request.id}: {result.category.value} ({result.score})")
        return request.apply_priority(result), result

    async def _rescore_pending(
        self,
        scope: QueueScope,
        organization_id: Optional[str],
        now: Optional[datetime],
    ) -> List[BloodRequest]:
        pending = await self.repository.list_pending_requests(scope, organization_id)
        rescored = []
        for request in pending:
            result = compute_priority(request, await self.stock_for(request), now=now)
            if result.score != request.priority_score:
                await self.repository.save_priority(request.id, result)
            rescored.append(request.apply_priority(result))
        return rescored

    async def get_priority_queue(
        self,
        scope: QueueScope = QueueScope.ALL,
        organization_id: Optional[str] = None,
        limit: int = 100,
        now: Optional[datetime] = None,
        category: Optional[PriorityCategory] = None,
    ) -> List[BloodRequest]:
        """Pending requests rescored now and ordered highest first; ``limit`` applies after the category filter."""
        rescored = await self._rescore_pending(scope, organization_id, now)
        if category:
            rescored = filter_by_category(rescored, category)
        return order_queue(rescored)[:limit]

    async def batch_recalculate(self, now: Optional[datetime] = None) -> dict:
        """Rescore and persist every pending request, as a scheduled job would."""
        pending = await self.repository.list_pending_requests(QueueScope.ALL)
        updated = 0
        errors = 0
        for request in pending:
            try:
                result = compute_priority(request, await self.stock_for(request), now=now)
            except InvalidInputError as e:
                logger.error(f"Error recalculating priority for {request.id}: {e}")
                errors += 1
                continue
            await self.repository.save_priority(request.id, result)
            await audit_priority(self.repository.db, request, result, action=AuditAction.BATCH_RECALCULATION)
            updated += 1

        logger.info(f"Batch priority recalculation: {updated} updated, {errors} errors")
        return {
            "total_processed": len(pending),
            "updated": updated,
            "errors": errors,
            "success": errors == 0,
        }

    async def dashboard_stats(
        self,
        scope: QueueScope = QueueScope.ALL,
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        rescored = await self._rescore_pending(scope, organization_id, now)
        return {
            "totals": priority_stats(rescored, now=now).model_dump(),
            "distribution": score_distribution(rescored),
        }
