"""
MongoDB-backed lookups used by the priority queue and proximity search.

Collections:
    blood_requests   one document per BloodRequest
    organizations    hospitals and blood banks (type, city, latitude, longitude)
    blood_stock      one document per (organization_id, blood_group)
    donors           individual registered donors
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError

from models import (
    BloodGroup, GeoPoint, QueueScope, RequestStatus, BloodRequest, StockSnapshot,
    StockLevel, BloodBankCandidate, DonorCandidate, PriorityResult
)
from .exceptions import InvalidInputError, RequestNotFoundError
from .geo import bounding_box
from .priority_engine import coerce_request

logger = logging.getLogger(__name__)

MAX_RESULTS = 1000


def _point(doc: dict) -> Optional[GeoPoint]:
    lat, lng = doc.get("latitude"), doc.get("longitude")
    if lat is None or lng is None:
        return None
    try:
        return GeoPoint(latitude=float(lat), longitude=float(lng))
    except (TypeError, ValueError):
        return None


def _near_query(origin: GeoPoint, radius_km: float) -> dict:
    box = bounding_box(origin, radius_km)
    query = {"latitude": {"$gte": box["min_lat"], "$lte": box["max_lat"]}}
    # Boxes crossing the antimeridian are left unbounded in longitude
    if box["min_lng"] >= -180 and box["max_lng"] <= 180:
        query["longitude"] = {"$gte": box["min_lng"], "$lte": box["max_lng"]}
    return query


def _city_query(city: Optional[str]) -> dict:
    if not city or not city.strip():
        return {}
    return {"city": {"$regex": re.escape(city.strip()), "$options": "i"}}


class MongoRepository:
    """Read side of the stores the core consumes, plus priority persistence."""

    def __init__(self, db):
        self.db = db

    # ==================== REQUESTS ====================

    async def get_request(self, request_id: str) -> BloodRequest:
        doc = await self.db.blood_requests.find_one(
            {"$or": [{"id": request_id}, {"request_code": request_id}]},
            {"_id": 0}
        )
        if not doc:
            raise RequestNotFoundError(request_id)
        return coerce_request(doc)

    async def insert_request(self, request: BloodRequest) -> BloodRequest:
        await self.db.blood_requests.insert_one(request.to_document())
        return request

    async def generate_request_code(self) -> str:
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        count = await self.db.blood_requests.count_documents({"request_code": {"$regex": f"^REQ-{today}"}})
        return f"REQ-{today}-{str(count + 1).zfill(4)}"

    async def list_pending_requests(
        self,
        scope: QueueScope = QueueScope.ALL,
        organization_id: Optional[str] = None,
    ) -> List[BloodRequest]:
        """
        Pending requests, optionally limited to one blood bank or hospital.

        Authorization for the scope is the caller's concern. At most
        MAX_RESULTS are read, highest stored score and oldest first, so the
        cap drops the least urgent requests. Stored scores can be stale;
        callers rescore before ordering.
        """
        query = {"status": RequestStatus.PENDING.value}
        if scope != QueueScope.ALL:
            if not organization_id:
                raise InvalidInputError(f"organization_id is required for scope '{scope.value}'")
            field = "blood_bank_id" if scope == QueueScope.BLOOD_BANK else "hospital_id"
            query[field] = organization_id

        docs = await self.db.blood_requests.find(query, {"_id": 0}).sort(
            [("priority_score", -1), ("requested_at", 1)]
        ).to_list(MAX_RESULTS)
        requests = []
        for doc in docs:
            try:
                requests.append(coerce_request(doc))
            except InvalidInputError as e:
                logger.warning(f"Skipping unreadable request {doc.get('id')}: {e}")
        return requests

    async def save_priority(self, request_id: str, result: PriorityResult):
        await self.db.blood_requests.update_one(
            {"id": request_id},
            {"$set": {
                "priority_score": result.score,
                "priority_category": result.category.value,
                "priority_details": result.breakdown.model_dump(mode="json"),
                "priority_calculated_at": result.calculated_at.isoformat(),
            }}
        )

    # ==================== STOCK ====================

    async def get_stock(self, organization_id: str, blood_group: BloodGroup) -> Optional[StockSnapshot]:
        doc = await self.db.blood_stock.find_one(
            {"organization_id": organization_id, "blood_group": blood_group.value},
            {"_id": 0}
        )
        if not doc:
            return None
        try:
            return StockSnapshot.model_validate(doc)
        except ValidationError as e:
            # Treated as missing so the neutral availability score applies
            logger.warning(f"Unusable stock record for {organization_id} {blood_group.value}: {e}")
            return None

    async def _stock_by_org(self, organization_ids: List[str]) -> Dict[str, Dict[str, StockLevel]]:
        if not organization_ids:
            return {}
        docs = await self.db.blood_stock.find(
            {"organization_id": {"$in": organization_ids}},
            {"_id": 0}
        ).to_list(MAX_RESULTS)
        stock: Dict[str, Dict[str, StockLevel]] = {}
        for doc in docs:
            try:
                level = StockLevel.model_validate(doc)
            except ValidationError as e:
                logger.warning(f"Skipping stock record for {doc.get('organization_id')}: {e}")
                continue
            stock.setdefault(doc["organization_id"], {})[doc.get("blood_group")] = level
        return stock

    # ==================== ORGANIZATIONS ====================

    async def get_organization_location(self, organization_id: str) -> Optional[GeoPoint]:
        doc = await self.db.organizations.find_one({"id": organization_id}, {"_id": 0})
        return _point(doc) if doc else None

    async def _blood_banks(self, query: dict) -> List[BloodBankCandidate]:
        query = {"type": "bloodbank", "is_active": {"$ne": False}, **query}
        orgs = await self.db.organizations.find(query, {"_id": 0}).to_list(MAX_RESULTS)
        stock = await self._stock_by_org([o["id"] for o in orgs])
        return [
            BloodBankCandidate(
                id=org["id"],
                name=org.get("name", ""),
                location=_point(org),
                city=org.get("city"),
                address=org.get("address"),
                contact=org.get("contact_number"),
                stock=stock.get(org["id"], {}),
            )
            for org in orgs
        ]

    async def list_blood_banks_near(self, origin: GeoPoint, radius_km: float) -> List[BloodBankCandidate]:
        return await self._blood_banks(_near_query(origin, radius_km))

    async def list_blood_banks_by_city(self, city: Optional[str]) -> List[BloodBankCandidate]:
        return await self._blood_banks(_city_query(city))

    # ==================== DONORS ====================

    async def _donors(self, query: dict, blood_group: BloodGroup) -> List[DonorCandidate]:
        query = {"blood_group": blood_group.value, "is_available": {"$ne": False}, **query}
        docs = await self.db.donors.find(query, {"_id": 0}).to_list(MAX_RESULTS)
        return [
            DonorCandidate(
                id=doc["id"],
                name=doc.get("full_name") or doc.get("name", ""),
                blood_group=doc["blood_group"],
                location=_point(doc),
                city=doc.get("city"),
                contact=doc.get("phone"),
            )
            for doc in docs
        ]

    async def list_donors_near(self, origin: GeoPoint, radius_km: float, blood_group: BloodGroup) -> List[DonorCandidate]:
        return await self._donors(_near_query(origin, radius_km), blood_group)

    async def list_donors_by_city(self, city: Optional[str], blood_group: BloodGroup) -> List[DonorCandidate]:
        return await self._donors(_city_query(city), blood_group)
