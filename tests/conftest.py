import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from mongomock_motor import AsyncMongoMockClient

from models import (
    BloodGroup, Urgency, GeoPoint, BloodRequest, StockLevel,
    BloodBankCandidate, DonorCandidate
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

# Bengaluru city centre
ORIGIN = GeoPoint(latitude=12.9716, longitude=77.5946)


def point_north(km: float, origin: GeoPoint = ORIGIN) -> GeoPoint:
    """A point exactly ``km`` kilometres due north of origin."""
    return GeoPoint(latitude=origin.latitude + math.degrees(km / 6371.0), longitude=origin.longitude)


def make_request(
    urgency: Urgency = Urgency.MEDIUM,
    blood_group: BloodGroup = BloodGroup.O_POSITIVE,
    minutes_old: float = 0,
    **overrides,
) -> BloodRequest:
    fields = dict(
        hospital_id="hosp-1",
        blood_group=blood_group,
        units_required=2,
        urgency=urgency,
        requested_at=NOW - timedelta(minutes=minutes_old),
    )
    fields.update(overrides)
    return BloodRequest(**fields)


def make_bank(id: str, location: Optional[GeoPoint], city: str = "Bengaluru", **units) -> BloodBankCandidate:
    """Bank candidate; keyword units use group names, e.g. O_NEGATIVE=4."""
    stock = {BloodGroup[name].value: StockLevel(units=count) for name, count in units.items()}
    return BloodBankCandidate(id=id, name=f"Bank {id}", location=location, city=city, stock=stock)


def make_donor(id: str, blood_group: BloodGroup, location: Optional[GeoPoint], city: str = "Bengaluru") -> DonorCandidate:
    return DonorCandidate(id=id, name=f"Donor {id}", blood_group=blood_group, location=location, city=city)


class FakeDirectory:
    """In-memory organization directory; returns everything and lets the search filter."""

    def __init__(self, banks: List[BloodBankCandidate] = None, donors: List[DonorCandidate] = None):
        self.banks = banks or []
        self.donors = donors or []
        self.calls = []

    async def list_blood_banks_near(self, origin, radius_km):
        self.calls.append(("banks_near", radius_km))
        return list(self.banks)

    async def list_donors_near(self, origin, radius_km, blood_group):
        self.calls.append(("donors_near", radius_km))
        return list(self.donors)

    async def list_blood_banks_by_city(self, city):
        self.calls.append(("banks_by_city", city))
        return list(self.banks)

    async def list_donors_by_city(self, city, blood_group):
        self.calls.append(("donors_by_city", city))
        return list(self.donors)


@pytest.fixture
def db():
    return AsyncMongoMockClient()["blood_network_test"]


@pytest.fixture
async def seeded_db(db):
    """Two hospitals and three blood banks around the origin, with stock."""
    await db.organizations.insert_many([
        {"id": "hosp-1", "name": "City Hospital", "type": "hospital", "city": "Bengaluru",
         "latitude": ORIGIN.latitude, "longitude": ORIGIN.longitude},
        {"id": "hosp-2", "name": "Pune General", "type": "hospital", "city": "Pune"},
        {"id": "bank-near", "name": "Near Bank", "type": "bloodbank", "city": "Bengaluru",
         "latitude": point_north(3).latitude, "longitude": ORIGIN.longitude, "contact_number": "080-1"},
        {"id": "bank-mid", "name": "Mid Bank", "type": "bloodbank", "city": "Bengaluru",
         "latitude": point_north(15).latitude, "longitude": ORIGIN.longitude},
        {"id": "bank-far", "name": "Far Bank", "type": "bloodbank", "city": "Mysuru",
         "latitude": point_north(120).latitude, "longitude": ORIGIN.longitude},
        {"id": "bank-closed", "name": "Closed Bank", "type": "bloodbank", "city": "Bengaluru",
         "latitude": point_north(2).latitude, "longitude": ORIGIN.longitude, "is_active": False},
    ])
    await db.blood_stock.insert_many([
        {"organization_id": "bank-near", "blood_group": "A+", "units": 12, "last_updated": NOW.isoformat()},
        {"organization_id": "bank-near", "blood_group": "O-", "units": 1},
        {"organization_id": "bank-mid", "blood_group": "O-", "units": 6},
        {"organization_id": "bank-far", "blood_group": "O-", "units": 40},
        {"organization_id": "bank-closed", "blood_group": "O-", "units": 40},
    ])
    await db.donors.insert_many([
        {"id": "donor-1", "full_name": "Asha Rao", "blood_group": "O-", "city": "Bengaluru",
         "phone": "98450", "latitude": point_north(12).latitude, "longitude": ORIGIN.longitude},
        {"id": "donor-2", "full_name": "Ravi Kumar", "blood_group": "B+", "city": "Bengaluru",
         "latitude": point_north(1).latitude, "longitude": ORIGIN.longitude},
        {"id": "donor-3", "name": "Meera N", "blood_group": "O-", "city": "Bengaluru",
         "latitude": point_north(4).latitude, "longitude": ORIGIN.longitude, "is_available": False},
    ])
    return db
