from datetime import datetime, timezone

import pytest

from models import BloodGroup, QueueScope, RequestStatus
from services import MongoRepository, InvalidInputError, RequestNotFoundError, compute_priority
from services import repository as repository_module
from conftest import NOW, ORIGIN, make_request


async def test_request_code_increments_per_day(db):
    repository = MongoRepository(db)
    today = datetime.now(timezone.utc).strftime("%Y%m%d")

    first = await repository.generate_request_code()
    await repository.insert_request(make_request(request_code=first))
    second = await repository.generate_request_code()

    assert first == f"REQ-{today}-0001"
    assert second == f"REQ-{today}-0002"


async def test_get_request_by_id_or_code(db):
    repository = MongoRepository(db)
    request = make_request(request_code="REQ-20240601-0007")
    await repository.insert_request(request)

    assert (await repository.get_request(request.id)).id == request.id
    assert (await repository.get_request("REQ-20240601-0007")).id == request.id
    with pytest.raises(RequestNotFoundError):
        await repository.get_request("missing")


async def test_list_pending_requests_by_scope(db):
    repository = MongoRepository(db)
    await repository.insert_request(make_request(id="r1", hospital_id="h1", blood_bank_id="b1"))
    await repository.insert_request(make_request(id="r2", hospital_id="h2", blood_bank_id="b1"))
    await repository.insert_request(make_request(id="r3", hospital_id="h1", status=RequestStatus.ACCEPTED))

    everything = await repository.list_pending_requests()
    for_bank = await repository.list_pending_requests(QueueScope.BLOOD_BANK, "b1")
    for_hospital = await repository.list_pending_requests(QueueScope.HOSPITAL, "h1")

    assert {r.id for r in everything} == {"r1", "r2"}
    assert {r.id for r in for_bank} == {"r1", "r2"}
    assert {r.id for r in for_hospital} == {"r1"}


async def test_scoped_listing_needs_organization(db):
    with pytest.raises(InvalidInputError):
        await MongoRepository(db).list_pending_requests(QueueScope.HOSPITAL)


async def test_unreadable_documents_are_skipped(db):
    repository = MongoRepository(db)
    await repository.insert_request(make_request(id="good"))
    await db.blood_requests.insert_one({"id": "bad", "status": "PENDING", "blood_group": "Q"})

    pending = await repository.list_pending_requests()

    assert [r.id for r in pending] == ["good"]


async def test_save_priority_persists_breakdown(db):
    repository = MongoRepository(db)
    request = make_request(id="r1")
    await repository.insert_request(request)

    result = compute_priority(request, now=NOW)
    await repository.save_priority("r1", result)

    doc = await db.blood_requests.find_one({"id": "r1"}, {"_id": 0})
    assert doc["priority_score"] == result.score
    assert doc["priority_category"] == result.category.value
    assert doc["priority_details"]["urgency"]["weight"] == 1.5


async def test_get_stock(seeded_db):
    repository = MongoRepository(seeded_db)

    stock = await repository.get_stock("bank-mid", BloodGroup.O_NEGATIVE)

    assert stock.units == 6
    assert await repository.get_stock("bank-mid", BloodGroup.AB_POSITIVE) is None


async def test_blood_banks_near_prefilters_by_box(seeded_db):
    banks = await MongoRepository(seeded_db).list_blood_banks_near(ORIGIN, 30)

    by_id = {b.id: b for b in banks}
    assert set(by_id) == {"bank-near", "bank-mid"}
    assert by_id["bank-near"].units_of(BloodGroup.A_POSITIVE) == 12
    assert by_id["bank-near"].contact == "080-1"
    assert by_id["bank-mid"].units_of(BloodGroup.A_POSITIVE) == 0


async def test_blood_banks_by_city_is_case_insensitive(seeded_db):
    repository = MongoRepository(seeded_db)

    banks = await repository.list_blood_banks_by_city("bengaluru")

    assert {b.id for b in banks} == {"bank-near", "bank-mid"}
    assert await repository.list_blood_banks_by_city("Mysuru.*") == []


async def test_donors_filtered_by_group_and_availability(seeded_db):
    repository = MongoRepository(seeded_db)

    near = await repository.list_donors_near(ORIGIN, 30, BloodGroup.O_NEGATIVE)
    by_city = await repository.list_donors_by_city("Bengaluru", BloodGroup.B_POSITIVE)

    assert [d.id for d in near] == ["donor-1"]
    assert near[0].name == "Asha Rao"
    assert [d.id for d in by_city] == ["donor-2"]


async def test_organization_location(seeded_db):
    repository = MongoRepository(seeded_db)

    assert await repository.get_organization_location("hosp-1") == ORIGIN
    assert await repository.get_organization_location("hosp-2") is None
    assert await repository.get_organization_location("unknown") is None


async def test_unreadable_stock_row_reads_as_missing(db):
    await db.blood_stock.insert_one({"organization_id": "bank-1", "blood_group": "A+", "units": -2})

    assert await MongoRepository(db).get_stock("bank-1", BloodGroup.A_POSITIVE) is None


async def test_pending_cap_keeps_highest_stored_scores(db, monkeypatch):
    monkeypatch.setattr(repository_module, "MAX_RESULTS", 2)
    repository = MongoRepository(db)
    await repository.insert_request(make_request(id="low", priority_score=40, minutes_old=90))
    await repository.insert_request(make_request(id="high", priority_score=200, minutes_old=1))
    await repository.insert_request(make_request(id="mid-old", priority_score=120, minutes_old=60))
    await repository.insert_request(make_request(id="mid-new", priority_score=120, minutes_old=5))

    pending = await repository.list_pending_requests()

    assert [r.id for r in pending] == ["high", "mid-old"]
