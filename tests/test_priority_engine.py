from datetime import timedelta

import pytest

from models import BloodGroup, Urgency, PriorityCategory, StockSnapshot
from services import (
    InvalidInputError, compute_priority, categorize_priority, order_queue,
    filter_by_category, priority_stats, score_distribution, priority_configuration
)
from conftest import NOW, make_request


def snapshot(blood_group: BloodGroup, units: int) -> StockSnapshot:
    return StockSnapshot(organization_id="bank-1", blood_group=blood_group, units=units)


def test_critical_rare_group_with_empty_stock_is_critical():
    request = make_request(Urgency.CRITICAL, BloodGroup.AB_NEGATIVE, minutes_old=10, blood_bank_id="bank-1")

    result = compute_priority(request, snapshot(BloodGroup.AB_NEGATIVE, 0), now=NOW)

    assert result.category == PriorityCategory.CRITICAL
    assert result.score == 216
    assert result.breakdown.availability.raw == 100
    assert result.category_details.label == PriorityCategory.CRITICAL


def test_old_low_request_outranks_fresh_one():
    fresh = make_request(Urgency.LOW, BloodGroup.O_POSITIVE, minutes_old=1)
    old = make_request(Urgency.LOW, BloodGroup.O_POSITIVE, minutes_old=5 * 24 * 60)
    stock = snapshot(BloodGroup.O_POSITIVE, 20)

    fresh_score = compute_priority(fresh, stock, now=NOW).score
    old_score = compute_priority(old, stock, now=NOW).score

    assert old_score > fresh_score


def test_same_inputs_give_same_result():
    request = make_request(Urgency.HIGH, BloodGroup.B_NEGATIVE, minutes_old=45)
    stock = snapshot(BloodGroup.B_NEGATIVE, 3)

    first = compute_priority(request, stock, now=NOW)
    second = compute_priority(request, stock, now=NOW)

    assert first.model_dump() == second.model_dump()


def test_score_bounds_at_extremes():
    top = make_request(Urgency.CRITICAL, BloodGroup.AB_NEGATIVE, minutes_old=24 * 60)
    bottom = make_request(Urgency.LOW, BloodGroup.O_POSITIVE, minutes_old=0)

    assert compute_priority(top, snapshot(BloodGroup.AB_NEGATIVE, 0), now=NOW).score == 255
    low = compute_priority(bottom, snapshot(BloodGroup.O_POSITIVE, 500), now=NOW)
    assert 0 <= low.score < 80
    assert low.category == PriorityCategory.LOW


@pytest.mark.parametrize("blood_group", list(BloodGroup))
@pytest.mark.parametrize("minutes_old", [0, 30, 600, 10000])
@pytest.mark.parametrize("units", [None, 0, 5, 100])
def test_urgency_never_lowers_score(blood_group, minutes_old, units):
    stock = snapshot(blood_group, units) if units is not None else None
    ordered = [Urgency.LOW, Urgency.MEDIUM, Urgency.HIGH, Urgency.CRITICAL]

    scores = [
        compute_priority(make_request(u, blood_group, minutes_old=minutes_old), stock, now=NOW).score
        for u in ordered
    ]

    assert scores == sorted(scores)
    assert all(0 <= s <= 255 for s in scores)


def test_rarer_group_scores_higher_at_equal_urgency():
    rare = compute_priority(make_request(Urgency.HIGH, BloodGroup.O_NEGATIVE), now=NOW)
    common = compute_priority(make_request(Urgency.HIGH, BloodGroup.O_POSITIVE), now=NOW)
    assert rare.score > common.score


def test_missing_stock_uses_neutral_availability():
    result = compute_priority(make_request(), None, now=NOW)

    availability = result.breakdown.availability
    assert availability.raw == 50
    assert availability.stock_known is False
    assert availability.current_units is None


def test_stock_at_safe_level_adds_nothing():
    result = compute_priority(make_request(), snapshot(BloodGroup.O_POSITIVE, 50), now=NOW)
    assert result.breakdown.availability.raw == 0


def test_time_score_saturates():
    ten_hours = compute_priority(make_request(minutes_old=600), now=NOW)
    ten_days = compute_priority(make_request(minutes_old=14400), now=NOW)

    assert ten_hours.breakdown.time.raw == 100
    assert ten_days.score == ten_hours.score
    assert ten_days.breakdown.time.minutes_old == 14400


def test_passed_deadline_maxes_time_pressure():
    request = make_request(minutes_old=5, required_by=NOW - timedelta(minutes=1))

    result = compute_priority(request, now=NOW)

    assert result.breakdown.time.raw == 100
    assert result.breakdown.time.minutes_to_deadline == -1


def test_breakdown_weights_add_up_to_score():
    result = compute_priority(make_request(Urgency.HIGH, BloodGroup.A_NEGATIVE, minutes_old=90), now=NOW)
    b = result.breakdown
    total = b.urgency.weighted + b.rarity.weighted + b.time.weighted + b.availability.weighted
    assert abs(total - result.score) <= 0.55


def test_raw_document_is_accepted():
    doc = make_request(Urgency.CRITICAL, BloodGroup.A_POSITIVE).to_document()
    assert compute_priority(doc, now=NOW).request_id == doc["id"]


@pytest.mark.parametrize("field,value", [
    ("blood_group", "C+"),
    ("urgency", "PANIC"),
    ("units_required", 0),
])
def test_invalid_document_raises(field, value):
    doc = make_request().to_document()
    doc[field] = value
    with pytest.raises(InvalidInputError):
        compute_priority(doc, now=NOW)


def test_stock_for_another_group_is_rejected():
    with pytest.raises(InvalidInputError):
        compute_priority(make_request(blood_group=BloodGroup.A_POSITIVE), snapshot(BloodGroup.B_POSITIVE, 3), now=NOW)


def test_unconstructed_request_is_rejected():
    with pytest.raises(InvalidInputError):
        compute_priority(object(), now=NOW)


@pytest.mark.parametrize("score,category", [
    (255, PriorityCategory.CRITICAL),
    (180, PriorityCategory.CRITICAL),
    (179, PriorityCategory.HIGH),
    (140, PriorityCategory.HIGH),
    (139, PriorityCategory.MEDIUM),
    (80, PriorityCategory.MEDIUM),
    (79, PriorityCategory.LOW),
    (0, PriorityCategory.LOW),
])
def test_category_bands(score, category):
    assert categorize_priority(score) == category


# ==================== QUEUE ====================

def scored(request, score):
    return request.model_copy(update={"priority_score": score, "priority_category": categorize_priority(score)})


def test_order_queue_highest_first_then_oldest():
    a = scored(make_request(minutes_old=5, id="a"), 150)
    b = scored(make_request(minutes_old=50, id="b"), 150)
    c = scored(make_request(minutes_old=1, id="c"), 200)
    unscored = make_request(minutes_old=500, id="d")

    ordered = order_queue([a, unscored, b, c])

    assert [r.id for r in ordered] == ["c", "b", "a", "d"]


def test_order_queue_is_stable_and_breaks_ties_on_id():
    requests = [scored(make_request(id=i), 100) for i in ("z", "m", "a")]

    first = order_queue(requests)
    second = order_queue(list(reversed(requests)))

    assert [r.id for r in first] == ["a", "m", "z"]
    assert [r.id for r in first] == [r.id for r in second]


def test_order_queue_does_not_mutate_input():
    requests = [scored(make_request(id="x"), 10), scored(make_request(id="y"), 90)]
    order_queue(requests)
    assert [r.id for r in requests] == ["x", "y"]


def test_filter_by_category():
    requests = [scored(make_request(id="x"), 200), scored(make_request(id="y"), 90)]
    assert [r.id for r in filter_by_category(requests, PriorityCategory.MEDIUM)] == ["y"]


def test_priority_stats():
    requests = [
        scored(make_request(Urgency.CRITICAL, minutes_old=30), 200),
        scored(make_request(Urgency.LOW, minutes_old=90), 60),
    ]

    stats = priority_stats(requests, now=NOW)

    assert stats.total == 2
    assert stats.by_category["CRITICAL"] == 1
    assert stats.by_category["HIGH"] == 0
    assert stats.by_urgency["LOW"] == 1
    assert stats.average_score == 130
    assert stats.average_age_minutes == 60


def test_priority_stats_empty():
    stats = priority_stats([], now=NOW)
    assert stats.total == 0
    assert set(stats.by_category) == {c.value for c in PriorityCategory}


def test_score_distribution_covers_full_range():
    buckets = score_distribution([scored(make_request(), 255), scored(make_request(), 0)])

    assert buckets["0-19"] == 1
    assert buckets["240-259"] == 1
    assert sum(buckets.values()) == 2


def test_score_distribution_rejects_bad_bucket():
    with pytest.raises(InvalidInputError):
        score_distribution([], bucket_size=0)


def test_configuration_maximum_is_255():
    config = priority_configuration()
    weights = config["weights"]
    assert round(sum(w * 100 for w in weights.values())) == config["max_score"] == 255
    assert config["rarity_scores"]["AB-"] > config["rarity_scores"]["O+"]
