"""Tests for the therapist earnings calculator."""
from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from salonbooks.earnings import (
    calculate_daily_therapist_fees,
    calculate_therapist_earnings,
    commission_for,
    get_daily_therapist_earnings,
    get_monthly_therapist_earnings,
    get_therapist_performance,
    list_therapists_with_performance,
    refresh_therapist_totals,
    update_therapist_fees,
)
from salonbooks.exceptions import NotFound
from salonbooks.extensions import db
from salonbooks.models import Therapist, TherapistMonthlyStats, TreatmentRecord


def _treatment(price, tip=0, free=False):
    return SimpleNamespace(service_price=price, tip_amount=tip, is_free_visit=free)


FEES = SimpleNamespace(base_fee_per_treatment=20000, commission_rate=0.12)


def test_paid_and_free_treatment_breakdown() -> None:
    earnings = calculate_therapist_earnings(
        [_treatment(200000, tip=25000), _treatment(0, free=True)], FEES
    )

    assert earnings.base_fee == 40000
    assert earnings.commission == 24000
    assert earnings.tips == 25000
    assert earnings.total == 89000
    assert earnings.treatment_count == 2
    assert earnings.fees == 64000


def test_empty_input_is_all_zero() -> None:
    earnings = calculate_therapist_earnings([], FEES)

    assert earnings.to_dict() == {
        "base_fee": 0,
        "commission": 0,
        "tips": 0,
        "total": 0,
        "treatment_count": 0,
    }


def test_free_visit_adds_no_commission_even_with_a_price() -> None:
    earnings = calculate_therapist_earnings([_treatment(150000, tip=5000, free=True)], FEES)

    assert earnings.commission == 0
    assert earnings.base_fee == 20000
    assert earnings.tips == 5000
    assert earnings.total == earnings.base_fee + earnings.commission + earnings.tips


def test_commission_rounds_half_up_per_treatment() -> None:
    assert commission_for(12345, 0.1) == 1235
    assert commission_for(12344, 0.1) == 1234
    fees = SimpleNamespace(base_fee_per_treatment=0, commission_rate=0.1)
    earnings = calculate_therapist_earnings([_treatment(12345), _treatment(12345)], fees)
    assert earnings.commission == 2470


def test_calculation_is_repeatable() -> None:
    treatments = [_treatment(100000, tip=10000), _treatment(85000)]

    first = calculate_therapist_earnings(treatments, FEES)
    second = calculate_therapist_earnings(treatments, FEES)

    assert first == second


def _add_treatment(day, price, tip=0, free=False, therapist_id=1, service_id=10):
    record = TreatmentRecord(
        date=day,
        service_id=service_id,
        therapist_id=therapist_id,
        service_price=0 if free else price,
        list_price=price,
        tip_amount=tip,
        is_free_visit=free,
    )
    db.session.add(record)
    return record


def test_daily_earnings_only_count_that_day(salon) -> None:
    _add_treatment(datetime(2025, 1, 26, 9, 0), 200000, tip=25000)
    _add_treatment(datetime(2025, 1, 26, 23, 59, 59), 0, free=True)
    _add_treatment(datetime(2025, 1, 27, 0, 0), 150000)
    db.session.commit()

    earnings = get_daily_therapist_earnings(salon["therapist_id"], date(2025, 1, 26))

    assert earnings.total == 89000
    assert earnings.treatment_count == 2


def test_daily_fees_exclude_tips_and_sum_all_therapists(salon) -> None:
    db.session.add(Therapist(
        therapist_id=2, initial="SR", full_name="Siti Rahmah",
        base_fee_per_treatment=25000, commission_rate=0.1,
    ))
    _add_treatment(datetime(2025, 1, 26, 10, 0), 200000, tip=25000)
    _add_treatment(datetime(2025, 1, 26, 11, 0), 100000, tip=5000, therapist_id=2)
    db.session.commit()

    # (20,000 + 24,000) + (25,000 + 10,000)
    assert calculate_daily_therapist_fees(date(2025, 1, 26)) == 79000


def test_monthly_earnings_store_stats(salon) -> None:
    _add_treatment(datetime(2025, 1, 3, 10, 0), 200000, tip=25000)
    _add_treatment(datetime(2025, 1, 31, 18, 0), 100000)
    _add_treatment(datetime(2025, 2, 1, 10, 0), 100000)
    db.session.commit()

    earnings = get_monthly_therapist_earnings(salon["therapist_id"], 1, 2025)

    assert earnings.treatment_count == 2
    stats = TherapistMonthlyStats.query.filter_by(therapist_id=1, month=1, year=2025).one()
    assert stats.treatment_count == 2
    assert stats.total_revenue == 300000
    assert stats.total_fees == 40000 + 36000
    assert stats.total_tips == 25000

    # Recomputing updates the same row.
    get_monthly_therapist_earnings(salon["therapist_id"], 1, 2025)
    assert TherapistMonthlyStats.query.count() == 1


def test_update_fees_changes_only_given_fields(salon) -> None:
    therapist = update_therapist_fees(salon["therapist_id"], commission_rate=0.2)

    assert therapist.commission_rate == 0.2
    assert therapist.base_fee_per_treatment == 20000


def test_refresh_totals_rebuilds_cache(salon) -> None:
    _add_treatment(datetime(2025, 1, 26, 9, 0), 200000, tip=25000)
    _add_treatment(datetime(2025, 1, 27, 9, 0), 0, free=True)
    therapist = db.session.get(Therapist, 1)
    therapist.total_treatments = 99
    therapist.total_earnings = 1
    db.session.commit()

    therapist = refresh_therapist_totals(1)

    assert therapist.total_treatments == 2
    assert therapist.total_earnings == 89000


def test_unknown_therapist_raises_not_found(app) -> None:
    with pytest.raises(NotFound):
        get_daily_therapist_earnings(404, date(2025, 1, 1))
    with pytest.raises(NotFound):
        update_therapist_fees(404, base_fee_per_treatment=1)


def test_therapist_list_shows_today_and_current_month(salon) -> None:
    db.session.add(Therapist(
        therapist_id=2, initial="SR", full_name="Siti Rahmah",
        base_fee_per_treatment=25000, commission_rate=0.1, is_active=False,
    ))
    _add_treatment(datetime(2025, 1, 26, 9, 0), 150000)
    _add_treatment(datetime(2025, 1, 26, 15, 0), 150000)
    _add_treatment(datetime(2025, 1, 25, 9, 0), 150000)
    db.session.commit()
    get_monthly_therapist_earnings(1, 1, 2025)

    therapists = list_therapists_with_performance(date(2025, 1, 26))

    assert [t["id"] for t in therapists] == [1]
    assert therapists[0]["today_treatment_count"] == 2
    assert therapists[0]["monthly_stats"]["treatment_count"] == 3

    next_month = list_therapists_with_performance(date(2025, 2, 1))
    assert next_month[0]["today_treatment_count"] == 0
    assert next_month[0]["monthly_stats"] is None


def test_performance_lists_latest_stats_and_recent_treatments(salon) -> None:
    for month in range(1, 15):
        db.session.add(TherapistMonthlyStats(
            therapist_id=1, month=(month - 1) % 12 + 1, year=2024 + (month - 1) // 12,
            treatment_count=month,
        ))
    _add_treatment(datetime(2025, 1, 3, 9, 0), 150000)
    _add_treatment(datetime(2025, 2, 3, 9, 0), 100000)
    db.session.commit()

    performance = get_therapist_performance(1)

    stats = performance["monthly_stats"]
    assert len(stats) == 12
    assert (stats[0]["month"], stats[0]["year"]) == (2, 2025)
    assert (stats[-1]["month"], stats[-1]["year"]) == (3, 2024)
    assert [t["service_price"] for t in performance["recent_treatments"]] == [100000, 150000]

    with pytest.raises(NotFound):
        get_therapist_performance(404)
