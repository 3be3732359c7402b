"""Therapist earnings: base fee per treatment, commission on price, and tips."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy import func

from .exceptions import NotFound
from .extensions import db
from .models import Therapist, TherapistMonthlyStats, TreatmentRecord
from .periods import day_bounds, month_bounds
from .storage import unit_of_work


@dataclass(frozen=True)
class TherapistEarnings:
    base_fee: int = 0
    commission: int = 0
    tips: int = 0
    total: int = 0
    treatment_count: int = 0

    @property
    def fees(self) -> int:
        """What the business pays the therapist; tips come from the customer."""
        return self.base_fee + self.commission

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _billable_price(treatment) -> int:
    if treatment.is_free_visit:
        return 0
    return treatment.service_price or 0


def commission_for(price: int, rate: float) -> int:
    """Commission on one treatment, rounded half-up to a whole currency unit."""
    amount = Decimal(price) * Decimal(str(rate))
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_therapist_earnings(treatments: Iterable, therapist) -> TherapistEarnings:
    """Earnings of one therapist over ``treatments``.

    ``therapist`` only needs ``base_fee_per_treatment`` and ``commission_rate``.
    The base fee is a labour cost and is charged for free visits too.
    """
    base_fee = commission = tips = count = 0
    for treatment in treatments:
        count += 1
        base_fee += therapist.base_fee_per_treatment
        commission += commission_for(_billable_price(treatment), therapist.commission_rate)
        tips += treatment.tip_amount or 0

    return TherapistEarnings(
        base_fee=base_fee,
        commission=commission,
        tips=tips,
        total=base_fee + commission + tips,
        treatment_count=count,
    )


def _get_therapist(therapist_id: int) -> Therapist:
    therapist = db.session.get(Therapist, therapist_id)
    if therapist is None:
        raise NotFound(f"Therapist {therapist_id} not found")
    return therapist


def _treatments_between(start, end, therapist_id: int | None = None) -> list[TreatmentRecord]:
    query = TreatmentRecord.query.filter(
        TreatmentRecord.date >= start,
        TreatmentRecord.date <= end,
    )
    if therapist_id is not None:
        query = query.filter(TreatmentRecord.therapist_id == therapist_id)
    return query.order_by(TreatmentRecord.date).all()


def therapist_fees_for(treatments: Iterable[TreatmentRecord]) -> int:
    """Sum of base fee and commission across every therapist in ``treatments``."""
    by_therapist: dict[int, list[TreatmentRecord]] = defaultdict(list)
    therapists: dict[int, Therapist] = {}
    for treatment in treatments:
        by_therapist[treatment.therapist_id].append(treatment)
        therapists[treatment.therapist_id] = treatment.therapist

    return sum(
        calculate_therapist_earnings(records, therapists[therapist_id]).fees
        for therapist_id, records in by_therapist.items()
    )


def get_daily_therapist_earnings(therapist_id: int, day: date) -> TherapistEarnings:
    with unit_of_work("load daily therapist earnings", commit=False):
        therapist = _get_therapist(therapist_id)
        start, end = day_bounds(day)
        return calculate_therapist_earnings(_treatments_between(start, end, therapist_id), therapist)


def get_monthly_therapist_earnings(therapist_id: int, month: int, year: int) -> TherapistEarnings:
    """Monthly earnings; also refreshes the therapist's monthly stats row."""
    with unit_of_work("store therapist monthly stats"):
        therapist = _get_therapist(therapist_id)
        first, last = month_bounds(month, year)
        treatments = _treatments_between(day_bounds(first)[0], day_bounds(last)[1], therapist_id)
        earnings = calculate_therapist_earnings(treatments, therapist)

        stats = TherapistMonthlyStats.query.filter_by(
            therapist_id=therapist_id, month=month, year=year
        ).first()
        if stats is None:
            stats = TherapistMonthlyStats(therapist_id=therapist_id, month=month, year=year)
            db.session.add(stats)
        stats.treatment_count = earnings.treatment_count
        stats.total_revenue = sum(_billable_price(t) for t in treatments)
        stats.total_fees = earnings.fees
        stats.total_tips = earnings.tips

    return earnings


def calculate_daily_therapist_fees(day: date) -> int:
    """Fees owed to all therapists for a day, tips excluded."""
    with unit_of_work("load daily therapist fees", commit=False):
        start, end = day_bounds(day)
        return therapist_fees_for(_treatments_between(start, end))


def update_therapist_fees(
    therapist_id: int,
    base_fee_per_treatment: int | None = None,
    commission_rate: float | None = None,
) -> Therapist:
    with unit_of_work("update therapist fees"):
        therapist = _get_therapist(therapist_id)
        if base_fee_per_treatment is not None:
            therapist.base_fee_per_treatment = base_fee_per_treatment
        if commission_rate is not None:
            therapist.commission_rate = commission_rate
    return therapist


def refresh_therapist_totals(therapist_id: int) -> Therapist:
    """Rebuild the cached counters from the full treatment history."""
    with unit_of_work("refresh therapist totals"):
        therapist = _get_therapist(therapist_id)
        treatments = TreatmentRecord.query.filter_by(therapist_id=therapist_id).all()
        earnings = calculate_therapist_earnings(treatments, therapist)
        therapist.total_treatments = earnings.treatment_count
        therapist.total_earnings = earnings.total
    return therapist


def list_therapists_with_performance(today: date) -> list[dict[str, object]]:
    """Active therapists with today's treatment count and this month's stats row."""
    start, end = day_bounds(today)
    with unit_of_work("list therapist performance", commit=False):
        therapists = (
            Therapist.query.filter_by(is_active=True).order_by(Therapist.therapist_id).all()
        )
        today_counts = dict(
            db.session.query(TreatmentRecord.therapist_id, func.count(TreatmentRecord.treatment_id))
            .filter(TreatmentRecord.date >= start, TreatmentRecord.date <= end)
            .group_by(TreatmentRecord.therapist_id)
            .all()
        )
        stats_by_therapist = {
            stats.therapist_id: stats
            for stats in TherapistMonthlyStats.query.filter_by(month=today.month, year=today.year)
        }

        result = []
        for therapist in therapists:
            stats = stats_by_therapist.get(therapist.therapist_id)
            result.append({
                **therapist.to_dict(),
                "today_treatment_count": today_counts.get(therapist.therapist_id, 0),
                "monthly_stats": stats.to_dict() if stats is not None else None,
            })
    return result


def get_therapist_performance(
    therapist_id: int,
    *,
    months: int = 12,
    recent_limit: int = 50,
) -> dict[str, object]:
    """Latest monthly stats rows, newest first, and the most recent treatments."""
    with unit_of_work("load therapist performance", commit=False):
        therapist = _get_therapist(therapist_id)
        monthly_stats = (
            TherapistMonthlyStats.query.filter_by(therapist_id=therapist_id)
            .order_by(TherapistMonthlyStats.year.desc(), TherapistMonthlyStats.month.desc())
            .limit(months)
            .all()
        )
        recent = (
            TreatmentRecord.query.filter_by(therapist_id=therapist_id)
            .order_by(TreatmentRecord.date.desc(), TreatmentRecord.treatment_id.desc())
            .limit(recent_limit)
            .all()
        )
        return {
            **therapist.to_dict(),
            "monthly_stats": [stats.to_dict() for stats in monthly_stats],
            "recent_treatments": [treatment.to_dict() for treatment in recent],
        }
