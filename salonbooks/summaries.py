"""Stored monthly rollups of the treatment store.

A ``MonthlySummary`` is derived from the month's treatments only, so it stays
correct whether or not the ledger days of that month have been entered yet.
Functions here run inside the caller's transaction.
"""
from __future__ import annotations

from .earnings import therapist_fees_for
from .extensions import db
from .models import MonthlySummary, TreatmentRecord
from .periods import day_bounds, month_bounds


def find_monthly_summary(month: int, year: int) -> MonthlySummary | None:
    return MonthlySummary.query.filter_by(month=month, year=year).first()


def _month_treatments(month: int, year: int) -> list[TreatmentRecord]:
    first, last = month_bounds(month, year)
    return TreatmentRecord.query.filter(
        TreatmentRecord.date >= day_bounds(first)[0],
        TreatmentRecord.date <= day_bounds(last)[1],
    ).all()


def fill_monthly_summary(summary: MonthlySummary) -> MonthlySummary:
    treatments = _month_treatments(summary.month, summary.year)
    summary.total_revenue = sum(t.billable_price for t in treatments)
    summary.total_therapist_fees = therapist_fees_for(treatments)
    summary.total_treatments = len(treatments)
    summary.free_treatments = sum(1 for t in treatments if t.is_free_visit)
    return summary


def upsert_monthly_summary(month: int, year: int) -> MonthlySummary:
    summary = find_monthly_summary(month, year)
    if summary is None:
        summary = MonthlySummary(month=month, year=year)
        db.session.add(summary)
    return fill_monthly_summary(summary)


def refresh_monthly_summary(month: int, year: int) -> MonthlySummary | None:
    """Recompute the month's stored summary, if the month has one."""
    summary = find_monthly_summary(month, year)
    if summary is None:
        return None
    return fill_monthly_summary(summary)
