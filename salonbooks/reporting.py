"""Read-side reports over the treatment store and the ledger."""
from __future__ import annotations

from datetime import date

from .earnings import therapist_fees_for
from .exceptions import NotFound
from .extensions import db
from .ledger import list_entries, profit_margin
from .models import MonthlySummary, TreatmentRecord
from .periods import month_bounds, period_bounds
from .storage import unit_of_work
from .summaries import find_monthly_summary, upsert_monthly_summary


def _treatments_between(start, end) -> list[TreatmentRecord]:
    return TreatmentRecord.query.filter(
        TreatmentRecord.date >= start,
        TreatmentRecord.date <= end,
    ).all()


def _count_customers(treatments) -> int:
    """Distinct known customers, plus one per anonymous walk-in visit."""
    known = {t.customer_id for t in treatments if t.customer_id is not None}
    anonymous = sum(1 for t in treatments if t.customer_id is None)
    return len(known) + anonymous


def get_report(period: str, reference_date: date) -> dict[str, object]:
    start, end = period_bounds(period, reference_date)

    with unit_of_work(f"build {period} report", commit=False):
        treatments = _treatments_between(start, end)
        report = {
            "period": period,
            "start": start.date().isoformat(),
            "end": end.date().isoformat(),
            "revenue": sum(t.billable_price for t in treatments),
            "treatments": len(treatments),
            "customers": _count_customers(treatments),
            "therapist_fees": therapist_fees_for(treatments),
            "source": "treatments",
        }

        if period == "month":
            summary = find_monthly_summary(start.month, start.year)
            if summary is not None:
                report.update(
                    revenue=summary.total_revenue,
                    treatments=summary.total_treatments,
                    therapist_fees=summary.total_therapist_fees,
                    source="monthly_summary",
                )

    return report


def get_monthly_summary(month: int, year: int) -> dict[str, object]:
    first, last = month_bounds(month, year)
    entries = list_entries(first, last)

    totals = {
        "total_revenue": 0,
        "total_operational_cost": 0,
        "total_salary_expense": 0,
        "total_therapist_fee": 0,
        "total_other_expenses": 0,
        "total_expense": 0,
        "total_net_income": 0,
    }
    for entry in entries:
        totals["total_revenue"] += entry.daily_revenue
        totals["total_operational_cost"] += entry.operational_cost
        totals["total_salary_expense"] += entry.salary_expense
        totals["total_therapist_fee"] += entry.therapist_fee
        totals["total_other_expenses"] += entry.other_expenses
        totals["total_expense"] += entry.total_expense
        totals["total_net_income"] += entry.net_income

    with unit_of_work("load monthly summary", commit=False):
        summary = find_monthly_summary(month, year)

    return {
        "month": month,
        "year": year,
        "entries": [entry.to_dict() for entry in entries],
        "monthly_totals": totals,
        "average_daily_revenue": totals["total_revenue"] / len(entries) if entries else 0,
        "profit_margin": profit_margin(totals["total_revenue"], totals["total_net_income"]),
        "summary": summary.to_dict() if summary is not None else None,
    }


def close_month(month: int, year: int) -> MonthlySummary:
    """Store the month's treatment totals; later intakes in the month keep them current."""
    with unit_of_work(f"close month {month}/{year}"):
        summary = upsert_monthly_summary(month, year)
    return summary


def delete_monthly_summary(month: int, year: int) -> None:
    with unit_of_work(f"delete summary for {month}/{year}"):
        summary = find_monthly_summary(month, year)
        if summary is None:
            raise NotFound(f"No monthly summary for {month}/{year}")
        db.session.delete(summary)
