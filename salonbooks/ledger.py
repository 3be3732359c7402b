"""Daily bookkeeping ledger with a cumulative running total.

Each entry's ``running_total`` is the previous entry's running total plus its
own net income. Writing a day that already has later days after it shifts all
of them, so every write recomputes the tail of the ledger in date order inside
the same transaction.
"""
from __future__ import annotations

import threading
from bisect import bisect_left
from datetime import date
from typing import Iterable, Sequence

from sqlalchemy import func

from .earnings import calculate_daily_therapist_fees
from .exceptions import NotFound
from .extensions import db
from .models import BookkeepingEntry
from .periods import month_bounds
from .revenue import calculate_daily_revenue
from .storage import unit_of_work

# One writer at a time: two concurrent cascades would both start from a stale
# preceding running total.
_ledger_lock = threading.RLock()


def derive_totals(
    daily_revenue: int,
    operational_cost: int,
    salary_expense: int,
    therapist_fee: int,
    other_expenses: int,
) -> tuple[int, int]:
    """Return ``(total_expense, net_income)`` for one day's figures."""
    total_expense = operational_cost + salary_expense + therapist_fee + other_expenses
    return total_expense, daily_revenue - total_expense


def cascade_running_totals(entries: Sequence[BookkeepingEntry], base: int) -> list[BookkeepingEntry]:
    """Recompute running totals of date-ordered ``entries`` starting from ``base``.

    Returns the entries whose running total actually changed.
    """
    changed = []
    running = base
    for entry in entries:
        running += entry.net_income
        if entry.running_total != running:
            entry.running_total = running
            changed.append(entry)
    return changed


class LedgerIndex:
    """Date-ordered slice of the ledger, searchable by date."""

    def __init__(self, entries: Iterable[BookkeepingEntry]) -> None:
        self._entries = sorted(entries, key=lambda entry: entry.date)
        self._dates = [entry.date for entry in self._entries]

    @classmethod
    def load(cls) -> "LedgerIndex":
        return cls(BookkeepingEntry.query.order_by(BookkeepingEntry.date).all())

    @classmethod
    def load_from(cls, day: date) -> "LedgerIndex":
        """Load the entry preceding ``day`` and everything on or after ``day`` in one query."""
        preceding = (
            db.session.query(func.max(BookkeepingEntry.date))
            .filter(BookkeepingEntry.date < day)
            .scalar_subquery()
        )
        entries = (
            BookkeepingEntry.query.filter(BookkeepingEntry.date >= func.coalesce(preceding, day))
            .order_by(BookkeepingEntry.date)
            .all()
        )
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def get(self, day: date) -> BookkeepingEntry | None:
        position = bisect_left(self._dates, day)
        if position < len(self._dates) and self._dates[position] == day:
            return self._entries[position]
        return None

    def preceding(self, day: date) -> BookkeepingEntry | None:
        position = bisect_left(self._dates, day)
        return self._entries[position - 1] if position > 0 else None

    def insert(self, entry: BookkeepingEntry) -> None:
        position = bisect_left(self._dates, entry.date)
        self._dates.insert(position, entry.date)
        self._entries.insert(position, entry)

    def remove(self, entry: BookkeepingEntry) -> None:
        position = bisect_left(self._dates, entry.date)
        del self._dates[position]
        del self._entries[position]

    def recompute_from(self, day: date) -> list[BookkeepingEntry]:
        """Recompute every running total on or after ``day``."""
        position = bisect_left(self._dates, day)
        previous = self._entries[position - 1] if position > 0 else None
        base = previous.running_total if previous is not None else 0
        return cascade_running_totals(self._entries[position:], base)


def _write_entry(
    date: date,
    daily_revenue: int,
    operational_cost: int,
    salary_expense: int,
    therapist_fee: int,
    other_expenses: int,
    notes: str | None,
) -> BookkeepingEntry:
    total_expense, net_income = derive_totals(
        daily_revenue, operational_cost, salary_expense, therapist_fee, other_expenses
    )

    index = LedgerIndex.load_from(date)
    entry = index.get(date)
    if entry is None:
        entry = BookkeepingEntry(date=date, running_total=0)
        db.session.add(entry)
        index.insert(entry)

    entry.daily_revenue = daily_revenue
    entry.operational_cost = operational_cost
    entry.salary_expense = salary_expense
    entry.therapist_fee = therapist_fee
    entry.other_expenses = other_expenses
    entry.total_expense = total_expense
    entry.net_income = net_income
    entry.notes = notes

    index.recompute_from(date)
    return entry


def upsert_daily_entry(
    date: date,
    daily_revenue: int,
    operational_cost: int,
    salary_expense: int,
    therapist_fee: int,
    other_expenses: int,
    notes: str | None = None,
) -> BookkeepingEntry:
    """Create or replace the ledger entry for ``date`` and cascade later running totals.

    The whole upsert and cascade commit together or not at all.
    """
    with _ledger_lock, unit_of_work(f"upsert ledger entry for {date}"):
        return _write_entry(
            date, daily_revenue, operational_cost, salary_expense, therapist_fee, other_expenses, notes
        )


def auto_calculate_daily_entry(
    date: date,
    operational_cost: int = 0,
    salary_expense: int = 0,
    other_expenses: int = 0,
    notes: str | None = None,
) -> BookkeepingEntry:
    """Fill revenue and therapist fees from the day's treatments, then upsert.

    The treatments are read in the same locked transaction as the write.
    Treatments committed after that are not included; calling this again
    refreshes the day.
    """
    with _ledger_lock, unit_of_work(f"auto-calculate ledger entry for {date}"):
        return _write_entry(
            date,
            daily_revenue=calculate_daily_revenue(date),
            operational_cost=operational_cost,
            salary_expense=salary_expense,
            therapist_fee=calculate_daily_therapist_fees(date),
            other_expenses=other_expenses,
            notes=notes,
        )


def delete_daily_entry(date: date) -> None:
    with _ledger_lock, unit_of_work(f"delete ledger entry for {date}"):
        index = LedgerIndex.load_from(date)
        entry = index.get(date)
        if entry is None:
            raise NotFound(f"No ledger entry for {date.isoformat()}")
        index.remove(entry)
        db.session.delete(entry)
        index.recompute_from(date)


def rebuild_running_totals() -> int:
    """Recompute the whole ledger from its first entry. Returns the number of repaired rows."""
    with _ledger_lock, unit_of_work("rebuild ledger running totals"):
        index = LedgerIndex.load()
        return len(cascade_running_totals(list(index), 0))


def list_entries(start: date, end: date) -> list[BookkeepingEntry]:
    with unit_of_work("list ledger entries", commit=False):
        return (
            BookkeepingEntry.query.filter(
                BookkeepingEntry.date >= start,
                BookkeepingEntry.date <= end,
            )
            .order_by(BookkeepingEntry.date)
            .all()
        )


def profit_margin(revenue: int, net_income: int) -> float:
    return round(net_income / revenue * 100, 2) if revenue > 0 else 0.0


def get_bookkeeping_analytics(start: date, end: date) -> dict[str, object]:
    entries = list_entries(start, end)

    totals = {
        "total_revenue": 0,
        "total_expenses": 0,
        "total_net_income": 0,
        "operational_costs": 0,
        "therapist_fees": 0,
        "salary_expenses": 0,
    }
    best_day = worst_day = None
    for entry in entries:
        totals["total_revenue"] += entry.daily_revenue
        totals["total_expenses"] += entry.total_expense
        totals["total_net_income"] += entry.net_income
        totals["operational_costs"] += entry.operational_cost
        totals["therapist_fees"] += entry.therapist_fee
        totals["salary_expenses"] += entry.salary_expense
        if best_day is None or entry.daily_revenue > best_day.daily_revenue:
            best_day = entry
        if worst_day is None or entry.daily_revenue < worst_day.daily_revenue:
            worst_day = entry

    def _day(entry):
        if entry is None:
            return None
        return {"date": entry.date.isoformat(), "revenue": entry.daily_revenue}

    return {
        **totals,
        "best_day": _day(best_day),
        "worst_day": _day(worst_day),
        "average_revenue": totals["total_revenue"] / len(entries) if entries else 0,
        "profit_margin": profit_margin(totals["total_revenue"], totals["total_net_income"]),
        "trend_data": [entry.to_dict() for entry in entries],
    }


def get_current_month_running_total(today: date) -> int:
    """Running total of the latest entry in ``today``'s month, 0 when the month is empty."""
    first, last = month_bounds(today.month, today.year)
    entries = list_entries(first, last)
    return entries[-1].running_total if entries else 0
