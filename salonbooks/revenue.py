from __future__ import annotations

from datetime import date

from sqlalchemy import func

from .extensions import db
from .models import TreatmentRecord
from .periods import day_bounds
from .storage import unit_of_work


def calculate_daily_revenue(day: date) -> int:
    """Revenue for one calendar day. Free visits never count."""
    start, end = day_bounds(day)
    with unit_of_work("calculate daily revenue", commit=False):
        total = (
            db.session.query(func.coalesce(func.sum(TreatmentRecord.service_price), 0))
            .filter(
                TreatmentRecord.date >= start,
                TreatmentRecord.date <= end,
                TreatmentRecord.is_free_visit.is_(False),
            )
            .scalar()
        )
    return int(total)
