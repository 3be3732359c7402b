"""Database models for the SalonBooks backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Customer(db.Model):
    """Salon customer with visit and loyalty counters."""

    __tablename__ = "customers"

    customer_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), unique=True, nullable=False)
    email = db.Column(db.String(255))
    total_visits = db.Column(db.Integer, nullable=False, default=0)
    total_spending = db.Column(db.Integer, nullable=False, default=0)
    loyalty_visits = db.Column(db.Integer, nullable=False, default=0)
    last_visit = db.Column(db.DateTime)
    is_vip = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.CheckConstraint(
            "loyalty_visits >= 0 AND loyalty_visits <= 3", name="ck_customer_loyalty_range"
        ),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.customer_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "total_visits": self.total_visits,
            "total_spending": self.total_spending,
            "loyalty_visits": self.loyalty_visits,
            "last_visit": self.last_visit.isoformat() if self.last_visit else None,
            "is_vip": bool(self.is_vip),
        }


class Therapist(db.Model):
    __tablename__ = "therapists"

    therapist_id = db.Column(db.Integer, primary_key=True)
    initial = db.Column(db.String(10), nullable=False)
    full_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    base_fee_per_treatment = db.Column(db.Integer, nullable=False, default=0)
    commission_rate = db.Column(db.Float, nullable=False, default=0.0)
    # Cached counters, rebuildable from treatment history.
    total_treatments = db.Column(db.Integer, nullable=False, default=0)
    total_earnings = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.therapist_id,
            "initial": self.initial,
            "full_name": self.full_name,
            "is_active": bool(self.is_active),
            "base_fee_per_treatment": self.base_fee_per_treatment,
            "commission_rate": self.commission_rate,
            "total_treatments": self.total_treatments,
            "total_earnings": self.total_earnings,
        }


class Service(db.Model):
    """Treatments offered by the salon."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    normal_price = db.Column(db.Integer, nullable=False)
    promo_price = db.Column(db.Integer)
    duration_minutes = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    @property
    def effective_price(self) -> int:
        return self.promo_price if self.promo_price is not None else self.normal_price

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "category": self.category,
            "normal_price": self.normal_price,
            "promo_price": self.promo_price,
            "duration_minutes": self.duration_minutes,
            "is_active": bool(self.is_active),
        }


class TreatmentRecord(db.Model):
    """A completed treatment. Append-only once committed."""

    __tablename__ = "treatment_records"

    treatment_id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    therapist_id = db.Column(db.Integer, db.ForeignKey("therapists.therapist_id"), nullable=False)
    service_price = db.Column(db.Integer, nullable=False, default=0)
    list_price = db.Column(db.Integer, nullable=False, default=0)
    tip_amount = db.Column(db.Integer, nullable=False, default=0)
    is_free_visit = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    customer = db.relationship("Customer")
    service = db.relationship("Service")
    therapist = db.relationship("Therapist")

    __table_args__ = (
        db.CheckConstraint("tip_amount >= 0", name="ck_treatment_tip_non_negative"),
    )

    @property
    def billable_price(self) -> int:
        """Price that counts as revenue; always 0 for a free visit."""
        return 0 if self.is_free_visit else self.service_price

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.treatment_id,
            "date": self.date.isoformat() if self.date else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "service_id": self.service_id,
            "service_name": self.service.name if self.service else None,
            "therapist_id": self.therapist_id,
            "therapist_name": self.therapist.full_name if self.therapist else None,
            "service_price": self.service_price,
            "list_price": self.list_price,
            "tip_amount": self.tip_amount,
            "is_free_visit": bool(self.is_free_visit),
            "notes": self.notes,
        }


class TherapistMonthlyStats(db.Model):
    __tablename__ = "therapist_monthly_stats"

    stats_id = db.Column(db.Integer, primary_key=True)
    therapist_id = db.Column(db.Integer, db.ForeignKey("therapists.therapist_id"), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    treatment_count = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Integer, nullable=False, default=0)
    total_fees = db.Column(db.Integer, nullable=False, default=0)
    total_tips = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.UniqueConstraint("therapist_id", "month", "year", name="uq_therapist_month"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "therapist_id": self.therapist_id,
            "month": self.month,
            "year": self.year,
            "treatment_count": self.treatment_count,
            "total_revenue": self.total_revenue,
            "total_fees": self.total_fees,
            "total_tips": self.total_tips,
        }


class BookkeepingEntry(db.Model):
    """One ledger line per calendar date."""

    __tablename__ = "bookkeeping_entries"

    entry_id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False)
    daily_revenue = db.Column(db.Integer, nullable=False, default=0)
    operational_cost = db.Column(db.Integer, nullable=False, default=0)
    salary_expense = db.Column(db.Integer, nullable=False, default=0)
    therapist_fee = db.Column(db.Integer, nullable=False, default=0)
    other_expenses = db.Column(db.Integer, nullable=False, default=0)
    total_expense = db.Column(db.Integer, nullable=False, default=0)
    net_income = db.Column(db.Integer, nullable=False, default=0)
    running_total = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.entry_id,
            "date": self.date.isoformat(),
            "daily_revenue": self.daily_revenue,
            "operational_cost": self.operational_cost,
            "salary_expense": self.salary_expense,
            "therapist_fee": self.therapist_fee,
            "other_expenses": self.other_expenses,
            "total_expense": self.total_expense,
            "net_income": self.net_income,
            "running_total": self.running_total,
            "notes": self.notes,
        }


class MonthlySummary(db.Model):
    """Closed-month totals derived from the ledger."""

    __tablename__ = "monthly_summaries"

    summary_id = db.Column(db.Integer, primary_key=True)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    total_revenue = db.Column(db.Integer, nullable=False, default=0)
    total_therapist_fees = db.Column(db.Integer, nullable=False, default=0)
    total_treatments = db.Column(db.Integer, nullable=False, default=0)
    free_treatments = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.UniqueConstraint("month", "year", name="uq_monthly_summary_period"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.summary_id,
            "month": self.month,
            "year": self.year,
            "total_revenue": self.total_revenue,
            "total_therapist_fees": self.total_therapist_fees,
            "total_treatments": self.total_treatments,
            "free_treatments": self.free_treatments,
        }
