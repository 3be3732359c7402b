"""Request payloads accepted by the HTTP layer.

Every model forbids unknown fields so a typo in a bookkeeping form is rejected
instead of silently dropped.
"""
from __future__ import annotations

import datetime as dt
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PERIOD_ALIASES = {
    "daily": "day",
    "weekly": "week",
    "monthly": "month",
    "yearly": "year",
}


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class CustomerRef(_Payload):
    """Either an existing customer id or a walk-in identified by name and phone."""

    customer_id: Optional[int] = Field(default=None, gt=0)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=4, max_length=30)

    @model_validator(mode="after")
    def _check_identity(self) -> "CustomerRef":
        if self.customer_id is None and not (self.name and self.phone):
            raise ValueError("customer_id or both name and phone are required")
        return self


class TreatmentIntakeRequest(_Payload):
    date: Union[dt.datetime, dt.date]
    customer: Optional[CustomerRef] = None
    service_id: int = Field(gt=0)
    therapist_id: int = Field(gt=0)
    price: Optional[int] = Field(default=None, ge=0)
    tip: int = Field(default=0, ge=0)
    is_free_visit: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("date")
    @classmethod
    def _naive_datetime(cls, value):
        if not isinstance(value, dt.datetime):
            return dt.datetime.combine(value, dt.time.min)
        # Aggregation works on the salon's wall clock.
        return value.replace(tzinfo=None)


class DailyEntryRequest(_Payload):
    date: dt.date
    daily_revenue: int = Field(default=0, ge=0)
    operational_cost: int = Field(default=0, ge=0)
    salary_expense: int = Field(default=0, ge=0)
    therapist_fee: int = Field(default=0, ge=0)
    other_expenses: int = Field(default=0, ge=0)
    notes: Optional[str] = None

    # Bookkeeping forms echo the derived columns back; they are recomputed.
    total_expense: Optional[int] = Field(default=None, exclude=True)
    net_income: Optional[int] = Field(default=None, exclude=True)
    running_total: Optional[int] = Field(default=None, exclude=True)


class AutoDailyEntryRequest(_Payload):
    date: dt.date
    operational_cost: int = Field(default=0, ge=0)
    salary_expense: int = Field(default=0, ge=0)
    other_expenses: int = Field(default=0, ge=0)
    notes: Optional[str] = None


class TherapistFeesRequest(_Payload):
    base_fee_per_treatment: Optional[int] = Field(default=None, ge=0)
    commission_rate: Optional[float] = Field(default=None, ge=0, le=1)

    @model_validator(mode="after")
    def _require_one(self) -> "TherapistFeesRequest":
        if self.base_fee_per_treatment is None and self.commission_rate is None:
            raise ValueError("base_fee_per_treatment or commission_rate is required")
        return self


class MonthQuery(_Payload):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=9999)


class DateRangeQuery(_Payload):
    start: dt.date
    end: dt.date

    @model_validator(mode="after")
    def _ordered(self) -> "DateRangeQuery":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class DayQuery(_Payload):
    date: dt.date


class OptionalDayQuery(_Payload):
    date: Optional[dt.date] = None


class ReportQuery(_Payload):
    period: Literal["day", "week", "month", "year"] = "month"
    date: Optional[dt.date] = None

    @field_validator("period", mode="before")
    @classmethod
    def _normalise_period(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return PERIOD_ALIASES.get(value, value)
        return value
