"""Loyalty counter and treatment intake.

Every third paid visit earns the customer a free one: once ``loyalty_visits``
reaches ``FREE_VISIT_THRESHOLD`` the next treatment is recorded as free and the
counter starts again from zero.
"""
from __future__ import annotations

from datetime import datetime

from .earnings import calculate_therapist_earnings
from .exceptions import InvalidState, NotFound
from .extensions import db
from .models import Customer, Service, Therapist, TreatmentRecord
from .schemas import CustomerRef
from .storage import unit_of_work
from .summaries import refresh_monthly_summary

FREE_VISIT_THRESHOLD = 3


def free_visit_due(customer: Customer) -> bool:
    return customer.loyalty_visits >= FREE_VISIT_THRESHOLD


def apply_loyalty_transition(
    customer: Customer,
    *,
    price: int,
    visited_at: datetime,
    requested_free: bool | None = None,
) -> bool:
    """Advance the customer's loyalty state for a new treatment.

    Returns whether the treatment is free. Raises ``InvalidState`` when the
    caller explicitly asks for a paid treatment while a free one is due; the
    customer is left untouched in that case.
    """
    if free_visit_due(customer):
        if requested_free is False:
            raise InvalidState(
                f"Customer {customer.customer_id} is due a free visit; the treatment cannot be billed"
            )
        is_free = True
        customer.loyalty_visits = 0
    else:
        is_free = bool(requested_free)
        customer.loyalty_visits += 1

    customer.total_visits += 1
    if not is_free:
        customer.total_spending += price
    customer.last_visit = visited_at
    return is_free


def loyalty_state(customer: Customer, *, was_free_treatment: bool = False) -> dict[str, object]:
    return {
        "customer_id": customer.customer_id,
        "name": customer.name,
        "loyalty_visits": customer.loyalty_visits,
        "next_free_in": FREE_VISIT_THRESHOLD - customer.loyalty_visits,
        "free_visit_due": free_visit_due(customer),
        "was_free_treatment": was_free_treatment,
    }


def _resolve_customer(ref: CustomerRef | None) -> Customer | None:
    if ref is None:
        return None

    if ref.customer_id is not None:
        customer = (
            Customer.query.filter_by(customer_id=ref.customer_id).with_for_update().first()
        )
        if customer is None:
            raise NotFound(f"Customer {ref.customer_id} not found")
        return customer

    customer = Customer.query.filter_by(phone=ref.phone).with_for_update().first()
    if customer is None:
        customer = Customer(
            name=ref.name,
            phone=ref.phone,
            total_visits=0,
            total_spending=0,
            loyalty_visits=0,
        )
        db.session.add(customer)
        db.session.flush()
    return customer


def record_treatment(
    date: datetime,
    customer_ref: CustomerRef | None,
    service_id: int,
    therapist_id: int,
    price: int | None = None,
    tip: int = 0,
    notes: str | None = None,
    is_free_visit: bool | None = None,
) -> dict[str, object]:
    """Log a completed treatment, applying the loyalty rule first.

    Customer update, treatment insert, the therapist's cached totals and any
    stored summary of the treatment's month are committed together; if the
    customer cannot be resolved nothing is written.
    """
    with unit_of_work("record treatment"):
        service = db.session.get(Service, service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found")
        therapist = db.session.get(Therapist, therapist_id)
        if therapist is None:
            raise NotFound(f"Therapist {therapist_id} not found")

        list_price = price if price is not None else service.effective_price
        customer = _resolve_customer(customer_ref)
        if customer is not None:
            free = apply_loyalty_transition(
                customer, price=list_price, visited_at=date, requested_free=is_free_visit
            )
        else:
            free = bool(is_free_visit)

        treatment = TreatmentRecord(
            date=date,
            customer=customer,
            service=service,
            therapist=therapist,
            service_price=0 if free else list_price,
            list_price=list_price,
            tip_amount=tip,
            is_free_visit=free,
            notes=notes,
        )
        db.session.add(treatment)

        therapist.total_treatments += 1
        therapist.total_earnings += calculate_therapist_earnings([treatment], therapist).total
        db.session.flush()
        refresh_monthly_summary(date.month, date.year)

        result = {
            "treatment": treatment.to_dict(),
            "customer_loyalty": (
                loyalty_state(customer, was_free_treatment=free) if customer is not None else None
            ),
        }
    return result


def get_customer_loyalty(customer_id: int) -> dict[str, object]:
    with unit_of_work("load customer loyalty", commit=False):
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found")
        return {**customer.to_dict(), **loyalty_state(customer)}
