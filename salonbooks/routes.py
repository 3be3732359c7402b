"""HTTP routes for the SalonBooks backend."""
from __future__ import annotations

from datetime import date

from flask import Blueprint, Flask, current_app, jsonify, request
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import earnings, ledger, loyalty, reporting
from .exceptions import InvalidState, LedgerError, NotFound
from .extensions import db
from .schemas import (
    AutoDailyEntryRequest,
    DailyEntryRequest,
    DateRangeQuery,
    DayQuery,
    MonthQuery,
    OptionalDayQuery,
    ReportQuery,
    TherapistFeesRequest,
    TreatmentIntakeRequest,
)

bp = Blueprint("api", __name__)

_STATUS_BY_ERROR = {
    NotFound: 404,
    InvalidState: 409,
}


def register_routes(app: Flask) -> None:
    app.register_blueprint(bp)


def _invalid_payload(exc: ValidationError) -> tuple[object, int]:
    details = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return jsonify({"error": "invalid_payload", "details": details}), 400


def _ledger_error(exc: LedgerError, action: str) -> tuple[object, int]:
    status = _STATUS_BY_ERROR.get(type(exc), 500)
    if status == 500:
        current_app.logger.exception("Failed to %s", action, exc_info=exc)
    return jsonify({"error": exc.error_code, "message": exc.message}), status


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """Expose a simple uptime check endpoint."""
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Treatment intake ---


@bp.post("/treatments")
def create_treatment() -> tuple[dict[str, object], int]:
    """Record a completed treatment and apply the loyalty rule.
    ---
    tags:
      - Treatments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            date:
              type: string
              format: date-time
            customer:
              type: object
              properties:
                customer_id:
                  type: integer
                name:
                  type: string
                phone:
                  type: string
            service_id:
              type: integer
            therapist_id:
              type: integer
            price:
              type: integer
            tip:
              type: integer
            is_free_visit:
              type: boolean
            notes:
              type: string
          required:
            - date
            - service_id
            - therapist_id
    responses:
      201:
        description: Treatment recorded
      400:
        description: Invalid payload
      404:
        description: Customer, service or therapist not found
      409:
        description: Paid treatment requested while a free visit is due
    """
    try:
        payload = TreatmentIntakeRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        result = loyalty.record_treatment(
            date=payload.date,
            customer_ref=payload.customer,
            service_id=payload.service_id,
            therapist_id=payload.therapist_id,
            price=payload.price,
            tip=payload.tip,
            notes=payload.notes,
            is_free_visit=payload.is_free_visit,
        )
    except LedgerError as exc:
        return _ledger_error(exc, "record treatment")

    loyalty_state = result["customer_loyalty"]
    if loyalty_state and loyalty_state["was_free_treatment"]:
        message = "Free treatment recorded, customer loyalty reset"
    else:
        message = "Treatment recorded"
    return jsonify({"message": message, **result}), 201


@bp.get("/customers/<int:customer_id>/loyalty")
def get_customer_loyalty(customer_id: int) -> tuple[dict[str, object], int]:
    try:
        return jsonify(loyalty.get_customer_loyalty(customer_id)), 200
    except LedgerError as exc:
        return _ledger_error(exc, "load customer loyalty")


# --- Therapist earnings ---


@bp.get("/therapists")
def list_therapists() -> tuple[dict[str, object], int]:
    """Active therapists with today's treatment count and this month's stats.
    ---
    tags:
      - Therapists
    parameters:
      - name: date
        in: query
        type: string
        format: date
        required: false
    responses:
      200:
        description: Therapist payroll overview
      400:
        description: Invalid date
    """
    try:
        query = OptionalDayQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        therapists = earnings.list_therapists_with_performance(query.date or date.today())
    except LedgerError as exc:
        return _ledger_error(exc, "list therapists")

    return jsonify({"therapists": therapists, "total": len(therapists)}), 200


@bp.get("/therapists/<int:therapist_id>/performance")
def get_therapist_performance(therapist_id: int) -> tuple[dict[str, object], int]:
    try:
        return jsonify(earnings.get_therapist_performance(therapist_id)), 200
    except LedgerError as exc:
        return _ledger_error(exc, "load therapist performance")


@bp.get("/therapists/<int:therapist_id>/earnings")
def get_therapist_earnings(therapist_id: int) -> tuple[dict[str, object], int]:
    """Daily earnings with ``?date=``, monthly earnings with ``?month=&year=``."""
    args = request.args.to_dict()
    try:
        if "date" in args:
            query = DayQuery.model_validate(args)
            result = earnings.get_daily_therapist_earnings(therapist_id, query.date)
            scope = {"date": query.date.isoformat()}
        else:
            query = MonthQuery.model_validate(args)
            result = earnings.get_monthly_therapist_earnings(therapist_id, query.month, query.year)
            scope = {"month": query.month, "year": query.year}
    except ValidationError as exc:
        return _invalid_payload(exc)
    except LedgerError as exc:
        return _ledger_error(exc, "calculate therapist earnings")

    return jsonify({"therapist_id": therapist_id, **scope, "earnings": result.to_dict()}), 200


@bp.put("/therapists/<int:therapist_id>/fees")
def update_therapist_fees(therapist_id: int) -> tuple[dict[str, object], int]:
    try:
        payload = TherapistFeesRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        therapist = earnings.update_therapist_fees(
            therapist_id,
            base_fee_per_treatment=payload.base_fee_per_treatment,
            commission_rate=payload.commission_rate,
        )
    except LedgerError as exc:
        return _ledger_error(exc, "update therapist fees")

    return jsonify({"message": "Therapist fees updated", "therapist": therapist.to_dict()}), 200


@bp.post("/therapists/<int:therapist_id>/refresh-totals")
def refresh_therapist_totals(therapist_id: int) -> tuple[dict[str, object], int]:
    try:
        therapist = earnings.refresh_therapist_totals(therapist_id)
    except LedgerError as exc:
        return _ledger_error(exc, "refresh therapist totals")
    return jsonify({"therapist": therapist.to_dict()}), 200


# --- Bookkeeping ledger ---


@bp.get("/bookkeeping/daily")
def list_daily_entries() -> tuple[dict[str, object], int]:
    try:
        query = DateRangeQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        entries = ledger.list_entries(query.start, query.end)
    except LedgerError as exc:
        return _ledger_error(exc, "list ledger entries")

    return jsonify({"entries": [entry.to_dict() for entry in entries], "total": len(entries)}), 200


@bp.post("/bookkeeping/daily")
def upsert_daily_entry() -> tuple[dict[str, object], int]:
    """Create or replace a day's ledger entry.
    ---
    tags:
      - Bookkeeping
    responses:
      200:
        description: Entry stored; later running totals recomputed
      400:
        description: Invalid payload
      500:
        description: Storage failure, nothing was written
    """
    try:
        payload = DailyEntryRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        entry = ledger.upsert_daily_entry(**payload.model_dump())
    except LedgerError as exc:
        return _ledger_error(exc, "store ledger entry")

    return jsonify({"message": "Ledger entry saved", "entry": entry.to_dict()}), 200


@bp.post("/bookkeeping/daily/auto")
def auto_calculate_daily_entry() -> tuple[dict[str, object], int]:
    try:
        payload = AutoDailyEntryRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        entry = ledger.auto_calculate_daily_entry(**payload.model_dump())
    except LedgerError as exc:
        return _ledger_error(exc, "auto-calculate ledger entry")

    return jsonify({"message": "Ledger entry calculated", "entry": entry.to_dict()}), 200


@bp.delete("/bookkeeping/daily/<string:entry_date>")
def delete_daily_entry(entry_date: str) -> tuple[dict[str, object], int]:
    try:
        day = date.fromisoformat(entry_date)
    except ValueError:
        return jsonify({"error": "invalid_payload", "message": "Invalid date format, use YYYY-MM-DD"}), 400

    try:
        ledger.delete_daily_entry(day)
    except LedgerError as exc:
        return _ledger_error(exc, "delete ledger entry")

    return jsonify({"message": "Ledger entry deleted", "date": day.isoformat()}), 200


@bp.get("/bookkeeping/analytics")
def bookkeeping_analytics() -> tuple[dict[str, object], int]:
    try:
        query = DateRangeQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        return jsonify(ledger.get_bookkeeping_analytics(query.start, query.end)), 200
    except LedgerError as exc:
        return _ledger_error(exc, "build bookkeeping analytics")


@bp.get("/bookkeeping/monthly")
def monthly_summary() -> tuple[dict[str, object], int]:
    try:
        query = MonthQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        return jsonify(reporting.get_monthly_summary(query.month, query.year)), 200
    except LedgerError as exc:
        return _ledger_error(exc, "load monthly summary")


@bp.post("/bookkeeping/monthly/close")
def close_month() -> tuple[dict[str, object], int]:
    try:
        payload = MonthQuery.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        summary = reporting.close_month(payload.month, payload.year)
    except LedgerError as exc:
        return _ledger_error(exc, "close month")

    return jsonify({"message": "Month closed", "summary": summary.to_dict()}), 200


@bp.delete("/bookkeeping/monthly")
def delete_monthly_summary() -> tuple[dict[str, object], int]:
    try:
        query = MonthQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        reporting.delete_monthly_summary(query.month, query.year)
    except LedgerError as exc:
        return _ledger_error(exc, "delete monthly summary")

    return jsonify({"message": "Monthly summary deleted"}), 200


# --- Reports ---


@bp.get("/reports")
def get_report() -> tuple[dict[str, object], int]:
    """Revenue, treatments, customers and therapist fees for a day/week/month/year."""
    try:
        query = ReportQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _invalid_payload(exc)

    try:
        report = reporting.get_report(query.period, query.date or date.today())
    except LedgerError as exc:
        return _ledger_error(exc, "build report")

    return jsonify(report), 200
