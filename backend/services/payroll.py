"""Timesheet review and instructor payment requests.

Approving a timesheet creates its payment request in the same unit of work,
so an approved timesheet without a request can only come from data written
before this rule existed; ``reconcile_missing`` backfills those.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models.payroll import InstructorPayRate, PaymentRequest, PaymentRequestStatus
from models.timesheet import Timesheet, TimesheetStatus
from services.config_service import config_service
from utils import transitions
from utils.errors import ValidationFailedError
from utils.money import to_money

logger = logging.getLogger(__name__)

PROCESS_ACTIONS = {
    "approve": PaymentRequestStatus.APPROVED,
    "reject": PaymentRequestStatus.REJECTED,
    "return_to_hr": PaymentRequestStatus.RETURNED_TO_HR,
}


def pay_rate_on(db: Session, instructor_id: int, on_date: date) -> Optional[InstructorPayRate]:
    return (
        db.query(InstructorPayRate)
        .filter(
            InstructorPayRate.instructor_id == instructor_id,
            InstructorPayRate.is_active.is_(True),
            InstructorPayRate.effective_date <= on_date,
            or_(InstructorPayRate.end_date.is_(None), InstructorPayRate.end_date >= on_date),
        )
        .order_by(InstructorPayRate.effective_date.desc(), InstructorPayRate.id.desc())
        .first()
    )


def resolve_rates(db: Session, instructor_id: int, on_date: date) -> Tuple[Decimal, Decimal]:
    rate = pay_rate_on(db, instructor_id, on_date)
    if rate is not None:
        return to_money(rate.hourly_rate), to_money(rate.course_bonus)
    return to_money(config_service.default_hourly_rate(db)), to_money(config_service.default_course_bonus(db))


def set_pay_rate(db: Session, instructor_id: int, hourly_rate, course_bonus, effective_date: date,
                 notes: str = None, user_id: int = None) -> InstructorPayRate:
    """Open a new rate period; the current open period ends the day before."""
    current = (
        db.query(InstructorPayRate)
        .filter(
            InstructorPayRate.instructor_id == instructor_id,
            InstructorPayRate.is_active.is_(True),
            InstructorPayRate.end_date.is_(None),
        )
        .all()
    )
    for rate in current:
        if rate.effective_date >= effective_date:
            # Superseded before it ever applied
            rate.is_active = False
        else:
            rate.end_date = effective_date - timedelta(days=1)

    new_rate = InstructorPayRate(
        instructor_id=instructor_id,
        hourly_rate=to_money(hourly_rate),
        course_bonus=to_money(course_bonus),
        effective_date=effective_date,
        is_active=True,
        notes=notes,
        created_by=user_id,
    )
    db.add(new_rate)
    db.flush()
    return new_rate


def calculate(hours, courses: int, hourly_rate: Decimal, course_bonus: Decimal) -> dict:
    base = to_money(Decimal(str(hours)) * hourly_rate)
    bonus = to_money(course_bonus * int(courses or 0))
    return {"base_amount": base, "bonus_amount": bonus, "amount": base + bonus}


def _apply_calculation(db: Session, request: PaymentRequest, timesheet: Timesheet) -> None:
    hourly, bonus = resolve_rates(db, timesheet.instructor_id, timesheet.week_start_date)
    totals = calculate(timesheet.total_hours, timesheet.courses_taught, hourly, bonus)
    request.hours = timesheet.total_hours
    request.courses = timesheet.courses_taught
    request.hourly_rate = hourly
    request.course_bonus = bonus
    request.base_amount = totals["base_amount"]
    request.bonus_amount = totals["bonus_amount"]
    request.amount = totals["amount"]


def create_payment_request(db: Session, timesheet: Timesheet) -> PaymentRequest:
    existing = db.query(PaymentRequest).filter(PaymentRequest.timesheet_id == timesheet.id).first()
    if existing is not None:
        return existing
    request = PaymentRequest(
        instructor_id=timesheet.instructor_id,
        timesheet=timesheet,
        status=PaymentRequestStatus.PENDING,
    )
    _apply_calculation(db, request, timesheet)
    db.add(request)
    db.flush()
    logger.info("Payment request %s created for timesheet %s: %s", request.id, timesheet.id, request.amount)
    return request


def review_timesheet(db: Session, timesheet: Timesheet, action: str, comment: str = None,
                     reviewer_id: int = None) -> Optional[PaymentRequest]:
    """Approve or reject a timesheet; approval yields its payment request."""
    if action == "approve":
        target = TimesheetStatus.APPROVED
    elif action == "reject":
        target = TimesheetStatus.REJECTED
    else:
        raise ValidationFailedError("Action must be 'approve' or 'reject'")

    transitions.TIMESHEET.advance(timesheet, target)
    timesheet.hr_comment = comment
    timesheet.reviewed_by = reviewer_id
    timesheet.reviewed_at = datetime.utcnow()
    db.flush()

    if target == TimesheetStatus.APPROVED:
        return create_payment_request(db, timesheet)
    return None


def process_request(db: Session, request: PaymentRequest, action: str, notes: str = None,
                    user_id: int = None) -> PaymentRequest:
    """Accountant decision on a pending request. Validates before touching the row."""
    target = PROCESS_ACTIONS.get(action)
    if target is None:
        raise ValidationFailedError("Action must be one of: " + ", ".join(PROCESS_ACTIONS))
    notes = (notes or "").strip() or None
    if target != PaymentRequestStatus.APPROVED and not notes:
        raise ValidationFailedError("Notes are required to reject or return a payment request")
    transitions.PAYMENT_REQUEST.check(request.status, target)

    transitions.PAYMENT_REQUEST.advance(request, target)
    request.notes = notes
    request.processed_by = user_id
    request.processed_at = datetime.utcnow()
    db.flush()
    return request


def complete_request(db: Session, request: PaymentRequest, payment_method: str = None,
                     user_id: int = None) -> PaymentRequest:
    transitions.PAYMENT_REQUEST.advance(request, PaymentRequestStatus.COMPLETED)
    request.payment_method = payment_method
    request.processed_by = user_id
    request.processed_at = datetime.utcnow()
    db.flush()
    return request


def resubmit_request(db: Session, request: PaymentRequest, notes: str = None, recalculate: bool = True) -> PaymentRequest:
    """HR sends a returned request back to accounting."""
    transitions.PAYMENT_REQUEST.advance(request, PaymentRequestStatus.PENDING)
    if recalculate and request.timesheet is not None:
        _apply_calculation(db, request, request.timesheet)
    if notes:
        request.notes = notes
    request.processed_by = None
    request.processed_at = None
    db.flush()
    return request


def reconcile_missing(db: Session) -> List[PaymentRequest]:
    """Create requests for approved timesheets that have none."""
    orphans = (
        db.query(Timesheet)
        .outerjoin(PaymentRequest, PaymentRequest.timesheet_id == Timesheet.id)
        .filter(Timesheet.status == TimesheetStatus.APPROVED, PaymentRequest.id.is_(None))
        .order_by(Timesheet.id)
        .all()
    )
    created = [create_payment_request(db, ts) for ts in orphans]
    if created:
        logger.warning("Backfilled %s missing payment requests", len(created))
    return created
