"""Organization invoicing: billing queue, invoice creation and payment lifecycle.

Functions here flush but never commit; the calling route commits once so
each request stays a single transaction.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from models.course import CourseRequest, CourseStatus
from models.invoice import CoursePricing, Invoice, InvoiceSequence, InvoiceStatus, Payment, PaymentStatus
from services.config_service import config_service
from utils import transitions
from utils.errors import ConflictError, NotFoundError, ValidationFailedError
from utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def active_price(db: Session, organization_id: int, course_type_id: int, on_date: date = None) -> Optional[CoursePricing]:
    on_date = on_date or date.today()
    return (
        db.query(CoursePricing)
        .filter(
            CoursePricing.organization_id == organization_id,
            CoursePricing.course_type_id == course_type_id,
            CoursePricing.is_active.is_(True),
            CoursePricing.effective_date <= on_date,
        )
        .order_by(CoursePricing.effective_date.desc(), CoursePricing.id.desc())
        .first()
    )


def set_price(db: Session, organization_id: int, course_type_id: int, price: Decimal,
              effective_date: date = None, user_id: int = None) -> CoursePricing:
    """Store a new active price, deactivating the previous one for the same pair."""
    (
        db.query(CoursePricing)
        .filter(
            CoursePricing.organization_id == organization_id,
            CoursePricing.course_type_id == course_type_id,
            CoursePricing.is_active.is_(True),
        )
        .update({CoursePricing.is_active: False}, synchronize_session="fetch")
    )
    pricing = CoursePricing(
        organization_id=organization_id,
        course_type_id=course_type_id,
        price_per_student=to_money(price),
        effective_date=effective_date or date.today(),
        is_active=True,
        created_by=user_id,
    )
    db.add(pricing)
    db.flush()
    return pricing


def _queue_query(db: Session):
    return (
        db.query(CourseRequest)
        .options(
            joinedload(CourseRequest.students),
            joinedload(CourseRequest.organization),
            joinedload(CourseRequest.course_type),
            joinedload(CourseRequest.instructor),
        )
        .filter(
            CourseRequest.status == CourseStatus.COMPLETED,
            CourseRequest.ready_for_billing_at.isnot(None),
            CourseRequest.invoiced.is_(False),
        )
        .order_by(CourseRequest.ready_for_billing_at.asc())
    )


def billing_queue(db: Session) -> List[dict]:
    """Completed, billable courses that have no invoice yet, priced per attendee."""
    rows = []
    for course in _queue_query(db).all():
        price = active_price(db, course.organization_id, course.course_type_id)
        if price is None:
            logger.warning("Course %s is ready for billing but has no active pricing", course.id)
            continue
        attended = course.attended_count
        rows.append({
            "course_id": course.id,
            "organization_id": course.organization_id,
            "organization_name": course.organization_name,
            "course_type_name": course.course_type_name,
            "location": course.location,
            "scheduled_date": course.scheduled_date,
            "completed_at": course.completed_at,
            "ready_for_billing_at": course.ready_for_billing_at,
            "instructor_name": course.instructor_name,
            "registered_students": course.registered_students,
            "attended_students": attended,
            "rate_per_student": to_money(price.price_per_student),
            "base_amount": to_money(Decimal(price.price_per_student) * attended),
        })
    return rows


def next_invoice_number(db: Session, year: int) -> str:
    seq = (
        db.query(InvoiceSequence)
        .filter(InvoiceSequence.year == year)
        .with_for_update()
        .first()
    )
    if seq is None:
        seq = InvoiceSequence(year=year, last_value=0)
        db.add(seq)
    seq.last_value = (seq.last_value or 0) + 1
    db.flush()
    return f"INV-{year}-{seq.last_value:06d}"


def create_invoice(db: Session, course_id: int, user_id: int = None, today: date = None) -> Invoice:
    today = today or date.today()
    course = (
        db.query(CourseRequest)
        .filter(CourseRequest.id == course_id)
        .with_for_update()
        .first()
    )
    if course is None:
        raise NotFoundError("Course not found")
    if course.invoiced or db.query(Invoice.id).filter(Invoice.course_request_id == course.id).first():
        raise ConflictError("Course has already been invoiced")
    if course.status != CourseStatus.COMPLETED or course.ready_for_billing_at is None:
        raise ValidationFailedError("Course is not ready for billing")

    price = active_price(db, course.organization_id, course.course_type_id, today)
    if price is None:
        raise NotFoundError("No active pricing for this organization and course type")

    attended = course.attended_count
    if attended == 0:
        raise ValidationFailedError("No attended students to bill")

    rate = to_money(price.price_per_student)
    base = to_money(rate * attended)
    tax = to_money(base * config_service.invoice_tax_rate(db))
    invoice = Invoice(
        invoice_number=next_invoice_number(db, today.year),
        course_request_id=course.id,
        organization_id=course.organization_id,
        invoice_date=today,
        due_date=today + timedelta(days=config_service.invoice_due_days(db)),
        students_billed=attended,
        rate_per_student=rate,
        base_amount=base,
        tax_amount=tax,
        amount=base + tax,
        status=InvoiceStatus.PENDING,
        created_by=user_id,
    )
    db.add(invoice)
    course.invoiced = True
    course.invoiced_at = datetime.utcnow()
    db.flush()
    logger.info("Invoice %s created for course %s (%s)", invoice.invoice_number, course.id, invoice.amount)
    return invoice


def refresh_invoice_status(invoice: Invoice, today: date = None) -> InvoiceStatus:
    """Derive the invoice status from its payments and due date."""
    today = today or date.today()
    if invoice.verified_total >= to_money(invoice.amount):
        target = InvoiceStatus.PAID
    elif invoice.has_pending_payments:
        target = InvoiceStatus.PAYMENT_SUBMITTED
    elif invoice.due_date and invoice.due_date < today:
        target = InvoiceStatus.OVERDUE
    else:
        target = InvoiceStatus.PENDING

    if target != invoice.status:
        transitions.INVOICE.advance(invoice, target)

    if target == InvoiceStatus.PAID:
        verified_dates = [p.payment_date for p in invoice.payments if p.status == PaymentStatus.VERIFIED]
        invoice.paid_date = max(verified_dates) if verified_dates else today
    else:
        invoice.paid_date = None
    return target


def post_to_organization(invoice: Invoice) -> Invoice:
    if invoice.posted_to_org:
        raise ConflictError("Invoice has already been posted to the organization")
    invoice.posted_to_org = True
    invoice.posted_to_org_at = datetime.utcnow()
    return invoice


def _check_amount(invoice: Invoice, amount: Decimal) -> Decimal:
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationFailedError("Payment amount must be greater than zero")
    if invoice.status == InvoiceStatus.PAID:
        raise ConflictError("Invoice is already paid")
    # Submissions still awaiting verification count against the balance
    available = to_money(invoice.amount) - invoice.verified_total - invoice.pending_total
    if amount > available:
        raise ValidationFailedError(
            f"Payment amount {amount} exceeds balance due {max(available, ZERO)}"
        )
    return amount


def record_payment(db: Session, invoice: Invoice, *, amount, payment_date: date, payment_method: str = None,
                   reference_number: str = None, notes: str = None, user_id: int = None) -> Payment:
    """Accounting-recorded payment; verified on entry."""
    amount = _check_amount(invoice, amount)
    now = datetime.utcnow()
    payment = Payment(
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method,
        reference_number=reference_number,
        notes=notes,
        status=PaymentStatus.VERIFIED,
        submitted_by=user_id,
        verified_by=user_id,
        verified_at=now,
    )
    invoice.payments.append(payment)
    refresh_invoice_status(invoice)
    db.flush()
    return payment


def submit_payment(db: Session, invoice: Invoice, *, amount, payment_date: date, payment_method: str = None,
                   reference_number: str = None, notes: str = None, user_id: int = None) -> Payment:
    """Organization-reported payment awaiting accounting verification."""
    if not invoice.posted_to_org:
        raise NotFoundError("Invoice not found")
    amount = _check_amount(invoice, amount)
    payment = Payment(
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method,
        reference_number=reference_number,
        notes=notes,
        status=PaymentStatus.PENDING_VERIFICATION,
        submitted_by=user_id,
        submitted_by_org_at=datetime.utcnow(),
    )
    invoice.payments.append(payment)
    refresh_invoice_status(invoice)
    db.flush()
    return payment


def verify_payment(db: Session, payment: Payment, action: str, notes: str = None, user_id: int = None) -> Payment:
    notes = (notes or "").strip() or None
    if action == "approve":
        target = PaymentStatus.VERIFIED
    elif action == "reject":
        if not notes:
            raise ValidationFailedError("Notes are required when rejecting a payment")
        target = PaymentStatus.REJECTED
    else:
        raise ValidationFailedError("Action must be 'approve' or 'reject'")

    transitions.PAYMENT.check(payment.status, target)
    invoice = payment.invoice
    if target == PaymentStatus.VERIFIED and invoice.verified_total + to_money(payment.amount) > to_money(invoice.amount):
        raise ConflictError(
            f"Verifying this payment would exceed the invoice amount {to_money(invoice.amount)}",
            details={"verified_total": str(invoice.verified_total), "payment_amount": str(to_money(payment.amount))},
        )

    transitions.PAYMENT.advance(payment, target)
    payment.verified_by = user_id
    payment.verified_at = datetime.utcnow()
    payment.verification_notes = notes
    refresh_invoice_status(payment.invoice)
    db.flush()
    return payment


def reverse_payment(db: Session, payment: Payment, reason: str, user_id: int = None, now: datetime = None) -> Payment:
    now = now or datetime.utcnow()
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailedError("A reason is required to reverse a payment")
    transitions.PAYMENT.check(payment.status, PaymentStatus.REVERSED)

    window = timedelta(hours=config_service.payment_reversal_window_hours(db))
    if payment.verified_at is None or now - payment.verified_at > window:
        raise ValidationFailedError(
            f"Payments can only be reversed within {int(window.total_seconds() // 3600)} hours of verification"
        )

    transitions.PAYMENT.advance(payment, PaymentStatus.REVERSED)
    payment.reversed_by = user_id
    payment.reversed_at = now
    payment.reversal_reason = reason
    refresh_invoice_status(payment.invoice)
    db.flush()
    return payment


def mark_overdue(db: Session, today: date = None) -> int:
    """Move unpaid invoices past their due date to overdue."""
    today = today or date.today()
    invoices = (
        db.query(Invoice)
        .filter(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date < today)
        .all()
    )
    for invoice in invoices:
        refresh_invoice_status(invoice, today)
    db.flush()
    changed = sum(1 for i in invoices if i.status == InvoiceStatus.OVERDUE)
    if changed:
        logger.info("Marked %s invoices overdue", changed)
    return changed


def organization_summary(db: Session, organization_id: int) -> dict:
    invoices = (
        db.query(Invoice)
        .options(joinedload(Invoice.payments))
        .filter(Invoice.organization_id == organization_id, Invoice.posted_to_org.is_(True))
        .all()
    )
    total_invoiced = sum((to_money(i.amount) for i in invoices), ZERO)
    total_paid = sum((i.verified_total for i in invoices), ZERO)
    outstanding = sum((i.balance_due for i in invoices), ZERO)
    return {
        "invoice_count": len(invoices),
        "total_invoiced": total_invoiced,
        "total_paid": to_money(total_paid),
        "outstanding": to_money(outstanding),
        "overdue_count": sum(1 for i in invoices if i.status == InvoiceStatus.OVERDUE),
        "payment_submitted_count": sum(1 for i in invoices if i.status == InvoiceStatus.PAYMENT_SUBMITTED),
    }


def search_invoices(query, q: Optional[str]):
    if not q:
        return query
    return query.filter(Invoice.invoice_number.ilike(f"%{q}%"))
