# backend/routes/analytics.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date
from pydantic import BaseModel
from typing import Dict, Optional

from database import get_db
from models.course import CourseRequest, CourseStatus
from models.invoice import Invoice, InvoiceStatus, Payment, PaymentStatus
from models.payroll import PaymentRequest, PaymentRequestStatus
from models.timesheet import Timesheet, TimesheetStatus
from models.users import Role, User
from models.vendor import VendorInvoice, VendorInvoiceStatus
from schemas.common import Envelope, ok
from services import billing
from utils.money import ZERO, to_money
from utils.tokenJWT import role_required

router = APIRouter(tags=["Analytics"])


# === Pydantic Response Schemas ===

class CourseRequestAnalytics(BaseModel):
    total: int
    by_status: Dict[str, int]
    upcoming: int
    students_registered: int
    students_attended: int


class AdminDashboardSummary(BaseModel):
    courses_by_status: Dict[str, int]
    unassigned_courses: int
    pending_timesheets: int
    pending_payment_verifications: int
    vendor_invoices_awaiting_review: int
    pending_payment_requests: int


class AccountingDashboard(BaseModel):
    total_invoiced: float
    total_paid: float
    outstanding: float
    overdue_count: int
    overdue_amount: float
    billing_queue_size: int
    pending_payment_verifications: int
    vendor_invoices_to_pay: int
    last_invoice_date: Optional[date] = None


def _course_counts(db: Session, organization_id: int = None) -> Dict[str, int]:
    query = db.query(CourseRequest.status, func.count(CourseRequest.id))
    if organization_id is not None:
        query = query.filter(CourseRequest.organization_id == organization_id)
    counts = {s.value: 0 for s in CourseStatus}
    for row_status, count in query.group_by(CourseRequest.status).all():
        counts[CourseStatus(row_status).value] = count
    return counts


# === Endpoint 1: Organization course requests ===

@router.get("/organization/analytics/course-requests", response_model=Envelope[CourseRequestAnalytics])
def organization_course_analytics(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ORGANIZATION)),
):
    org_id = current_user.organization_id
    by_status = _course_counts(db, org_id)

    upcoming = db.query(func.count(CourseRequest.id)).filter(
        CourseRequest.organization_id == org_id,
        CourseRequest.status.in_([CourseStatus.PENDING, CourseStatus.CONFIRMED]),
        CourseRequest.scheduled_date >= date.today(),
    ).scalar()

    # Attendance totals only count finished courses
    completed = db.query(CourseRequest).filter(
        CourseRequest.organization_id == org_id,
        CourseRequest.status == CourseStatus.COMPLETED,
    ).all()

    return ok({
        "total": sum(by_status.values()),
        "by_status": by_status,
        "upcoming": upcoming or 0,
        "students_registered": sum(c.registered_students or 0 for c in completed),
        "students_attended": sum(c.attended_count for c in completed),
    })


# === Endpoint 2: Admin dashboard ===

@router.get("/admin/dashboard-summary", response_model=Envelope[AdminDashboardSummary])
def admin_dashboard_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN, Role.SYSADMIN)),
):
    unassigned = db.query(func.count(CourseRequest.id)).filter(
        CourseRequest.status == CourseStatus.PENDING,
        CourseRequest.instructor_id.is_(None),
    ).scalar()

    return ok({
        "courses_by_status": _course_counts(db),
        "unassigned_courses": unassigned or 0,
        "pending_timesheets": db.query(Timesheet).filter(Timesheet.status == TimesheetStatus.PENDING).count(),
        "pending_payment_verifications": db.query(Payment).filter(
            Payment.status == PaymentStatus.PENDING_VERIFICATION).count(),
        "vendor_invoices_awaiting_review": db.query(VendorInvoice).filter(
            VendorInvoice.status == VendorInvoiceStatus.SUBMITTED).count(),
        "pending_payment_requests": db.query(PaymentRequest).filter(
            PaymentRequest.status == PaymentRequestStatus.PENDING).count(),
    })


# === Endpoint 3: Accounting dashboard ===

@router.get("/accounting/dashboard", response_model=Envelope[AccountingDashboard])
def accounting_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ACCOUNTANT, Role.ADMIN)),
):
    invoices = db.query(Invoice).all()
    overdue = [i for i in invoices if i.status == InvoiceStatus.OVERDUE]
    last_invoice_date = db.query(func.max(Invoice.invoice_date)).scalar()

    return ok({
        "total_invoiced": sum((to_money(i.amount) for i in invoices), ZERO),
        "total_paid": sum((i.verified_total for i in invoices), ZERO),
        "outstanding": sum((i.balance_due for i in invoices), ZERO),
        "overdue_count": len(overdue),
        "overdue_amount": sum((i.balance_due for i in overdue), ZERO),
        "billing_queue_size": len(billing.billing_queue(db)),
        "pending_payment_verifications": db.query(Payment).filter(
            Payment.status == PaymentStatus.PENDING_VERIFICATION).count(),
        "vendor_invoices_to_pay": db.query(VendorInvoice).filter(
            VendorInvoice.status == VendorInvoiceStatus.SENT_TO_ACCOUNTING).count(),
        "last_invoice_date": last_invoice_date,
    })
