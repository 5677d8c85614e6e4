# backend/routes/accounting.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session, joinedload
from datetime import date
from typing import List, Optional, Literal

from database import get_db
from models.course import CourseRequest, CourseType
from models.invoice import CoursePricing, Invoice, InvoiceStatus, Payment, PaymentStatus
from models.users import Organization, Role, User
from schemas import invoice as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import billing, notifications
from services.config_service import config_service
from utils.audit import write_log, client_ip
from utils.pdf import generate_invoice_pdf, get_pdf_path
from utils.tokenJWT import role_required

router = APIRouter(prefix="/accounting", tags=["Accounting"])

accountant = role_required(Role.ACCOUNTANT, Role.ADMIN)


def _get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(joinedload(Invoice.payments), joinedload(Invoice.organization))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _get_payment(db: Session, payment_id: int) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


# =========================
# PRICING
# =========================
@router.get("/course-pricing", response_model=Envelope[List[schemas.PricingResponse]])
def list_pricing(
    organization_id: Optional[int] = Query(None),
    active_only: bool = Query(True),
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    query = db.query(CoursePricing)
    if organization_id is not None:
        query = query.filter(CoursePricing.organization_id == organization_id)
    if active_only:
        query = query.filter(CoursePricing.is_active.is_(True))
    return ok(query.order_by(CoursePricing.organization_id, CoursePricing.course_type_id).all())


@router.post("/course-pricing", response_model=Envelope[schemas.PricingResponse], status_code=status.HTTP_201_CREATED)
def create_pricing(
    payload: schemas.PricingCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    if not db.query(Organization.id).filter(Organization.id == payload.organization_id).first():
        raise HTTPException(status_code=404, detail="Organization not found")
    if not db.query(CourseType.id).filter(CourseType.id == payload.course_type_id).first():
        raise HTTPException(status_code=404, detail="Course type not found")

    pricing = billing.set_price(db, payload.organization_id, payload.course_type_id,
                                payload.price_per_student, payload.effective_date, current_user.id)
    db.commit()
    db.refresh(pricing)

    write_log(db, user_id=current_user.id, action="PRICING_SET", resource="pricing", ip=client_ip(request),
              meta={"id": pricing.id, "price": str(pricing.price_per_student)})
    return ok(pricing)


@router.put("/course-pricing/{pricing_id}", response_model=Envelope[schemas.PricingResponse])
def update_pricing(
    pricing_id: int,
    payload: schemas.PricingUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    pricing = db.query(CoursePricing).filter(CoursePricing.id == pricing_id).first()
    if not pricing:
        raise HTTPException(status_code=404, detail="Pricing not found")

    if payload.price_per_student is not None:
        pricing.price_per_student = payload.price_per_student
    if payload.is_active is True and not pricing.is_active:
        # Reactivating replaces whichever price is active for the pair
        db.query(CoursePricing).filter(
            CoursePricing.organization_id == pricing.organization_id,
            CoursePricing.course_type_id == pricing.course_type_id,
            CoursePricing.id != pricing.id,
        ).update({CoursePricing.is_active: False}, synchronize_session="fetch")
    if payload.is_active is not None:
        pricing.is_active = payload.is_active
    db.commit()
    db.refresh(pricing)

    write_log(db, user_id=current_user.id, action="PRICING_UPDATE", resource="pricing",
              ip=client_ip(request), meta={"id": pricing.id})
    return ok(pricing)


# =========================
# BILLING QUEUE & INVOICES
# =========================
@router.get("/billing-queue", response_model=Envelope[List[schemas.BillingQueueItem]])
def get_billing_queue(db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    return ok(billing.billing_queue(db))


@router.post("/invoices", response_model=Envelope[schemas.InvoiceResponse], status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: schemas.InvoiceCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = billing.create_invoice(db, payload.course_id, current_user.id)
    db.commit()
    db.refresh(invoice)

    write_log(db, user_id=current_user.id, action="INVOICE_CREATE", resource="invoices", ip=client_ip(request),
              meta={"invoice_id": invoice.id, "number": invoice.invoice_number, "amount": str(invoice.amount)})
    return ok(invoice, message=f"Invoice {invoice.invoice_number} created")


@router.get("/invoices", response_model=Envelope[Page[schemas.InvoiceResponse]])
def list_invoices(
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    organization_id: Optional[int] = Query(None),
    q: Optional[str] = Query(None, description="Invoice number contains"),
    posted: Optional[bool] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["invoice_date", "due_date", "amount", "id"] = "invoice_date",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    query = db.query(Invoice).options(joinedload(Invoice.organization))
    if invoice_status:
        query = query.filter(Invoice.status == invoice_status)
    if organization_id is not None:
        query = query.filter(Invoice.organization_id == organization_id)
    if posted is not None:
        query = query.filter(Invoice.posted_to_org.is_(posted))
    if date_from:
        query = query.filter(Invoice.invoice_date >= date_from)
    if date_to:
        query = query.filter(Invoice.invoice_date <= date_to)
    query = billing.search_invoices(query, q)

    sort_map = {
        "invoice_date": Invoice.invoice_date,
        "due_date": Invoice.due_date,
        "amount": Invoice.amount,
        "id": Invoice.id,
    }
    col = sort_map.get(sort_by, Invoice.invoice_date)
    query = query.order_by(col.asc() if order == "asc" else col.desc(), Invoice.id.desc())
    return ok(paginate(query, page, page_size))


@router.get("/invoices/{invoice_id}", response_model=Envelope[schemas.InvoiceDetail])
def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    return ok(_get_invoice(db, invoice_id))


@router.put("/invoices/{invoice_id}/post-to-org", response_model=Envelope[schemas.InvoiceResponse])
def post_invoice_to_org(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = _get_invoice(db, invoice_id)
    billing.post_to_organization(invoice)
    db.commit()
    db.refresh(invoice)
    notifications.invoice_posted(db, invoice)
    db.commit()

    write_log(db, user_id=current_user.id, action="INVOICE_POST", resource="invoices",
              ip=client_ip(request), meta={"invoice_id": invoice.id})
    return ok(invoice, message="Invoice posted to organization")


@router.get("/invoices/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = _get_invoice(db, invoice_id)
    course = db.query(CourseRequest).filter(CourseRequest.id == invoice.course_request_id).first()
    out_path = get_pdf_path(invoice.invoice_number)
    company = {
        "name": config_service.get(db, "company_name", "CPR Training Services"),
        "address": config_service.get(db, "company_address", ""),
    }
    generate_invoice_pdf(invoice, course, out_path, company=company)

    write_log(db, user_id=current_user.id, action="INVOICE_PDF", resource="invoices",
              ip=client_ip(request), meta={"invoice_id": invoice.id})
    return FileResponse(path=str(out_path), media_type="application/pdf", filename=f"{invoice.invoice_number}.pdf")


# =========================
# PAYMENTS
# =========================
@router.post("/invoices/{invoice_id}/payments", response_model=Envelope[schemas.PaymentResponse],
             status_code=status.HTTP_201_CREATED)
def record_payment(
    invoice_id: int,
    payload: schemas.PaymentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = _get_invoice(db, invoice_id)
    payment = billing.record_payment(db, invoice, user_id=current_user.id, **payload.model_dump())
    db.commit()
    db.refresh(payment)

    write_log(db, user_id=current_user.id, action="PAYMENT_RECORD", resource="payments", ip=client_ip(request),
              meta={"invoice_id": invoice.id, "payment_id": payment.id, "amount": str(payment.amount)})
    return ok(payment)


@router.get("/payment-verifications", response_model=Envelope[List[schemas.PaymentResponse]])
def pending_verifications(db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    payments = (
        db.query(Payment)
        .options(joinedload(Payment.invoice))
        .filter(Payment.status == PaymentStatus.PENDING_VERIFICATION)
        .order_by(Payment.submitted_by_org_at.asc(), Payment.id.asc())
        .all()
    )
    return ok(payments)


@router.post("/payments/{payment_id}/verify", response_model=Envelope[schemas.PaymentResponse])
def verify_payment(
    payment_id: int,
    payload: schemas.PaymentVerify,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    payment = _get_payment(db, payment_id)
    billing.verify_payment(db, payment, payload.action, payload.notes, current_user.id)
    db.commit()
    db.refresh(payment)
    notifications.payment_reviewed(db, payment)
    db.commit()

    write_log(db, user_id=current_user.id, action="PAYMENT_VERIFY", resource="payments", ip=client_ip(request),
              meta={"payment_id": payment.id, "result": payment.status.value})
    return ok(payment)


@router.post("/payments/{payment_id}/reverse", response_model=Envelope[schemas.PaymentResponse])
def reverse_payment(
    payment_id: int,
    payload: schemas.PaymentReverse,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    payment = _get_payment(db, payment_id)
    billing.reverse_payment(db, payment, payload.reason, current_user.id)
    db.commit()
    db.refresh(payment)

    write_log(db, user_id=current_user.id, action="PAYMENT_REVERSE", resource="payments", ip=client_ip(request),
              meta={"payment_id": payment.id, "reason": payload.reason})
    return ok(payment)


@router.post("/trigger-overdue-update", response_model=Envelope[schemas.OverdueUpdateResult])
def trigger_overdue_update(request: Request, db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    updated = billing.mark_overdue(db)
    db.commit()

    write_log(db, user_id=current_user.id, action="INVOICE_OVERDUE_UPDATE", resource="invoices",
              ip=client_ip(request), meta={"updated": updated})
    return ok({"updated": updated})
