from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, joinedload
from typing import Optional

from database import get_db
from models.invoice import Invoice, InvoiceStatus
from models.users import Role, User
from schemas import invoice as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import billing, notifications
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(prefix="/organization", tags=["Organization"])

org_only = role_required(Role.ORGANIZATION)


def _visible_invoices(db: Session, user: User):
    # Organizations only see invoices accounting has posted to them
    return (
        db.query(Invoice)
        .options(joinedload(Invoice.payments))
        .filter(Invoice.organization_id == user.organization_id, Invoice.posted_to_org.is_(True))
    )


def _get_invoice(db: Session, invoice_id: int, user: User) -> Invoice:
    invoice = _visible_invoices(db, user).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.get("/invoices", response_model=Envelope[Page[schemas.InvoiceResponse]])
def list_invoices(
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(org_only),
):
    query = _visible_invoices(db, current_user)
    if invoice_status:
        query = query.filter(Invoice.status == invoice_status)
    query = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
    return ok(paginate(query, page, page_size))


@router.get("/invoices/{invoice_id}", response_model=Envelope[schemas.InvoiceDetail])
def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(org_only)):
    return ok(_get_invoice(db, invoice_id, current_user))


@router.post("/invoices/{invoice_id}/payment-submission", response_model=Envelope[schemas.PaymentResponse],
             status_code=status.HTTP_201_CREATED)
def submit_payment(
    invoice_id: int,
    payload: schemas.PaymentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(org_only),
):
    invoice = _get_invoice(db, invoice_id, current_user)
    payment = billing.submit_payment(db, invoice, user_id=current_user.id, **payload.model_dump())
    db.commit()
    db.refresh(payment)
    notifications.payment_submitted(db, payment)
    db.commit()

    write_log(db, user_id=current_user.id, action="PAYMENT_SUBMIT", resource="payments", ip=client_ip(request),
              meta={"invoice_id": invoice.id, "payment_id": payment.id, "amount": str(payment.amount)})
    return ok(payment, message="Payment submitted for verification")


@router.get("/billing-summary", response_model=Envelope[schemas.OrganizationBillingSummary])
def billing_summary(db: Session = Depends(get_db), current_user: User = Depends(org_only)):
    return ok(billing.organization_summary(db, current_user.organization_id))
