# backend/routes/vendor.py
from fastapi import (
    APIRouter, Depends, HTTPException, Query, Request, status,
    UploadFile, File, Form
)
from fastapi.responses import FileResponse
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
import logging
import uuid

from config import settings
from database import get_db
from models.users import Role, User
from models.vendor import Vendor, VendorInvoice, VendorInvoiceStatus
from schemas import vendor as schemas
from schemas.common import Envelope, Page, ok, paginate
from utils import transitions
from utils.audit import write_log, client_ip
from utils.money import ZERO, to_money
from utils.tokenJWT import role_required

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Vendors"])

UPLOAD_DIR = Path(settings.UPLOAD_DIR)

vendor_only = role_required(Role.VENDOR)
admin_only = role_required(Role.ADMIN)
accountant = role_required(Role.ACCOUNTANT, Role.ADMIN)
sysadmin = role_required(Role.SYSADMIN, Role.ADMIN)


# =========================
# HELPERS
# =========================
def _current_vendor(db: Session, user: User) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.user_id == user.id).first()
    if not vendor or not vendor.is_active:
        raise HTTPException(status_code=404, detail="Vendor profile not found")
    return vendor


def _get_invoice(db: Session, invoice_id: int) -> VendorInvoice:
    invoice = (
        db.query(VendorInvoice)
        .options(joinedload(VendorInvoice.vendor))
        .filter(VendorInvoice.id == invoice_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Vendor invoice not found")
    return invoice


def _own_invoice(db: Session, invoice_id: int, vendor: Vendor) -> VendorInvoice:
    invoice = _get_invoice(db, invoice_id)
    if invoice.vendor_id != vendor.id:
        raise HTTPException(status_code=404, detail="Vendor invoice not found")
    return invoice


def _save_pdf(file: UploadFile) -> str:
    """Validate and store an uploaded PDF, returning its stored file name."""
    name = (file.filename or "").lower()
    if file.content_type not in ("application/pdf", "application/x-pdf") and not name.endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    try:
        content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    finally:
        file.file.close()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File exceeds the 5 MB limit")
    if not content.startswith(b"%PDF"):
        raise HTTPException(status_code=400, detail="Uploaded file is not a valid PDF")

    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}.pdf"
    (UPLOAD_DIR / stored_name).write_bytes(content)
    return stored_name


def _pdf_response(invoice: VendorInvoice) -> FileResponse:
    if not invoice.pdf_filename:
        raise HTTPException(status_code=404, detail="No PDF attached to this invoice")
    path = UPLOAD_DIR / invoice.pdf_filename
    if not path.exists():
        logger.error("PDF %s for vendor invoice %s is missing on disk", invoice.pdf_filename, invoice.id)
        raise HTTPException(status_code=404, detail="PDF file not found")
    return FileResponse(path=str(path), media_type="application/pdf",
                        filename=f"{invoice.invoice_number.replace('/', '_')}.pdf")


def _submit(invoice: VendorInvoice) -> None:
    transitions.VENDOR_INVOICE.advance(invoice, VendorInvoiceStatus.SUBMITTED)
    invoice.submitted_at = datetime.utcnow()


# =========================
# VENDOR PORTAL
# =========================
@router.get("/vendor/profile", response_model=Envelope[schemas.VendorResponse])
def vendor_profile(db: Session = Depends(get_db), current_user: User = Depends(vendor_only)):
    return ok(_current_vendor(db, current_user))


@router.get("/vendor/dashboard", response_model=Envelope[schemas.VendorDashboard])
def vendor_dashboard(db: Session = Depends(get_db), current_user: User = Depends(vendor_only)):
    vendor = _current_vendor(db, current_user)
    invoices = db.query(VendorInvoice).filter(VendorInvoice.vendor_id == vendor.id).all()

    open_states = {VendorInvoiceStatus.SUBMITTED, VendorInvoiceStatus.SENT_TO_ACCOUNTING}
    total = sum((to_money(i.amount) for i in invoices if i.status != VendorInvoiceStatus.REJECTED), ZERO)
    paid = sum((to_money(i.amount) for i in invoices if i.status == VendorInvoiceStatus.PAID), ZERO)
    return ok({
        "total_invoices": len(invoices),
        "pending_count": sum(1 for i in invoices if i.status in open_states),
        "total_amount": total,
        "paid_amount": paid,
        "outstanding_amount": total - paid,
    })


@router.get("/vendor/invoices", response_model=Envelope[Page[schemas.VendorInvoiceResponse]])
def list_vendor_invoices(
    invoice_status: Optional[VendorInvoiceStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(vendor_only),
):
    vendor = _current_vendor(db, current_user)
    query = db.query(VendorInvoice).filter(VendorInvoice.vendor_id == vendor.id)
    if invoice_status:
        query = query.filter(VendorInvoice.status == invoice_status)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(VendorInvoice.invoice_number.ilike(like), VendorInvoice.description.ilike(like)))
    query = query.order_by(VendorInvoice.invoice_date.desc(), VendorInvoice.id.desc())
    return ok(paginate(query, page, page_size))


@router.post("/vendor/invoices", response_model=Envelope[schemas.VendorInvoiceResponse],
             status_code=status.HTTP_201_CREATED)
def create_vendor_invoice(
    request: Request,
    file: UploadFile = File(...),
    invoice_number: str = Form(..., min_length=1, max_length=100),
    amount: Decimal = Form(..., gt=0),
    invoice_date: date = Form(...),
    due_date: Optional[date] = Form(None),
    description: Optional[str] = Form(None),
    submit: bool = Form(True),
    db: Session = Depends(get_db),
    current_user: User = Depends(vendor_only),
):
    vendor = _current_vendor(db, current_user)
    invoice_number = invoice_number.strip()
    duplicate = (
        db.query(VendorInvoice.id)
        .filter(VendorInvoice.vendor_id == vendor.id, func.lower(VendorInvoice.invoice_number) == invoice_number.lower())
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=409, detail="You already submitted an invoice with this number")
    if due_date and due_date < invoice_date:
        raise HTTPException(status_code=400, detail="Due date cannot be before the invoice date")

    stored_name = _save_pdf(file)
    invoice = VendorInvoice(
        vendor_id=vendor.id,
        invoice_number=invoice_number,
        amount=to_money(amount),
        invoice_date=invoice_date,
        due_date=due_date,
        description=description,
        pdf_filename=stored_name,
        status=VendorInvoiceStatus.PENDING_SUBMISSION,
    )
    if submit:
        _submit(invoice)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)

    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_CREATE", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id, "status": invoice.status.value})
    return ok(invoice)


@router.post("/vendor/invoices/{invoice_id}/submit", response_model=Envelope[schemas.VendorInvoiceResponse])
def submit_vendor_invoice(
    invoice_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(vendor_only),
):
    invoice = _own_invoice(db, invoice_id, _current_vendor(db, current_user))
    _submit(invoice)
    db.commit()
    db.refresh(invoice)

    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_SUBMIT", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id})
    return ok(invoice)


@router.get("/vendor/invoices/{invoice_id}", response_model=Envelope[schemas.VendorInvoiceResponse])
def get_vendor_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(vendor_only)):
    return ok(_own_invoice(db, invoice_id, _current_vendor(db, current_user)))


@router.get("/vendor/invoices/{invoice_id}/download")
def download_vendor_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(vendor_only)):
    return _pdf_response(_own_invoice(db, invoice_id, _current_vendor(db, current_user)))


# =========================
# ADMIN REVIEW
# =========================
@router.get("/admin/vendor-invoices", response_model=Envelope[Page[schemas.VendorInvoiceResponse]])
def admin_list_vendor_invoices(
    invoice_status: Optional[VendorInvoiceStatus] = Query(VendorInvoiceStatus.SUBMITTED, alias="status"),
    vendor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(VendorInvoice).options(joinedload(VendorInvoice.vendor))
    if invoice_status:
        query = query.filter(VendorInvoice.status == invoice_status)
    if vendor_id is not None:
        query = query.filter(VendorInvoice.vendor_id == vendor_id)
    query = query.order_by(VendorInvoice.submitted_at.asc(), VendorInvoice.id.asc())
    return ok(paginate(query, page, page_size))


@router.get("/admin/vendor-invoices/{invoice_id}/download")
def admin_download_vendor_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    return _pdf_response(_get_invoice(db, invoice_id))


@router.post("/admin/vendor-invoices/{invoice_id}/approve", response_model=Envelope[schemas.VendorInvoiceResponse])
def approve_vendor_invoice(
    invoice_id: int,
    payload: schemas.VendorInvoiceApprove,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    invoice = _get_invoice(db, invoice_id)
    transitions.VENDOR_INVOICE.advance(invoice, VendorInvoiceStatus.SENT_TO_ACCOUNTING)
    now = datetime.utcnow()
    invoice.approved_by = current_user.id
    invoice.approved_at = now
    invoice.sent_to_accounting_at = now
    if payload.notes:
        invoice.admin_notes = payload.notes
    db.commit()
    db.refresh(invoice)

    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_APPROVE", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id})
    return ok(invoice, message="Invoice sent to accounting")


def _reject(db: Session, invoice: VendorInvoice, notes: str, user: User) -> None:
    transitions.VENDOR_INVOICE.advance(invoice, VendorInvoiceStatus.REJECTED)
    invoice.rejected_by = user.id
    invoice.rejected_at = datetime.utcnow()
    invoice.admin_notes = notes
    db.commit()
    db.refresh(invoice)


@router.post("/admin/vendor-invoices/{invoice_id}/reject", response_model=Envelope[schemas.VendorInvoiceResponse])
def admin_reject_vendor_invoice(
    invoice_id: int,
    payload: schemas.VendorInvoiceReject,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    invoice = _get_invoice(db, invoice_id)
    _reject(db, invoice, payload.notes, current_user)
    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_REJECT", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id})
    return ok(invoice)


# =========================
# ACCOUNTING
# =========================
@router.get("/accounting/vendor-invoices", response_model=Envelope[Page[schemas.VendorInvoiceResponse]])
def accounting_list_vendor_invoices(
    invoice_status: Optional[VendorInvoiceStatus] = Query(VendorInvoiceStatus.SENT_TO_ACCOUNTING, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    query = db.query(VendorInvoice).options(joinedload(VendorInvoice.vendor))
    if invoice_status:
        query = query.filter(VendorInvoice.status == invoice_status)
    query = query.order_by(VendorInvoice.due_date.asc(), VendorInvoice.id.asc())
    return ok(paginate(query, page, page_size))


@router.post("/accounting/vendor-invoices/{invoice_id}/mark-paid",
             response_model=Envelope[schemas.VendorInvoiceResponse])
def mark_vendor_invoice_paid(
    invoice_id: int,
    payload: schemas.VendorInvoicePaid,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = _get_invoice(db, invoice_id)
    transitions.VENDOR_INVOICE.advance(invoice, VendorInvoiceStatus.PAID)
    invoice.payment_date = payload.payment_date
    invoice.payment_reference = payload.reference_number
    invoice.paid_by = current_user.id
    db.commit()
    db.refresh(invoice)

    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_PAID", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id, "amount": str(invoice.amount)})
    return ok(invoice)


@router.post("/accounting/vendor-invoices/{invoice_id}/reject",
             response_model=Envelope[schemas.VendorInvoiceResponse])
def accounting_reject_vendor_invoice(
    invoice_id: int,
    payload: schemas.VendorInvoiceReject,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    invoice = _get_invoice(db, invoice_id)
    _reject(db, invoice, payload.notes, current_user)
    write_log(db, user_id=current_user.id, action="VENDOR_INVOICE_REJECT", resource="vendor_invoices",
              ip=client_ip(request), meta={"id": invoice.id, "by": "accounting"})
    return ok(invoice)


# =========================
# VENDOR ACCOUNTS (SYSADMIN)
# =========================
def _check_vendor_user(db: Session, user_id: Optional[int], vendor_id: Optional[int] = None) -> None:
    if user_id is None:
        return
    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.role != Role.VENDOR.value:
        raise HTTPException(status_code=400, detail="Linked user must have the vendor role")
    clash = db.query(Vendor.id).filter(Vendor.user_id == user_id)
    if vendor_id is not None:
        clash = clash.filter(Vendor.id != vendor_id)
    if clash.first():
        raise HTTPException(status_code=409, detail="User is already linked to another vendor")


@router.get("/sysadmin/vendors", response_model=Envelope[List[schemas.VendorResponse]])
def list_vendors(db: Session = Depends(get_db), current_user: User = Depends(sysadmin)):
    return ok(db.query(Vendor).order_by(Vendor.name).all())


@router.post("/sysadmin/vendors", response_model=Envelope[schemas.VendorResponse], status_code=status.HTTP_201_CREATED)
def create_vendor(
    payload: schemas.VendorCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(sysadmin),
):
    _check_vendor_user(db, payload.user_id)
    vendor = Vendor(**payload.model_dump())
    db.add(vendor)
    db.commit()
    db.refresh(vendor)

    write_log(db, user_id=current_user.id, action="VENDOR_CREATE", resource="vendors",
              ip=client_ip(request), meta={"id": vendor.id})
    return ok(vendor)


@router.put("/sysadmin/vendors/{vendor_id}", response_model=Envelope[schemas.VendorResponse])
def update_vendor(
    vendor_id: int,
    payload: schemas.VendorUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(sysadmin),
):
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).first()
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")

    changes = payload.model_dump(exclude_unset=True)
    if "user_id" in changes:
        _check_vendor_user(db, changes["user_id"], vendor.id)
    for field, value in changes.items():
        setattr(vendor, field, value)
    db.commit()
    db.refresh(vendor)

    write_log(db, user_id=current_user.id, action="VENDOR_UPDATE", resource="vendors",
              ip=client_ip(request), meta={"id": vendor.id, "fields": sorted(changes)})
    return ok(vendor)
