from pydantic import BaseModel, EmailStr, Field
from datetime import date, datetime
from typing import Optional

from models.vendor import VendorInvoiceStatus


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[int] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    vendor_type: Optional[str] = None


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    user_id: Optional[int] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    vendor_type: Optional[str] = None
    is_active: Optional[bool] = None


class VendorResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    vendor_type: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class VendorInvoiceResponse(BaseModel):
    id: int
    vendor_id: int
    vendor_name: Optional[str] = None
    invoice_number: str
    amount: float
    description: Optional[str] = None
    invoice_date: date
    due_date: Optional[date] = None
    pdf_filename: Optional[str] = None
    status: VendorInvoiceStatus
    submitted_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    sent_to_accounting_at: Optional[datetime] = None
    payment_date: Optional[date] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VendorDashboard(BaseModel):
    total_invoices: int
    pending_count: int
    total_amount: float
    paid_amount: float
    outstanding_amount: float


class VendorInvoiceReject(BaseModel):
    notes: str = Field(..., min_length=1)


class VendorInvoiceApprove(BaseModel):
    notes: Optional[str] = None


class VendorInvoicePaid(BaseModel):
    payment_date: date
    reference_number: Optional[str] = Field(None, max_length=100)
