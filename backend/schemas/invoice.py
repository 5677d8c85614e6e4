from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from models.invoice import InvoiceStatus, PaymentStatus


class PricingCreate(BaseModel):
    organization_id: int
    course_type_id: int
    price_per_student: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    effective_date: Optional[date] = None


class PricingUpdate(BaseModel):
    price_per_student: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    is_active: Optional[bool] = None


class PricingResponse(BaseModel):
    id: int
    organization_id: int
    organization_name: Optional[str] = None
    course_type_id: int
    course_type_name: Optional[str] = None
    price_per_student: float
    effective_date: date
    is_active: bool

    class Config:
        from_attributes = True


class BillingQueueItem(BaseModel):
    course_id: int
    organization_id: int
    organization_name: Optional[str] = None
    course_type_name: Optional[str] = None
    location: Optional[str] = None
    scheduled_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    ready_for_billing_at: Optional[datetime] = None
    instructor_name: Optional[str] = None
    registered_students: int
    attended_students: int
    rate_per_student: float
    base_amount: float


class InvoiceCreate(BaseModel):
    course_id: int


class PaymentResponse(BaseModel):
    id: int
    invoice_id: int
    invoice_number: Optional[str] = None
    amount: float
    payment_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: PaymentStatus
    submitted_by_org_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    course_request_id: int
    organization_id: int
    organization_name: Optional[str] = None
    course_type_name: Optional[str] = None
    invoice_date: date
    due_date: date
    students_billed: int
    rate_per_student: float
    base_amount: float
    tax_amount: float
    amount: float
    balance_due: float
    status: InvoiceStatus
    posted_to_org: bool
    posted_to_org_at: Optional[datetime] = None
    paid_date: Optional[date] = None

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceResponse):
    payments: List[PaymentResponse] = []


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_date: date
    payment_method: Optional[str] = Field(None, max_length=50)
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentVerify(BaseModel):
    action: Literal["approve", "reject"]
    notes: Optional[str] = None


class PaymentReverse(BaseModel):
    reason: str = Field(..., min_length=1)


class OrganizationBillingSummary(BaseModel):
    invoice_count: int
    total_invoiced: float
    total_paid: float
    outstanding: float
    overdue_count: int
    payment_submitted_count: int


class OverdueUpdateResult(BaseModel):
    updated: int
