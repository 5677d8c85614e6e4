from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from decimal import Decimal
from database import Base, status_enum
import enum


# Enum for organization invoice states
class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PAYMENT_SUBMITTED = "payment_submitted"
    OVERDUE = "overdue"
    PAID = "paid"


class PaymentStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"
    REVERSED = "reversed"


# Per-student price an organization pays for a course type
class CoursePricing(Base):
    __tablename__ = "course_pricing"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    course_type_id = Column(Integer, ForeignKey("class_types.id"), nullable=False, index=True)
    price_per_student = Column(Numeric(10, 2), nullable=False)
    effective_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    organization = relationship("Organization")
    course_type = relationship("CourseType")

    @property
    def organization_name(self):
        return self.organization.name if self.organization else None

    @property
    def course_type_name(self):
        return self.course_type.name if self.course_type else None


# Represents an invoice billed to an organization for one completed course
class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, nullable=False, index=True)
    course_request_id = Column(Integer, ForeignKey("course_requests.id"), unique=True, nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)

    students_billed = Column(Integer, nullable=False)
    rate_per_student = Column(Numeric(10, 2), nullable=False)
    base_amount = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)

    status = Column(status_enum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING, index=True)
    posted_to_org = Column(Boolean, nullable=False, default=False)
    posted_to_org_at = Column(DateTime, nullable=True)
    paid_date = Column(Date, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    course_request = relationship("CourseRequest")
    organization = relationship("Organization")
    payments = relationship(
        "Payment", back_populates="invoice",
        cascade="all, delete-orphan", order_by="Payment.id",
    )

    @property
    def organization_name(self):
        return self.organization.name if self.organization else None

    @property
    def course_type_name(self):
        return self.course_request.course_type_name if self.course_request else None

    @property
    def verified_total(self) -> Decimal:
        return sum(
            (Decimal(p.amount) for p in self.payments if p.status == PaymentStatus.VERIFIED),
            Decimal("0.00"),
        )

    @property
    def pending_total(self) -> Decimal:
        return sum(
            (Decimal(p.amount) for p in self.payments if p.status == PaymentStatus.PENDING_VERIFICATION),
            Decimal("0.00"),
        )

    @property
    def balance_due(self) -> Decimal:
        remaining = Decimal(self.amount) - self.verified_total
        return remaining if remaining > 0 else Decimal("0.00")

    @property
    def has_pending_payments(self) -> bool:
        return any(p.status == PaymentStatus.PENDING_VERIFICATION for p in self.payments)


# A payment made against an invoice, submitted by the organization or recorded by accounting
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(50), nullable=True)
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(status_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING_VERIFICATION, index=True)

    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    submitted_by_org_at = Column(DateTime, nullable=True)

    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    verification_notes = Column(Text, nullable=True)

    reversed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reversed_at = Column(DateTime, nullable=True)
    reversal_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="payments")

    @property
    def invoice_number(self):
        return self.invoice.invoice_number if self.invoice else None


# Per-year counter behind sequential invoice numbers
class InvoiceSequence(Base):
    __tablename__ = "invoice_sequences"
    __table_args__ = (UniqueConstraint("year", name="uq_invoice_sequences_year"),)

    id = Column(Integer, primary_key=True)
    year = Column(Integer, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)
