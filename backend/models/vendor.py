from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base, status_enum
import enum


class VendorInvoiceStatus(str, enum.Enum):
    PENDING_SUBMISSION = "pending_submission"
    SUBMITTED = "submitted"
    SENT_TO_ACCOUNTING = "sent_to_accounting"
    PAID = "paid"
    REJECTED = "rejected"


# A supplier (equipment, venue, contractor) linked to one vendor-role user
class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    vendor_type = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User")
    invoices = relationship("VendorInvoice", back_populates="vendor")


# An invoice a vendor bills to the business, with an attached PDF
class VendorInvoice(Base):
    __tablename__ = "vendor_invoices"
    __table_args__ = (
        UniqueConstraint("vendor_id", "invoice_number", name="uq_vendor_invoices_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    invoice_number = Column(String(100), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    pdf_filename = Column(String(255), nullable=True)
    status = Column(status_enum(VendorInvoiceStatus), nullable=False,
                    default=VendorInvoiceStatus.PENDING_SUBMISSION, index=True)

    submitted_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    sent_to_accounting_at = Column(DateTime, nullable=True)

    payment_date = Column(Date, nullable=True)
    payment_reference = Column(String(100), nullable=True)
    paid_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    vendor = relationship("Vendor", back_populates="invoices")

    @property
    def vendor_name(self):
        return self.vendor.name if self.vendor else None
