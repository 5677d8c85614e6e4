from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, ForeignKey, func,
)
from sqlalchemy.orm import relationship
from database import Base, status_enum
import enum


class PaymentRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED_TO_HR = "returned_to_hr"
    COMPLETED = "completed"


# Hourly rate and per-course bonus for an instructor over a date range
class InstructorPayRate(Base):
    __tablename__ = "instructor_pay_rates"

    id = Column(Integer, primary_key=True, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    course_bonus = Column(Numeric(10, 2), nullable=False, default=0)
    effective_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


# Compensation owed to an instructor for one approved timesheet
class PaymentRequest(Base):
    __tablename__ = "payment_requests"

    id = Column(Integer, primary_key=True, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    timesheet_id = Column(Integer, ForeignKey("timesheets.id"), nullable=False, unique=True)

    hours = Column(Numeric(6, 2), nullable=False)
    courses = Column(Integer, nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    course_bonus = Column(Numeric(10, 2), nullable=False)
    base_amount = Column(Numeric(10, 2), nullable=False)
    bonus_amount = Column(Numeric(10, 2), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(50), nullable=True)

    status = Column(status_enum(PaymentRequestStatus), nullable=False,
                    default=PaymentRequestStatus.PENDING, index=True)
    notes = Column(Text, nullable=True)
    processed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    instructor = relationship("User", foreign_keys=[instructor_id])
    timesheet = relationship("Timesheet", back_populates="payment_request")

    @property
    def instructor_name(self):
        return self.instructor.full_name if self.instructor else None

    @property
    def week_start_date(self):
        return self.timesheet.week_start_date if self.timesheet else None
