from sqlalchemy import (
    Column, Integer, Text, Numeric, Date, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base, status_enum
import enum


class TimesheetStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Weekly hours reported by an instructor, reviewed by HR
class Timesheet(Base):
    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("instructor_id", "week_start_date", name="uq_timesheets_instructor_week"),
    )

    id = Column(Integer, primary_key=True, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_start_date = Column(Date, nullable=False, index=True)
    total_hours = Column(Numeric(6, 2), nullable=False, default=0)
    courses_taught = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    status = Column(status_enum(TimesheetStatus), nullable=False, default=TimesheetStatus.PENDING, index=True)
    hr_comment = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    instructor = relationship("User", foreign_keys=[instructor_id])
    payment_request = relationship("PaymentRequest", back_populates="timesheet", uselist=False)

    @property
    def instructor_name(self):
        return self.instructor.full_name if self.instructor else None
