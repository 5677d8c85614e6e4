from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Time, Boolean, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base, status_enum
import enum


class CourseStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


# Catalogue of courses that can be booked (e.g. CPR Level C, First Aid)
class CourseType(Base):
    __tablename__ = "class_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())


# An organization's booking for a training session
class CourseRequest(Base):
    __tablename__ = "course_requests"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    course_type_id = Column(Integer, ForeignKey("class_types.id"), nullable=False)
    date_requested = Column(Date, nullable=False)
    scheduled_date = Column(Date, nullable=True, index=True)
    location = Column(String(255), nullable=False)
    registered_students = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    status = Column(status_enum(CourseStatus), nullable=False, default=CourseStatus.PENDING, index=True)

    # Scheduling
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    confirmed_date = Column(DateTime, nullable=True)
    confirmed_start_time = Column(Time, nullable=True)
    confirmed_end_time = Column(Time, nullable=True)

    # Completion and billing gates
    completed_at = Column(DateTime, nullable=True)
    instructor_comments = Column(Text, nullable=True)
    ready_for_billing_at = Column(DateTime, nullable=True)
    invoiced = Column(Boolean, nullable=False, default=False)
    invoiced_at = Column(DateTime, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")
    course_type = relationship("CourseType")
    instructor = relationship("User", foreign_keys=[instructor_id])
    students = relationship(
        "CourseStudent", back_populates="course_request",
        cascade="all, delete-orphan", order_by="CourseStudent.id",
    )

    @property
    def course_type_name(self):
        return self.course_type.name if self.course_type else None

    @property
    def organization_name(self):
        return self.organization.name if self.organization else None

    @property
    def instructor_name(self):
        return self.instructor.full_name if self.instructor else None

    @property
    def attended_count(self):
        return sum(1 for s in self.students if s.attended)

    @property
    def ready_for_billing(self):
        return self.ready_for_billing_at is not None


# A participant registered for a course, with attendance
class CourseStudent(Base):
    __tablename__ = "course_students"
    __table_args__ = (
        UniqueConstraint("course_request_id", "email", name="uq_course_students_course_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    course_request_id = Column(Integer, ForeignKey("course_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    attended = Column(Boolean, nullable=False, default=False)
    attendance_marked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    course_request = relationship("CourseRequest", back_populates="students")
