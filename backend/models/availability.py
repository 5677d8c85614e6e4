from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from database import Base


# A day an instructor has offered to teach; removed once a course is booked on it
class InstructorAvailability(Base):
    __tablename__ = "instructor_availability"
    __table_args__ = (
        UniqueConstraint("instructor_id", "date", name="uq_instructor_availability_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="available")
    created_at = Column(DateTime, server_default=func.now())

    instructor = relationship("User")
