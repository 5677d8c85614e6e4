from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import date, datetime, time
from typing import List, Optional

from models.course import CourseStatus


class CourseTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)


class CourseTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class CourseTypeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    is_active: bool = True

    class Config:
        from_attributes = True


# Organization booking request
class CourseRequestCreate(BaseModel):
    course_type_id: int
    scheduled_date: date
    location: str = Field(..., min_length=1, max_length=255)
    registered_students: int = Field(..., ge=1, le=500)
    notes: Optional[str] = None


class CourseResponse(BaseModel):
    id: int
    organization_id: int
    organization_name: Optional[str] = None
    course_type_id: int
    course_type_name: Optional[str] = None
    date_requested: date
    scheduled_date: Optional[date] = None
    location: str
    registered_students: int
    notes: Optional[str] = None
    status: CourseStatus
    instructor_id: Optional[int] = None
    instructor_name: Optional[str] = None
    confirmed_date: Optional[datetime] = None
    confirmed_start_time: Optional[time] = None
    confirmed_end_time: Optional[time] = None
    completed_at: Optional[datetime] = None
    instructor_comments: Optional[str] = None
    ready_for_billing: bool = False
    ready_for_billing_at: Optional[datetime] = None
    invoiced: bool = False
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    attended_count: int = 0

    class Config:
        from_attributes = True


class _TimeRange(BaseModel):
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AssignInstructor(_TimeRange):
    instructor_id: int


class RescheduleCourse(_TimeRange):
    scheduled_date: date
    instructor_id: Optional[int] = None


class CancelCourse(BaseModel):
    reason: str = Field(..., min_length=1)


class CompleteCourse(BaseModel):
    instructor_comments: Optional[str] = None


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class StudentResponse(BaseModel):
    id: int
    course_request_id: int
    first_name: str
    last_name: str
    email: str
    attended: bool
    attendance_marked: bool

    class Config:
        from_attributes = True


class AttendanceUpdate(BaseModel):
    attended: bool


class AttendanceEntry(BaseModel):
    id: int
    attended: bool


class BulkAttendance(BaseModel):
    students: List[AttendanceEntry] = Field(..., min_length=1)


class AvailabilityCreate(BaseModel):
    date: date


class AvailabilityReplace(BaseModel):
    dates: List[date]


class AvailabilityResponse(BaseModel):
    id: int
    instructor_id: int
    date: date
    status: str

    class Config:
        from_attributes = True
