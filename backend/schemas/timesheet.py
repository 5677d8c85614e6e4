from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from models.timesheet import TimesheetStatus
from models.payroll import PaymentRequestStatus


class TimesheetCreate(BaseModel):
    week_start_date: date
    total_hours: Decimal = Field(..., ge=0, le=168, max_digits=6, decimal_places=2)
    courses_taught: int = Field(0, ge=0)
    notes: Optional[str] = None

    @field_validator("week_start_date")
    @classmethod
    def _monday(cls, value: date) -> date:
        if value.weekday() != 0:
            raise ValueError("week_start_date must be a Monday")
        return value


class TimesheetUpdate(BaseModel):
    total_hours: Optional[Decimal] = Field(None, ge=0, le=168, max_digits=6, decimal_places=2)
    courses_taught: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class TimesheetReview(BaseModel):
    action: Literal["approve", "reject"]
    comment: Optional[str] = None


class TimesheetResponse(BaseModel):
    id: int
    instructor_id: int
    instructor_name: Optional[str] = None
    week_start_date: date
    total_hours: float
    courses_taught: int
    notes: Optional[str] = None
    status: TimesheetStatus
    hr_comment: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimesheetStats(BaseModel):
    pending: int
    approved_this_month: int
    hours_this_month: float
    instructors_with_pending: int


class InstructorTimesheetSummary(BaseModel):
    instructor_id: int
    total_timesheets: int
    pending: int
    approved: int
    rejected: int
    approved_hours: float
    approved_courses: int
    paid_amount: float
    outstanding_amount: float


class PayRateCreate(BaseModel):
    hourly_rate: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    course_bonus: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    effective_date: date
    notes: Optional[str] = None


class PayRateResponse(BaseModel):
    id: int
    instructor_id: int
    hourly_rate: float
    course_bonus: float
    effective_date: date
    end_date: Optional[date] = None
    is_active: bool
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentRequestResponse(BaseModel):
    id: int
    instructor_id: int
    instructor_name: Optional[str] = None
    timesheet_id: int
    week_start_date: Optional[date] = None
    hours: float
    courses: int
    hourly_rate: float
    course_bonus: float
    base_amount: float
    bonus_amount: float
    amount: float
    status: PaymentRequestStatus
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimesheetApproval(BaseModel):
    timesheet: TimesheetResponse
    payment_request: Optional[PaymentRequestResponse] = None


class PaymentRequestProcess(BaseModel):
    action: Literal["approve", "reject", "return_to_hr"]
    notes: Optional[str] = None


class BulkProcess(PaymentRequestProcess):
    request_ids: List[int] = Field(..., min_length=1, max_length=200)


class BulkResultItem(BaseModel):
    id: int
    success: bool
    status: Optional[PaymentRequestStatus] = None
    error: Optional[str] = None


class BulkProcessResult(BaseModel):
    processed: int
    failed: int
    results: List[BulkResultItem]


class PaymentRequestComplete(BaseModel):
    payment_method: Optional[str] = Field(None, max_length=50)


class PaymentRequestResubmit(BaseModel):
    notes: Optional[str] = None
    recalculate: bool = True


class PaymentRequestStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    returned_to_hr: int
    completed: int
    pending_amount: float
    approved_amount: float
    completed_amount: float


class ReconcileResult(BaseModel):
    created: int
    payment_requests: List[PaymentRequestResponse]
