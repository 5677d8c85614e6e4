# backend/routes/timesheet.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from datetime import date, datetime
from typing import List, Optional

from database import get_db
from models.payroll import InstructorPayRate, PaymentRequest, PaymentRequestStatus
from models.timesheet import Timesheet, TimesheetStatus
from models.users import Role, User
from schemas import timesheet as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import notifications, payroll
from utils.audit import write_log, client_ip
from utils.money import ZERO, to_money
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(tags=["Timesheets"])

instructor_only = role_required(Role.INSTRUCTOR)
hr = role_required(Role.HR, Role.ADMIN)
STAFF_ROLES = {Role.HR.value, Role.ADMIN.value, Role.ACCOUNTANT.value}


def _get_timesheet(db: Session, timesheet_id: int) -> Timesheet:
    timesheet = (
        db.query(Timesheet)
        .options(joinedload(Timesheet.instructor))
        .filter(Timesheet.id == timesheet_id)
        .first()
    )
    if not timesheet:
        raise HTTPException(status_code=404, detail="Timesheet not found")
    return timesheet


def _check_access(user: User, instructor_id: int) -> None:
    if user.role in STAFF_ROLES:
        return
    if user.role == Role.INSTRUCTOR.value and user.id == instructor_id:
        return
    raise HTTPException(status_code=403, detail="Forbidden")


def _month_start(today: date) -> date:
    return today.replace(day=1)


# =========================
# INSTRUCTOR SUBMISSION
# =========================
@router.post("/timesheet", response_model=Envelope[schemas.TimesheetResponse], status_code=status.HTTP_201_CREATED)
def submit_timesheet(
    payload: schemas.TimesheetCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    exists = (
        db.query(Timesheet.id)
        .filter(Timesheet.instructor_id == current_user.id, Timesheet.week_start_date == payload.week_start_date)
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="A timesheet for this week already exists")

    timesheet = Timesheet(instructor_id=current_user.id, status=TimesheetStatus.PENDING, **payload.model_dump())
    db.add(timesheet)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A timesheet for this week already exists")
    db.refresh(timesheet)

    write_log(db, user_id=current_user.id, action="TIMESHEET_SUBMIT", resource="timesheets",
              ip=client_ip(request), meta={"id": timesheet.id, "week": str(timesheet.week_start_date)})
    return ok(timesheet)


@router.get("/timesheet", response_model=Envelope[Page[schemas.TimesheetResponse]])
def list_timesheets(
    ts_status: Optional[TimesheetStatus] = Query(None, alias="status"),
    instructor_id: Optional[int] = Query(None),
    week_from: Optional[date] = Query(None),
    week_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Timesheet).options(joinedload(Timesheet.instructor))
    if current_user.role == Role.INSTRUCTOR.value:
        query = query.filter(Timesheet.instructor_id == current_user.id)
    elif current_user.role in STAFF_ROLES:
        if instructor_id is not None:
            query = query.filter(Timesheet.instructor_id == instructor_id)
    else:
        raise HTTPException(status_code=403, detail="Forbidden")

    if ts_status:
        query = query.filter(Timesheet.status == ts_status)
    if week_from:
        query = query.filter(Timesheet.week_start_date >= week_from)
    if week_to:
        query = query.filter(Timesheet.week_start_date <= week_to)
    query = query.order_by(Timesheet.week_start_date.desc(), Timesheet.id.desc())
    return ok(paginate(query, page, page_size))


@router.get("/timesheet/stats", response_model=Envelope[schemas.TimesheetStats])
def timesheet_stats(db: Session = Depends(get_db), current_user: User = Depends(hr)):
    month_start = _month_start(date.today())
    pending = db.query(func.count(Timesheet.id)).filter(Timesheet.status == TimesheetStatus.PENDING).scalar()
    approved_month = (
        db.query(func.count(Timesheet.id), func.coalesce(func.sum(Timesheet.total_hours), 0))
        .filter(
            Timesheet.status == TimesheetStatus.APPROVED,
            Timesheet.reviewed_at >= datetime.combine(month_start, datetime.min.time()),
        )
        .one()
    )
    with_pending = (
        db.query(func.count(func.distinct(Timesheet.instructor_id)))
        .filter(Timesheet.status == TimesheetStatus.PENDING)
        .scalar()
    )
    return ok({
        "pending": pending or 0,
        "approved_this_month": approved_month[0] or 0,
        "hours_this_month": float(approved_month[1] or 0),
        "instructors_with_pending": with_pending or 0,
    })


@router.get("/timesheet/instructor/{instructor_id}/summary",
            response_model=Envelope[schemas.InstructorTimesheetSummary])
def instructor_summary(
    instructor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _check_access(current_user, instructor_id)
    sheets = db.query(Timesheet).filter(Timesheet.instructor_id == instructor_id).all()
    approved = [t for t in sheets if t.status == TimesheetStatus.APPROVED]
    requests = db.query(PaymentRequest).filter(PaymentRequest.instructor_id == instructor_id).all()

    open_states = {PaymentRequestStatus.PENDING, PaymentRequestStatus.APPROVED, PaymentRequestStatus.RETURNED_TO_HR}
    return ok({
        "instructor_id": instructor_id,
        "total_timesheets": len(sheets),
        "pending": sum(1 for t in sheets if t.status == TimesheetStatus.PENDING),
        "approved": len(approved),
        "rejected": sum(1 for t in sheets if t.status == TimesheetStatus.REJECTED),
        "approved_hours": float(sum((to_money(t.total_hours) for t in approved), ZERO)),
        "approved_courses": sum(t.courses_taught or 0 for t in approved),
        "paid_amount": sum((to_money(r.amount) for r in requests if r.status == PaymentRequestStatus.COMPLETED), ZERO),
        "outstanding_amount": sum((to_money(r.amount) for r in requests if r.status in open_states), ZERO),
    })


@router.get("/timesheet/{timesheet_id}", response_model=Envelope[schemas.TimesheetResponse])
def get_timesheet(timesheet_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    timesheet = _get_timesheet(db, timesheet_id)
    _check_access(current_user, timesheet.instructor_id)
    return ok(timesheet)


@router.put("/timesheet/{timesheet_id}", response_model=Envelope[schemas.TimesheetResponse])
def update_timesheet(
    timesheet_id: int,
    payload: schemas.TimesheetUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    timesheet = _get_timesheet(db, timesheet_id)
    if timesheet.instructor_id != current_user.id:
        raise HTTPException(status_code=404, detail="Timesheet not found")
    if timesheet.status != TimesheetStatus.PENDING:
        raise HTTPException(status_code=400, detail="Only pending timesheets can be edited")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field != "notes":
            continue
        setattr(timesheet, field, value)
    db.commit()
    db.refresh(timesheet)

    write_log(db, user_id=current_user.id, action="TIMESHEET_UPDATE", resource="timesheets",
              ip=client_ip(request), meta={"id": timesheet.id, "fields": sorted(changes)})
    return ok(timesheet)


# =========================
# HR REVIEW
# =========================
@router.post("/timesheet/{timesheet_id}/approve", response_model=Envelope[schemas.TimesheetApproval])
def review_timesheet(
    timesheet_id: int,
    payload: schemas.TimesheetReview,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    timesheet = _get_timesheet(db, timesheet_id)
    payment_request = payroll.review_timesheet(db, timesheet, payload.action, payload.comment, current_user.id)
    db.commit()
    db.refresh(timesheet)
    if payment_request is not None:
        db.refresh(payment_request)
    notifications.timesheet_reviewed(db, timesheet, payment_request)
    db.commit()

    write_log(db, user_id=current_user.id, action="TIMESHEET_REVIEW", resource="timesheets",
              ip=client_ip(request),
              meta={"id": timesheet.id, "result": timesheet.status.value,
                    "payment_request_id": payment_request.id if payment_request else None})
    return ok({"timesheet": timesheet, "payment_request": payment_request})


# =========================
# PAY RATES
# =========================
def _get_instructor(db: Session, instructor_id: int) -> User:
    instructor = (
        db.query(User)
        .filter(User.id == instructor_id, User.role == Role.INSTRUCTOR.value)
        .first()
    )
    if not instructor:
        raise HTTPException(status_code=404, detail="Instructor not found")
    return instructor


@router.get("/pay-rates/instructors/{instructor_id}", response_model=Envelope[List[schemas.PayRateResponse]])
def list_pay_rates(instructor_id: int, db: Session = Depends(get_db), current_user: User = Depends(hr)):
    _get_instructor(db, instructor_id)
    rates = (
        db.query(InstructorPayRate)
        .filter(InstructorPayRate.instructor_id == instructor_id)
        .order_by(InstructorPayRate.effective_date.desc(), InstructorPayRate.id.desc())
        .all()
    )
    return ok(rates)


@router.post("/pay-rates/instructors/{instructor_id}", response_model=Envelope[schemas.PayRateResponse],
             status_code=status.HTTP_201_CREATED)
def set_pay_rate(
    instructor_id: int,
    payload: schemas.PayRateCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    _get_instructor(db, instructor_id)
    rate = payroll.set_pay_rate(db, instructor_id, payload.hourly_rate, payload.course_bonus,
                                payload.effective_date, payload.notes, current_user.id)
    db.commit()
    db.refresh(rate)

    write_log(db, user_id=current_user.id, action="PAY_RATE_SET", resource="pay_rates", ip=client_ip(request),
              meta={"instructor_id": instructor_id, "hourly_rate": str(rate.hourly_rate),
                    "effective_date": str(rate.effective_date)})
    return ok(rate)
