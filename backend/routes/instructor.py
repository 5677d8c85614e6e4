from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import date
from typing import List

from database import get_db
from models.availability import InstructorAvailability
from models.course import CourseRequest, CourseStatus
from models.users import Role, User
from schemas import course as schemas
from schemas.user import InstructorSummary
from schemas.common import Envelope, ok
from services import scheduling
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(tags=["Instructor"])

instructor_only = role_required(Role.INSTRUCTOR)


def _own_availability(db: Session, user: User):
    return (
        db.query(InstructorAvailability)
        .filter(InstructorAvailability.instructor_id == user.id)
        .order_by(InstructorAvailability.date.asc())
    )


def _booked_dates(db: Session, user: User) -> set:
    rows = (
        db.query(CourseRequest.scheduled_date)
        .filter(CourseRequest.instructor_id == user.id, CourseRequest.status == CourseStatus.CONFIRMED)
        .all()
    )
    return {r[0] for r in rows}


@router.get("/instructor/availability", response_model=Envelope[List[schemas.AvailabilityResponse]])
def list_availability(
    upcoming_only: bool = True,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    query = _own_availability(db, current_user)
    if upcoming_only:
        query = query.filter(InstructorAvailability.date >= date.today())
    return ok(query.all())


@router.post("/instructor/availability", response_model=Envelope[schemas.AvailabilityResponse],
             status_code=status.HTTP_201_CREATED)
def add_availability(
    payload: schemas.AvailabilityCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    if payload.date < date.today():
        raise HTTPException(status_code=400, detail="Cannot add availability for a past date")
    if payload.date in _booked_dates(db, current_user):
        raise HTTPException(status_code=409, detail="You already have a course on this date")

    exists = _own_availability(db, current_user).filter(InstructorAvailability.date == payload.date).first()
    if exists:
        raise HTTPException(status_code=409, detail="Availability already exists for this date")

    slot = InstructorAvailability(instructor_id=current_user.id, date=payload.date, status="available")
    db.add(slot)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Availability already exists for this date")
    db.refresh(slot)

    write_log(db, user_id=current_user.id, action="AVAILABILITY_ADD", resource="availability",
              ip=client_ip(request), meta={"date": str(payload.date)})
    return ok(slot)


@router.delete("/instructor/availability/{day}", response_model=Envelope[dict])
def remove_availability(
    day: date,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    slot = _own_availability(db, current_user).filter(InstructorAvailability.date == day).first()
    if not slot:
        raise HTTPException(status_code=404, detail="Availability not found")

    db.delete(slot)
    db.commit()

    write_log(db, user_id=current_user.id, action="AVAILABILITY_REMOVE", resource="availability",
              ip=client_ip(request), meta={"date": str(day)})
    return ok({"date": day}, message="Availability removed")


# Replace all upcoming availability with the given dates
@router.put("/instructor/availability", response_model=Envelope[List[schemas.AvailabilityResponse]])
def replace_availability(
    payload: schemas.AvailabilityReplace,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    today = date.today()
    wanted = set(payload.dates)
    if any(d < today for d in wanted):
        raise HTTPException(status_code=400, detail="Cannot add availability for a past date")
    wanted -= _booked_dates(db, current_user)

    current = _own_availability(db, current_user).filter(InstructorAvailability.date >= today).all()
    for slot in current:
        if slot.date not in wanted:
            db.delete(slot)
    existing = {slot.date for slot in current}
    for day in sorted(wanted - existing):
        db.add(InstructorAvailability(instructor_id=current_user.id, date=day, status="available"))
    db.commit()

    write_log(db, user_id=current_user.id, action="AVAILABILITY_REPLACE", resource="availability",
              ip=client_ip(request), meta={"count": len(wanted)})
    return ok(_own_availability(db, current_user).filter(InstructorAvailability.date >= today).all())


@router.get("/instructor/schedule", response_model=Envelope[List[schemas.CourseResponse]])
def upcoming_schedule(db: Session = Depends(get_db), current_user: User = Depends(instructor_only)):
    courses = (
        db.query(CourseRequest)
        .filter(
            CourseRequest.instructor_id == current_user.id,
            CourseRequest.status == CourseStatus.CONFIRMED,
            CourseRequest.scheduled_date >= date.today(),
        )
        .order_by(CourseRequest.scheduled_date.asc(), CourseRequest.confirmed_start_time.asc())
        .all()
    )
    return ok(courses)


# Admin view used when assigning a course
@router.get("/instructors/available/{day}", response_model=Envelope[List[InstructorSummary]])
def instructors_available_on(
    day: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN)),
):
    return ok(scheduling.available_instructors(db, day))
