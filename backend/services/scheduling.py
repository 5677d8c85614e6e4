"""Course scheduling: instructor assignment, rescheduling, cancellation, completion."""

import logging
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.availability import InstructorAvailability
from models.course import CourseRequest, CourseStatus
from models.users import Role, User
from utils import transitions
from utils.errors import (
    ConflictError, InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationFailedError,
)

logger = logging.getLogger(__name__)


def get_instructor(db: Session, instructor_id: int) -> User:
    instructor = db.query(User).filter(User.id == instructor_id).first()
    if instructor is None or instructor.role != Role.INSTRUCTOR.value or not instructor.is_active:
        raise NotFoundError("Instructor not found")
    return instructor


def has_conflict(db: Session, instructor_id: int, day: date, exclude_course_id: int = None) -> bool:
    query = db.query(CourseRequest.id).filter(
        CourseRequest.instructor_id == instructor_id,
        CourseRequest.scheduled_date == day,
        CourseRequest.status == CourseStatus.CONFIRMED,
    )
    if exclude_course_id is not None:
        query = query.filter(CourseRequest.id != exclude_course_id)
    return query.first() is not None


def consume_availability(db: Session, instructor_id: int, day: date) -> None:
    (
        db.query(InstructorAvailability)
        .filter(InstructorAvailability.instructor_id == instructor_id, InstructorAvailability.date == day)
        .delete(synchronize_session=False)
    )


def restore_availability(db: Session, instructor_id: int, day: Optional[date], today: date = None) -> None:
    """Give the day back to the instructor unless it is already past."""
    today = today or date.today()
    if day is None or day < today:
        return
    exists = (
        db.query(InstructorAvailability.id)
        .filter(InstructorAvailability.instructor_id == instructor_id, InstructorAvailability.date == day)
        .first()
    )
    if not exists:
        db.add(InstructorAvailability(instructor_id=instructor_id, date=day, status="available"))
        # Bulk deletes in consume_availability do not see unflushed rows
        db.flush()


def _check_times(start_time: Optional[time], end_time: Optional[time]) -> None:
    if start_time and end_time and end_time <= start_time:
        raise ValidationFailedError("End time must be after start time")


def assign_instructor(db: Session, course: CourseRequest, instructor_id: int,
                      start_time: time = None, end_time: time = None) -> CourseRequest:
    if course.scheduled_date is None:
        raise ValidationFailedError("Course has no scheduled date")
    transitions.COURSE.check(course.status, CourseStatus.CONFIRMED)
    _check_times(start_time, end_time)
    instructor = get_instructor(db, instructor_id)

    if has_conflict(db, instructor.id, course.scheduled_date, exclude_course_id=course.id):
        raise ConflictError("Instructor already has a confirmed course on this date")

    previous = course.instructor_id
    if previous and previous != instructor.id:
        restore_availability(db, previous, course.scheduled_date)

    transitions.COURSE.advance(course, CourseStatus.CONFIRMED)
    course.instructor_id = instructor.id
    course.confirmed_date = datetime.utcnow()
    course.confirmed_start_time = start_time
    course.confirmed_end_time = end_time
    consume_availability(db, instructor.id, course.scheduled_date)
    db.flush()
    logger.info("Course %s assigned to instructor %s on %s", course.id, instructor.id, course.scheduled_date)
    return course


def reschedule(db: Session, course: CourseRequest, new_date: date, start_time: time = None,
               end_time: time = None, instructor_id: int = None, today: date = None) -> CourseRequest:
    today = today or date.today()
    if course.status != CourseStatus.CONFIRMED:
        raise InvalidTransitionError("Only confirmed courses can be rescheduled")
    if new_date < today:
        raise ValidationFailedError("Cannot reschedule to a past date")
    _check_times(start_time, end_time)

    target_instructor = get_instructor(db, instructor_id) if instructor_id else course.instructor
    if has_conflict(db, target_instructor.id, new_date, exclude_course_id=course.id):
        raise ConflictError("Instructor already has a confirmed course on this date")

    moved = (target_instructor.id, new_date) != (course.instructor_id, course.scheduled_date)
    if moved:
        restore_availability(db, course.instructor_id, course.scheduled_date, today)
    transitions.COURSE.advance(course, CourseStatus.CONFIRMED)
    course.scheduled_date = new_date
    course.instructor_id = target_instructor.id
    if start_time:
        course.confirmed_start_time = start_time
    if end_time:
        course.confirmed_end_time = end_time
    if moved:
        consume_availability(db, target_instructor.id, new_date)
    db.flush()
    return course


def cancel(db: Session, course: CourseRequest, reason: str, today: date = None) -> CourseRequest:
    today = today or date.today()
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailedError("A cancellation reason is required")

    target = CourseStatus.CANCELLED
    if course.scheduled_date and course.scheduled_date < today:
        target = CourseStatus.PAST_DUE
    transitions.COURSE.advance(course, target)

    course.cancelled_at = datetime.utcnow()
    course.cancellation_reason = reason
    note = f"Cancelled: {reason}"
    course.notes = f"{course.notes}\n{note}" if course.notes else note
    if course.instructor_id:
        restore_availability(db, course.instructor_id, course.scheduled_date, today)
    db.flush()
    logger.info("Course %s moved to %s", course.id, target.value)
    return course


def complete(db: Session, course: CourseRequest, instructor: User, comments: str = None) -> CourseRequest:
    if course.instructor_id != instructor.id:
        raise PermissionDeniedError("Only the assigned instructor can complete this course")
    transitions.COURSE.advance(course, CourseStatus.COMPLETED)
    course.completed_at = datetime.utcnow()
    if comments:
        course.instructor_comments = comments
    db.flush()
    return course


def mark_ready_for_billing(db: Session, course: CourseRequest) -> CourseRequest:
    if course.status != CourseStatus.COMPLETED:
        raise ValidationFailedError("Only completed courses can be marked ready for billing")
    if course.invoiced:
        raise ConflictError("Course has already been invoiced")
    if course.ready_for_billing_at is None:
        course.ready_for_billing_at = datetime.utcnow()
    db.flush()
    return course


def available_instructors(db: Session, day: date) -> List[User]:
    busy = (
        select(CourseRequest.instructor_id)
        .where(
            CourseRequest.scheduled_date == day,
            CourseRequest.status == CourseStatus.CONFIRMED,
            CourseRequest.instructor_id.isnot(None),
        )
    )
    return (
        db.query(User)
        .join(InstructorAvailability, InstructorAvailability.instructor_id == User.id)
        .filter(
            User.role == Role.INSTRUCTOR.value,
            User.is_active.is_(True),
            InstructorAvailability.date == day,
            InstructorAvailability.status == "available",
            ~User.id.in_(busy),
        )
        .order_by(User.last_name, User.first_name)
        .all()
    )
