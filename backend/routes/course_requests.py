# backend/routes/course_requests.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from datetime import date
from typing import List, Optional

from database import get_db
from models.course import CourseRequest, CourseStatus, CourseStudent, CourseType
from models.users import Role, User
from schemas import course as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import notifications, scheduling
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(tags=["Courses"])

org_only = role_required(Role.ORGANIZATION)
admin_only = role_required(Role.ADMIN)
instructor_only = role_required(Role.INSTRUCTOR)

# Students can be registered until the course is closed
OPEN_FOR_REGISTRATION = {CourseStatus.PENDING, CourseStatus.CONFIRMED}
ATTENDANCE_STATES = {CourseStatus.CONFIRMED, CourseStatus.COMPLETED}


# =========================
# HELPERS
# =========================
def _course_query(db: Session):
    return db.query(CourseRequest).options(
        joinedload(CourseRequest.organization),
        joinedload(CourseRequest.course_type),
        joinedload(CourseRequest.instructor),
    )


def _get_course(db: Session, course_id: int) -> CourseRequest:
    course = _course_query(db).filter(CourseRequest.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _org_course(db: Session, course_id: int, user: User) -> CourseRequest:
    course = _get_course(db, course_id)
    if course.organization_id != user.organization_id:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _instructor_course(db: Session, course_id: int, user: User) -> CourseRequest:
    course = _get_course(db, course_id)
    if course.instructor_id != user.id:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _add_student(db: Session, course: CourseRequest, payload: schemas.StudentCreate) -> CourseStudent:
    email = payload.email.strip().lower()
    exists = (
        db.query(CourseStudent.id)
        .filter(CourseStudent.course_request_id == course.id, CourseStudent.email == email)
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="Student with this email is already registered for the course")

    student = CourseStudent(
        course_request_id=course.id,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
    )
    db.add(student)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Student with this email is already registered for the course")
    db.refresh(student)
    return student


def _check_attendance_open(course: CourseRequest) -> None:
    if course.status not in ATTENDANCE_STATES:
        raise HTTPException(status_code=400, detail=f"Attendance cannot be recorded for a {course.status.value} course")
    if course.invoiced:
        raise HTTPException(status_code=409, detail="Course has already been invoiced")


# =========================
# ORGANIZATION
# =========================
@router.post("/organization/course-request", response_model=Envelope[schemas.CourseResponse],
             status_code=status.HTTP_201_CREATED)
def create_course_request(
    payload: schemas.CourseRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(org_only),
):
    if current_user.organization_id is None:
        raise HTTPException(status_code=400, detail="Your account is not linked to an organization")
    if payload.scheduled_date < date.today():
        raise HTTPException(status_code=400, detail="Scheduled date cannot be in the past")
    course_type = db.query(CourseType).filter(CourseType.id == payload.course_type_id, CourseType.is_active.is_(True)).first()
    if not course_type:
        raise HTTPException(status_code=404, detail="Course type not found")

    course = CourseRequest(
        organization_id=current_user.organization_id,
        course_type_id=course_type.id,
        date_requested=date.today(),
        scheduled_date=payload.scheduled_date,
        location=payload.location.strip(),
        registered_students=payload.registered_students,
        notes=payload.notes,
        status=CourseStatus.PENDING,
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    notifications.course_requested(db, course)
    db.commit()

    write_log(db, user_id=current_user.id, action="COURSE_REQUEST", resource="courses",
              ip=client_ip(request), meta={"id": course.id, "scheduled_date": str(course.scheduled_date)})
    return ok(course)


@router.get("/organization/courses", response_model=Envelope[Page[schemas.CourseResponse]])
def list_organization_courses(
    course_status: Optional[CourseStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(org_only),
):
    query = _course_query(db).filter(CourseRequest.organization_id == current_user.organization_id)
    if course_status:
        query = query.filter(CourseRequest.status == course_status)
    query = query.order_by(CourseRequest.scheduled_date.desc(), CourseRequest.id.desc())
    return ok(paginate(query, page, page_size))


@router.get("/organization/courses/{course_id}", response_model=Envelope[schemas.CourseResponse])
def get_organization_course(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(org_only)):
    return ok(_org_course(db, course_id, current_user))


@router.get("/organization/courses/{course_id}/students", response_model=Envelope[List[schemas.StudentResponse]])
def list_organization_students(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(org_only)):
    return ok(_org_course(db, course_id, current_user).students)


@router.post("/organization/courses/{course_id}/students", response_model=Envelope[schemas.StudentResponse],
             status_code=status.HTTP_201_CREATED)
def add_organization_student(
    course_id: int,
    payload: schemas.StudentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(org_only),
):
    course = _org_course(db, course_id, current_user)
    if course.status not in OPEN_FOR_REGISTRATION:
        raise HTTPException(status_code=400, detail=f"Cannot add students to a {course.status.value} course")

    student = _add_student(db, course, payload)
    write_log(db, user_id=current_user.id, action="STUDENT_ADD", resource="courses",
              ip=client_ip(request), meta={"course_id": course.id, "student_id": student.id})
    return ok(student)


# =========================
# ADMIN SCHEDULING
# =========================
@router.get("/courses/{course_status}", response_model=Envelope[Page[schemas.CourseResponse]])
def list_courses_by_status(
    course_status: CourseStatus,
    organization_id: Optional[int] = Query(None),
    instructor_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN, Role.ACCOUNTANT)),
):
    query = _course_query(db).filter(CourseRequest.status == course_status)
    if organization_id is not None:
        query = query.filter(CourseRequest.organization_id == organization_id)
    if instructor_id is not None:
        query = query.filter(CourseRequest.instructor_id == instructor_id)
    if date_from:
        query = query.filter(CourseRequest.scheduled_date >= date_from)
    if date_to:
        query = query.filter(CourseRequest.scheduled_date <= date_to)
    query = query.order_by(CourseRequest.scheduled_date.asc(), CourseRequest.id.asc())
    return ok(paginate(query, page, page_size))


@router.get("/courses/{course_id}/students", response_model=Envelope[List[schemas.StudentResponse]])
def list_course_students(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    return ok(_get_course(db, course_id).students)


@router.put("/courses/{course_id}/assign-instructor", response_model=Envelope[schemas.CourseResponse])
def assign_instructor(
    course_id: int,
    payload: schemas.AssignInstructor,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    course = _get_course(db, course_id)
    scheduling.assign_instructor(db, course, payload.instructor_id, payload.start_time, payload.end_time)
    db.commit()
    db.refresh(course)
    notifications.course_assigned(db, course)
    db.commit()

    write_log(db, user_id=current_user.id, action="COURSE_ASSIGN", resource="courses",
              ip=client_ip(request), meta={"id": course.id, "instructor_id": payload.instructor_id})
    return ok(course, message="Instructor assigned")


@router.put("/courses/{course_id}/schedule", response_model=Envelope[schemas.CourseResponse])
def reschedule_course(
    course_id: int,
    payload: schemas.RescheduleCourse,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    course = _get_course(db, course_id)
    old_date = course.scheduled_date
    scheduling.reschedule(db, course, payload.scheduled_date, payload.start_time, payload.end_time,
                          payload.instructor_id)
    db.commit()
    db.refresh(course)

    write_log(db, user_id=current_user.id, action="COURSE_RESCHEDULE", resource="courses", ip=client_ip(request),
              meta={"id": course.id, "from": str(old_date), "to": str(course.scheduled_date)})
    return ok(course, message="Course rescheduled")


@router.put("/courses/{course_id}/cancel", response_model=Envelope[schemas.CourseResponse])
def cancel_course(
    course_id: int,
    payload: schemas.CancelCourse,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    course = _get_course(db, course_id)
    scheduling.cancel(db, course, payload.reason)
    db.commit()
    db.refresh(course)
    notifications.course_cancelled(db, course)
    db.commit()

    write_log(db, user_id=current_user.id, action="COURSE_CANCEL", resource="courses",
              ip=client_ip(request), meta={"id": course.id, "status": course.status.value})
    return ok(course, message="Course cancelled")


@router.put("/courses/{course_id}/ready-for-billing", response_model=Envelope[schemas.CourseResponse])
def mark_ready_for_billing(
    course_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    course = _get_course(db, course_id)
    scheduling.mark_ready_for_billing(db, course)
    db.commit()
    db.refresh(course)

    write_log(db, user_id=current_user.id, action="COURSE_READY_FOR_BILLING", resource="courses",
              ip=client_ip(request), meta={"id": course.id})
    return ok(course, message="Course sent to billing")


# =========================
# INSTRUCTOR
# =========================
@router.get("/instructor/classes", response_model=Envelope[List[schemas.CourseResponse]])
def list_instructor_classes(
    course_status: Optional[CourseStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    query = _course_query(db).filter(CourseRequest.instructor_id == current_user.id)
    if course_status:
        query = query.filter(CourseRequest.status == course_status)
    else:
        query = query.filter(CourseRequest.status.in_([CourseStatus.CONFIRMED, CourseStatus.COMPLETED]))
    return ok(query.order_by(CourseRequest.scheduled_date.asc()).all())


@router.get("/instructor/classes/{course_id}", response_model=Envelope[schemas.CourseResponse])
def get_instructor_class(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(instructor_only)):
    return ok(_instructor_course(db, course_id, current_user))


@router.post("/instructor/classes/{course_id}/complete", response_model=Envelope[schemas.CourseResponse])
def complete_class(
    course_id: int,
    payload: schemas.CompleteCourse,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    course = _instructor_course(db, course_id, current_user)
    scheduling.complete(db, course, current_user, payload.instructor_comments)
    db.commit()
    db.refresh(course)
    notifications.course_completed(db, course)
    db.commit()

    write_log(db, user_id=current_user.id, action="COURSE_COMPLETE", resource="courses",
              ip=client_ip(request), meta={"id": course.id, "attended": course.attended_count})
    return ok(course, message="Course marked as completed")


@router.get("/instructor/classes/{course_id}/students", response_model=Envelope[List[schemas.StudentResponse]])
def list_class_students(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(instructor_only)):
    return ok(_instructor_course(db, course_id, current_user).students)


@router.post("/instructor/classes/{course_id}/students", response_model=Envelope[schemas.StudentResponse],
             status_code=status.HTTP_201_CREATED)
def add_class_student(
    course_id: int,
    payload: schemas.StudentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    course = _instructor_course(db, course_id, current_user)
    _check_attendance_open(course)
    student = _add_student(db, course, payload)
    write_log(db, user_id=current_user.id, action="STUDENT_ADD", resource="courses",
              ip=client_ip(request), meta={"course_id": course.id, "student_id": student.id})
    return ok(student)


@router.put("/instructor/classes/{course_id}/students/{student_id}/attendance",
            response_model=Envelope[schemas.StudentResponse])
def update_attendance(
    course_id: int,
    student_id: int,
    payload: schemas.AttendanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    course = _instructor_course(db, course_id, current_user)
    _check_attendance_open(course)
    student = (
        db.query(CourseStudent)
        .filter(CourseStudent.id == student_id, CourseStudent.course_request_id == course.id)
        .first()
    )
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    student.attended = payload.attended
    student.attendance_marked = True
    db.commit()
    db.refresh(student)
    return ok(student)


@router.post("/instructor/classes/{course_id}/attendance", response_model=Envelope[List[schemas.StudentResponse]])
def submit_attendance(
    course_id: int,
    payload: schemas.BulkAttendance,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(instructor_only),
):
    course = _instructor_course(db, course_id, current_user)
    _check_attendance_open(course)

    by_id = {s.id: s for s in course.students}
    unknown = [entry.id for entry in payload.students if entry.id not in by_id]
    if unknown:
        raise HTTPException(status_code=404, detail=f"Students not in this course: {unknown}")

    for entry in payload.students:
        by_id[entry.id].attended = entry.attended
        by_id[entry.id].attendance_marked = True
    db.commit()
    db.refresh(course)

    write_log(db, user_id=current_user.id, action="ATTENDANCE_SUBMIT", resource="courses",
              ip=client_ip(request), meta={"course_id": course.id, "attended": course.attended_count})
    return ok(course.students)
