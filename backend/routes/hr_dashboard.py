# backend/routes/hr_dashboard.py

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import case, func, or_
from datetime import date, timedelta
from pydantic import BaseModel
from typing import Dict, List, Optional

from database import get_db
from models.course import CourseRequest, CourseStatus
from models.payroll import PaymentRequest, PaymentRequestStatus
from models.profile_change import ProfileChange, ProfileChangeStatus
from models.timesheet import Timesheet, TimesheetStatus
from models.users import Organization, Role, User
from schemas.common import Envelope, Page, ok
from schemas.course import CourseResponse
from schemas.system import ProfileChangeResponse
from schemas.user import UserResponse
from utils.tokenJWT import role_required

router = APIRouter(prefix="/hr/dashboard", tags=["HR Dashboard"])

hr = role_required(Role.HR, Role.ADMIN)

# Instructors count as active when they taught within this window
ACTIVE_WINDOW_DAYS = 30


# === Pydantic Response Schemas ===

class HRDashboardStats(BaseModel):
    pending_profile_changes: int
    pending_timesheets: int
    returned_payment_requests: int
    active_instructors: int
    total_instructors: int
    organizations: int
    recent_changes: List[ProfileChangeResponse]
    pending_approvals: List[ProfileChangeResponse]


class CourseTotals(BaseModel):
    total_courses: int = 0
    completed_courses: int = 0
    active_courses: int = 0
    last_course_date: Optional[date] = None


class InstructorProfile(CourseTotals):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool


class OrganizationProfile(CourseTotals):
    id: int
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    total_users: int = 0


class UserProfileDetail(BaseModel):
    user: UserResponse
    profile_changes: List[ProfileChangeResponse]
    course_history: List[CourseResponse]


def _course_totals(db: Session, column, ids: List[int]) -> Dict[int, dict]:
    """Course counts per instructor or organization, keyed by ``column``."""
    if not ids:
        return {}
    rows = (
        db.query(
            column,
            func.count(CourseRequest.id),
            func.sum(case((CourseRequest.status == CourseStatus.COMPLETED, 1), else_=0)),
            func.sum(case((CourseRequest.status == CourseStatus.CONFIRMED, 1), else_=0)),
            func.max(CourseRequest.scheduled_date),
        )
        .filter(column.in_(ids))
        .group_by(column)
        .all()
    )
    return {
        key: {
            "total_courses": total,
            "completed_courses": int(completed or 0),
            "active_courses": int(active or 0),
            "last_course_date": last,
        }
        for key, total, completed, active, last in rows
    }


def _search(query, q: Optional[str], *columns):
    if not q:
        return query
    like = f"%{q.lower()}%"
    return query.filter(or_(*(func.lower(c).like(like) for c in columns)))


# === Endpoint 1: Overview ===

@router.get("/stats", response_model=Envelope[HRDashboardStats])
def hr_stats(db: Session = Depends(get_db), current_user: User = Depends(hr)):
    since = date.today() - timedelta(days=ACTIVE_WINDOW_DAYS)
    active_instructors = (
        db.query(func.count(func.distinct(CourseRequest.instructor_id)))
        .filter(
            CourseRequest.instructor_id.isnot(None),
            CourseRequest.status.in_([CourseStatus.CONFIRMED, CourseStatus.COMPLETED]),
            CourseRequest.scheduled_date >= since,
        )
        .scalar()
    )
    changes = db.query(ProfileChange)

    return ok({
        "pending_profile_changes": changes.filter(ProfileChange.status == ProfileChangeStatus.PENDING).count(),
        "pending_timesheets": db.query(Timesheet).filter(Timesheet.status == TimesheetStatus.PENDING).count(),
        "returned_payment_requests": db.query(PaymentRequest).filter(
            PaymentRequest.status == PaymentRequestStatus.RETURNED_TO_HR).count(),
        "active_instructors": active_instructors or 0,
        "total_instructors": db.query(User).filter(
            User.role == Role.INSTRUCTOR.value, User.is_active.is_(True)).count(),
        "organizations": db.query(Organization).count(),
        "recent_changes": changes.order_by(ProfileChange.created_at.desc(), ProfileChange.id.desc()).limit(5).all(),
        "pending_approvals": (
            changes.filter(ProfileChange.status == ProfileChangeStatus.PENDING)
            .order_by(ProfileChange.created_at.asc(), ProfileChange.id.asc())
            .all()
        ),
    })


# === Endpoint 2: Instructor profiles ===

@router.get("/instructors", response_model=Envelope[Page[InstructorProfile]])
def hr_instructors(
    q: Optional[str] = Query(None, description="Search username, email or name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    query = _search(db.query(User).filter(User.role == Role.INSTRUCTOR.value), q,
                    User.username, User.email, User.last_name)
    total = query.count()
    users = query.order_by(User.username.asc()).offset((page - 1) * page_size).limit(page_size).all()
    totals = _course_totals(db, CourseRequest.instructor_id, [u.id for u in users])

    items = [
        InstructorProfile(
            id=u.id, username=u.username, email=u.email, first_name=u.first_name,
            last_name=u.last_name, phone=u.phone, is_active=u.is_active,
            **totals.get(u.id, {}),
        )
        for u in users
    ]
    return ok({"items": items, "total": total, "page": page, "page_size": page_size})


# === Endpoint 3: Organization profiles ===

@router.get("/organizations", response_model=Envelope[Page[OrganizationProfile]])
def hr_organizations(
    q: Optional[str] = Query(None, description="Search name or contact email"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    query = _search(db.query(Organization), q, Organization.name, Organization.contact_email)
    total = query.count()
    orgs = query.order_by(Organization.name.asc()).offset((page - 1) * page_size).limit(page_size).all()
    ids = [o.id for o in orgs]
    totals = _course_totals(db, CourseRequest.organization_id, ids)
    user_counts = dict(
        db.query(User.organization_id, func.count(User.id))
        .filter(User.organization_id.in_(ids))
        .group_by(User.organization_id)
        .all()
    ) if ids else {}

    items = [
        OrganizationProfile(
            id=o.id, name=o.name, contact_email=o.contact_email, contact_phone=o.contact_phone,
            total_users=user_counts.get(o.id, 0),
            **totals.get(o.id, {}),
        )
        for o in orgs
    ]
    return ok({"items": items, "total": total, "page": page, "page_size": page_size})


# === Endpoint 4: Single user ===

@router.get("/users/{user_id}", response_model=Envelope[UserProfileDetail])
def hr_user_detail(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(hr)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    changes = (
        db.query(ProfileChange)
        .filter(ProfileChange.user_id == user.id)
        .order_by(ProfileChange.created_at.desc(), ProfileChange.id.desc())
        .all()
    )
    history = []
    if user.role == Role.INSTRUCTOR.value:
        history = (
            db.query(CourseRequest)
            .filter(CourseRequest.instructor_id == user.id)
            .order_by(CourseRequest.scheduled_date.desc())
            .limit(10)
            .all()
        )
    return ok({"user": user, "profile_changes": changes, "course_history": history})
