"""
Shared fixtures: an in-memory database rebuilt for every test, a TestClient
bound to the app, and factories for users, organizations and courses.
"""

import os
import tempfile
from datetime import date, datetime, timedelta
from decimal import Decimal

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
_STORAGE = tempfile.mkdtemp(prefix="cpr-tests-")
os.environ["UPLOAD_DIR"] = os.path.join(_STORAGE, "vendor_invoices")
os.environ["INVOICE_STORAGE_DIR"] = os.path.join(_STORAGE, "invoices")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from database import Base, SessionLocal, engine, init_db  # noqa: E402
from main import app  # noqa: E402
from models.course import CourseRequest, CourseStatus, CourseStudent, CourseType  # noqa: E402
from models.invoice import CoursePricing  # noqa: E402
from models.users import Organization, Role, User  # noqa: E402
from services.config_service import config_service  # noqa: E402
from utils.hashing import get_password_hash  # noqa: E402
from utils.tokenJWT import create_access_token  # noqa: E402

PASSWORD = "password123"
API = "/api/v1"


# ============================================================================
# Database and client
# ============================================================================


@pytest.fixture(autouse=True)
def schema():
    init_db()
    config_service.invalidate()
    yield
    Base.metadata.drop_all(bind=engine)
    config_service.invalidate()


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_config(db):
    config_service.seed_defaults(db)
    return db


@pytest.fixture
def client(schema):
    return TestClient(app)


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_org(db):
    counter = {"n": 0}

    def _make(name=None, **extra):
        counter["n"] += 1
        org = Organization(name=name or f"Organization {counter['n']}", contact_email="billing@org.example", **extra)
        db.add(org)
        db.commit()
        db.refresh(org)
        return org

    return _make


@pytest.fixture
def make_user(db):
    def _make(role: Role, username=None, organization=None, password=PASSWORD, **extra):
        username = username or f"{role.value}{db.query(User).count() + 1}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=get_password_hash(password),
            role=role.value,
            first_name=extra.pop("first_name", username.capitalize()),
            last_name=extra.pop("last_name", "Tester"),
            organization_id=organization.id if organization else None,
            is_active=extra.pop("is_active", True),
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(data={
        "sub": user.username,
        "uid": user.id,
        "role": user.role,
        "organization_id": user.organization_id,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def course_type(db):
    ct = CourseType(name="CPR Level C", description="Adult, child and infant CPR", duration_minutes=360)
    db.add(ct)
    db.commit()
    db.refresh(ct)
    return ct


@pytest.fixture
def make_course(db, course_type):
    def _make(organization, status=CourseStatus.PENDING, scheduled_date=None, instructor=None,
              students=0, attended=0, ready=False, registered=10):
        course = CourseRequest(
            organization_id=organization.id,
            course_type_id=course_type.id,
            date_requested=date.today(),
            scheduled_date=scheduled_date or date.today() + timedelta(days=14),
            location="Main Hall",
            registered_students=registered,
            status=status,
            instructor_id=instructor.id if instructor else None,
        )
        if status == CourseStatus.COMPLETED:
            course.completed_at = datetime.utcnow()
        if ready:
            course.ready_for_billing_at = datetime.utcnow()
        db.add(course)
        db.flush()
        for i in range(students):
            db.add(CourseStudent(
                course_request_id=course.id,
                first_name=f"Student{i}",
                last_name="Learner",
                email=f"student{i}@example.com",
                attended=i < attended,
                attendance_marked=True,
            ))
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture
def make_price(db, course_type):
    def _make(organization, price="50.00", active=True):
        pricing = CoursePricing(
            organization_id=organization.id,
            course_type_id=course_type.id,
            price_per_student=Decimal(price),
            effective_date=date.today() - timedelta(days=30),
            is_active=active,
        )
        db.add(pricing)
        db.commit()
        db.refresh(pricing)
        return pricing

    return _make


def monday(weeks_back: int = 1) -> date:
    """Monday of the week `weeks_back` weeks before the current one."""
    today = date.today()
    return today - timedelta(days=today.weekday()) - timedelta(weeks=weeks_back)
