"""Populate a fresh database with staff accounts, a demo organization and course types.

Run from the backend folder: ``python seed.py``. Existing rows are left alone,
so the script can be run repeatedly.
"""
import os
from datetime import date
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

from database import SessionLocal, init_db
from models.course import CourseType
from models.invoice import CoursePricing
from models.users import Organization, Role, User
from models.vendor import Vendor
from services.config_service import config_service
from utils.hashing import get_password_hash

# Configuration
DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "ChangeMe123!")

COURSE_TYPES = [
    ("CPR Level A", "Adult CPR and choking", 240),
    ("CPR Level C", "Adult, child and infant CPR with AED", 360),
    ("Standard First Aid", "Two-day first aid with CPR Level C", 960),
    ("BLS for Healthcare Providers", "Basic life support for clinical staff", 300),
]

DEMO_ORGANIZATION = {
    "name": "Northside Community Centre",
    "contact_name": "Front Desk",
    "contact_email": "training@northside.example",
    "address": "12 Main Street",
}

# username, role, first name, last name
STAFF = [
    ("sysadmin", Role.SYSADMIN, "System", "Admin"),
    ("admin", Role.ADMIN, "Course", "Coordinator"),
    ("accountant", Role.ACCOUNTANT, "Accounts", "Team"),
    ("hr", Role.HR, "People", "Team"),
    ("instructor", Role.INSTRUCTOR, "Jordan", "Lee"),
    ("vendor", Role.VENDOR, "Supply", "Desk"),
    ("orgcontact", Role.ORGANIZATION, "Front", "Desk"),
]
# End Configuration


def _get_or_create_user(session, username, role, first_name, last_name, organization_id=None):
    user = session.query(User).filter(User.username == username).first()
    if user:
        return user, False
    user = User(
        username=username,
        email=f"{username}@cpr-training.example",
        password_hash=get_password_hash(DEFAULT_PASSWORD),
        role=role.value,
        first_name=first_name,
        last_name=last_name,
        organization_id=organization_id,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user, True


def seed():
    init_db()
    session = SessionLocal()
    try:
        config_service.seed_defaults(session)

        org = session.query(Organization).filter(Organization.name == DEMO_ORGANIZATION["name"]).first()
        if not org:
            org = Organization(**DEMO_ORGANIZATION)
            session.add(org)
            session.flush()

        created_users = 0
        users = {}
        for username, role, first_name, last_name in STAFF:
            org_id = org.id if role == Role.ORGANIZATION else None
            users[username], created = _get_or_create_user(session, username, role, first_name, last_name, org_id)
            created_users += int(created)

        if not session.query(Vendor).filter(Vendor.user_id == users["vendor"].id).first():
            session.add(Vendor(user_id=users["vendor"].id, name="First Response Supplies", vendor_type="equipment",
                               contact_email=users["vendor"].email))

        types = []
        for name, description, minutes in COURSE_TYPES:
            course_type = session.query(CourseType).filter(CourseType.name == name).first()
            if not course_type:
                course_type = CourseType(name=name, description=description, duration_minutes=minutes)
                session.add(course_type)
                session.flush()
            types.append(course_type)

        # One active price per course type for the demo organization
        for course_type in types:
            exists = session.query(CoursePricing.id).filter(
                CoursePricing.organization_id == org.id,
                CoursePricing.course_type_id == course_type.id,
                CoursePricing.is_active.is_(True),
            ).first()
            if not exists:
                session.add(CoursePricing(organization_id=org.id, course_type_id=course_type.id,
                                          price_per_student=Decimal("75.00"), effective_date=date.today()))

        session.commit()
        print(f"Seed complete: {created_users} new users, {len(types)} course types.")
        if created_users:
            print(f"New accounts use the password from SEED_PASSWORD (default '{DEFAULT_PASSWORD}').")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    seed()
