# backend/routes/admin.py
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional, Literal

from database import get_db
from models.users import Organization, Role, User
from utils.audit import write_log, client_ip
from utils.hashing import get_password_hash
from utils.tokenJWT import role_required
from schemas import user as schemas
from schemas.common import Envelope, Page, ok, paginate

router = APIRouter(prefix="/admin", tags=["Admin"])

admin_only = role_required(Role.ADMIN, Role.SYSADMIN)


def _validate_org_link(db: Session, role: str, organization_id: Optional[int]) -> None:
    if organization_id is not None and not db.query(Organization.id).filter(Organization.id == organization_id).first():
        raise HTTPException(status_code=404, detail="Organization not found")
    if role == Role.ORGANIZATION.value and organization_id is None:
        raise HTTPException(status_code=400, detail="Organization users must be linked to an organization")


# Retrieve a list of users with filtering, sorting, and pagination
@router.get("/users", response_model=Envelope[Page[schemas.UserResponse]])
def get_all_users(
    q: Optional[str] = Query(None, description="Search username, email or name"),
    role: Optional[str] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["id", "username", "email", "role", "last_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(User)

    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(
            func.lower(User.username).like(like),
            func.lower(User.email).like(like),
            func.lower(User.last_name).like(like),
        ))
    if role:
        query = query.filter(User.role == role.lower())
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    sort_map = {
        "id": User.id,
        "username": User.username,
        "email": User.email,
        "role": User.role,
        "last_name": User.last_name,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    return ok(paginate(query, page, page_size))


@router.post("/users", response_model=Envelope[schemas.UserResponse], status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    username = payload.username.strip()
    email = payload.email.strip().lower()
    taken = db.query(User).filter(or_(User.username == username, func.lower(User.email) == email)).first()
    if taken:
        raise HTTPException(status_code=409, detail="Username or email already registered")
    _validate_org_link(db, payload.role, payload.organization_id)

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        organization_id=payload.organization_id,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_CREATE", resource="users",
              ip=client_ip(request), meta={"id": user.id, "role": user.role})
    return ok(user)


@router.get("/users/{user_id}", response_model=Envelope[schemas.UserResponse])
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return ok(user)


# Update role, organization link, contact fields or active flag
@router.put("/users/{user_id}", response_model=Envelope[schemas.UserResponse])
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].lower()
        clash = db.query(User.id).filter(func.lower(User.email) == changes["email"], User.id != user.id).first()
        if clash:
            raise HTTPException(status_code=409, detail="Email already registered")
    if user.id == current_user.id and (changes.get("is_active") is False or "role" in changes and changes["role"] != user.role):
        raise HTTPException(status_code=400, detail="You cannot change your own role or deactivate yourself")

    _validate_org_link(db, changes.get("role", user.role), changes.get("organization_id", user.organization_id))

    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_UPDATE", resource="users",
              ip=client_ip(request), meta={"id": user.id, "fields": sorted(changes)})
    return ok(user)


# Users are deactivated rather than deleted so history stays intact
@router.delete("/users/{user_id}", response_model=Envelope[schemas.UserResponse])
def deactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot deactivate your own account")

    user.is_active = False
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_DEACTIVATE", resource="users",
              ip=client_ip(request), meta={"id": user.id})
    return ok(user, message=f"User {user.username} has been deactivated")


# =========================
# ORGANIZATIONS
# =========================
@router.get("/organizations", response_model=Envelope[List[schemas.OrganizationResponse]])
def list_organizations(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.ADMIN, Role.SYSADMIN, Role.ACCOUNTANT)),
):
    query = db.query(Organization)
    if q:
        query = query.filter(Organization.name.ilike(f"%{q}%"))
    return ok(query.order_by(Organization.name).all())


@router.post("/organizations", response_model=Envelope[schemas.OrganizationResponse],
             status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: schemas.OrganizationCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    name = payload.name.strip()
    if db.query(Organization.id).filter(func.lower(Organization.name) == name.lower()).first():
        raise HTTPException(status_code=409, detail="Organization already exists")

    org = Organization(**payload.model_dump(exclude={"name"}), name=name)
    db.add(org)
    db.commit()
    db.refresh(org)

    write_log(db, user_id=current_user.id, action="ORG_CREATE", resource="organizations",
              ip=client_ip(request), meta={"id": org.id})
    return ok(org)


@router.put("/organizations/{org_id}", response_model=Envelope[schemas.OrganizationResponse])
def update_organization(
    org_id: int,
    payload: schemas.OrganizationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    org = db.query(Organization).filter(Organization.id == org_id).first()
    if not org:
        raise HTTPException(status_code=404, detail="Organization not found")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(org, field, value)
    db.commit()
    db.refresh(org)

    write_log(db, user_id=current_user.id, action="ORG_UPDATE", resource="organizations",
              ip=client_ip(request), meta={"id": org.id, "fields": sorted(changes)})
    return ok(org)
