from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, joinedload
from datetime import datetime
from typing import List, Optional

from database import get_db
from models.profile_change import ProfileChange, ProfileChangeStatus
from models.users import Role, User
from schemas import system as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import notifications
from utils import transitions
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(tags=["Profile Changes"])

requesters = role_required(Role.INSTRUCTOR, Role.ORGANIZATION)
hr = role_required(Role.HR, Role.ADMIN)

CHANGE_TYPES = {
    "email": "contact",
    "phone": "contact",
    "first_name": "name",
    "last_name": "name",
}


@router.post("/profile-changes", response_model=Envelope[schemas.ProfileChangeResponse],
             status_code=status.HTTP_201_CREATED)
def request_profile_change(
    payload: schemas.ProfileChangeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(requesters),
):
    new_value = payload.new_value.strip()
    if payload.field_name == "email":
        new_value = new_value.lower()
        if db.query(User.id).filter(User.email == new_value, User.id != current_user.id).first():
            raise HTTPException(status_code=409, detail="Email is already in use")

    old_value = getattr(current_user, payload.field_name)
    if (old_value or "") == new_value:
        raise HTTPException(status_code=400, detail="New value is the same as the current one")

    pending = (
        db.query(ProfileChange.id)
        .filter(
            ProfileChange.user_id == current_user.id,
            ProfileChange.field_name == payload.field_name,
            ProfileChange.status == ProfileChangeStatus.PENDING,
        )
        .first()
    )
    if pending:
        raise HTTPException(status_code=409, detail="A change for this field is already pending")

    change = ProfileChange(
        user_id=current_user.id,
        change_type=CHANGE_TYPES[payload.field_name],
        field_name=payload.field_name,
        old_value=old_value,
        new_value=new_value,
        status=ProfileChangeStatus.PENDING,
    )
    db.add(change)
    db.commit()
    db.refresh(change)

    write_log(db, user_id=current_user.id, action="PROFILE_CHANGE_REQUEST", resource="profile_changes",
              ip=client_ip(request), meta={"id": change.id, "field": change.field_name})
    return ok(change, message="Change submitted for HR review")


@router.get("/profile-changes", response_model=Envelope[List[schemas.ProfileChangeResponse]])
def my_profile_changes(db: Session = Depends(get_db), current_user: User = Depends(requesters)):
    changes = (
        db.query(ProfileChange)
        .filter(ProfileChange.user_id == current_user.id)
        .order_by(ProfileChange.created_at.desc(), ProfileChange.id.desc())
        .all()
    )
    return ok(changes)


@router.get("/hr/profile-changes", response_model=Envelope[Page[schemas.ProfileChangeResponse]])
def list_profile_changes(
    change_status: Optional[ProfileChangeStatus] = Query(ProfileChangeStatus.PENDING, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    query = db.query(ProfileChange).options(joinedload(ProfileChange.user))
    if change_status:
        query = query.filter(ProfileChange.status == change_status)
    query = query.order_by(ProfileChange.created_at.asc(), ProfileChange.id.asc())
    return ok(paginate(query, page, page_size))


@router.post("/hr/profile-changes/{change_id}/approve", response_model=Envelope[schemas.ProfileChangeResponse])
def review_profile_change(
    change_id: int,
    payload: schemas.ProfileChangeReview,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    change = db.query(ProfileChange).options(joinedload(ProfileChange.user)).filter(ProfileChange.id == change_id).first()
    if not change:
        raise HTTPException(status_code=404, detail="Profile change not found")

    if payload.action == "approve":
        transitions.PROFILE_CHANGE.check(change.status, ProfileChangeStatus.APPROVED)
        if change.field_name not in schemas.PROFILE_FIELDS:
            raise HTTPException(status_code=400, detail=f"Field '{change.field_name}' cannot be changed")
        if change.field_name == "email":
            taken = db.query(User.id).filter(User.email == change.new_value, User.id != change.user_id).first()
            if taken:
                raise HTTPException(status_code=409, detail="Email is already in use")
        setattr(change.user, change.field_name, change.new_value)
        transitions.PROFILE_CHANGE.advance(change, ProfileChangeStatus.APPROVED)
    else:
        transitions.PROFILE_CHANGE.advance(change, ProfileChangeStatus.REJECTED)

    change.hr_comment = payload.comment
    change.reviewed_by = current_user.id
    change.reviewed_at = datetime.utcnow()
    db.commit()
    db.refresh(change)
    notifications.profile_change_reviewed(db, change)
    db.commit()

    write_log(db, user_id=current_user.id, action="PROFILE_CHANGE_REVIEW", resource="profile_changes",
              ip=client_ip(request), meta={"id": change.id, "result": change.status.value})
    return ok(change)
