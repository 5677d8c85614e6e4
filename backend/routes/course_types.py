from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from models.course import CourseType
from models.users import Role, User
from schemas import course as schemas
from schemas.common import Envelope, ok
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(prefix="/course-types", tags=["Course Types"])

manage_types = role_required(Role.SYSADMIN, Role.ADMIN)


# Public catalogue used by the booking form
@router.get("", response_model=Envelope[List[schemas.CourseTypeResponse]])
def list_course_types(include_inactive: bool = Query(False), db: Session = Depends(get_db)):
    query = db.query(CourseType)
    if not include_inactive:
        query = query.filter(CourseType.is_active.is_(True))
    return ok(query.order_by(CourseType.name).all())


@router.post("", response_model=Envelope[schemas.CourseTypeResponse], status_code=status.HTTP_201_CREATED)
def create_course_type(
    payload: schemas.CourseTypeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(manage_types),
):
    name = payload.name.strip()
    if db.query(CourseType.id).filter(func.lower(CourseType.name) == name.lower()).first():
        raise HTTPException(status_code=409, detail="Course type already exists")

    course_type = CourseType(name=name, description=payload.description, duration_minutes=payload.duration_minutes)
    db.add(course_type)
    db.commit()
    db.refresh(course_type)

    write_log(db, user_id=current_user.id, action="COURSE_TYPE_CREATE", resource="course_types",
              ip=client_ip(request), meta={"id": course_type.id, "name": name})
    return ok(course_type)


@router.put("/{type_id}", response_model=Envelope[schemas.CourseTypeResponse])
def update_course_type(
    type_id: int,
    payload: schemas.CourseTypeUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(manage_types),
):
    course_type = db.query(CourseType).filter(CourseType.id == type_id).first()
    if not course_type:
        raise HTTPException(status_code=404, detail="Course type not found")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        clash = (
            db.query(CourseType.id)
            .filter(func.lower(CourseType.name) == changes["name"].lower(), CourseType.id != type_id)
            .first()
        )
        if clash:
            raise HTTPException(status_code=409, detail="Course type already exists")

    for field, value in changes.items():
        setattr(course_type, field, value)
    db.commit()
    db.refresh(course_type)

    write_log(db, user_id=current_user.id, action="COURSE_TYPE_UPDATE", resource="course_types",
              ip=client_ip(request), meta={"id": type_id, "fields": sorted(changes)})
    return ok(course_type)
