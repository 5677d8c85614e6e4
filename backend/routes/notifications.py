# backend/routes/notifications.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db
from models.notification import Notification, NotificationCategory
from models.users import User
from schemas import notification as schemas
from schemas.common import Envelope, ok, paginate
from services import notifications
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=Envelope[schemas.NotificationPage])
def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    category: Optional[NotificationCategory] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    if category:
        query = query.filter(Notification.category == category)
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())

    data = paginate(query, page, page_size)
    data["unread_count"] = notifications.unread_count(db, current_user.id)
    return ok(data)


@router.get("/stats", response_model=Envelope[schemas.NotificationStats])
def notification_stats(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(notifications.stats(db, current_user.id))


@router.get("/settings", response_model=Envelope[schemas.NotificationSettings])
def get_settings(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ok(notifications.settings_for(db, current_user.id))


@router.put("/settings", response_model=Envelope[schemas.NotificationSettings])
def update_settings(
    payload: schemas.NotificationSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    setting = notifications.settings_for(db, current_user.id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(setting, field, value)
    db.add(setting)
    db.commit()
    db.refresh(setting)
    return ok(setting, message="Notification settings updated")


@router.put("/read-all", response_model=Envelope[schemas.MarkedRead])
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = notifications.mark_all_read(db, current_user.id)
    db.commit()
    return ok({"updated": updated}, message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=Envelope[schemas.NotificationResponse])
def mark_read(notification_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    notification = notifications.get_own(db, notification_id, current_user.id)
    notifications.mark_read(notification)
    db.commit()
    db.refresh(notification)
    return ok(notification)


@router.delete("/{notification_id}", response_model=Envelope[dict])
def delete_notification(notification_id: int, db: Session = Depends(get_db),
                        current_user: User = Depends(get_current_user)):
    notification = notifications.get_own(db, notification_id, current_user.id)
    db.delete(notification)
    db.commit()
    return ok({"id": notification_id}, message="Notification deleted")
