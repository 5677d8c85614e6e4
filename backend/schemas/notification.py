from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional

from models.notification import NotificationCategory, NotificationType


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: NotificationType
    category: NotificationCategory
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    items: List[NotificationResponse]
    total: int
    page: int
    page_size: int
    unread_count: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_category: Dict[str, int]
    by_type: Dict[str, int]


class MarkedRead(BaseModel):
    updated: int


class NotificationSettings(BaseModel):
    course_notifications: bool = True
    billing_notifications: bool = True
    payroll_notifications: bool = True
    system_notifications: bool = True

    class Config:
        from_attributes = True


class NotificationSettingsUpdate(BaseModel):
    course_notifications: Optional[bool] = None
    billing_notifications: Optional[bool] = None
    payroll_notifications: Optional[bool] = None
    system_notifications: Optional[bool] = None
