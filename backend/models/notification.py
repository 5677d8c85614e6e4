from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from database import Base, status_enum
import enum


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, enum.Enum):
    COURSE = "course"
    BILLING = "billing"
    PAYROLL = "payroll"
    SYSTEM = "system"


# In-app message shown to one user
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(status_enum(NotificationType), nullable=False, default=NotificationType.INFO)
    category = Column(status_enum(NotificationCategory), nullable=False,
                      default=NotificationCategory.SYSTEM, index=True)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    user = relationship("User")


# Per-user opt-outs by category; a missing row means everything is on
class NotificationSetting(Base):
    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    course_notifications = Column(Boolean, nullable=False, default=True)
    billing_notifications = Column(Boolean, nullable=False, default=True)
    payroll_notifications = Column(Boolean, nullable=False, default=True)
    system_notifications = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def allows(self, category: NotificationCategory) -> bool:
        return getattr(self, f"{NotificationCategory(category).value}_notifications")
