"""In-app notifications.

Writers only add rows to the session. Routes call them once the change they
describe is committed and refreshed, then commit the notifications.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.invoice import PaymentStatus
from models.notification import Notification, NotificationCategory, NotificationSetting, NotificationType
from models.profile_change import ProfileChangeStatus
from models.timesheet import TimesheetStatus
from models.users import Role, User
from utils.errors import NotFoundError
from utils.money import to_money

logger = logging.getLogger(__name__)

Category = NotificationCategory
Kind = NotificationType


# ============================================================================
# Core
# ============================================================================


def settings_for(db: Session, user_id: int) -> NotificationSetting:
    setting = db.query(NotificationSetting).filter(NotificationSetting.user_id == user_id).first()
    if setting is None:
        setting = NotificationSetting(
            user_id=user_id,
            course_notifications=True,
            billing_notifications=True,
            payroll_notifications=True,
            system_notifications=True,
        )
    return setting


def notify(db: Session, user_id: int, title: str, message: str, *, kind: Kind = Kind.INFO,
           category: Category = Category.SYSTEM, link: str = None) -> Optional[Notification]:
    """Queue a notification unless the user turned the category off."""
    if not settings_for(db, user_id).allows(category):
        return None
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=kind,
        category=category,
        link=link,
        is_read=False,
    )
    db.add(notification)
    return notification


def notify_many(db: Session, user_ids: Iterable[int], title: str, message: str, **kwargs) -> List[Notification]:
    created = [notify(db, user_id, title, message, **kwargs) for user_id in user_ids]
    created = [n for n in created if n is not None]
    logger.debug("Queued %s \"%s\" notifications", len(created), title)
    return created


def _active_ids(query) -> List[int]:
    return [row.id for row in query.filter(User.is_active.is_(True)).order_by(User.id).all()]


def organization_user_ids(db: Session, organization_id: int) -> List[int]:
    return _active_ids(db.query(User.id).filter(User.organization_id == organization_id))


def role_user_ids(db: Session, *roles: Role) -> List[int]:
    return _active_ids(db.query(User.id).filter(User.role.in_([r.value for r in roles])))


def get_own(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(notification: Notification) -> Notification:
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True, Notification.read_at: datetime.utcnow()}, synchronize_session=False)
    )


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).count()


def stats(db: Session, user_id: int) -> dict:
    base = db.query(Notification).filter(Notification.user_id == user_id)
    by_category = dict(
        db.query(Notification.category, func.count(Notification.id))
        .filter(Notification.user_id == user_id)
        .group_by(Notification.category)
        .all()
    )
    by_type = dict(
        db.query(Notification.type, func.count(Notification.id))
        .filter(Notification.user_id == user_id)
        .group_by(Notification.type)
        .all()
    )
    return {
        "total": base.count(),
        "unread": unread_count(db, user_id),
        "by_category": {Category(k).value: v for k, v in by_category.items()},
        "by_type": {Kind(k).value: v for k, v in by_type.items()},
    }


# ============================================================================
# Course events
# ============================================================================


def course_requested(db: Session, course) -> List[Notification]:
    return notify_many(
        db, role_user_ids(db, Role.ADMIN),
        "New Course Request",
        f'{course.organization_name} has requested a "{course.course_type_name}" course for {course.scheduled_date}.',
        category=Category.COURSE, link="/admin/courses",
    )


def course_assigned(db: Session, course) -> List[Notification]:
    created = []
    instructor = notify(
        db, course.instructor_id, "New Course Assignment",
        f'You have been assigned to teach "{course.course_type_name}" for {course.organization_name} '
        f"on {course.scheduled_date} at {course.location}.",
        kind=Kind.SUCCESS, category=Category.COURSE, link="/instructor/classes",
    )
    if instructor is not None:
        created.append(instructor)
    created += notify_many(
        db, organization_user_ids(db, course.organization_id), "Course Confirmed",
        f'Your "{course.course_type_name}" course has been confirmed for {course.scheduled_date}. '
        f"Instructor: {course.instructor_name}",
        kind=Kind.SUCCESS, category=Category.COURSE, link="/organization/courses",
    )
    return created


def course_cancelled(db: Session, course) -> List[Notification]:
    message = (
        f'The "{course.course_type_name}" course scheduled for {course.scheduled_date} has been cancelled. '
        f"Reason: {course.cancellation_reason}"
    )
    recipients = organization_user_ids(db, course.organization_id)
    created = notify_many(db, recipients, "Course Cancelled", message,
                          kind=Kind.WARNING, category=Category.COURSE, link="/organization/courses")
    if course.instructor_id:
        n = notify(db, course.instructor_id, "Course Cancelled", message,
                   kind=Kind.WARNING, category=Category.COURSE, link="/instructor/classes")
        if n is not None:
            created.append(n)
    return created


def course_completed(db: Session, course) -> List[Notification]:
    return notify_many(
        db, organization_user_ids(db, course.organization_id), "Course Completed",
        f'Your "{course.course_type_name}" course on {course.scheduled_date} has been completed. '
        f"{course.attended_count} students attended.",
        kind=Kind.SUCCESS, category=Category.COURSE, link="/organization/courses",
    )


# ============================================================================
# Billing events
# ============================================================================


def invoice_posted(db: Session, invoice) -> List[Notification]:
    return notify_many(
        db, organization_user_ids(db, invoice.organization_id), "New Invoice",
        f"Invoice {invoice.invoice_number} for ${to_money(invoice.amount)} has been posted. "
        f"Due date: {invoice.due_date}",
        category=Category.BILLING, link="/organization/billing",
    )


def payment_submitted(db: Session, payment) -> List[Notification]:
    invoice = payment.invoice
    return notify_many(
        db, role_user_ids(db, Role.ACCOUNTANT), "Payment Submitted",
        f"{invoice.organization_name} has submitted a payment of ${to_money(payment.amount)} "
        f"for invoice {invoice.invoice_number}. Please verify.",
        category=Category.BILLING, link="/accounting/payments",
    )


def payment_reviewed(db: Session, payment) -> List[Notification]:
    invoice = payment.invoice
    if payment.status == PaymentStatus.VERIFIED:
        title, kind = "Payment Verified", Kind.SUCCESS
        message = (f"Your payment of ${to_money(payment.amount)} for invoice {invoice.invoice_number} "
                   f"has been verified.")
    else:
        title, kind = "Payment Rejected", Kind.WARNING
        message = (f"Your payment of ${to_money(payment.amount)} for invoice {invoice.invoice_number} "
                   f"was rejected: {payment.verification_notes}")
    return notify_many(db, organization_user_ids(db, invoice.organization_id), title, message,
                       kind=kind, category=Category.BILLING, link="/organization/billing")


# ============================================================================
# Payroll and profile events
# ============================================================================


def timesheet_reviewed(db: Session, timesheet, payment_request=None) -> Optional[Notification]:
    if payment_request is not None:
        message = (f"Your timesheet for the week of {timesheet.week_start_date} was approved. "
                   f"A payment request of ${to_money(payment_request.amount)} has been created.")
        kind = Kind.SUCCESS
    elif timesheet.status == TimesheetStatus.APPROVED:
        message = f"Your timesheet for the week of {timesheet.week_start_date} was approved."
        kind = Kind.SUCCESS
    else:
        message = f"Your timesheet for the week of {timesheet.week_start_date} was rejected."
        if timesheet.hr_comment:
            message += f" Comment: {timesheet.hr_comment}"
        kind = Kind.WARNING
    return notify(db, timesheet.instructor_id, "Timesheet Reviewed", message,
                  kind=kind, category=Category.PAYROLL, link="/instructor/timesheets")


def payment_request_completed(db: Session, payment_request) -> Optional[Notification]:
    return notify(
        db, payment_request.instructor_id, "Payment Sent",
        f"Your payment of ${to_money(payment_request.amount)} has been processed.",
        kind=Kind.SUCCESS, category=Category.PAYROLL, link="/instructor/payments",
    )


def profile_change_reviewed(db: Session, change) -> Optional[Notification]:
    approved = change.status == ProfileChangeStatus.APPROVED
    message = f"Your request to change {change.field_name.replace('_', ' ')} was {change.status.value}."
    if change.hr_comment:
        message += f" Comment: {change.hr_comment}"
    return notify(db, change.user_id, "Profile Change Reviewed", message,
                  kind=Kind.SUCCESS if approved else Kind.WARNING, category=Category.SYSTEM, link="/profile")
