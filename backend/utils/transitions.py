"""Allowed status changes for every workflow entity.

Each machine lists, per current status, the statuses it may move to. Any
other move raises ``InvalidTransitionError`` and leaves the row untouched.
"""

from enum import Enum
from typing import Dict, Iterable, Type

from models.course import CourseStatus
from models.invoice import InvoiceStatus, PaymentStatus
from models.vendor import VendorInvoiceStatus
from models.timesheet import TimesheetStatus
from models.payroll import PaymentRequestStatus
from models.profile_change import ProfileChangeStatus
from utils.errors import InvalidTransitionError


class StatusMachine:
    def __init__(self, name: str, enum_cls: Type[Enum], transitions: Dict[Enum, Iterable[Enum]]):
        self.name = name
        self.enum_cls = enum_cls
        self.transitions = {state: frozenset(targets) for state, targets in transitions.items()}
        missing = set(enum_cls) - set(self.transitions)
        if missing:
            raise ValueError(f"{name}: no transition entry for {sorted(m.value for m in missing)}")

    def allowed(self, current) -> frozenset:
        return self.transitions[self.enum_cls(current)]

    def can(self, current, target) -> bool:
        return self.enum_cls(target) in self.allowed(current)

    def check(self, current, target) -> None:
        if not self.can(current, target):
            raise InvalidTransitionError(
                f"{self.name} cannot move from '{self.enum_cls(current).value}' "
                f"to '{self.enum_cls(target).value}'",
                details={"from": self.enum_cls(current).value, "to": self.enum_cls(target).value},
            )

    def advance(self, obj, target, attr: str = "status"):
        """Validate and apply ``target`` to ``obj.<attr>``."""
        self.check(getattr(obj, attr), target)
        setattr(obj, attr, self.enum_cls(target))
        return obj


CS = CourseStatus
COURSE = StatusMachine("Course", CourseStatus, {
    CS.PENDING: {CS.CONFIRMED, CS.CANCELLED, CS.PAST_DUE},
    CS.CONFIRMED: {CS.CONFIRMED, CS.COMPLETED, CS.CANCELLED, CS.PAST_DUE},
    CS.COMPLETED: set(),
    CS.CANCELLED: set(),
    CS.PAST_DUE: set(),
})

IS = InvoiceStatus
INVOICE = StatusMachine("Invoice", InvoiceStatus, {
    IS.PENDING: {IS.PAYMENT_SUBMITTED, IS.PAID, IS.OVERDUE},
    IS.OVERDUE: {IS.PAYMENT_SUBMITTED, IS.PAID, IS.PENDING},
    IS.PAYMENT_SUBMITTED: {IS.PENDING, IS.PAID, IS.OVERDUE},
    # A reversed payment can reopen a paid invoice
    IS.PAID: {IS.PENDING, IS.OVERDUE, IS.PAYMENT_SUBMITTED},
})

PS = PaymentStatus
PAYMENT = StatusMachine("Payment", PaymentStatus, {
    PS.PENDING_VERIFICATION: {PS.VERIFIED, PS.REJECTED},
    PS.VERIFIED: {PS.REVERSED},
    PS.REJECTED: set(),
    PS.REVERSED: set(),
})

VS = VendorInvoiceStatus
VENDOR_INVOICE = StatusMachine("Vendor invoice", VendorInvoiceStatus, {
    VS.PENDING_SUBMISSION: {VS.SUBMITTED},
    VS.SUBMITTED: {VS.SENT_TO_ACCOUNTING, VS.REJECTED},
    VS.SENT_TO_ACCOUNTING: {VS.PAID, VS.REJECTED},
    VS.PAID: set(),
    VS.REJECTED: set(),
})

TS = TimesheetStatus
TIMESHEET = StatusMachine("Timesheet", TimesheetStatus, {
    TS.PENDING: {TS.APPROVED, TS.REJECTED},
    TS.APPROVED: set(),
    TS.REJECTED: set(),
})

RS = PaymentRequestStatus
PAYMENT_REQUEST = StatusMachine("Payment request", PaymentRequestStatus, {
    RS.PENDING: {RS.APPROVED, RS.REJECTED, RS.RETURNED_TO_HR},
    RS.RETURNED_TO_HR: {RS.PENDING},
    RS.APPROVED: {RS.COMPLETED},
    RS.REJECTED: set(),
    RS.COMPLETED: set(),
})

PCS = ProfileChangeStatus
PROFILE_CHANGE = StatusMachine("Profile change", ProfileChangeStatus, {
    PCS.PENDING: {PCS.APPROVED, PCS.REJECTED},
    PCS.APPROVED: set(),
    PCS.REJECTED: set(),
})
