"""Status machines for every workflow entity."""

import enum
from types import SimpleNamespace

import pytest

from models.course import CourseStatus
from models.invoice import PaymentStatus
from models.payroll import PaymentRequestStatus
from models.vendor import VendorInvoiceStatus
from utils import transitions
from utils.errors import ErrorCode, InvalidTransitionError


class TestCourseMachine:
    @pytest.mark.parametrize("target", [CourseStatus.CONFIRMED, CourseStatus.CANCELLED, CourseStatus.PAST_DUE])
    def test_pending_moves(self, target):
        assert transitions.COURSE.can(CourseStatus.PENDING, target)

    def test_pending_cannot_complete(self):
        assert not transitions.COURSE.can(CourseStatus.PENDING, CourseStatus.COMPLETED)

    @pytest.mark.parametrize("terminal", [CourseStatus.COMPLETED, CourseStatus.CANCELLED, CourseStatus.PAST_DUE])
    def test_terminal_states_are_final(self, terminal):
        assert transitions.COURSE.allowed(terminal) == frozenset()

    def test_accepts_raw_values(self):
        assert transitions.COURSE.can("confirmed", "completed")


class TestAdvance:
    def test_advance_sets_status(self):
        row = SimpleNamespace(status=PaymentStatus.PENDING_VERIFICATION)

        transitions.PAYMENT.advance(row, PaymentStatus.VERIFIED)

        assert row.status is PaymentStatus.VERIFIED

    def test_invalid_move_raises_and_leaves_row(self):
        row = SimpleNamespace(status=VendorInvoiceStatus.PAID)

        with pytest.raises(InvalidTransitionError) as exc:
            transitions.VENDOR_INVOICE.advance(row, VendorInvoiceStatus.REJECTED)

        assert row.status is VendorInvoiceStatus.PAID
        assert exc.value.status_code == 409
        assert exc.value.code == ErrorCode.INVALID_TRANSITION
        assert exc.value.details == {"from": "paid", "to": "rejected"}

    def test_custom_attribute(self):
        row = SimpleNamespace(state=PaymentRequestStatus.RETURNED_TO_HR)

        transitions.PAYMENT_REQUEST.advance(row, PaymentRequestStatus.PENDING, attr="state")

        assert row.state is PaymentRequestStatus.PENDING


def test_machine_must_cover_every_state():
    class Light(str, enum.Enum):
        RED = "red"
        GREEN = "green"

    with pytest.raises(ValueError):
        transitions.StatusMachine("Light", Light, {Light.RED: {Light.GREEN}})
