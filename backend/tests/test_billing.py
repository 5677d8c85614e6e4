"""Pricing, billing queue, invoices and the payment lifecycle."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import API
from models.course import CourseRequest, CourseStatus
from models.invoice import Invoice, Payment, PaymentStatus
from models.users import Role


@pytest.fixture
def billable(make_org, make_course, make_price):
    """A completed course with 8 of 10 students attending, priced at 50.00."""
    org = make_org()
    make_price(org)
    course = make_course(org, status=CourseStatus.COMPLETED, students=10, attended=8, ready=True)
    return org, course


@pytest.fixture
def accountant(make_user, headers):
    return headers(make_user(Role.ACCOUNTANT))


def _invoice(client, accountant, course):
    resp = client.post(f"{API}/accounting/invoices", headers=accountant, json={"course_id": course.id})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _posted_invoice(client, accountant, course):
    invoice = _invoice(client, accountant, course)
    client.put(f"{API}/accounting/invoices/{invoice['id']}/post-to-org", headers=accountant)
    return invoice


class TestPricing:
    def test_new_price_replaces_active_one(self, client, db, make_org, course_type, accountant):
        org = make_org()
        body = {"organization_id": org.id, "course_type_id": course_type.id, "price_per_student": "40.00"}
        client.post(f"{API}/accounting/course-pricing", headers=accountant, json=body)

        body["price_per_student"] = "45.50"
        resp = client.post(f"{API}/accounting/course-pricing", headers=accountant, json=body)

        assert resp.status_code == 201
        active = client.get(f"{API}/accounting/course-pricing", headers=accountant).json()["data"]
        assert [p["price_per_student"] for p in active] == [45.5]

    def test_price_must_be_positive(self, client, make_org, course_type, accountant):
        resp = client.post(f"{API}/accounting/course-pricing", headers=accountant, json={
            "organization_id": make_org().id, "course_type_id": course_type.id, "price_per_student": "0",
        })

        assert resp.status_code == 422


class TestBillingQueue:
    def test_queue_prices_attended_students(self, client, billable, accountant):
        _, course = billable

        rows = client.get(f"{API}/accounting/billing-queue", headers=accountant).json()["data"]

        assert len(rows) == 1
        assert rows[0]["course_id"] == course.id
        assert rows[0]["attended_students"] == 8
        assert rows[0]["registered_students"] == 10
        assert rows[0]["base_amount"] == 400.0

    def test_unpriced_and_unready_courses_are_skipped(self, client, make_org, make_course, accountant):
        org = make_org()
        make_course(org, status=CourseStatus.COMPLETED, students=2, attended=2, ready=True)
        make_course(org, status=CourseStatus.COMPLETED, students=2, attended=2)

        assert client.get(f"{API}/accounting/billing-queue", headers=accountant).json()["data"] == []


class TestInvoiceCreation:
    def test_invoice_amounts_and_number(self, client, db, billable, accountant):
        _, course = billable

        data = _invoice(client, accountant, course)

        assert data["invoice_number"] == f"INV-{date.today().year}-000001"
        assert data["students_billed"] == 8
        assert data["base_amount"] == 400.0
        assert data["tax_amount"] == 52.0
        assert data["amount"] == 452.0
        assert data["balance_due"] == 452.0
        assert data["status"] == "pending"
        assert data["posted_to_org"] is False
        assert data["due_date"] == (date.today() + timedelta(days=30)).isoformat()
        db.expire_all()
        assert db.get(CourseRequest, course.id).invoiced is True

    def test_numbers_are_sequential(self, client, make_org, make_course, make_price, accountant):
        org = make_org()
        make_price(org)
        first = make_course(org, status=CourseStatus.COMPLETED, students=1, attended=1, ready=True)
        second = make_course(org, status=CourseStatus.COMPLETED, students=1, attended=1, ready=True)

        numbers = [_invoice(client, accountant, c)["invoice_number"] for c in (first, second)]

        assert numbers[1].endswith("000002")

    def test_course_invoiced_once(self, client, billable, accountant):
        _, course = billable
        _invoice(client, accountant, course)

        resp = client.post(f"{API}/accounting/invoices", headers=accountant, json={"course_id": course.id})

        assert resp.status_code == 409

    def test_course_must_be_ready(self, client, make_org, make_course, make_price, accountant):
        org = make_org()
        make_price(org)
        course = make_course(org, status=CourseStatus.COMPLETED, students=2, attended=2)

        resp = client.post(f"{API}/accounting/invoices", headers=accountant, json={"course_id": course.id})

        assert resp.status_code == 400

    def test_missing_pricing(self, client, make_org, make_course, accountant):
        course = make_course(make_org(), status=CourseStatus.COMPLETED, students=2, attended=2, ready=True)

        resp = client.post(f"{API}/accounting/invoices", headers=accountant, json={"course_id": course.id})

        assert resp.status_code == 404

    def test_no_attendees(self, client, make_org, make_course, make_price, accountant):
        org = make_org()
        make_price(org)
        course = make_course(org, status=CourseStatus.COMPLETED, students=3, attended=0, ready=True)

        resp = client.post(f"{API}/accounting/invoices", headers=accountant, json={"course_id": course.id})

        assert resp.status_code == 400

    def test_tax_rate_comes_from_configuration(self, client, seeded_config, billable, make_user, headers, accountant):
        _, course = billable
        sysadmin = headers(make_user(Role.SYSADMIN))
        client.put(f"{API}/sysadmin/configurations/invoice_tax_rate", headers=sysadmin, json={"value": "0.05"})

        data = _invoice(client, accountant, course)

        assert data["tax_amount"] == 20.0
        assert data["amount"] == 420.0


class TestOrganizationView:
    def test_unposted_invoices_are_hidden(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))

        assert client.get(f"{API}/organization/invoices", headers=h).json()["data"]["total"] == 0
        assert client.get(f"{API}/organization/invoices/{invoice['id']}", headers=h).status_code == 404

        client.put(f"{API}/accounting/invoices/{invoice['id']}/post-to-org", headers=accountant)
        assert client.get(f"{API}/organization/invoices", headers=h).json()["data"]["total"] == 1

    def test_posting_twice_conflicts(self, client, billable, accountant):
        _, course = billable
        invoice = _posted_invoice(client, accountant, course)

        resp = client.put(f"{API}/accounting/invoices/{invoice['id']}/post-to-org", headers=accountant)

        assert resp.status_code == 409

    def test_other_organizations_cannot_see_invoice(self, client, billable, make_org, make_user, headers, accountant):
        _, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))

        assert client.get(f"{API}/organization/invoices/{invoice['id']}", headers=h).status_code == 404


class TestPayments:
    def _submit(self, client, org_headers, invoice_id, amount):
        return client.post(f"{API}/organization/invoices/{invoice_id}/payment-submission", headers=org_headers, json={
            "amount": amount, "payment_date": date.today().isoformat(), "payment_method": "cheque",
        })

    def test_submission_then_verification_pays_invoice(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))

        submitted = self._submit(client, h, invoice["id"], "452.00")
        assert submitted.status_code == 201
        assert submitted.json()["data"]["status"] == "pending_verification"
        detail = client.get(f"{API}/organization/invoices/{invoice['id']}", headers=h).json()["data"]
        assert detail["status"] == "payment_submitted"

        queue = client.get(f"{API}/accounting/payment-verifications", headers=accountant).json()["data"]
        assert [p["id"] for p in queue] == [submitted.json()["data"]["id"]]

        verified = client.post(f"{API}/accounting/payments/{queue[0]['id']}/verify", headers=accountant,
                               json={"action": "approve"})
        assert verified.json()["data"]["status"] == "verified"

        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "paid"
        assert detail["balance_due"] == 0.0
        assert detail["paid_date"] == date.today().isoformat()

    def test_overpayment_rejected(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))

        resp = self._submit(client, h, invoice["id"], "500.00")

        assert resp.status_code == 400

    def test_pending_submissions_count_against_balance(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))
        assert self._submit(client, h, invoice["id"], "452.00").status_code == 201

        again = self._submit(client, h, invoice["id"], "452.00")
        recorded = client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json={
            "amount": "1.00", "payment_date": date.today().isoformat(),
        })

        assert again.status_code == 400
        assert recorded.status_code == 400
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert len(detail["payments"]) == 1

    def test_verification_cannot_exceed_invoice_amount(self, client, db, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))
        first = self._submit(client, h, invoice["id"], "452.00").json()["data"]
        # A second full submission written before pending amounts were counted
        row = db.get(Invoice, invoice["id"])
        row.payments.append(Payment(amount=Decimal("452.00"), payment_date=date.today(),
                                    status=PaymentStatus.PENDING_VERIFICATION))
        db.commit()
        second_id = row.payments[-1].id

        approved = client.post(f"{API}/accounting/payments/{first['id']}/verify", headers=accountant,
                             json={"action": "approve"})
        over = client.post(f"{API}/accounting/payments/{second_id}/verify", headers=accountant,
                           json={"action": "approve"})

        assert approved.status_code == 200
        assert over.status_code == 409
        db.expire_all()
        assert db.get(Payment, second_id).status == PaymentStatus.PENDING_VERIFICATION
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "paid"
        assert sum(p["amount"] for p in detail["payments"] if p["status"] == "verified") == 452.0

    def test_reject_requires_notes_and_reopens_invoice(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        h = headers(make_user(Role.ORGANIZATION, organization=org))
        payment = self._submit(client, h, invoice["id"], "100.00").json()["data"]

        no_notes = client.post(f"{API}/accounting/payments/{payment['id']}/verify", headers=accountant,
                               json={"action": "reject"})
        assert no_notes.status_code == 400

        rejected = client.post(f"{API}/accounting/payments/{payment['id']}/verify", headers=accountant,
                               json={"action": "reject", "notes": "Cheque bounced"})
        assert rejected.json()["data"]["status"] == "rejected"
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "pending"

    def test_partial_recorded_payments(self, client, billable, accountant):
        _, course = billable
        invoice = _invoice(client, accountant, course)
        body = {"amount": "200.00", "payment_date": date.today().isoformat(), "payment_method": "eft"}

        first = client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json=body)
        assert first.json()["data"]["status"] == "verified"
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "pending"
        assert detail["balance_due"] == 252.0

        body["amount"] = "252.00"
        client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json=body)
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "paid"
        assert len(detail["payments"]) == 2

        body["amount"] = "1.00"
        extra = client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json=body)
        assert extra.status_code == 409

    def test_reversal_reopens_paid_invoice(self, client, billable, accountant):
        _, course = billable
        invoice = _invoice(client, accountant, course)
        payment = client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json={
            "amount": "452.00", "payment_date": date.today().isoformat(),
        }).json()["data"]

        resp = client.post(f"{API}/accounting/payments/{payment['id']}/reverse", headers=accountant,
                           json={"reason": "Entered against wrong invoice"})

        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "reversed"
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "pending"
        assert detail["paid_date"] is None

        again = client.post(f"{API}/accounting/payments/{payment['id']}/reverse", headers=accountant,
                            json={"reason": "Twice"})
        assert again.status_code == 409

    def test_reversal_window(self, client, db, billable, accountant):
        _, course = billable
        invoice = _invoice(client, accountant, course)
        payment = client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json={
            "amount": "100.00", "payment_date": date.today().isoformat(),
        }).json()["data"]
        db.query(Payment).filter(Payment.id == payment["id"]).update(
            {Payment.verified_at: datetime.utcnow() - timedelta(hours=49)}
        )
        db.commit()

        resp = client.post(f"{API}/accounting/payments/{payment['id']}/reverse", headers=accountant,
                           json={"reason": "Too late"})

        assert resp.status_code == 400
        assert "48 hours" in resp.json()["error"]["message"]


class TestOverdueAndReports:
    def test_overdue_update(self, client, db, billable, accountant):
        _, course = billable
        invoice = _invoice(client, accountant, course)
        db.query(Invoice).filter(Invoice.id == invoice["id"]).update(
            {Invoice.due_date: date.today() - timedelta(days=1)}
        )
        db.commit()

        resp = client.post(f"{API}/accounting/trigger-overdue-update", headers=accountant)

        assert resp.json()["data"] == {"updated": 1}
        detail = client.get(f"{API}/accounting/invoices/{invoice['id']}", headers=accountant).json()["data"]
        assert detail["status"] == "overdue"

    def test_invoice_pdf(self, client, billable, accountant):
        _, course = billable
        invoice = _invoice(client, accountant, course)

        resp = client.get(f"{API}/accounting/invoices/{invoice['id']}/pdf", headers=accountant)

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert resp.content.startswith(b"%PDF")

    def test_organization_summary(self, client, billable, make_user, headers, accountant):
        org, course = billable
        invoice = _posted_invoice(client, accountant, course)
        client.post(f"{API}/accounting/invoices/{invoice['id']}/payments", headers=accountant, json={
            "amount": "152.00", "payment_date": date.today().isoformat(),
        })
        h = headers(make_user(Role.ORGANIZATION, organization=org))

        summary = client.get(f"{API}/organization/billing-summary", headers=h).json()["data"]

        assert summary["invoice_count"] == 1
        assert summary["total_invoiced"] == 452.0
        assert summary["total_paid"] == 152.0
        assert summary["outstanding"] == 300.0

    def test_list_filters_by_status(self, client, billable, accountant):
        _, course = billable
        _invoice(client, accountant, course)

        pending = client.get(f"{API}/accounting/invoices", headers=accountant, params={"status": "pending"})
        paid = client.get(f"{API}/accounting/invoices", headers=accountant, params={"status": "paid"})

        assert pending.json()["data"]["total"] == 1
        assert paid.json()["data"]["total"] == 0
