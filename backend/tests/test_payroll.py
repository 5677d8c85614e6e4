"""Timesheets, pay rates and instructor payment requests."""

from datetime import timedelta

import pytest

from conftest import API, monday
from models.payroll import PaymentRequest
from models.timesheet import Timesheet, TimesheetStatus
from models.users import Role


@pytest.fixture
def instructor(make_user):
    return make_user(Role.INSTRUCTOR, first_name="Jordan", last_name="Lee")


@pytest.fixture
def hr(make_user, headers):
    return headers(make_user(Role.HR))


@pytest.fixture
def accountant(make_user, headers):
    return headers(make_user(Role.ACCOUNTANT))


def _submit(client, h, week=None, hours="10", courses=2):
    return client.post(f"{API}/timesheet", headers=h, json={
        "week_start_date": (week or monday()).isoformat(),
        "total_hours": hours,
        "courses_taught": courses,
    })


def _approved_request(client, instructor, headers, hr, **kwargs):
    sheet = _submit(client, headers(instructor), **kwargs).json()["data"]
    resp = client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr, json={"action": "approve"})
    return resp.json()["data"]["payment_request"]


class TestTimesheets:
    def test_submit(self, client, instructor, headers):
        resp = _submit(client, headers(instructor))

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["total_hours"] == 10.0
        assert data["instructor_name"] == "Jordan Lee"

    def test_week_must_start_on_monday(self, client, instructor, headers):
        resp = _submit(client, headers(instructor), week=monday() + timedelta(days=2))

        assert resp.status_code == 422

    def test_one_sheet_per_week(self, client, instructor, headers):
        h = headers(instructor)
        _submit(client, h)

        resp = _submit(client, h)

        assert resp.status_code == 409

    def test_edit_only_while_pending(self, client, instructor, headers, hr):
        h = headers(instructor)
        sheet = _submit(client, h).json()["data"]

        edited = client.put(f"{API}/timesheet/{sheet['id']}", headers=h, json={"total_hours": "12.5"})
        assert edited.json()["data"]["total_hours"] == 12.5

        client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr, json={"action": "approve"})
        locked = client.put(f"{API}/timesheet/{sheet['id']}", headers=h, json={"total_hours": "20"})
        assert locked.status_code == 400

    def test_instructors_see_only_their_own(self, client, make_user, instructor, headers, hr):
        other = make_user(Role.INSTRUCTOR)
        mine = _submit(client, headers(instructor)).json()["data"]
        _submit(client, headers(other))

        own = client.get(f"{API}/timesheet", headers=headers(instructor)).json()["data"]
        assert own["total"] == 1
        assert client.get(f"{API}/timesheet/{mine['id']}", headers=headers(other)).status_code == 403

        everything = client.get(f"{API}/timesheet", headers=hr).json()["data"]
        assert everything["total"] == 2

    def test_organizations_cannot_list(self, client, make_org, make_user, headers):
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))

        assert client.get(f"{API}/timesheet", headers=h).status_code == 403

    def test_stats(self, client, make_user, instructor, headers, hr):
        sheet = _submit(client, headers(instructor)).json()["data"]
        _submit(client, headers(instructor), week=monday(2))
        _submit(client, headers(make_user(Role.INSTRUCTOR)))
        client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr, json={"action": "approve"})

        stats = client.get(f"{API}/timesheet/stats", headers=hr).json()["data"]

        assert stats == {
            "pending": 2, "approved_this_month": 1, "hours_this_month": 10.0, "instructors_with_pending": 2,
        }


class TestReview:
    def test_approval_creates_payment_request(self, client, db, instructor, headers, hr):
        sheet = _submit(client, headers(instructor)).json()["data"]

        resp = client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr,
                           json={"action": "approve", "comment": "Looks right"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["timesheet"]["status"] == "approved"
        assert data["timesheet"]["hr_comment"] == "Looks right"
        request = data["payment_request"]
        assert request["status"] == "pending"
        assert request["hourly_rate"] == 25.0
        assert request["base_amount"] == 250.0
        assert request["bonus_amount"] == 100.0
        assert request["amount"] == 350.0
        assert request["week_start_date"] == monday().isoformat()
        assert db.query(PaymentRequest).count() == 1

    def test_rejection_creates_nothing(self, client, db, instructor, headers, hr):
        sheet = _submit(client, headers(instructor)).json()["data"]

        resp = client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr,
                           json={"action": "reject", "comment": "Hours missing"})

        assert resp.json()["data"]["timesheet"]["status"] == "rejected"
        assert resp.json()["data"]["payment_request"] is None
        assert db.query(PaymentRequest).count() == 0

    def test_reviewed_sheet_is_final(self, client, instructor, headers, hr):
        sheet = _submit(client, headers(instructor)).json()["data"]
        client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr, json={"action": "approve"})

        again = client.post(f"{API}/timesheet/{sheet['id']}/approve", headers=hr, json={"action": "reject"})

        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_instructor_pay_rate_is_used(self, client, instructor, headers, hr):
        rate = client.post(f"{API}/pay-rates/instructors/{instructor.id}", headers=hr, json={
            "hourly_rate": "40.00", "course_bonus": "10.00",
            "effective_date": (monday() - timedelta(days=30)).isoformat(),
        })
        assert rate.status_code == 201

        request = _approved_request(client, instructor, headers, hr)

        assert request["amount"] == 420.0

    def test_new_rate_closes_previous_period(self, client, instructor, hr):
        start = monday(8)
        client.post(f"{API}/pay-rates/instructors/{instructor.id}", headers=hr,
                    json={"hourly_rate": "30.00", "effective_date": start.isoformat()})
        client.post(f"{API}/pay-rates/instructors/{instructor.id}", headers=hr,
                    json={"hourly_rate": "35.00", "effective_date": (start + timedelta(days=28)).isoformat()})

        rates = client.get(f"{API}/pay-rates/instructors/{instructor.id}", headers=hr).json()["data"]

        assert [r["hourly_rate"] for r in rates] == [35.0, 30.0]
        assert rates[0]["end_date"] is None
        assert rates[1]["end_date"] == (start + timedelta(days=27)).isoformat()

    def test_pay_rates_only_for_instructors(self, client, make_user, hr):
        resp = client.get(f"{API}/pay-rates/instructors/{make_user(Role.HR).id}", headers=hr)

        assert resp.status_code == 404


class TestPaymentRequests:
    def test_approve_then_complete(self, client, instructor, headers, hr, accountant):
        request = _approved_request(client, instructor, headers, hr)

        approved = client.post(f"{API}/payment-requests/{request['id']}/process", headers=accountant,
                               json={"action": "approve"})
        assert approved.json()["data"]["status"] == "approved"

        completed = client.post(f"{API}/payment-requests/{request['id']}/complete", headers=accountant,
                                json={"payment_method": "direct_deposit"})
        assert completed.json()["data"]["status"] == "completed"
        assert completed.json()["data"]["payment_method"] == "direct_deposit"

        summary = client.get(f"{API}/timesheet/instructor/{instructor.id}/summary",
                             headers=headers(instructor)).json()["data"]
        assert summary["paid_amount"] == 350.0
        assert summary["outstanding_amount"] == 0.0

    def test_complete_requires_approval(self, client, instructor, headers, hr, accountant):
        request = _approved_request(client, instructor, headers, hr)

        resp = client.post(f"{API}/payment-requests/{request['id']}/complete", headers=accountant, json={})

        assert resp.status_code == 409

    def test_return_requires_notes(self, client, instructor, headers, hr, accountant):
        request = _approved_request(client, instructor, headers, hr)

        resp = client.post(f"{API}/payment-requests/{request['id']}/process", headers=accountant,
                           json={"action": "return_to_hr"})

        assert resp.status_code == 400

    def test_return_and_resubmit_recalculates(self, client, instructor, headers, hr, accountant):
        request = _approved_request(client, instructor, headers, hr)
        client.post(f"{API}/payment-requests/{request['id']}/process", headers=accountant,
                    json={"action": "return_to_hr", "notes": "Rate is outdated"})

        returned = client.get(f"{API}/hr/returned-payment-requests", headers=hr).json()["data"]
        assert [r["id"] for r in returned] == [request["id"]]

        client.post(f"{API}/pay-rates/instructors/{instructor.id}", headers=hr, json={
            "hourly_rate": "30.00", "course_bonus": "50.00",
            "effective_date": (monday() - timedelta(days=7)).isoformat(),
        })
        resp = client.post(f"{API}/hr/payment-requests/{request['id']}/resubmit", headers=hr, json={})

        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["amount"] == 400.0
        assert data["processed_at"] is None

    def test_resubmit_only_returned_requests(self, client, instructor, headers, hr):
        request = _approved_request(client, instructor, headers, hr)

        resp = client.post(f"{API}/hr/payment-requests/{request['id']}/resubmit", headers=hr, json={})

        assert resp.status_code == 409

    def test_bulk_process_reports_each_item(self, client, instructor, headers, hr, accountant):
        first = _approved_request(client, instructor, headers, hr)
        second = _approved_request(client, instructor, headers, hr, week=monday(2))
        client.post(f"{API}/payment-requests/{second['id']}/process", headers=accountant,
                    json={"action": "reject", "notes": "Duplicate"})

        resp = client.post(f"{API}/payment-requests/bulk-process", headers=accountant,
                           json={"action": "approve", "request_ids": [first["id"], second["id"], 999]})

        data = resp.json()["data"]
        assert data["processed"] == 1
        assert data["failed"] == 2
        by_id = {r["id"]: r for r in data["results"]}
        assert by_id[first["id"]]["status"] == "approved"
        assert by_id[second["id"]]["success"] is False
        assert by_id[second["id"]]["status"] == "rejected"
        assert by_id[999]["error"] == "Payment request not found"

    def test_list_and_stats(self, client, instructor, headers, hr, accountant):
        first = _approved_request(client, instructor, headers, hr)
        _approved_request(client, instructor, headers, hr, week=monday(3))
        client.post(f"{API}/payment-requests/{first['id']}/process", headers=accountant,
                    json={"action": "approve"})

        pending = client.get(f"{API}/payment-requests", headers=accountant, params={"status": "pending"})
        assert pending.json()["data"]["total"] == 1

        recent = client.get(f"{API}/payment-requests", headers=accountant,
                            params={"week_from": monday(1).isoformat()})
        assert [r["id"] for r in recent.json()["data"]["items"]] == [first["id"]]

        stats = client.get(f"{API}/payment-requests/stats", headers=accountant).json()["data"]
        assert stats["pending"] == 1
        assert stats["approved"] == 1
        assert stats["approved_amount"] == 350.0

    def test_history_access(self, client, make_user, instructor, headers, hr):
        _approved_request(client, instructor, headers, hr)

        own = client.get(f"{API}/payment-requests/instructor/{instructor.id}/history", headers=headers(instructor))
        assert len(own.json()["data"]) == 1

        other = headers(make_user(Role.INSTRUCTOR))
        assert client.get(f"{API}/payment-requests/instructor/{instructor.id}/history",
                          headers=other).status_code == 403

    def test_reconcile_backfills_missing_requests(self, client, db, instructor, hr):
        db.add(Timesheet(instructor_id=instructor.id, week_start_date=monday(4), total_hours=8,
                         courses_taught=1, status=TimesheetStatus.APPROVED))
        db.commit()

        resp = client.post(f"{API}/hr/payment-requests/reconcile", headers=hr)

        assert resp.json()["data"]["created"] == 1
        assert resp.json()["data"]["payment_requests"][0]["amount"] == 250.0

        again = client.post(f"{API}/hr/payment-requests/reconcile", headers=hr)
        assert again.json()["data"]["created"] == 0
