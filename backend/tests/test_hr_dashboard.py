"""HR dashboard: staff overview, instructor and organization profiles."""

from datetime import date, timedelta

from conftest import API, monday
from models.course import CourseStatus
from models.users import Role

BASE = f"{API}/hr/dashboard"


def _request_change(client, h, field, value):
    return client.post(f"{API}/profile-changes", headers=h,
                       json={"field_name": field, "new_value": value}).json()["data"]


class TestStats:
    def test_counts(self, client, make_org, make_user, make_course, headers):
        org = make_org()
        busy = make_user(Role.INSTRUCTOR)
        make_user(Role.INSTRUCTOR)
        make_user(Role.INSTRUCTOR, is_active=False)
        make_course(org, status=CourseStatus.COMPLETED, instructor=busy,
                    scheduled_date=date.today() - timedelta(days=3))
        make_course(org, status=CourseStatus.COMPLETED, instructor=busy,
                    scheduled_date=date.today() - timedelta(days=90))
        client.post(f"{API}/timesheet", headers=headers(busy), json={
            "week_start_date": monday().isoformat(), "total_hours": "6", "courses_taught": 1,
        })
        _request_change(client, headers(busy), "phone", "555-0101")

        stats = client.get(f"{BASE}/stats", headers=headers(make_user(Role.HR))).json()["data"]

        assert stats["pending_profile_changes"] == 1
        assert stats["pending_timesheets"] == 1
        assert stats["returned_payment_requests"] == 0
        assert stats["active_instructors"] == 1
        assert stats["total_instructors"] == 2
        assert stats["organizations"] == 1
        assert [c["field_name"] for c in stats["recent_changes"]] == ["phone"]

    def test_pending_approvals_oldest_first(self, client, make_user, headers):
        hr = headers(make_user(Role.HR))
        first = _request_change(client, headers(make_user(Role.INSTRUCTOR)), "phone", "555-0111")
        second = _request_change(client, headers(make_user(Role.INSTRUCTOR)), "phone", "555-0122")
        reviewed = _request_change(client, headers(make_user(Role.INSTRUCTOR)), "phone", "555-0133")
        client.post(f"{API}/hr/profile-changes/{reviewed['id']}/approve", headers=hr, json={"action": "approve"})

        stats = client.get(f"{BASE}/stats", headers=hr).json()["data"]

        assert [c["id"] for c in stats["pending_approvals"]] == [first["id"], second["id"]]
        assert len(stats["recent_changes"]) == 3

    def test_admin_allowed_accountant_denied(self, client, make_user, headers):
        assert client.get(f"{BASE}/stats", headers=headers(make_user(Role.ADMIN))).status_code == 200
        assert client.get(f"{BASE}/stats", headers=headers(make_user(Role.ACCOUNTANT))).status_code == 403


class TestProfiles:
    def test_instructor_course_totals(self, client, make_org, make_user, make_course, headers):
        org = make_org()
        lee = make_user(Role.INSTRUCTOR, username="jlee", last_name="Lee")
        make_user(Role.INSTRUCTOR, username="mkhan", last_name="Khan")
        make_course(org, status=CourseStatus.COMPLETED, instructor=lee,
                    scheduled_date=date.today() - timedelta(days=7))
        upcoming = date.today() + timedelta(days=5)
        make_course(org, status=CourseStatus.CONFIRMED, instructor=lee, scheduled_date=upcoming)
        hr = headers(make_user(Role.HR))

        page = client.get(f"{BASE}/instructors", headers=hr).json()["data"]
        assert page["total"] == 2
        assert [i["username"] for i in page["items"]] == ["jlee", "mkhan"]
        jlee, mkhan = page["items"]
        assert (jlee["total_courses"], jlee["completed_courses"], jlee["active_courses"]) == (2, 1, 1)
        assert jlee["last_course_date"] == upcoming.isoformat()
        assert mkhan["total_courses"] == 0
        assert mkhan["last_course_date"] is None

        found = client.get(f"{BASE}/instructors", headers=hr, params={"q": "KHAN"}).json()["data"]
        assert [i["username"] for i in found["items"]] == ["mkhan"]

    def test_organization_totals(self, client, make_org, make_user, make_course, headers):
        org = make_org("Alpha Clinic")
        make_org("Beta Pool")
        make_user(Role.ORGANIZATION, organization=org)
        make_user(Role.ORGANIZATION, organization=org)
        make_course(org)

        page = client.get(f"{BASE}/organizations", headers=headers(make_user(Role.HR))).json()["data"]

        assert [o["name"] for o in page["items"]] == ["Alpha Clinic", "Beta Pool"]
        alpha, beta = page["items"]
        assert (alpha["total_users"], alpha["total_courses"]) == (2, 1)
        assert (beta["total_users"], beta["total_courses"]) == (0, 0)

    def test_user_detail(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)
        _request_change(client, headers(instructor), "phone", "555-0144")

        detail = client.get(f"{BASE}/users/{instructor.id}", headers=headers(make_user(Role.HR))).json()["data"]

        assert detail["user"]["username"] == instructor.username
        assert [c["new_value"] for c in detail["profile_changes"]] == ["555-0144"]
        assert [c["id"] for c in detail["course_history"]] == [course.id]

    def test_unknown_user(self, client, make_user, headers):
        assert client.get(f"{BASE}/users/9999", headers=headers(make_user(Role.HR))).status_code == 404
