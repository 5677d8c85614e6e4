"""Instructor availability calendar."""

from datetime import date, timedelta

from conftest import API
from models.availability import InstructorAvailability
from models.course import CourseStatus
from models.users import Role


def _day(offset):
    return (date.today() + timedelta(days=offset)).isoformat()


class TestAvailability:
    def test_add_and_list(self, client, make_user, headers):
        h = headers(make_user(Role.INSTRUCTOR))

        created = client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(5)})
        assert created.status_code == 201
        assert created.json()["data"]["status"] == "available"

        listing = client.get(f"{API}/instructor/availability", headers=h).json()["data"]
        assert [slot["date"] for slot in listing] == [_day(5)]

    def test_duplicate_day(self, client, make_user, headers):
        h = headers(make_user(Role.INSTRUCTOR))
        client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(5)})

        resp = client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(5)})

        assert resp.status_code == 409

    def test_past_day_rejected(self, client, make_user, headers):
        h = headers(make_user(Role.INSTRUCTOR))

        resp = client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(-1)})

        assert resp.status_code == 400

    def test_booked_day_rejected(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)

        resp = client.post(f"{API}/instructor/availability", headers=headers(instructor),
                           json={"date": course.scheduled_date.isoformat()})

        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "You already have a course on this date"

    def test_remove(self, client, make_user, headers):
        h = headers(make_user(Role.INSTRUCTOR))
        client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(3)})

        assert client.delete(f"{API}/instructor/availability/{_day(3)}", headers=h).status_code == 200
        assert client.delete(f"{API}/instructor/availability/{_day(3)}", headers=h).status_code == 404

    def test_replace_keeps_only_requested_days(self, client, db, make_user, headers):
        instructor = make_user(Role.INSTRUCTOR)
        h = headers(instructor)
        client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(3)})
        client.post(f"{API}/instructor/availability", headers=h, json={"date": _day(4)})

        resp = client.put(f"{API}/instructor/availability", headers=h, json={"dates": [_day(4), _day(6)]})

        assert resp.status_code == 200
        assert [slot["date"] for slot in resp.json()["data"]] == [_day(4), _day(6)]
        count = db.query(InstructorAvailability).filter(InstructorAvailability.instructor_id == instructor.id).count()
        assert count == 2

    def test_other_roles_cannot_manage_availability(self, client, make_user, headers):
        resp = client.post(f"{API}/instructor/availability", headers=headers(make_user(Role.HR)),
                           json={"date": _day(2)})

        assert resp.status_code == 403


class TestAvailableInstructors:
    def test_busy_instructors_are_excluded(self, client, db, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        free = make_user(Role.INSTRUCTOR, username="free")
        busy = make_user(Role.INSTRUCTOR, username="busy")
        day = date.today() + timedelta(days=9)
        db.add_all([
            InstructorAvailability(instructor_id=free.id, date=day),
            InstructorAvailability(instructor_id=busy.id, date=day),
        ])
        db.commit()
        make_course(make_org(), status=CourseStatus.CONFIRMED, scheduled_date=day, instructor=busy)

        resp = client.get(f"{API}/instructors/available/{day.isoformat()}", headers=headers(admin))

        assert resp.status_code == 200
        assert [i["username"] for i in resp.json()["data"]] == ["free"]

    def test_schedule_lists_upcoming_confirmed(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        org = make_org()
        make_course(org, status=CourseStatus.CONFIRMED, instructor=instructor)
        make_course(org, status=CourseStatus.CONFIRMED, instructor=instructor,
                    scheduled_date=date.today() - timedelta(days=2))

        resp = client.get(f"{API}/instructor/schedule", headers=headers(instructor))

        assert len(resp.json()["data"]) == 1
