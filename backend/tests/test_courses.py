"""Course requests, scheduling, cancellation, completion and attendance."""

from datetime import date, timedelta

from conftest import API
from models.availability import InstructorAvailability
from models.course import CourseStatus
from models.users import Role


def _future(days=14):
    return (date.today() + timedelta(days=days)).isoformat()


class TestCourseRequests:
    def test_organization_books_course(self, client, make_org, make_user, headers, course_type):
        org = make_org()
        h = headers(make_user(Role.ORGANIZATION, organization=org))

        resp = client.post(f"{API}/organization/course-request", headers=h, json={
            "course_type_id": course_type.id,
            "scheduled_date": _future(),
            "location": "Gym B",
            "registered_students": 12,
        })

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["organization_id"] == org.id
        assert data["course_type_name"] == "CPR Level C"
        assert data["date_requested"] == date.today().isoformat()

    def test_past_date_rejected(self, client, make_org, make_user, headers, course_type):
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))

        resp = client.post(f"{API}/organization/course-request", headers=h, json={
            "course_type_id": course_type.id,
            "scheduled_date": (date.today() - timedelta(days=1)).isoformat(),
            "location": "Gym B",
            "registered_students": 5,
        })

        assert resp.status_code == 400

    def test_unknown_course_type(self, client, make_org, make_user, headers):
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))

        resp = client.post(f"{API}/organization/course-request", headers=h, json={
            "course_type_id": 999, "scheduled_date": _future(), "location": "Gym", "registered_students": 5,
        })

        assert resp.status_code == 404

    def test_student_count_must_be_positive(self, client, make_org, make_user, headers, course_type):
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))

        resp = client.post(f"{API}/organization/course-request", headers=h, json={
            "course_type_id": course_type.id, "scheduled_date": _future(), "location": "Gym",
            "registered_students": 0,
        })

        assert resp.status_code == 422

    def test_organizations_only_see_their_courses(self, client, make_org, make_user, make_course, headers):
        mine, theirs = make_org(), make_org()
        make_course(mine)
        other = make_course(theirs)
        h = headers(make_user(Role.ORGANIZATION, organization=mine))

        listing = client.get(f"{API}/organization/courses", headers=h).json()["data"]
        assert listing["total"] == 1

        assert client.get(f"{API}/organization/courses/{other.id}", headers=h).status_code == 404


class TestScheduling:
    def test_assign_confirms_and_consumes_availability(self, client, db, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org())
        db.add(InstructorAvailability(instructor_id=instructor.id, date=course.scheduled_date))
        db.commit()

        resp = client.put(f"{API}/courses/{course.id}/assign-instructor", headers=headers(admin), json={
            "instructor_id": instructor.id, "start_time": "09:00:00", "end_time": "15:00:00",
        })

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "confirmed"
        assert data["instructor_id"] == instructor.id
        assert data["confirmed_start_time"] == "09:00:00"
        remaining = db.query(InstructorAvailability).filter(InstructorAvailability.instructor_id == instructor.id).count()
        assert remaining == 0

    def test_double_booking_conflict(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        instructor = make_user(Role.INSTRUCTOR)
        org = make_org()
        day = date.today() + timedelta(days=10)
        make_course(org, status=CourseStatus.CONFIRMED, scheduled_date=day, instructor=instructor)
        second = make_course(org, scheduled_date=day)

        resp = client.put(f"{API}/courses/{second.id}/assign-instructor", headers=headers(admin),
                          json={"instructor_id": instructor.id})

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT"

    def test_assign_requires_instructor_role(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        course = make_course(make_org())

        resp = client.put(f"{API}/courses/{course.id}/assign-instructor", headers=headers(admin),
                          json={"instructor_id": admin.id})

        assert resp.status_code == 404

    def test_end_time_after_start(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org())

        resp = client.put(f"{API}/courses/{course.id}/assign-instructor", headers=headers(admin), json={
            "instructor_id": instructor.id, "start_time": "15:00:00", "end_time": "09:00:00",
        })

        assert resp.status_code == 422

    def test_reschedule_moves_date(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)
        new_day = date.today() + timedelta(days=21)

        resp = client.put(f"{API}/courses/{course.id}/schedule", headers=headers(admin),
                          json={"scheduled_date": new_day.isoformat()})

        assert resp.status_code == 200
        assert resp.json()["data"]["scheduled_date"] == new_day.isoformat()

    def test_reschedule_same_day_keeps_day_booked(self, client, db, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)

        resp = client.put(f"{API}/courses/{course.id}/schedule", headers=headers(make_user(Role.ADMIN)), json={
            "scheduled_date": course.scheduled_date.isoformat(), "start_time": "13:00", "end_time": "17:00",
        })

        assert resp.status_code == 200
        assert resp.json()["data"]["confirmed_start_time"] == "13:00:00"
        slots = db.query(InstructorAvailability).filter(InstructorAvailability.instructor_id == instructor.id).all()
        assert slots == []

    def test_reschedule_frees_old_day_and_books_new_one(self, client, db, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)
        old_day = course.scheduled_date
        new_day = old_day + timedelta(days=7)
        db.add(InstructorAvailability(instructor_id=instructor.id, date=new_day))
        db.commit()

        resp = client.put(f"{API}/courses/{course.id}/schedule", headers=headers(make_user(Role.ADMIN)),
                          json={"scheduled_date": new_day.isoformat()})

        assert resp.status_code == 200
        db.expire_all()
        days = [s.date for s in db.query(InstructorAvailability).filter(
            InstructorAvailability.instructor_id == instructor.id)]
        assert days == [old_day]

    def test_reschedule_pending_course_is_invalid(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        course = make_course(make_org())

        resp = client.put(f"{API}/courses/{course.id}/schedule", headers=headers(admin),
                          json={"scheduled_date": _future(30)})

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_list_by_status(self, client, make_org, make_user, make_course, headers):
        org = make_org()
        make_course(org)
        make_course(org, status=CourseStatus.CANCELLED)

        resp = client.get(f"{API}/courses/pending", headers=headers(make_user(Role.ADMIN)))

        assert resp.status_code == 200
        assert resp.json()["data"]["total"] == 1


class TestCancellation:
    def test_cancel_restores_instructor_day(self, client, db, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)

        resp = client.put(f"{API}/courses/{course.id}/cancel", headers=headers(admin),
                          json={"reason": "Venue unavailable"})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "cancelled"
        assert data["cancellation_reason"] == "Venue unavailable"
        assert "Cancelled: Venue unavailable" in data["notes"]
        slot = db.query(InstructorAvailability).filter(
            InstructorAvailability.instructor_id == instructor.id,
            InstructorAvailability.date == course.scheduled_date,
        ).first()
        assert slot is not None

    def test_cancel_after_date_is_past_due(self, client, make_org, make_user, make_course, headers):
        course = make_course(make_org(), scheduled_date=date.today() - timedelta(days=3))

        resp = client.put(f"{API}/courses/{course.id}/cancel", headers=headers(make_user(Role.ADMIN)),
                          json={"reason": "Never confirmed"})

        assert resp.json()["data"]["status"] == "past_due"

    def test_blank_reason_rejected(self, client, make_org, make_user, make_course, headers):
        course = make_course(make_org())

        resp = client.put(f"{API}/courses/{course.id}/cancel", headers=headers(make_user(Role.ADMIN)),
                          json={"reason": "   "})

        assert resp.status_code == 400

    def test_completed_course_cannot_be_cancelled(self, client, make_org, make_user, make_course, headers):
        course = make_course(make_org(), status=CourseStatus.COMPLETED)

        resp = client.put(f"{API}/courses/{course.id}/cancel", headers=headers(make_user(Role.ADMIN)),
                          json={"reason": "Too late"})

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_TRANSITION"


class TestCompletion:
    def test_instructor_completes_once(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor)
        h = headers(instructor)

        first = client.post(f"{API}/instructor/classes/{course.id}/complete", headers=h,
                            json={"instructor_comments": "All passed"})
        assert first.status_code == 200
        assert first.json()["data"]["status"] == "completed"
        assert first.json()["data"]["completed_at"] is not None

        second = client.post(f"{API}/instructor/classes/{course.id}/complete", headers=h, json={})
        assert second.status_code == 409

    def test_other_instructor_cannot_see_course(self, client, make_org, make_user, make_course, headers):
        owner = make_user(Role.INSTRUCTOR)
        stranger = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=owner)

        resp = client.post(f"{API}/instructor/classes/{course.id}/complete", headers=headers(stranger), json={})

        assert resp.status_code == 404

    def test_ready_for_billing_requires_completion(self, client, make_org, make_user, make_course, headers):
        admin = make_user(Role.ADMIN)
        org = make_org()
        pending = make_course(org)
        done = make_course(org, status=CourseStatus.COMPLETED)

        assert client.put(f"{API}/courses/{pending.id}/ready-for-billing", headers=headers(admin)).status_code == 400

        resp = client.put(f"{API}/courses/{done.id}/ready-for-billing", headers=headers(admin))
        assert resp.status_code == 200
        assert resp.json()["data"]["ready_for_billing"] is True


class TestStudents:
    def test_organization_registers_students(self, client, make_org, make_user, make_course, headers):
        org = make_org()
        course = make_course(org)
        h = headers(make_user(Role.ORGANIZATION, organization=org))
        student = {"first_name": "Ada", "last_name": "Lovelace", "email": "Ada@Example.com"}

        created = client.post(f"{API}/organization/courses/{course.id}/students", headers=h, json=student)
        assert created.status_code == 201
        assert created.json()["data"]["email"] == "ada@example.com"

        duplicate = client.post(f"{API}/organization/courses/{course.id}/students", headers=h, json=student)
        assert duplicate.status_code == 409

        roster = client.get(f"{API}/organization/courses/{course.id}/students", headers=h).json()["data"]
        assert len(roster) == 1

    def test_instructor_marks_attendance(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor, students=3)
        h = headers(instructor)
        roster = client.get(f"{API}/instructor/classes/{course.id}/students", headers=h).json()["data"]

        resp = client.post(f"{API}/instructor/classes/{course.id}/attendance", headers=h, json={
            "students": [{"id": s["id"], "attended": s["first_name"] != "Student2"} for s in roster],
        })

        assert resp.status_code == 200
        attended = [s for s in resp.json()["data"] if s["attended"]]
        assert len(attended) == 2

        single = client.put(f"{API}/instructor/classes/{course.id}/students/{roster[2]['id']}/attendance",
                            headers=h, json={"attended": True})
        assert single.json()["data"]["attended"] is True

    def test_attendance_rejects_foreign_students(self, client, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.CONFIRMED, instructor=instructor, students=1)

        resp = client.post(f"{API}/instructor/classes/{course.id}/attendance", headers=headers(instructor),
                           json={"students": [{"id": 9999, "attended": True}]})

        assert resp.status_code == 404

    def test_attendance_locked_after_invoicing(self, client, db, make_org, make_user, make_course, headers):
        instructor = make_user(Role.INSTRUCTOR)
        course = make_course(make_org(), status=CourseStatus.COMPLETED, instructor=instructor, students=1)
        course.invoiced = True
        db.commit()

        resp = client.post(f"{API}/instructor/classes/{course.id}/students", headers=headers(instructor),
                           json={"first_name": "Late", "last_name": "Comer", "email": "late@example.com"})

        assert resp.status_code == 409
