"""Self-service profile change requests reviewed by HR."""

from conftest import API
from models.users import Role, User


def _request(client, h, field, value):
    return client.post(f"{API}/profile-changes", headers=h, json={"field_name": field, "new_value": value})


class TestRequests:
    def test_request_records_old_value(self, client, make_user, headers):
        user = make_user(Role.INSTRUCTOR, username="jlee")

        resp = _request(client, headers(user), "email", "Jordan.Lee@Example.com")

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["status"] == "pending"
        assert data["change_type"] == "contact"
        assert data["old_value"] == "jlee@example.com"
        assert data["new_value"] == "jordan.lee@example.com"

    def test_same_value_rejected(self, client, make_user, headers):
        user = make_user(Role.INSTRUCTOR, first_name="Jordan")

        assert _request(client, headers(user), "first_name", "Jordan").status_code == 400

    def test_one_pending_change_per_field(self, client, make_user, headers):
        h = headers(make_user(Role.INSTRUCTOR))
        _request(client, h, "phone", "555-0100")

        assert _request(client, h, "phone", "555-0199").status_code == 409
        assert _request(client, h, "last_name", "Nguyen").status_code == 201

    def test_email_in_use(self, client, make_user, headers):
        make_user(Role.HR, username="taken")
        h = headers(make_user(Role.INSTRUCTOR))

        assert _request(client, h, "email", "taken@example.com").status_code == 409

    def test_unsupported_field(self, client, make_user, headers):
        resp = _request(client, headers(make_user(Role.INSTRUCTOR)), "role", "admin")

        assert resp.status_code == 422

    def test_staff_cannot_request(self, client, make_user, headers):
        assert _request(client, headers(make_user(Role.ACCOUNTANT)), "phone", "555").status_code == 403

    def test_my_changes(self, client, make_org, make_user, headers):
        h = headers(make_user(Role.ORGANIZATION, organization=make_org()))
        _request(client, h, "phone", "555-0100")

        mine = client.get(f"{API}/profile-changes", headers=h).json()["data"]

        assert [c["field_name"] for c in mine] == ["phone"]


class TestReview:
    def test_approval_applies_change(self, client, db, make_user, headers):
        user = make_user(Role.INSTRUCTOR)
        hr = headers(make_user(Role.HR))
        change = _request(client, headers(user), "last_name", "Nguyen").json()["data"]

        queue = client.get(f"{API}/hr/profile-changes", headers=hr).json()["data"]
        assert [c["id"] for c in queue["items"]] == [change["id"]]

        resp = client.post(f"{API}/hr/profile-changes/{change['id']}/approve", headers=hr,
                           json={"action": "approve", "comment": "Marriage certificate seen"})

        assert resp.json()["data"]["status"] == "approved"
        db.expire_all()
        assert db.get(User, user.id).last_name == "Nguyen"

    def test_rejection_leaves_user_untouched(self, client, db, make_user, headers):
        user = make_user(Role.INSTRUCTOR, last_name="Lee")
        hr = headers(make_user(Role.HR))
        change = _request(client, headers(user), "last_name", "Nguyen").json()["data"]

        resp = client.post(f"{API}/hr/profile-changes/{change['id']}/approve", headers=hr,
                           json={"action": "reject", "comment": "No document"})

        assert resp.json()["data"]["status"] == "rejected"
        db.expire_all()
        assert db.get(User, user.id).last_name == "Lee"

    def test_reviewed_change_is_final(self, client, make_user, headers):
        hr = headers(make_user(Role.HR))
        change = _request(client, headers(make_user(Role.INSTRUCTOR)), "phone", "555-0100").json()["data"]
        client.post(f"{API}/hr/profile-changes/{change['id']}/approve", headers=hr, json={"action": "reject"})

        again = client.post(f"{API}/hr/profile-changes/{change['id']}/approve", headers=hr,
                            json={"action": "approve"})

        assert again.status_code == 409

    def test_email_taken_before_approval(self, client, make_user, headers):
        user = make_user(Role.INSTRUCTOR)
        hr = headers(make_user(Role.HR))
        change = _request(client, headers(user), "email", "shared@example.com").json()["data"]
        make_user(Role.ACCOUNTANT, username="shared")

        resp = client.post(f"{API}/hr/profile-changes/{change['id']}/approve", headers=hr,
                           json={"action": "approve"})

        assert resp.status_code == 409
