"""Tests for reviewer account management and the audit log listing."""

import pytest

from kgp.models import AuditLog, User
from kgp.models import db as _db
from tests.conftest import _login, _make_user

STRONG_PASSWORD = "Reviewer2026Kgp"


def _reviewer_payload(**overrides):
    payload = {
        "email": "Reviewer@KGP.or.ke",
        "displayName": "County Reviewer",
        "password": STRONG_PASSWORD,
    }
    payload.update(overrides)
    return payload


# ── Creating reviewers ─────────────────────────────────────────────


def test_admin_creates_reviewer(admin_client):
    rv = admin_client.post("/api/admin/users", json=_reviewer_payload())
    assert rv.status_code == 201
    data = rv.get_json()
    assert data["message"] == "User created successfully"
    assert data["data"]["email"] == "reviewer@kgp.or.ke"
    assert data["data"]["role"] == "admin"
    assert data["data"]["isActive"] is True
    assert "password" not in str(data)

    user = User.query.filter_by(email="reviewer@kgp.or.ke").one()
    assert user.check_password(STRONG_PASSWORD)
    assert AuditLog.query.filter_by(action="user_created", target_id=user.id).count() == 1


def test_created_reviewer_can_log_in(app, admin_client):
    admin_client.post("/api/admin/users", json=_reviewer_payload())

    rv = _login(app.test_client(), "reviewer@kgp.or.ke", STRONG_PASSWORD)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["role"] == "admin"


def test_create_staff_account(admin_client):
    rv = admin_client.post("/api/admin/users", json=_reviewer_payload(role="staff"))
    assert rv.status_code == 201
    assert rv.get_json()["data"]["role"] == "staff"


def test_create_duplicate_email_is_409(admin_client):
    rv = admin_client.post("/api/admin/users", json=_reviewer_payload(email="admin@test.com"))
    assert rv.status_code == 409
    assert rv.get_json()["error"] == "duplicate_account"
    assert User.query.filter_by(email="admin@test.com").count() == 1


@pytest.mark.parametrize("password", ["short1A", "alllowercase2026", "ALLUPPERCASE2026", "Admin2026Password"])
def test_create_rejects_weak_password(admin_client, password):
    rv = admin_client.post("/api/admin/users", json=_reviewer_payload(password=password))
    assert rv.status_code == 400
    assert "password" in rv.get_json()["errors"]
    assert User.query.count() == 1


def test_create_rejects_unknown_role(admin_client):
    rv = admin_client.post("/api/admin/users", json=_reviewer_payload(role="superuser"))
    assert rv.status_code == 400
    assert rv.get_json()["errors"]["role"] == ["Role must be either admin or staff"]


def test_staff_cannot_create_users(staff_client):
    rv = staff_client.post("/api/admin/users", json=_reviewer_payload())
    assert rv.status_code == 403
    assert User.query.count() == 1


def test_anonymous_cannot_create_users(client):
    rv = client.post("/api/admin/users", json=_reviewer_payload())
    assert rv.status_code == 401


# ── Listing and managing users ─────────────────────────────────────


def test_list_users_with_search(admin_client):
    _make_user(email="mombasa.reviewer@test.com", display_name="Mombasa Reviewer")
    _make_user(email="kisumu.reviewer@test.com", display_name="Kisumu Reviewer")

    rv = admin_client.get("/api/admin/users?q=mombasa")
    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert [user["email"] for user in data["users"]] == ["mombasa.reviewer@test.com"]
    assert data["pagination"]["total"] == 1


def test_deactivate_and_activate_user(admin_client):
    user = _make_user(email="reviewer@test.com")

    rv = admin_client.post(f"/api/admin/users/{user.public_id}/deactivate")
    assert rv.status_code == 200
    assert rv.get_json()["data"]["isActive"] is False
    assert User.query.filter_by(email="reviewer@test.com").one().is_active_account is False

    rv = admin_client.post(f"/api/admin/users/{user.public_id}/activate")
    assert rv.status_code == 200
    assert rv.get_json()["data"]["isActive"] is True
    actions = {entry.action for entry in AuditLog.query.filter_by(target_type="user", target_id=user.id)}
    assert {"user_deactivated", "user_activated"} <= actions


def test_deactivated_user_cannot_log_in(app, admin_client):
    user = _make_user(email="reviewer@test.com")
    admin_client.post(f"/api/admin/users/{user.public_id}/deactivate")

    rv = _login(app.test_client(), "reviewer@test.com", "TestPass1")
    assert rv.status_code == 401


def test_cannot_deactivate_last_admin(admin_client, admin_user):
    rv = admin_client.post(f"/api/admin/users/{admin_user.public_id}/deactivate")
    assert rv.status_code == 409
    assert rv.get_json()["message"] == "Cannot deactivate the only active admin account."
    assert User.query.filter_by(email="admin@test.com").one().is_active_account is True


def test_cannot_deactivate_own_account(admin_client, admin_user):
    _make_user(email="second.admin@test.com", role="admin")
    rv = admin_client.post(f"/api/admin/users/{admin_user.public_id}/deactivate")
    assert rv.status_code == 409
    assert rv.get_json()["message"] == "You cannot deactivate your own account."


def test_unknown_user_is_404(admin_client):
    rv = admin_client.post("/api/admin/users/does-not-exist/deactivate")
    assert rv.status_code == 404
    assert rv.get_json()["error"] == "not_found"


def test_change_role_promotes_staff(admin_client):
    user = _make_user(email="reviewer@test.com")
    rv = admin_client.put(f"/api/admin/users/{user.public_id}/role", json={"role": "admin"})
    assert rv.status_code == 200
    assert User.query.filter_by(email="reviewer@test.com").one().role == "admin"
    entry = AuditLog.query.filter_by(action="user_role_changed").one()
    assert entry.detail == "Role changed from staff to admin"


def test_cannot_demote_last_admin(admin_client, admin_user):
    rv = admin_client.put(f"/api/admin/users/{admin_user.public_id}/role", json={"role": "staff"})
    assert rv.status_code == 409
    assert rv.get_json()["message"] == "Cannot demote the only active admin account."
    assert User.query.filter_by(email="admin@test.com").one().role == "admin"


def test_demote_admin_when_another_is_active(admin_client):
    other = _make_user(email="second.admin@test.com", role="admin")
    rv = admin_client.put(f"/api/admin/users/{other.public_id}/role", json={"role": "staff"})
    assert rv.status_code == 200
    assert User.query.filter_by(email="second.admin@test.com").one().role == "staff"


def test_change_role_rejects_unknown_role(admin_client):
    user = _make_user(email="reviewer@test.com")
    rv = admin_client.put(f"/api/admin/users/{user.public_id}/role", json={"role": "owner"})
    assert rv.status_code == 400


# ── Activity log ───────────────────────────────────────────────────


def _seed_events(count, action="membership_reviewed", target_type="membership"):
    for index in range(count):
        _db.session.add(AuditLog(action=action, target_type=target_type, target_id=index))
        _db.session.commit()


def test_activity_log_paginates_newest_first(admin_client):
    _seed_events(25)

    rv = admin_client.get("/api/admin/activity-log?limit=10&action=membership_reviewed")
    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert len(data["activities"]) == 10
    assert data["activities"][0]["targetId"] == 24
    assert data["pagination"] == {"current": 1, "pages": 3, "total": 25}

    rv = admin_client.get("/api/admin/activity-log?limit=10&page=3&action=membership_reviewed")
    assert [event["targetId"] for event in rv.get_json()["data"]["activities"]] == [4, 3, 2, 1, 0]


def test_activity_log_filters_by_target_type(admin_client):
    _seed_events(3, action="resignation_requested", target_type="resignation")
    _seed_events(2)

    rv = admin_client.get("/api/admin/activity-log?targetType=resignation")
    data = rv.get_json()["data"]
    assert data["pagination"]["total"] == 3
    assert {event["action"] for event in data["activities"]} == {"resignation_requested"}


def test_activity_log_rejects_bad_date(admin_client):
    rv = admin_client.get("/api/admin/activity-log?dateFrom=17-10-2026")
    assert rv.status_code == 400
    assert "dateFrom" in rv.get_json()["errors"]


def test_activity_log_rejects_bad_limit(admin_client):
    rv = admin_client.get("/api/admin/activity-log?limit=500")
    assert rv.status_code == 400
    assert "limit" in rv.get_json()["errors"]


def test_activity_log_requires_admin(staff_client):
    assert staff_client.get("/api/admin/activity-log").status_code == 403
