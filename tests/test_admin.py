"""Tests for admin membership management routes."""

from kgp.membership.service import review_application
from kgp.models import AuditLog
from tests.conftest import _make_application

# ── Access control ─────────────────────────────────────────────────


def test_anonymous_gets_401_on_admin(client):
    rv = client.get("/api/admin/memberships")
    assert rv.status_code == 401
    assert rv.get_json()["error"] == "unauthorized"


def test_staff_gets_403_on_admin(staff_client):
    rv = staff_client.get("/api/admin/memberships")
    assert rv.status_code == 403
    data = rv.get_json()
    assert data["success"] is False
    assert data["error"] == "forbidden"


def test_staff_cannot_review(staff_client):
    application = _make_application()
    rv = staff_client.put(f"/api/admin/memberships/{application.id}/review", json={"status": "approved"})
    assert rv.status_code == 403
    assert application.status == "pending"


def test_admin_dashboard_loads(admin_client):
    _make_application()
    rv = admin_client.get("/api/admin/dashboard")
    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert data["overview"]["total"] == 1
    assert len(data["recentApplications"]) == 1
    assert data["notifications"] == {"pending": 0, "failed": 0}
    assert any(event["action"] == "login" for event in data["recentActivity"])


# ── Listing ────────────────────────────────────────────────────────


def _seed(count, county="nairobi", start=0):
    return [
        _make_application(email=f"member{start + i}@example.com", id_number=f"{40000000 + start + i}", county=county)
        for i in range(count)
    ]


def test_list_memberships_paginates_newest_first(admin_client):
    applications = _seed(12)

    rv = admin_client.get("/api/admin/memberships?page=1&limit=5")
    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert data["pagination"] == {"current": 1, "pages": 3, "total": 12}
    assert len(data["memberships"]) == 5
    assert data["memberships"][0]["id"] == applications[-1].id

    rv = admin_client.get("/api/admin/memberships?page=3&limit=5")
    assert len(rv.get_json()["data"]["memberships"]) == 2


def test_list_memberships_default_page_size(admin_client):
    _seed(12)
    data = admin_client.get("/api/admin/memberships").get_json()["data"]
    assert len(data["memberships"]) == 10
    assert data["pagination"]["current"] == 1


def test_list_memberships_page_past_end_is_empty(admin_client):
    _seed(3)
    data = admin_client.get("/api/admin/memberships?page=5").get_json()["data"]
    assert data["memberships"] == []
    assert data["pagination"]["total"] == 3


def test_list_memberships_filters_by_status_and_county(admin_client, admin_user):
    nairobi = _seed(2, county="nairobi")
    _seed(2, county="mombasa", start=10)
    review_application(nairobi[0].id, {"status": "approved"}, admin_user)

    data = admin_client.get("/api/admin/memberships?status=approved").get_json()["data"]
    assert [m["id"] for m in data["memberships"]] == [nairobi[0].id]

    data = admin_client.get("/api/admin/memberships?county=mombasa").get_json()["data"]
    assert data["pagination"]["total"] == 2
    assert {m["county"] for m in data["memberships"]} == {"mombasa"}


def test_list_memberships_rejects_bad_limit(admin_client):
    rv = admin_client.get("/api/admin/memberships?limit=500")
    assert rv.status_code == 400
    assert "limit" in rv.get_json()["errors"]


def test_list_memberships_rejects_unknown_status(admin_client):
    rv = admin_client.get("/api/admin/memberships?status=archived")
    assert rv.status_code == 400


def test_membership_detail(admin_client):
    application = _make_application()
    rv = admin_client.get(f"/api/admin/memberships/{application.id}")
    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert data["email"] == application.email
    assert data["idNumber"] == application.id_number
    assert data["reviewedBy"] is None


def test_membership_detail_missing_is_404(admin_client):
    rv = admin_client.get("/api/admin/memberships/999")
    assert rv.status_code == 404


# ── Statistics ─────────────────────────────────────────────────────


def test_stats_overview(admin_client, admin_user):
    nairobi = _seed(3, county="nairobi")
    _seed(1, county="kisumu", start=10)
    review_application(nairobi[0].id, {"status": "approved"}, admin_user)
    review_application(nairobi[1].id, {"status": "rejected"}, admin_user)

    rv = admin_client.get("/api/admin/memberships/stats/overview")
    assert rv.status_code == 200
    stats = rv.get_json()["data"]
    assert stats["total"] == 4
    assert stats["approved"] == 1
    assert stats["rejected"] == 1
    assert stats["pending"] == 2
    assert stats["today"] == 4
    assert stats["numbersIssued"] == 1
    assert stats["topCounties"][0] == {"county": "nairobi", "count": 3}
    assert {"status": "pending", "count": 2} in stats["byStatus"]


# ── Suspension ─────────────────────────────────────────────────────


def test_suspend_and_reinstate(admin_client, admin_user):
    application = _make_application()
    review_application(application.id, {"status": "approved"}, admin_user)

    rv = admin_client.post(f"/api/admin/memberships/{application.id}/suspend", json={"reason": "Misconduct"})
    assert rv.status_code == 200
    assert rv.get_json()["data"]["suspendedAt"] is not None
    assert application.derived_status == "suspended"

    rv = admin_client.post(f"/api/admin/memberships/{application.id}/suspend", json={})
    assert rv.status_code == 409

    rv = admin_client.post(f"/api/admin/memberships/{application.id}/reinstate")
    assert rv.status_code == 200
    assert application.derived_status == "active"
    assert AuditLog.query.filter_by(action="membership_suspended").count() == 1
    assert AuditLog.query.filter_by(action="membership_reinstated").count() == 1


def test_pending_application_cannot_be_suspended(admin_client):
    application = _make_application()
    rv = admin_client.post(f"/api/admin/memberships/{application.id}/suspend", json={})
    assert rv.status_code == 409
    assert rv.get_json()["message"] == "Only approved memberships can be suspended."
