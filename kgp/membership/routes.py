from flask import Blueprint, request

from .. import limiter
from ..models import isoformat
from . import service, status

membership_bp = Blueprint("membership", __name__)


def _json_body():
    return request.get_json(silent=True) or {}


def _ok(data=None, message=None, status_code=200):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body, status_code


# ── Applications ───────────────────────────────────────────────────


@membership_bp.route("", methods=["POST"])
@membership_bp.route("/", methods=["POST"])
@limiter.limit("10 per hour")
def submit_application():
    application = service.create_application(_json_body())
    return _ok(
        {
            "id": application.id,
            "firstName": application.first_name,
            "lastName": application.last_name,
            "email": application.email,
            "county": application.county,
            "status": application.status,
            "createdAt": isoformat(application.created_at),
        },
        message="Membership application submitted successfully",
        status_code=201,
    )


# ── Status ─────────────────────────────────────────────────────────


@membership_bp.route("/status/<path:email>")
@limiter.limit("30 per 15 minutes")
def application_status(email):
    return _ok(status.check_status_by_email(email))


@membership_bp.route("/status", methods=["POST"])
@limiter.limit("30 per 15 minutes")
def membership_status():
    return _ok(status.check_status(_json_body()))


# ── Renewal & resignation ─────────────────────────────────────────


@membership_bp.route("/renew", methods=["POST"])
@limiter.limit("10 per hour")
def renew():
    return _ok(status.renew_membership(_json_body()), message="Membership renewed successfully")


@membership_bp.route("/resign", methods=["POST"])
@limiter.limit("5 per hour")
def resign():
    return _ok(
        status.submit_resignation(_json_body()),
        message="Resignation request submitted. Our team will contact you to confirm.",
    )
