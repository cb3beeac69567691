from flask import request
from flask_login import current_user

from .. import limiter
from ..membership import service
from .common import admin_bp, admin_required

# ── Applications ───────────────────────────────────────────────────


@admin_bp.route("/memberships")
@admin_required
def list_memberships():
    result = service.list_applications(request.args)
    return {
        "success": True,
        "data": {
            "memberships": [application.to_dict() for application in result["items"]],
            "pagination": {
                "current": result["current"],
                "pages": result["pages"],
                "total": result["total"],
            },
        },
    }


@admin_bp.route("/memberships/<int:application_id>")
@admin_required
def membership_detail(application_id):
    application = service.get_application(application_id)
    return {"success": True, "data": application.to_dict()}


# ── Review ─────────────────────────────────────────────────────────


@admin_bp.route("/memberships/<int:application_id>/review", methods=["PUT"])
@admin_required
@limiter.limit("60 per minute")
def review_membership(application_id):
    application = service.review_application(application_id, request.get_json(silent=True), current_user)
    return {
        "success": True,
        "message": f"Membership application {application.status} successfully",
        "data": application.to_dict(),
    }


@admin_bp.route("/memberships/<int:application_id>/suspend", methods=["POST"])
@admin_required
def suspend_membership(application_id):
    application = service.suspend_membership(application_id, request.get_json(silent=True), current_user)
    return {"success": True, "message": "Membership suspended", "data": application.to_dict()}


@admin_bp.route("/memberships/<int:application_id>/reinstate", methods=["POST"])
@admin_required
def reinstate_membership(application_id):
    application = service.reinstate_membership(application_id, current_user)
    return {"success": True, "message": "Membership reinstated", "data": application.to_dict()}


# ── Statistics ─────────────────────────────────────────────────────


@admin_bp.route("/memberships/stats/overview")
@admin_required
def membership_stats():
    return {"success": True, "data": service.membership_statistics()}
