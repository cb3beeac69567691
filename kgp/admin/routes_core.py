from ..audit import recent_events
from ..membership import service
from ..models import MembershipApplication, Notification
from .common import admin_bp, admin_required

# ── Dashboard ──────────────────────────────────────────────────────


@admin_bp.route("/dashboard")
@admin_required
def dashboard():
    recent_applications = (
        MembershipApplication.query.order_by(
            MembershipApplication.created_at.desc(), MembershipApplication.id.desc()
        )
        .limit(5)
        .all()
    )
    pending_notifications = Notification.query.filter_by(status="pending").count()
    failed_notifications = Notification.query.filter_by(status="failed").count()

    return {
        "success": True,
        "data": {
            "overview": service.membership_statistics(),
            "recentApplications": [application.to_dict() for application in recent_applications],
            "recentActivity": [event.to_dict() for event in recent_events(limit=10)],
            "notifications": {"pending": pending_notifications, "failed": failed_notifications},
        },
    }
