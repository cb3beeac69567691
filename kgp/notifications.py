"""Notification outbox.

Workflow code only records what should be sent; ``deliver_pending_notifications``
(run by the scheduler) performs delivery. A failed or slow email provider can
therefore never block or undo a membership decision.
"""

from datetime import UTC, datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .models import Notification, db


def _utcnow():
    return datetime.now(UTC)


def enqueue_notification(recipient, kind, data):
    """Queue a notification. Failures are logged and swallowed.

    Returns the queued Notification, or None when it could not be stored.
    """
    if not recipient:
        current_app.logger.warning("Notification %s dropped: no recipient.", kind)
        return None
    try:
        notification = Notification(recipient=recipient, kind=kind, payload=dict(data))
        db.session.add(notification)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to queue %s notification for %s", kind, recipient)
        return None
    return notification


def deliver_pending_notifications():
    """Send queued notifications, oldest first.

    Each row is retried on later runs until ``NOTIFICATION_MAX_ATTEMPTS`` is
    reached, after which it is marked ``failed``.
    """
    from .email_service import UnknownTemplate, send_notification_email

    if not current_app.config.get("BREVO_API_KEY"):
        current_app.logger.debug("Notification delivery skipped (BREVO_API_KEY not configured).")
        return 0

    max_attempts = max(1, int(current_app.config.get("NOTIFICATION_MAX_ATTEMPTS", 5)))
    batch_size = max(1, int(current_app.config.get("NOTIFICATION_BATCH_SIZE", 50)))

    pending = (
        Notification.query.filter_by(status="pending").order_by(Notification.created_at.asc()).limit(batch_size).all()
    )

    sent_count = 0
    failed_count = 0
    for notification in pending:
        notification.attempts += 1
        try:
            sent = send_notification_email(notification.recipient, notification.kind, notification.payload or {})
        except UnknownTemplate as exc:
            current_app.logger.error("Notification %s cannot be rendered: %s", notification.id, exc)
            notification.status = "failed"
            notification.last_error = str(exc)[:500]
            failed_count += 1
            db.session.commit()
            continue

        if sent:
            notification.status = "sent"
            notification.sent_at = _utcnow()
            notification.last_error = None
            sent_count += 1
        else:
            notification.last_error = "Delivery was not accepted by the email provider."
            if notification.attempts >= max_attempts:
                notification.status = "failed"
                failed_count += 1
                current_app.logger.warning(
                    "Giving up on %s notification %s to %s after %d attempt(s).",
                    notification.kind,
                    notification.id,
                    notification.recipient,
                    notification.attempts,
                )
        db.session.commit()

    if sent_count:
        current_app.logger.info("Delivered %d notification(s).", sent_count)
    if failed_count:
        current_app.logger.warning("%d notification(s) marked failed.", failed_count)
    return sent_count
