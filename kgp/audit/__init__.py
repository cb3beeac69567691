from flask import has_request_context, request
from flask_login import current_user

from ..models import AuditLog, db


def _request_actor_id():
    if not has_request_context():
        return None
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def log_event(action, target_type=None, target_id=None, detail=None, user_id=None, commit=None):
    """Record an audit event for a membership action.

    Joins the caller's transaction (flush only) when the session already has
    pending writes; otherwise commits on its own.
    """
    has_pending_writes = bool(db.session.new or db.session.dirty or db.session.deleted)
    entry = AuditLog(
        user_id=user_id or _request_actor_id(),
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail=detail,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)

    should_commit = (not has_pending_writes) if commit is None else commit
    if should_commit:
        db.session.commit()
    else:
        db.session.flush()

    return entry


def recent_events(limit=10, target_type=None):
    query = AuditLog.query
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()


def search_events(action=None, target_type=None, since=None, until=None):
    """Audit events newest first, filtered by action substring, target type and time window."""
    query = AuditLog.query
    if action:
        query = query.filter(AuditLog.action.ilike(f"%{action}%"))
    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    if since:
        query = query.filter(AuditLog.timestamp >= since)
    if until:
        query = query.filter(AuditLog.timestamp <= until)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
