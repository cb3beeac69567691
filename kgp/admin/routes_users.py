from datetime import UTC, datetime, time

from flask import request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from .. import limiter
from ..audit import log_event, search_events
from ..errors import DuplicateAccount, InvalidTransition, NotFound
from ..membership.forms import validate_payload
from ..models import User, db
from .common import admin_bp, admin_required
from .forms import AuditFilterForm, ReviewerAccountForm, UserRoleForm, UserSearchForm

# ── Users ──────────────────────────────────────────────────────────


def _get_user(public_id):
    user = User.query.filter_by(public_id=public_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def _is_last_admin(user):
    """Return True if *user* is the only active admin."""
    return user.role == "admin" and User.query.filter_by(role="admin", is_active_account=True).count() <= 1


@admin_bp.route("/users")
@admin_required
def users():
    form = validate_payload(UserSearchForm, request.args)
    page = request.args.get("page", 1, type=int)
    query = User.query

    if form.q.data:
        search = f"%{form.q.data}%"
        query = query.filter(db.or_(User.email.ilike(search), User.display_name.ilike(search)))

    query = query.order_by(User.created_at.desc(), User.id.desc())
    pagination = query.paginate(page=max(page, 1), per_page=25, error_out=False)

    return {
        "success": True,
        "data": {
            "users": [user.to_dict() for user in pagination.items],
            "pagination": {"current": max(page, 1), "pages": pagination.pages, "total": pagination.total},
        },
    }


@admin_bp.route("/users", methods=["POST"])
@admin_required
@limiter.limit("10 per minute")
def create_user():
    form = validate_payload(ReviewerAccountForm, request.get_json(silent=True))
    if User.query.filter_by(email=form.email.data).first() is not None:
        raise DuplicateAccount()

    user = User(email=form.email.data, display_name=form.display_name.data, role=form.role.data or "admin")
    user.set_password(form.password.data)
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateAccount() from None
    log_event(
        "user_created", target_type="user", target_id=user.id, detail=f"Created {user.role} {user.email}", commit=False
    )
    db.session.commit()

    return {"success": True, "message": "User created successfully", "data": user.to_dict()}, 201


@admin_bp.route("/users/<public_id>/deactivate", methods=["POST"])
@admin_required
@limiter.limit("30 per minute")
def user_deactivate(public_id):
    user = _get_user(public_id)
    if _is_last_admin(user):
        raise InvalidTransition("Cannot deactivate the only active admin account.")
    if user.id == current_user.id:
        raise InvalidTransition("You cannot deactivate your own account.")
    user.is_active_account = False
    db.session.commit()
    log_event("user_deactivated", target_type="user", target_id=user.id, detail="Account deactivated")
    return {"success": True, "message": f"User {user.email} has been deactivated.", "data": user.to_dict()}


@admin_bp.route("/users/<public_id>/activate", methods=["POST"])
@admin_required
@limiter.limit("30 per minute")
def user_activate(public_id):
    user = _get_user(public_id)
    user.is_active_account = True
    user.failed_login_count = 0
    user.locked_until = None
    db.session.commit()
    log_event("user_activated", target_type="user", target_id=user.id, detail="Account activated")
    return {"success": True, "message": f"User {user.email} has been activated.", "data": user.to_dict()}


@admin_bp.route("/users/<public_id>/role", methods=["PUT"])
@admin_required
@limiter.limit("30 per minute")
def user_change_role(public_id):
    user = _get_user(public_id)
    form = validate_payload(UserRoleForm, request.get_json(silent=True))
    old_role = user.role
    new_role = form.role.data
    if old_role == "admin" and new_role != "admin" and _is_last_admin(user):
        raise InvalidTransition("Cannot demote the only active admin account.")
    if new_role != old_role:
        user.role = new_role
        db.session.commit()
        log_event(
            "user_role_changed",
            target_type="user",
            target_id=user.id,
            detail=f"Role changed from {old_role} to {new_role}",
        )
    return {"success": True, "message": f"Role for {user.email} is now {new_role}.", "data": user.to_dict()}


# ── Audit Log ──────────────────────────────────────────────────────


@admin_bp.route("/activity-log")
@admin_required
def activity_log():
    form = validate_payload(AuditFilterForm, request.args)
    page = form.page.data or 1
    per_page = form.limit.data or 20

    since = datetime.combine(form.date_from.data, time.min, tzinfo=UTC) if form.date_from.data else None
    until = datetime.combine(form.date_to.data, time.max, tzinfo=UTC) if form.date_to.data else None
    query = search_events(action=form.action.data, target_type=form.target_type.data, since=since, until=until)
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return {
        "success": True,
        "data": {
            "activities": [event.to_dict() for event in pagination.items],
            "pagination": {"current": page, "pages": pagination.pages, "total": pagination.total},
        },
    }
