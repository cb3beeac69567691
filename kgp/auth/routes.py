from datetime import UTC, datetime, timedelta

import bcrypt
from flask import Blueprint, current_app, request
from flask_login import current_user, login_required, login_user, logout_user

from .. import limiter
from ..audit import log_event
from ..errors import MembershipError
from ..membership.forms import validate_payload
from ..models import User, as_utc, db
from .forms import LoginForm

auth_bp = Blueprint("auth", __name__)


class InvalidCredentials(MembershipError):
    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class AccountLocked(MembershipError):
    kind = "account_locked"
    status_code = 423
    default_message = "Account temporarily locked due to repeated failed login attempts. Please try again later."


# ── Login ──────────────────────────────────────────────────────────


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    form = validate_payload(LoginForm, request.get_json(silent=True))
    email = form.email.data
    user = User.query.filter_by(email=email).first()

    # Check account lockout before anything else
    if user and user.locked_until and as_utc(user.locked_until) > datetime.now(UTC):
        # Dummy check to prevent a timing oracle
        bcrypt.checkpw(b"dummy-password", bcrypt.gensalt())
        log_event("login_locked", "user", user.id)
        raise AccountLocked()

    if user is None:
        bcrypt.checkpw(b"dummy", bcrypt.gensalt(rounds=12))
        log_event("login_failed", detail=f"email={email}")
        raise InvalidCredentials()

    if not user.check_password(form.password.data):
        # Atomic increment of failed login count
        User.query.filter_by(id=user.id).update(
            {"failed_login_count": db.func.coalesce(User.failed_login_count, 0) + 1}
        )
        db.session.commit()
        db.session.refresh(user)

        max_failures = current_app.config.get("MAX_FAILED_LOGINS", 5)
        if user.failed_login_count >= max_failures:
            lockout_minutes = current_app.config.get("ACCOUNT_LOCKOUT_MINUTES", 15)
            user.locked_until = datetime.now(UTC) + timedelta(minutes=lockout_minutes)
            db.session.commit()
            log_event(
                "account_locked",
                "user",
                user.id,
                detail=f"Locked for {lockout_minutes} minutes after {user.failed_login_count} failed attempts",
            )
        log_event("login_failed", detail=f"email={email}")
        raise InvalidCredentials()

    if not user.is_active_account:
        log_event("login_inactive", "user", user.id)
        raise InvalidCredentials("Your account is not active. Please contact the party secretariat.")

    user.failed_login_count = 0
    user.locked_until = None
    user.last_login_at = datetime.now(UTC)
    db.session.commit()
    login_user(user, remember=form.remember_me.data)
    log_event("login", "user", user.id, user_id=user.id)

    return {"success": True, "message": "Signed in", "data": user.to_dict()}


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    log_event("logout", "user", current_user.id)
    logout_user()
    return {"success": True, "message": "Signed out"}


@auth_bp.route("/me")
@login_required
def me():
    return {"success": True, "data": current_user.to_dict()}
