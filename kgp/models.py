import re
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

import bcrypt
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


def _utcnow():
    return datetime.now(UTC)


def _uuid():
    return uuid.uuid4().hex


def as_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# County keys accepted on applications (exact, lower-case match)
KENYA_COUNTIES = (
    "baringo",
    "bomet",
    "bungoma",
    "busia",
    "elgeyo_marakwet",
    "embu",
    "garissa",
    "homa_bay",
    "isiolo",
    "kajiado",
    "kakamega",
    "kericho",
    "kiambu",
    "kilifi",
    "kirinyaga",
    "kisii",
    "kisumu",
    "kitui",
    "kwale",
    "laikipia",
    "lamu",
    "machakos",
    "makueni",
    "mandera",
    "marsabit",
    "meru",
    "migori",
    "mombasa",
    "muranga",
    "nairobi",
    "nakuru",
    "nandi",
    "narok",
    "nyamira",
    "nyandarua",
    "nyeri",
    "samburu",
    "siaya",
    "taita_taveta",
    "tana_river",
    "tharaka_nithi",
    "trans_nzoia",
    "turkana",
    "uasin_gishu",
    "vihiga",
    "wajir",
    "west_pokot",
)

APPLICATION_STATUSES = ("pending", "approved", "rejected")
REVIEW_DECISIONS = ("approved", "rejected")
USER_ROLES = ("admin", "staff")

_WEAK_PASSWORD_MARKERS = ("changeme", "password", "admin", "secret", "example", "default", "12345")


def password_is_strong(password):
    """At least 12 characters mixing lower case, upper case and digits, no placeholder words."""
    if len(password) < 12:
        return False
    if not (re.search(r"[a-z]", password) and re.search(r"[A-Z]", password) and re.search(r"[0-9]", password)):
        return False
    lowered = password.lower()
    return not any(marker in lowered for marker in _WEAK_PASSWORD_MARKERS)


# ── User ────────────────────────────────────────────────────────────


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    public_id = db.Column(db.String(32), unique=True, nullable=False, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="staff")  # admin, staff
    is_active_account = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)
    failed_login_count = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")

    def check_password(self, password):
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def is_active(self):
        """Flask-Login uses this to check if user session is valid."""
        return self.is_active_account

    def to_dict(self):
        return {
            "id": self.public_id,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role,
            "isActive": self.is_active_account,
            "createdAt": isoformat(self.created_at),
            "lastLoginAt": isoformat(self.last_login_at),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


# ── Membership Application ──────────────────────────────────────────


@dataclass(frozen=True)
class ReviewOutcome:
    """Review fields of an application that has left ``pending``."""

    decision: str
    reviewed_by: int | None
    reviewed_at: datetime
    notes: str | None
    membership_number: str | None


class MembershipApplication(db.Model):
    __tablename__ = "membership_applications"

    id = db.Column(db.Integer, primary_key=True)
    public_id = db.Column(db.String(32), unique=True, nullable=False, default=_uuid)

    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(17), nullable=False)
    id_number = db.Column(db.String(8), unique=True, nullable=False, index=True)
    county = db.Column(db.String(50), nullable=False, index=True)
    constituency = db.Column(db.String(100), nullable=True)
    ward = db.Column(db.String(100), nullable=True)
    message = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    review_notes = db.Column(db.String(500), nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    membership_number = db.Column(db.String(20), unique=True, nullable=True)

    expires_at = db.Column(db.DateTime, nullable=True)
    suspended_at = db.Column(db.DateTime, nullable=True)
    suspension_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    reviewer = db.relationship("User", foreign_keys=[reviewed_by])
    renewals = db.relationship(
        "MembershipRenewal",
        backref="application",
        lazy="dynamic",
        order_by="MembershipRenewal.created_at.desc()",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_membership_applications_status",
        ),
        db.CheckConstraint(
            "(status = 'pending' AND reviewed_at IS NULL) OR (status != 'pending' AND reviewed_at IS NOT NULL)",
            name="ck_membership_applications_review_state",
        ),
        db.CheckConstraint(
            "membership_number IS NULL OR status = 'approved'",
            name="ck_membership_applications_number_on_approval",
        ),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_pending(self):
        return self.status == "pending"

    @property
    def outcome(self):
        """``None`` while pending, otherwise a :class:`ReviewOutcome`."""
        if self.is_pending:
            return None
        return ReviewOutcome(
            decision=self.status,
            reviewed_by=self.reviewed_by,
            reviewed_at=as_utc(self.reviewed_at),
            notes=self.review_notes,
            membership_number=self.membership_number,
        )

    @property
    def is_expired(self):
        expires = as_utc(self.expires_at)
        return expires is not None and expires < _utcnow()

    @property
    def derived_status(self):
        if self.status in ("pending", "rejected"):
            return self.status
        if self.suspended_at is not None:
            return "suspended"
        if self.is_expired:
            return "expired"
        return "active"

    def to_dict(self):
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "idNumber": self.id_number,
            "county": self.county,
            "constituency": self.constituency,
            "ward": self.ward,
            "message": self.message,
            "status": self.status,
            "reviewNotes": self.review_notes,
            "reviewedBy": self.reviewer.to_dict() if self.reviewer else None,
            "reviewedAt": isoformat(self.reviewed_at),
            "membershipNumber": self.membership_number,
            "expiresAt": isoformat(self.expires_at),
            "suspendedAt": isoformat(self.suspended_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<MembershipApplication {self.email} ({self.status})>"


# ── Sequences ───────────────────────────────────────────────────────


class MembershipSequence(db.Model):
    __tablename__ = "membership_sequences"

    name = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<MembershipSequence {self.name}={self.value}>"


# ── Renewal ─────────────────────────────────────────────────────────


class MembershipRenewal(db.Model):
    __tablename__ = "membership_renewals"

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.String(40), unique=True, nullable=False)
    application_id = db.Column(
        db.Integer, db.ForeignKey("membership_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    payment_method = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    new_expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<MembershipRenewal {self.transaction_id}>"


# ── Resignation ─────────────────────────────────────────────────────


class ResignationRequest(db.Model):
    __tablename__ = "resignation_requests"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(40), unique=True, nullable=False)
    reason = db.Column(db.String(100), nullable=False)
    details = db.Column(db.Text, nullable=True)
    membership_number = db.Column(db.String(20), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    def __repr__(self):
        return f"<ResignationRequest {self.reference}>"


# ── Notification outbox ─────────────────────────────────────────────


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(255), nullable=False)
    kind = db.Column(db.String(50), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, sent, failed
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    sent_at = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f"<Notification {self.kind} to {self.recipient} ({self.status})>"


# ── Audit Log ───────────────────────────────────────────────────────


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    target_type = db.Column(db.String(50), nullable=True)  # membership, renewal, resignation, user
    target_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    user = db.relationship("User", backref="audit_logs", lazy="joined")

    def to_dict(self):
        return {
            "action": self.action,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "detail": self.detail,
            "actor": self.user.email if self.user else None,
            "timestamp": isoformat(self.timestamp),
        }

    def __repr__(self):
        return f"<AuditLog {self.action} at {self.timestamp}>"
