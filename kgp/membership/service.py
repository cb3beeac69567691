from datetime import UTC, datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from ..audit import log_event
from ..errors import DependencyFailure, DuplicateApplication, InvalidTransition, NotFound
from ..models import MembershipApplication, db, isoformat
from ..notifications import enqueue_notification
from .forms import ApplicationFilterForm, MembershipApplicationForm, ReviewForm, SuspensionForm, validate_payload
from .numbering import MEMBERSHIP_NUMBER_SEQUENCE, current_value, next_membership_number
from .policy import current_policy

# Fields the review and renewal paths may change through update_application()
_UPDATABLE_FIELDS = frozenset({"expires_at", "suspended_at", "suspension_reason", "review_notes"})


def _utcnow():
    return datetime.now(UTC)


# ── Uniqueness guard ──────────────────────────────────────────────


def ensure_unique_applicant(email, id_number):
    """Raise DuplicateApplication if either value is already on file."""
    existing = MembershipApplication.query.filter(
        db.or_(
            MembershipApplication.email == email,
            MembershipApplication.id_number == id_number,
        )
    ).first()
    if existing is not None:
        raise DuplicateApplication()


# ── Record store ──────────────────────────────────────────────────


def create_application(payload, policy=None):
    """Validate and persist a new pending application.

    The unique indexes on ``email`` and ``id_number`` back up the
    check above when two submissions race.
    """
    policy = policy or current_policy()
    form = validate_payload(MembershipApplicationForm, payload)

    email = form.email.data
    id_number = form.id_number.data
    ensure_unique_applicant(email, id_number)

    application = MembershipApplication(
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        email=email,
        phone=form.phone.data,
        id_number=id_number,
        county=form.county.data,
        constituency=form.constituency.data or None,
        ward=form.ward.data or None,
        message=form.message.data or None,
    )
    db.session.add(application)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateApplication() from None

    log_event(
        "membership_application_submitted",
        target_type="membership",
        target_id=application.id,
        detail=f"Application from {application.full_name} ({application.county})",
        commit=False,
    )
    db.session.commit()
    current_app.logger.info("Membership application %s submitted.", application.id)

    data = {
        "name": application.full_name,
        "email": application.email,
        "phone": application.phone,
        "id_number": application.id_number,
        "county": application.county,
        "message": application.message,
        "submitted_at": isoformat(application.created_at),
    }
    enqueue_notification(application.email, "application_received", data)
    enqueue_notification(policy.admin_email, "new_application", data)
    return application


def get_application(application_id):
    application = db.session.get(MembershipApplication, application_id)
    if application is None:
        raise NotFound("Membership application not found")
    return application


def find_by_email(email):
    email = (email or "").strip().lower()
    application = MembershipApplication.query.filter_by(email=email).first() if email else None
    if application is None:
        raise NotFound("No application found with this email address")
    return application


def list_applications(params=None):
    """Newest-first page of applications, optionally filtered by status/county."""
    form = validate_payload(ApplicationFilterForm, params)
    page = form.page.data or 1
    per_page = form.limit.data or 10

    query = MembershipApplication.query
    if form.status.data:
        query = query.filter(MembershipApplication.status == form.status.data)
    if form.county.data:
        query = query.filter(MembershipApplication.county == form.county.data)

    query = query.order_by(MembershipApplication.created_at.desc(), MembershipApplication.id.desc())
    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "items": pagination.items,
        "total": pagination.total,
        "pages": pagination.pages,
        "current": page,
    }


def update_application(application, **changes):
    """Apply a partial update. The caller owns the commit."""
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
    for field, value in changes.items():
        setattr(application, field, value)
    return application


# ── Review workflow ───────────────────────────────────────────────


def review_application(application_id, payload, reviewer, policy=None):
    """Move a pending application to approved or rejected.

    The transition is a compare-and-set on ``status = 'pending'`` so a
    second reviewer (or a repeated request) gets InvalidTransition instead
    of overwriting the first decision. Approval draws exactly one number
    from the membership sequence inside the same transaction.
    """
    policy = policy or current_policy()
    form = validate_payload(ReviewForm, payload)
    decision = form.status.data
    notes = form.review_notes.data or None

    application = get_application(application_id)
    if not application.is_pending:
        raise InvalidTransition(f"Membership application has already been {application.status}.")

    now = _utcnow()
    values = {
        "status": decision,
        "review_notes": notes,
        "reviewed_by": reviewer.id,
        "reviewed_at": now,
    }

    try:
        if decision == "approved" and application.membership_number is None:
            values["membership_number"] = next_membership_number(policy)
            values["expires_at"] = now + timedelta(days=policy.validity_days)

        result = db.session.execute(
            db.update(MembershipApplication)
            .where(
                MembershipApplication.id == application.id,
                MembershipApplication.status == "pending",
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise InvalidTransition("Membership application was already reviewed.")

        log_event(
            "membership_reviewed",
            target_type="membership",
            target_id=application.id,
            detail=(
                f"Application from {application.full_name} {decision}"
                + (f" as {values['membership_number']}" if "membership_number" in values else "")
            ),
            user_id=reviewer.id,
            commit=False,
        )
        db.session.commit()
    except OperationalError as exc:
        db.session.rollback()
        current_app.logger.exception("Review of application %s failed at the database.", application_id)
        raise DependencyFailure() from exc

    db.session.refresh(application)
    current_app.logger.info("Membership application %s %s by user %s.", application.id, decision, reviewer.id)

    enqueue_notification(
        application.email,
        f"application_{decision}",
        {
            "name": application.full_name,
            "email": application.email,
            "decision": decision,
            "notes": application.review_notes,
            "county": application.county,
            "membership_number": application.membership_number,
            "expires_at": isoformat(application.expires_at),
        },
    )
    return application


def suspend_membership(application_id, payload, actor):
    form = validate_payload(SuspensionForm, payload)
    application = get_application(application_id)
    if application.status != "approved":
        raise InvalidTransition("Only approved memberships can be suspended.")
    if application.suspended_at is not None:
        raise InvalidTransition("This membership is already suspended.")

    update_application(application, suspended_at=_utcnow(), suspension_reason=form.reason.data or None)
    log_event(
        "membership_suspended",
        target_type="membership",
        target_id=application.id,
        detail=f"Suspended {application.membership_number}: {form.reason.data or 'no reason given'}",
        user_id=actor.id,
        commit=False,
    )
    db.session.commit()
    return application


def reinstate_membership(application_id, actor):
    application = get_application(application_id)
    if application.suspended_at is None:
        raise InvalidTransition("This membership is not suspended.")

    update_application(application, suspended_at=None, suspension_reason=None)
    log_event(
        "membership_reinstated",
        target_type="membership",
        target_id=application.id,
        detail=f"Reinstated {application.membership_number}",
        user_id=actor.id,
        commit=False,
    )
    db.session.commit()
    return application


# ── Statistics ────────────────────────────────────────────────────


def membership_statistics():
    by_status = dict(
        db.session.query(MembershipApplication.status, db.func.count(MembershipApplication.id))
        .group_by(MembershipApplication.status)
        .all()
    )
    county_count = db.func.count(MembershipApplication.id).label("count")
    top_counties = (
        db.session.query(MembershipApplication.county, county_count)
        .group_by(MembershipApplication.county)
        .order_by(county_count.desc(), MembershipApplication.county.asc())
        .limit(10)
        .all()
    )
    start_of_day = _utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    today = MembershipApplication.query.filter(MembershipApplication.created_at >= start_of_day).count()

    return {
        "total": sum(by_status.values()),
        "approved": by_status.get("approved", 0),
        "pending": by_status.get("pending", 0),
        "rejected": by_status.get("rejected", 0),
        "today": today,
        "numbersIssued": current_value(MEMBERSHIP_NUMBER_SEQUENCE),
        "byStatus": [{"status": status, "count": count} for status, count in sorted(by_status.items())],
        "topCounties": [{"county": county, "count": count} for county, count in top_counties],
    }
