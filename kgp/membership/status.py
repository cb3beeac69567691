"""Public lookups and member self-service: status, renewal, resignation."""

import secrets
from datetime import UTC, datetime, timedelta

from flask import current_app

from ..audit import log_event
from ..errors import InvalidTransition, NotFound
from ..models import MembershipApplication, MembershipRenewal, ResignationRequest, db, isoformat
from ..notifications import enqueue_notification
from .forms import RenewalForm, ResignationForm, StatusCheckForm, validate_payload
from .policy import current_policy
from .service import find_by_email, update_application


def _utcnow():
    return datetime.now(UTC)


def _reference(prefix):
    return f"{prefix}-{_utcnow():%Y%m%d}-{secrets.token_hex(4).upper()}"


def membership_summary(application):
    latest_renewal = application.renewals.first()
    last_payment = latest_renewal.created_at if latest_renewal else application.created_at
    return {
        "name": application.full_name,
        "membershipId": application.membership_number,
        "joinDate": isoformat(application.created_at),
        "expiryDate": isoformat(application.expires_at),
        "county": application.county,
        "constituency": application.constituency,
        "ward": application.ward,
        "lastPayment": isoformat(last_payment),
        "status": application.derived_status,
    }


def check_status(payload):
    """Look up a membership by national ID and phone; both must match."""
    form = validate_payload(StatusCheckForm, payload)
    application = MembershipApplication.query.filter_by(
        id_number=form.id_number.data,
        phone=form.phone.data,
    ).first()
    if application is None:
        raise NotFound("No membership found with the provided details")
    return membership_summary(application)


def check_status_by_email(email):
    application = find_by_email(email)
    return {
        "firstName": application.first_name,
        "lastName": application.last_name,
        "status": application.status,
        "membershipNumber": application.membership_number,
        "reviewedAt": isoformat(application.reviewed_at),
    }


def renew_membership(payload, policy=None):
    """Extend an approved membership by the configured validity period.

    Payment is recorded, not verified: the amount and method are stored
    against a transaction id for reconciliation with the payment provider.
    """
    policy = policy or current_policy()
    form = validate_payload(RenewalForm, payload)

    application = MembershipApplication.query.filter_by(membership_number=form.membership_number.data).first()
    if application is None:
        raise NotFound("No membership found with this membership number")
    if application.status != "approved" or application.suspended_at is not None:
        raise InvalidTransition("Only active or expired memberships can be renewed.")

    new_expiry = _utcnow() + timedelta(days=policy.validity_days)
    renewal = MembershipRenewal(
        transaction_id=_reference("TXN"),
        application_id=application.id,
        payment_method=form.payment_method.data,
        amount=form.amount.data,
        new_expires_at=new_expiry,
    )
    db.session.add(renewal)
    update_application(application, expires_at=new_expiry)
    log_event(
        "membership_renewed",
        target_type="membership",
        target_id=application.id,
        detail=(
            f"Renewed {application.membership_number} via {renewal.payment_method} "
            f"({renewal.amount}), transaction {renewal.transaction_id}"
        ),
        commit=False,
    )
    db.session.commit()
    current_app.logger.info("Membership %s renewed (%s).", application.membership_number, renewal.transaction_id)

    enqueue_notification(
        application.email,
        "membership_renewed",
        {
            "name": application.full_name,
            "membership_number": application.membership_number,
            "expires_at": isoformat(new_expiry),
            "transaction_id": renewal.transaction_id,
        },
    )
    return {
        "transactionId": renewal.transaction_id,
        "membershipNumber": application.membership_number,
        "newExpiryDate": isoformat(new_expiry),
    }


def submit_resignation(payload, policy=None):
    """Record a resignation request for follow-up by the membership team.

    The membership record itself is left unchanged; the request carries no
    proof of identity, so the team confirms with the member before acting.
    """
    policy = policy or current_policy()
    form = validate_payload(ResignationForm, payload)

    resignation = ResignationRequest(
        reference=_reference("RES"),
        reason=form.reason.data,
        details=form.details.data or None,
        membership_number=form.membership_number.data or None,
    )
    db.session.add(resignation)
    db.session.flush()
    log_event(
        "resignation_requested",
        target_type="resignation",
        target_id=resignation.id,
        detail=f"{resignation.reference}: {resignation.reason}",
        commit=False,
    )
    db.session.commit()

    enqueue_notification(
        policy.admin_email,
        "resignation_received",
        {
            "reference": resignation.reference,
            "reason": resignation.reason,
            "details": resignation.details,
            "membership_number": resignation.membership_number,
        },
    )
    return {"resignationId": resignation.reference}
