import re
from decimal import Decimal

from flask import current_app
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import DecimalField, IntegerField, StringField, TextAreaField
from wtforms import ValidationError as FieldValidationError
from wtforms.validators import AnyOf, DataRequired, Email, InputRequired, Length, NumberRange, Optional, Regexp

from ..errors import ValidationError
from ..models import APPLICATION_STATUSES, KENYA_COUNTIES, REVIEW_DECISIONS

PHONE_PATTERN = r"^\+?[1-9][0-9]{0,15}$"
ID_NUMBER_PATTERN = r"^[0-9]{8}$"
# Largest value a NUMERIC(10, 2) column holds.
MAX_RENEWAL_AMOUNT = Decimal("99999999.99")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _normalize_email(value):
    return value.strip().lower() if isinstance(value, str) else value


def _to_snake(key):
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _to_camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class ApiForm(FlaskForm):
    """JSON-bound form; CSRF is not used for the API."""

    class Meta:
        csrf = False


def _form_value(value):
    # JSON booleans use their JSON spelling; "false" is a BooleanField false value.
    if isinstance(value, bool):
        return "true" if value else "false"
    return value if isinstance(value, str) else str(value)


def bind_form(form_cls, payload):
    """Instantiate *form_cls* from a JSON object keyed by camelCase names.

    Nulls, objects and arrays are dropped, so they read as missing fields.
    """
    formdata = MultiDict()
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        formdata.add(_to_snake(str(key)), _form_value(value))
    return form_cls(formdata=formdata)


def field_errors(form):
    return {_to_camel(name): list(errors) for name, errors in form.errors.items() if errors}


def validate_payload(form_cls, payload):
    """Return a validated form or raise ValidationError with every field error."""
    form = bind_form(form_cls, payload)
    if not form.validate():
        raise ValidationError(field_errors(form))
    return form


# ── Applications ───────────────────────────────────────────────────


class MembershipApplicationForm(ApiForm):
    first_name = StringField(
        "First Name",
        filters=[_strip],
        validators=[
            DataRequired("First name is required"),
            Length(min=2, max=50, message="First name must be between 2 and 50 characters"),
        ],
    )
    last_name = StringField(
        "Last Name",
        filters=[_strip],
        validators=[
            DataRequired("Last name is required"),
            Length(min=2, max=50, message="Last name must be between 2 and 50 characters"),
        ],
    )
    email = StringField(
        "Email",
        filters=[_normalize_email],
        validators=[
            DataRequired("Email is required"),
            Email("Please provide a valid email address"),
            Length(max=255),
        ],
    )
    phone = StringField(
        "Phone",
        filters=[_strip],
        validators=[
            DataRequired("Phone number is required"),
            Regexp(PHONE_PATTERN, message="Please provide a valid phone number"),
        ],
    )
    id_number = StringField(
        "National ID",
        filters=[_strip],
        validators=[
            DataRequired("National ID number is required"),
            Regexp(ID_NUMBER_PATTERN, message="National ID must be exactly 8 digits"),
        ],
    )
    county = StringField(
        "County",
        validators=[
            DataRequired("County is required"),
            AnyOf(KENYA_COUNTIES, message="Please select a valid county"),
        ],
    )
    constituency = StringField("Constituency", filters=[_strip], validators=[Optional(), Length(max=100)])
    ward = StringField("Ward", filters=[_strip], validators=[Optional(), Length(max=100)])
    message = TextAreaField(
        "Message",
        filters=[_strip],
        validators=[Optional(), Length(max=500, message="Message cannot exceed 500 characters")],
    )


class ApplicationFilterForm(ApiForm):
    status = StringField(
        "Status",
        validators=[Optional(), AnyOf(APPLICATION_STATUSES, message="Unknown application status")],
    )
    county = StringField(
        "County",
        validators=[Optional(), AnyOf(KENYA_COUNTIES, message="Please select a valid county")],
    )
    page = IntegerField(
        "Page",
        default=1,
        validators=[Optional(), NumberRange(min=1, message="Page must be a positive integer")],
    )
    limit = IntegerField(
        "Limit",
        default=10,
        validators=[Optional(), NumberRange(min=1, max=100, message="Limit must be between 1 and 100")],
    )


# ── Review ─────────────────────────────────────────────────────────


class ReviewForm(ApiForm):
    status = StringField(
        "Decision",
        validators=[
            DataRequired("Status must be either approved or rejected"),
            AnyOf(REVIEW_DECISIONS, message="Status must be either approved or rejected"),
        ],
    )
    review_notes = TextAreaField(
        "Review Notes",
        filters=[_strip],
        validators=[Optional(), Length(max=500, message="Review notes cannot exceed 500 characters")],
    )


class SuspensionForm(ApiForm):
    reason = TextAreaField("Reason", filters=[_strip], validators=[Optional(), Length(max=500)])


# ── Public lookups ─────────────────────────────────────────────────


class StatusCheckForm(ApiForm):
    id_number = StringField(
        "National ID", filters=[_strip], validators=[DataRequired("ID number and phone number are required")]
    )
    phone = StringField(
        "Phone", filters=[_strip], validators=[DataRequired("ID number and phone number are required")]
    )


class RenewalForm(ApiForm):
    membership_number = StringField(
        "Membership Number",
        filters=[_strip],
        validators=[DataRequired("Membership ID, payment method, and amount are required"), Length(max=20)],
    )
    payment_method = StringField(
        "Payment Method",
        filters=[_strip],
        validators=[DataRequired("Membership ID, payment method, and amount are required")],
    )
    amount = DecimalField(
        "Amount",
        places=2,
        validators=[InputRequired("Membership ID, payment method, and amount are required")],
    )

    def validate_payment_method(self, field):
        methods = current_app.config.get("RENEWAL_PAYMENT_METHODS", ())
        if field.data not in methods:
            raise FieldValidationError(f"Payment method must be one of: {', '.join(methods)}")

    def validate_amount(self, field):
        if field.data is None:
            return
        if not field.data.is_finite():
            raise FieldValidationError("Amount must be a number")
        if field.data <= Decimal("0"):
            raise FieldValidationError("Amount must be greater than zero")
        if field.data > MAX_RENEWAL_AMOUNT:
            raise FieldValidationError(f"Amount cannot exceed {MAX_RENEWAL_AMOUNT}")


class ResignationForm(ApiForm):
    reason = StringField(
        "Reason",
        filters=[_strip],
        validators=[DataRequired("Resignation reason is required"), Length(max=100)],
    )
    details = TextAreaField("Details", filters=[_strip], validators=[Optional(), Length(max=1000)])
    membership_number = StringField("Membership Number", filters=[_strip], validators=[Optional(), Length(max=20)])
