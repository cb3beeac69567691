from wtforms import DateField, IntegerField, PasswordField, StringField
from wtforms import ValidationError as FieldValidationError
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional

from ..membership.forms import ApiForm
from ..models import USER_ROLES, password_is_strong


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class ReviewerAccountForm(ApiForm):
    email = StringField(
        "Email",
        filters=[lambda value: value.strip().lower() if isinstance(value, str) else value],
        validators=[DataRequired("Email is required"), Email("Please provide a valid email address"), Length(max=255)],
    )
    display_name = StringField(
        "Display Name",
        filters=[_strip],
        validators=[DataRequired("Display name is required"), Length(max=255)],
    )
    password = PasswordField("Password", validators=[DataRequired("Password is required")])
    role = StringField(
        "Role",
        default="admin",
        validators=[Optional(), AnyOf(USER_ROLES, message="Role must be either admin or staff")],
    )

    def validate_password(self, field):
        if not password_is_strong(field.data):
            raise FieldValidationError(
                "Password must be at least 12 characters, mix upper case, lower case and digits, "
                "and avoid placeholder words"
            )


class UserRoleForm(ApiForm):
    role = StringField(
        "Role",
        validators=[
            DataRequired("Role must be either admin or staff"),
            AnyOf(USER_ROLES, message="Role must be either admin or staff"),
        ],
    )


class UserSearchForm(ApiForm):
    q = StringField("Search", filters=[_strip], validators=[Optional(), Length(max=100)])


class AuditFilterForm(ApiForm):
    action = StringField("Action", filters=[_strip], validators=[Optional(), Length(max=100)])
    target_type = StringField("Target Type", filters=[_strip], validators=[Optional(), Length(max=50)])
    date_from = DateField("From", validators=[Optional()], format="%Y-%m-%d")
    date_to = DateField("To", validators=[Optional()], format="%Y-%m-%d")
    page = IntegerField(
        "Page",
        default=1,
        validators=[Optional(), NumberRange(min=1, message="Page must be a positive integer")],
    )
    limit = IntegerField(
        "Limit",
        default=20,
        validators=[Optional(), NumberRange(min=1, max=100, message="Limit must be between 1 and 100")],
    )
