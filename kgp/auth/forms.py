from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length

from ..membership.forms import ApiForm


class LoginForm(ApiForm):
    email = StringField(
        "Email",
        filters=[lambda value: value.strip().lower() if isinstance(value, str) else value],
        validators=[DataRequired("Email is required"), Email("Please provide a valid email address"), Length(max=255)],
    )
    password = PasswordField("Password", validators=[DataRequired("Password is required")])
    remember_me = BooleanField("Remember me")
