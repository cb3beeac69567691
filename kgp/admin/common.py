from functools import wraps

from flask import Blueprint, abort
from flask_login import current_user, login_required

admin_bp = Blueprint("admin", __name__)


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            abort(403, description="Admin access required.")
        return f(*args, **kwargs)

    return decorated_function
