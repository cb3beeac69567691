# Importing the route modules registers their views on admin_bp.
from . import routes_core, routes_memberships, routes_users  # noqa: F401
from .common import admin_bp, admin_required  # noqa: F401
