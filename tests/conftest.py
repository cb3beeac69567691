from unittest.mock import patch

import pytest

from kgp.models import MembershipApplication, User
from kgp.models import db as _db


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing (session-scoped)."""
    with (
        patch("kgp.upgrade"),
        patch("kgp._seed_admin_if_needed"),
    ):
        from kgp import create_app

        _app = create_app("testing")

    yield _app


@pytest.fixture(autouse=True)
def db(app):
    """Create all tables before each test, drop them after."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def _make_user(
    email="staff@test.com",
    password="TestPass1",
    role="staff",
    display_name="Test Staff",
    is_active_account=True,
):
    """Create and persist a User. Callable multiple times per test."""
    user = User(
        email=email,
        display_name=display_name,
        role=role,
        is_active_account=is_active_account,
    )
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


def _application_payload(**overrides):
    """A valid JSON body for POST /api/membership."""
    payload = {
        "firstName": "Wanjiku",
        "lastName": "Kamau",
        "email": "wanjiku@example.com",
        "phone": "+254712345678",
        "idNumber": "12345678",
        "county": "nairobi",
        "constituency": "Westlands",
        "ward": "Parklands",
        "message": "I want to serve my community.",
    }
    payload.update(overrides)
    return payload


def _make_application(
    email="applicant@example.com",
    id_number="87654321",
    county="nairobi",
    phone="+254700000001",
    first_name="Otieno",
    last_name="Odhiambo",
    **fields,
):
    """Create and persist a pending MembershipApplication directly."""
    application = MembershipApplication(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        id_number=id_number,
        county=county,
        **fields,
    )
    _db.session.add(application)
    _db.session.commit()
    return application


def _login(client, email="staff@test.com", password="TestPass1"):
    """Log in via the real /api/auth/login route and return the response."""
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture()
def staff(db):
    """A default non-admin user."""
    return _make_user()


@pytest.fixture()
def admin_user(db):
    """An admin user."""
    return _make_user(
        email="admin@test.com",
        password="AdminPass1",
        role="admin",
        display_name="Test Admin",
    )


@pytest.fixture()
def staff_client(client, staff):
    """A test client logged in as a non-admin user."""
    _login(client, staff.email, "TestPass1")
    return client


@pytest.fixture()
def admin_client(client, admin_user):
    """A test client logged in as an admin."""
    _login(client, admin_user.email, "AdminPass1")
    return client
