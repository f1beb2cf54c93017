"""
Pytest fixtures for bistro backend tests.

Provides a fresh in-memory database per test, a seeded chart of accounts,
admin/cashier users and a controllable clock for the rate limiter.
"""

import pytest

from bistro import create_app
from bistro.config import TestingConfig
from bistro.extensions import db
from bistro.models import User
from bistro.services import account_service, permission_service
from bistro.services.auth_service import hash_password


ADMIN_EMAIL = "admin@bistro.test"
CASHIER_EMAIL = "cashier@bistro.test"
PASSWORD = "Password123!"


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    """Create application for testing."""
    app = create_app(TestingConfig, rate_limit_clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    return db.session


@pytest.fixture
def seed(db_session):
    """Default chart with VAT and payroll accounts."""
    account_service.seed_chart_of_accounts()
    account_service.ensure_vat_accounts()
    account_service.ensure_payroll_accounts()
    return db_session


@pytest.fixture
def admin_user(seed):
    user = User(email=ADMIN_EMAIL, password_hash=hash_password(PASSWORD), role="admin",
                default_branch="china_town", is_active=True)
    seed.add(user)
    seed.commit()
    return user


@pytest.fixture
def cashier_user(seed):
    """Cashier allowed to view and create sales in china_town only."""
    user = User(email=CASHIER_EMAIL, password_hash=hash_password(PASSWORD), role="cashier",
                default_branch="china_town", is_active=True)
    seed.add(user)
    seed.commit()
    permission_service.grant(user.id, "sales", "view", "china_town")
    permission_service.grant(user.id, "sales", "create", "china_town")
    return user


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, ADMIN_EMAIL, PASSWORD))


@pytest.fixture
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, CASHIER_EMAIL, PASSWORD))


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def account_id(code: str) -> int:
    return account_service.require_by_code(code).id
