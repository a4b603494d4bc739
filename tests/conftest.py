"""
Pytest configuration and fixtures for testing the directory API.
"""

import os
import sys
import pytest
from datetime import datetime, timedelta
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bizdirectory import create_app, db
from bizdirectory.models import User, Business
from bizdirectory.utils.auth import create_token

fake = Faker()

# Fixed reference instant for boost scenarios
T0 = datetime(2026, 3, 2, 9, 0, 0)

TEST_CONFIG = {
    'JWT_SECRET_KEY': 'test-secret-key-for-testing-boosts',
    'BOOST_CRON_SECRET': 'test-cron-secret',
    'REDIS_URL': None,
}


class FakeClock:
    """Controllable clock installed as BOOST_CLOCK."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, now):
        self.now = now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing', TEST_CONFIG)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture
def clock(app):
    """Freeze the boost clock at T0 for the duration of a test."""
    fake_clock = FakeClock(T0)
    previous = app.config['BOOST_CLOCK']
    app.config['BOOST_CLOCK'] = fake_clock
    yield fake_clock
    app.config['BOOST_CLOCK'] = previous


def _create_user(role='business', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'email': fake.unique.email(),
        'first_name': fake.first_name(),
        'last_name': fake.last_name(),
        'role': role,
    }
    data.update(overrides)
    user = User(**data)
    db.session.add(user)
    db.session.commit()
    return user


def _create_business(owner, category='restaurants', **overrides):
    """Helper to create a business owned by ``owner``."""
    data = {
        'name': fake.company(),
        'description': fake.paragraph(),
        'category': category,
        'owner_id': owner.id,
    }
    data.update(overrides)
    business = Business(**data)
    db.session.add(business)
    db.session.commit()
    return business


@pytest.fixture
def make_user(db_session):
    return _create_user


@pytest.fixture
def make_business(db_session):
    return _create_business


@pytest.fixture
def owner(db_session):
    """Business account owning test businesses."""
    return _create_user()


@pytest.fixture
def second_owner(db_session):
    """Another business account for contention tests."""
    return _create_user()


@pytest.fixture
def admin_user(db_session):
    return _create_user(role='admin')


def _auth_headers(user):
    return {'Authorization': f'Bearer {create_token(user.id)}'}


@pytest.fixture
def auth_headers(owner):
    """Get authentication headers for the owner."""
    return _auth_headers(owner)


@pytest.fixture
def second_auth_headers(second_owner):
    """Get authentication headers for the second owner."""
    return _auth_headers(second_owner)


@pytest.fixture
def admin_headers(admin_user):
    return _auth_headers(admin_user)


@pytest.fixture
def cron_headers():
    return {'X-Cron-Secret': TEST_CONFIG['BOOST_CRON_SECRET']}
