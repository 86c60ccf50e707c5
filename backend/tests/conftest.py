"""
Pytest fixtures for cartridge tracker backend tests.

Provides the test app (in-memory SQLite), a per-test table wipe, one user per
role, two locations, a registered cartridge and auth header helpers.
"""

import pytest
from cartrack import create_app
from cartrack.extensions import db
from cartrack.models.auth import ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER, ROLE_OBJECT_USER
from cartrack.services import cartridge_service, location_service, user_service


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema (core DELETE bypasses the audit-log mapper guards)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return user_service.create_user("admin", PASSWORD, full_name="Admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def manager_user(db_session):
    return user_service.create_user("manager", PASSWORD, full_name="Warehouse Manager", role=ROLE_WAREHOUSE_MANAGER)


@pytest.fixture(scope='function')
def object_user(db_session):
    return user_service.create_user("clerk", PASSWORD, full_name="Office Clerk", role=ROLE_OBJECT_USER)


@pytest.fixture(scope='function')
def warehouse(db_session):
    return location_service.create_location({"name": "Warehouse", "address": "1 Depot Rd", "cabinet": "A1"})


@pytest.fixture(scope='function')
def office(db_session):
    return location_service.create_location({"name": "Office 12", "address": "12 Main St", "contact_person": "Ann Lee"})


@pytest.fixture(scope='function')
def annex(db_session):
    return location_service.create_location({"name": "Annex", "address": "3 Side St"})


@pytest.fixture(scope='function')
def cartridge(db_session, manager_user, warehouse):
    """An IN_STOCK cartridge sitting in the warehouse (initial RECEIPT already logged)."""
    return cartridge_service.create_cartridge(
        acting_username=manager_user.username,
        attributes={"model": "HP 85A", "serial_number": "SN-0001", "brand": "HP", "color": "black"},
        location_id=warehouse.id,
    )


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def object_user_headers(client, object_user):
    return auth_headers(get_auth_token(client, object_user.username))
