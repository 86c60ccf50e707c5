"""
Account, session and location service tests.

Verifies:
- Password strength rules and bcrypt round trip
- Disabled accounts neither authenticate nor keep sessions
- Acting-user resolution
- Location uniqueness, search and active flag
"""

from datetime import timedelta

import pytest

from cartrack.extensions import db
from cartrack.models import SessionToken
from cartrack.services import auth_service, location_service, reporting_service, session_service, user_service
from cartrack.services.auth_service import PasswordValidationError
from cartrack.validation import ConflictError, NotFoundError, ValidationError


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1", "allletters", "12345678", ""])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password("Toner2024", rounds=4)
        assert hashed != "Toner2024"
        assert auth_service.verify_password("Toner2024", hashed)
        assert not auth_service.verify_password("Toner2025", hashed)
        assert not auth_service.verify_password("Toner2024", "not-a-bcrypt-hash")


class TestUsers:

    def test_authenticate(self, manager_user):
        assert auth_service.authenticate("manager", "Password123").id == manager_user.id
        assert auth_service.authenticate("manager", "nope12345") is None
        assert auth_service.authenticate("ghost", "Password123") is None

    def test_duplicate_username(self, manager_user):
        with pytest.raises(ConflictError):
            user_service.create_user("manager", "Password123")

    def test_invalid_role(self, db_session):
        with pytest.raises(ValidationError):
            user_service.create_user("x", "Password123", role="SUPERUSER")

    def test_disable_revokes_sessions_and_blocks_login(self, manager_user):
        _, token = session_service.create_session(manager_user.id)
        assert session_service.validate_session(token).id == manager_user.id

        user_service.set_user_enabled(manager_user.id, False)

        assert session_service.validate_session(token) is None
        assert auth_service.authenticate("manager", "Password123") is None
        with pytest.raises(NotFoundError):
            user_service.resolve_acting_user("manager")

    def test_idle_session_expires(self, manager_user):
        session, token = session_service.create_session(manager_user.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db.session.commit()

        assert session_service.validate_session(token) is None
        assert db.session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_password_change_revokes_sessions(self, manager_user):
        _, token = session_service.create_session(manager_user.id)
        user_service.update_user(manager_user.id, password="NewPass123")
        assert session_service.validate_session(token) is None
        assert auth_service.authenticate("manager", "NewPass123") is not None

    def test_resolve_acting_user(self, object_user):
        assert user_service.resolve_acting_user("clerk").id == object_user.id
        with pytest.raises(NotFoundError):
            user_service.resolve_acting_user("")


class TestLocations:

    def test_name_is_unique(self, warehouse):
        with pytest.raises(ConflictError):
            location_service.create_location({"name": "Warehouse", "address": "elsewhere"})

    def test_address_required(self, db_session):
        with pytest.raises(ValidationError):
            location_service.create_location({"name": "Nowhere"})

    def test_contact_phone_needs_digits(self, db_session):
        with pytest.raises(ValidationError):
            location_service.create_location({"name": "Lab", "address": "x", "contact_phone": "call me"})

    def test_search_by_address(self, warehouse, office):
        assert [loc.name for loc in location_service.search_locations(address="main")] == ["Office 12"]
        with pytest.raises(ValidationError):
            location_service.search_locations()

    def test_deactivated_location_drops_out_of_active_list(self, warehouse, office):
        location_service.set_location_active(warehouse.id, False)
        assert [loc.name for loc in location_service.list_locations(active_only=True)] == ["Office 12"]
        assert len(location_service.list_locations()) == 2

    def test_rename_conflict(self, warehouse, office):
        with pytest.raises(ConflictError):
            location_service.update_location(office.id, {"name": "Warehouse"})


class TestReporting:

    def test_empty_location_listed_with_zeros(self, cartridge, office):
        rows = {row["location_name"]: row for row in reporting_service.count_by_location_and_status()}
        assert rows["Office 12"]["total"] == 0
        assert rows["Warehouse"]["counts"]["IN_STOCK"] == 1

    def test_count_by_status_lists_every_status(self, db_session):
        assert reporting_service.count_by_status() == {
            "DISPOSED": 0, "IN_STOCK": 0, "IN_USE": 0, "REFILLING": 0,
        }
