# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for user accounts: registration, login, token refresh, logout and
administration.
"""

import pytest

from relief_api.middleware.error_handler import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    NotFoundException,
)
from relief_api.models.enums import UserRole
from relief_api.models.requests import LoginRequest, RegisterRequest, UpdateUserRequest
from relief_api.services.users import INVALID_CREDENTIALS, UserService

from .conftest import add_user, make_context


@pytest.fixture
def service(mongo, auth_service, audit_service, redis_service):
    return UserService(mongo, auth_service, audit_service, redis_service)


@pytest.fixture
def clerk_user(mongo, auth_service):
    return add_user(mongo, auth_service, UserRole.CLERK, password="clerk-pass-1")


class TestRegistration:
    """New staff accounts."""

    def test_register_defaults_to_clerk(self, service, auth_service):
        response = service.register(RegisterRequest(
            email="New.Person@Musina.gov.za",
            password="long-enough",
            first_name="New",
            last_name="Person"
        ))

        assert response["tokenType"] == "Bearer"
        assert response["user"]["email"] == "new.person@musina.gov.za"
        assert response["user"]["role"] == "CLERK"
        assert "passwordHash" not in response["user"]
        assert auth_service.validate_token(response["token"])["role"] == "CLERK"

    def test_duplicate_email(self, service, clerk_user):
        with pytest.raises(ConflictException, match="User already exists"):
            service.register(RegisterRequest(
                email=clerk_user.email, password="long-enough", first_name="A", last_name="B"
            ))

    def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            RegisterRequest(email="a@b.org", password="short", first_name="A", last_name="B")

    def test_password_is_hashed(self, service, mongo):
        service.register(RegisterRequest(
            email="hash@musina.gov.za", password="long-enough", first_name="A", last_name="B"
        ))
        stored = mongo.find_one("users", {"email": "hash@musina.gov.za"})
        assert stored["passwordHash"] != "long-enough"
        assert stored["passwordHash"].startswith("$2")


class TestLogin:
    """Credential checks share one failure message."""

    def test_login_success(self, service, clerk_user, mongo):
        response = service.login(LoginRequest(email=clerk_user.email, password="clerk-pass-1"))

        assert response["user"]["id"] == clerk_user.id
        assert mongo.find_by_id("users", clerk_user.id)["lastLoginAt"] is not None

    def test_email_is_case_insensitive(self, service, clerk_user):
        response = service.login(LoginRequest(email=clerk_user.email.upper(), password="clerk-pass-1"))
        assert response["user"]["id"] == clerk_user.id

    def test_wrong_password(self, service, clerk_user):
        with pytest.raises(AuthenticationException) as exc_info:
            service.login(LoginRequest(email=clerk_user.email, password="wrong"))
        assert exc_info.value.message == INVALID_CREDENTIALS

    def test_unknown_user(self, service):
        with pytest.raises(AuthenticationException) as exc_info:
            service.login(LoginRequest(email="nobody@musina.gov.za", password="whatever"))
        assert exc_info.value.message == INVALID_CREDENTIALS

    def test_inactive_user(self, service, mongo, auth_service):
        user = add_user(mongo, auth_service, UserRole.VIEWER, password="viewer-pass", is_active=False)
        with pytest.raises(AuthenticationException) as exc_info:
            service.login(LoginRequest(email=user.email, password="viewer-pass"))
        assert exc_info.value.message == INVALID_CREDENTIALS


class TestTokens:
    """Refresh and revocation."""

    def test_refresh_for_active_user(self, service, clerk_user):
        response = service.refresh(make_context(UserRole.CLERK, clerk_user.id))
        assert response["user"]["id"] == clerk_user.id

    def test_refresh_for_deactivated_user(self, service, clerk_user, mongo):
        mongo.update_by_id("users", clerk_user.id, {"isActive": False})
        with pytest.raises(AuthenticationException):
            service.refresh(make_context(UserRole.CLERK, clerk_user.id))

    def test_logout_blocks_token(self, service, auth_service, redis_service, clerk_user):
        token = auth_service.generate_token(clerk_user)["token"]
        payload = auth_service.validate_token(token)
        context = make_context(UserRole.CLERK, clerk_user.id).model_copy(update={"token_payload": payload})

        assert service.logout(context) is True
        assert redis_service.is_token_blocked(payload["jti"])

    def test_logout_without_redis(self, mongo, auth_service, audit_service, clerk_user):
        service = UserService(mongo, auth_service, audit_service, None)
        token = auth_service.generate_token(clerk_user)["token"]
        context = make_context(UserRole.CLERK, clerk_user.id).model_copy(
            update={"token_payload": auth_service.validate_token(token)}
        )
        assert service.logout(context) is False


class TestAdministration:
    """Listing, updating and deleting accounts."""

    def test_list_hides_password_hashes(self, service, clerk_user):
        users = service.list_users()
        assert [u["id"] for u in users] == [clerk_user.id]
        assert "passwordHash" not in users[0]

    def test_user_edits_own_name(self, service, clerk_user):
        updated = service.update_user(
            clerk_user.id,
            UpdateUserRequest(first_name="Renamed"),
            make_context(UserRole.CLERK, clerk_user.id)
        )
        assert updated["firstName"] == "Renamed"

    def test_user_cannot_promote_self(self, service, clerk_user):
        with pytest.raises(AuthorizationException):
            service.update_user(
                clerk_user.id,
                UpdateUserRequest(role="ADMIN"),
                make_context(UserRole.CLERK, clerk_user.id)
            )

    def test_manager_changes_role(self, service, clerk_user):
        updated = service.update_user(
            clerk_user.id, UpdateUserRequest(role="REVIEWER"), make_context(UserRole.MANAGER)
        )
        assert updated["role"] == "REVIEWER"

    def test_update_missing_user(self, service):
        with pytest.raises(NotFoundException):
            service.update_user(
                "507f1f77bcf86cd799439011", UpdateUserRequest(first_name="X"), make_context(UserRole.ADMIN)
            )

    def test_admin_deletes_user(self, service, clerk_user):
        service.delete_user(clerk_user.id, make_context(UserRole.ADMIN))
        with pytest.raises(NotFoundException):
            service.get_user(clerk_user.id)

    def test_manager_cannot_delete(self, service, clerk_user):
        with pytest.raises(AuthorizationException):
            service.delete_user(clerk_user.id, make_context(UserRole.MANAGER))
