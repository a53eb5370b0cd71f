# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for role-based authorization rules.
"""

import pytest

from relief_api.domain.authorization import (
    OPERATION_ROLES,
    allowed_roles,
    can_delete_user,
    can_modify_application,
    can_update_user,
    check_role,
)
from relief_api.models.enums import ApplicationStatus, UserRole

from .conftest import make_context

ADMIN, MANAGER, CLERK, REVIEWER, VIEWER = (
    UserRole.ADMIN, UserRole.MANAGER, UserRole.CLERK, UserRole.REVIEWER, UserRole.VIEWER
)


class TestRoleTable:
    """Static role sets per operation."""

    @pytest.mark.parametrize("operation,allowed", [
        ("applications:update", {ADMIN, MANAGER, CLERK}),
        ("applications:submit", {ADMIN, MANAGER, CLERK}),
        ("applications:review", {ADMIN, MANAGER, REVIEWER}),
        ("applications:means_test", {ADMIN, MANAGER, REVIEWER}),
        ("applications:delete", {ADMIN, MANAGER}),
        ("documents:upload", {ADMIN, MANAGER, CLERK}),
        ("documents:verify", {ADMIN, MANAGER, REVIEWER}),
        ("documents:delete", {ADMIN, MANAGER}),
        ("benefits:write", {ADMIN, MANAGER}),
        ("users:list", {ADMIN, MANAGER}),
        ("users:delete", {ADMIN}),
        ("integrations:use", {ADMIN, MANAGER}),
        ("reports:export", {ADMIN, MANAGER}),
    ])
    def test_operation_roles(self, operation, allowed):
        for role in UserRole:
            result = check_role(make_context(role), operation)
            assert result.allowed == (role in allowed), f"{role.value} on {operation}"

    def test_denial_names_role_and_operation(self):
        result = check_role(make_context(VIEWER), "applications:review")
        assert not result.allowed
        assert "VIEWER" in result.reason
        assert "applications:review" in result.reason

    def test_unlisted_operation_open_to_any_caller(self):
        assert allowed_roles("applications:read") is None
        assert check_role(make_context(VIEWER), "applications:read").allowed

    def test_viewer_has_no_write_operations(self):
        viewer = make_context(VIEWER)
        assert not any(check_role(viewer, operation).allowed for operation in OPERATION_ROLES)


class TestApplicationModification:
    """Approved applications are frozen except for administrators."""

    @pytest.mark.parametrize("role", [MANAGER, CLERK, REVIEWER])
    def test_approved_frozen(self, role):
        result = can_modify_application(make_context(role), ApplicationStatus.APPROVED)
        assert not result.allowed
        assert result.reason == "Only administrators can modify approved applications"

    def test_admin_may_modify_approved(self):
        assert can_modify_application(make_context(ADMIN), "APPROVED").allowed

    @pytest.mark.parametrize("status", ["PENDING", "UNDER_REVIEW", "REJECTED"])
    def test_other_statuses_editable(self, status):
        assert can_modify_application(make_context(CLERK), status).allowed


class TestUserAdministration:
    """Account update and deletion rules."""

    def test_self_profile_edit(self):
        clerk = make_context(CLERK)
        assert can_update_user(clerk, clerk.user_id).allowed

    def test_cannot_edit_other_user_without_supervisor_role(self):
        assert not can_update_user(make_context(CLERK), "someone-else").allowed

    def test_nobody_changes_own_role(self):
        admin = make_context(ADMIN)
        result = can_update_user(admin, admin.user_id, changes_role=True)
        assert not result.allowed
        assert result.reason == "Cannot change your own role"

    def test_clerk_cannot_deactivate_self(self):
        clerk = make_context(CLERK)
        assert not can_update_user(clerk, clerk.user_id, changes_status=True).allowed

    def test_manager_may_change_other_role(self):
        assert can_update_user(make_context(MANAGER), "someone-else", changes_role=True).allowed

    def test_only_admin_deletes(self):
        assert not can_delete_user(make_context(MANAGER), "someone-else").allowed
        assert can_delete_user(make_context(ADMIN), "someone-else").allowed

    def test_admin_cannot_delete_self(self):
        admin = make_context(ADMIN)
        result = can_delete_user(admin, admin.user_id)
        assert not result.allowed
        assert result.reason == "Cannot delete your own account"
