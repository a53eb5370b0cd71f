# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

Each operation has a static set of allowed roles; a check is plain set
membership of the caller's single role. Operations open to any
authenticated caller are not listed.
"""

from typing import Dict, FrozenSet, Optional
from dataclasses import dataclass
from ..models.entities import UserContext
from ..models.enums import UserRole, ApplicationStatus

ADMIN = UserRole.ADMIN
MANAGER = UserRole.MANAGER
CLERK = UserRole.CLERK
REVIEWER = UserRole.REVIEWER

CASE_EDITORS = frozenset({ADMIN, MANAGER, CLERK})
CASE_REVIEWERS = frozenset({ADMIN, MANAGER, REVIEWER})
SUPERVISORS = frozenset({ADMIN, MANAGER})
ADMINS_ONLY = frozenset({ADMIN})

OPERATION_ROLES: Dict[str, FrozenSet[UserRole]] = {
    "applications:update": CASE_EDITORS,
    "applications:submit": CASE_EDITORS,
    "applications:review": CASE_REVIEWERS,
    "applications:means_test": CASE_REVIEWERS,
    "applications:delete": SUPERVISORS,
    "household_members:write": CASE_EDITORS,
    "documents:upload": CASE_EDITORS,
    "documents:verify": CASE_REVIEWERS,
    "documents:delete": SUPERVISORS,
    "benefits:write": SUPERVISORS,
    "users:list": SUPERVISORS,
    "users:delete": ADMINS_ONLY,
    "integrations:use": SUPERVISORS,
    "reports:export": SUPERVISORS,
}


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def allowed_roles(operation: str) -> Optional[FrozenSet[UserRole]]:
    """Allowed roles for an operation, or None when any caller may perform it."""
    return OPERATION_ROLES.get(operation)


def check_role(user_context: UserContext, operation: str) -> AuthorizationResult:
    """
    Check if the caller's role may perform an operation.

    Args:
        user_context: Authenticated caller
        operation: Operation key from OPERATION_ROLES

    Returns:
        AuthorizationResult indicating if the operation is allowed
    """
    roles = allowed_roles(operation)
    if roles is None or user_context.has_role(roles):
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Role {UserRole(user_context.role).value} may not perform {operation}"
    )


def can_modify_application(
    user_context: UserContext,
    application_status: ApplicationStatus
) -> AuthorizationResult:
    """
    Approved applications are frozen for everyone except administrators.

    Args:
        user_context: Authenticated caller
        application_status: Current status of the application

    Returns:
        AuthorizationResult indicating if the edit is allowed
    """
    if ApplicationStatus(application_status) == ApplicationStatus.APPROVED and not user_context.is_admin:
        return AuthorizationResult(
            allowed=False,
            reason="Only administrators can modify approved applications"
        )

    return AuthorizationResult(allowed=True)


def can_update_user(
    user_context: UserContext,
    target_user_id: str,
    changes_role: bool = False,
    changes_status: bool = False
) -> AuthorizationResult:
    """
    Check whether a caller may update a user account.

    Users may edit their own profile. Supervisors may edit anyone, but no
    one may change their own role.
    """
    is_self = user_context.user_id == target_user_id
    is_supervisor = user_context.has_role(SUPERVISORS)

    if is_self and changes_role:
        return AuthorizationResult(allowed=False, reason="Cannot change your own role")

    if not is_self and not is_supervisor:
        return AuthorizationResult(allowed=False, reason="Cannot modify another user's account")

    if (changes_role or changes_status) and not is_supervisor:
        return AuthorizationResult(allowed=False, reason="Insufficient permissions to change role or status")

    return AuthorizationResult(allowed=True)


def can_delete_user(user_context: UserContext, target_user_id: str) -> AuthorizationResult:
    """Administrators may delete accounts other than their own."""
    role_check = check_role(user_context, "users:delete")
    if not role_check.allowed:
        return role_check

    if user_context.user_id == target_user_id:
        return AuthorizationResult(allowed=False, reason="Cannot delete your own account")

    return AuthorizationResult(allowed=True)
