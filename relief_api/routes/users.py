# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User account administration endpoints.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag

from ..models.requests import UserPath, UpdateUserRequest
from ..models.responses import ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, require_roles, get_user_context

users_tag = Tag(name="Users", description="Staff user administration")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)

ERROR_RESPONSES = {
    401: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    422: ValidationErrorResponse,
}


def _format(user):
    return current_app.hal_formatter.format_resource(user, f"/api/users/{user['id']}", '/api/users')


@users_bp.get('', responses=ERROR_RESPONSES)
@require_roles('users:list')
def list_users():
    """List all staff users."""
    users = [_format(u) for u in current_app.user_service.list_users()]
    return jsonify(current_app.hal_formatter.format_collection(
        users, len(users), 1, max(len(users), 1), '/api/users'
    ))


@users_bp.get('/<user_id>', responses=ERROR_RESPONSES)
@require_auth
def get_user(path: UserPath):
    """Get a staff user."""
    return jsonify(_format(current_app.user_service.get_user(path.user_id)))


@users_bp.put('/<user_id>', responses=ERROR_RESPONSES)
@require_auth
def update_user(path: UserPath, body: UpdateUserRequest):
    """
    Update a staff user.

    Users may edit their own names. Managers and administrators may edit
    anyone, including role and active flag, but nobody may change their
    own role.
    """
    user = current_app.user_service.update_user(path.user_id, body, get_user_context())
    return jsonify(_format(user))


@users_bp.delete('/<user_id>', responses=ERROR_RESPONSES)
@require_roles('users:delete')
def delete_user(path: UserPath):
    """Delete a staff user; administrators cannot delete themselves."""
    current_app.user_service.delete_user(path.user_id, get_user_context())
    return '', 204
