# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Authentication endpoints for login, registration, token refresh and logout.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..models.enums import UserRole
from ..models.requests import LoginRequest, RegisterRequest
from ..models.responses import AuthTokenResponse, ErrorResponse, ValidationErrorResponse
from ..middleware.auth import require_auth, get_user_context
from ..middleware.error_handler import AuthorizationException
from ..middleware.rate_limit import rate_limit_auth

logger = logging.getLogger(__name__)

auth_tag = Tag(name="Authentication", description="User authentication and token management")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


@auth_bp.post('/login', responses={200: AuthTokenResponse, 401: ErrorResponse, 422: ValidationErrorResponse})
@rate_limit_auth
def login(body: LoginRequest):
    """
    Authenticate with email and password and return a JWT.

    Unknown accounts, inactive accounts and wrong passwords all return the
    same 401 response.
    """
    return jsonify(current_app.user_service.login(body))


@auth_bp.post(
    '/register',
    responses={201: AuthTokenResponse, 403: ErrorResponse, 409: ErrorResponse, 422: ValidationErrorResponse}
)
@rate_limit_auth
def register(body: RegisterRequest):
    """
    Register a staff user and return a JWT.

    New users are clerks. Assigning any other role requires an
    administrator's bearer token.
    """
    user_context = None
    if body.role is not None and UserRole(body.role) != UserRole.CLERK:
        user_context = current_app.auth_middleware.authenticate_request()
        if not user_context.is_admin:
            logger.warning(
                "Registration with elevated role refused",
                extra={"user_id": user_context.user_id, "requested_role": body.role}
            )
            raise AuthorizationException("Only administrators can assign roles")

    return jsonify(current_app.user_service.register(body, user_context)), 201


@auth_bp.post('/refresh', responses={200: AuthTokenResponse, 401: ErrorResponse})
@require_auth
def refresh_token():
    """Issue a fresh token for the authenticated user."""
    return jsonify(current_app.user_service.refresh(get_user_context()))


@auth_bp.post('/logout', responses={401: ErrorResponse})
@require_auth
def logout():
    """Revoke the current token."""
    revoked = current_app.user_service.logout(get_user_context())
    return jsonify({"message": "Logged out", "tokenRevoked": revoked})
