# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User account service: registration, sign-in, token refresh and revocation,
and account administration.
"""

import logging
from typing import Any, Dict, List, Optional
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError
from opentelemetry import trace

from ..domain.authorization import can_delete_user, can_update_user
from ..middleware.error_handler import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    NotFoundException,
)
from ..models.base import utcnow
from ..models.entities import User, UserContext
from ..models.enums import UserRole
from ..models.requests import LoginRequest, RegisterRequest, UpdateUserRequest
from ..models.responses import AuthTokenResponse
from .audit import AuditService
from .auth import AuthService
from .mongodb import MongoDBService
from .redis import RedisService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USERS = "users"

INVALID_CREDENTIALS = "Invalid credentials"


class UserService:
    """Staff accounts and their tokens."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        auth_service: AuthService,
        audit_service: AuditService,
        redis_service: Optional[RedisService] = None
    ):
        self.mongo_service = mongo_service
        self.auth_service = auth_service
        self.audit_service = audit_service
        self.redis_service = redis_service

    def _token_response(self, user: User) -> Dict[str, Any]:
        token_data = self.auth_service.generate_token(user)
        return AuthTokenResponse(
            token=token_data["token"],
            token_type=token_data["token_type"],
            expires_in=token_data["expires_in"],
            user=user.to_public()
        ).model_dump(by_alias=True)

    def find_by_email(self, email: str) -> Optional[User]:
        stored = self.mongo_service.find_one(USERS, {"email": email.strip().lower()})
        return User(**stored) if stored else None

    def get_user_entity(self, user_id: str) -> User:
        stored = self.mongo_service.find_by_id(USERS, user_id)
        if stored is None:
            raise NotFoundException(f"User {user_id} not found")
        return User(**stored)

    # Authentication flows

    def register(self, request: RegisterRequest, user_context: Optional[UserContext] = None) -> Dict[str, Any]:
        """
        Create a staff account and sign it in.

        Raises:
            ConflictException: If the email is already registered
        """
        with tracer.start_as_current_span("user.register") as span:
            if self.find_by_email(request.email) is not None:
                span.set_attribute("user.register_result", "duplicate")
                raise ConflictException("User already exists")

            user = User(
                email=request.email,
                password_hash=self.auth_service.hash_password(request.password),
                first_name=request.first_name,
                last_name=request.last_name,
                role=request.role or UserRole.CLERK
            )
            try:
                self.mongo_service.create(USERS, user.to_document())
            except DuplicateKeyError:
                raise ConflictException("User already exists")

            span.set_attributes({"user.id": user.id, "user.role": str(user.role)})
            self.audit_service.log_action("USER_REGISTERED", "User", user.id, user_context)
            logger.info("User registered", extra={"user_id": user.id, "role": user.role})
            return self._token_response(user)

    def login(self, request: LoginRequest) -> Dict[str, Any]:
        """
        Authenticate with email and password.

        Unknown, inactive and wrong-password accounts fail with the same message.
        """
        with tracer.start_as_current_span("user.login") as span:
            user = self.find_by_email(request.email)
            if user is None or not user.is_active:
                span.set_attribute("auth.login_result", "unknown_or_inactive")
                raise AuthenticationException(INVALID_CREDENTIALS)

            if not self.auth_service.verify_password(request.password, user.password_hash):
                span.set_attribute("auth.login_result", "invalid_password")
                logger.warning("Login failed: invalid password", extra={"user_id": user.id})
                raise AuthenticationException(INVALID_CREDENTIALS)

            try:
                self.mongo_service.update_by_id(USERS, user.id, {"lastLoginAt": utcnow()})
            except Exception as e:
                logger.error("Failed to update last login", extra={"user_id": user.id, "error": str(e)})

            span.set_attribute("auth.login_result", "success")
            logger.info("User logged in", extra={"user_id": user.id})
            return self._token_response(user)

    def refresh(self, user_context: UserContext) -> Dict[str, Any]:
        """Issue a new token for an authenticated, still active user."""
        stored = self.mongo_service.find_by_id(USERS, user_context.user_id)
        if stored is None or not stored.get("isActive", True):
            raise AuthenticationException("User not found or inactive")
        return self._token_response(User(**stored))

    def logout(self, user_context: UserContext) -> bool:
        """Block the caller's token until it would have expired."""
        payload = user_context.token_payload or {}
        token_id = payload.get("jti")
        if not token_id or self.redis_service is None:
            return False

        blocked = self.redis_service.block_token(token_id, self.auth_service.token_ttl_seconds(payload))
        self.audit_service.log_action("USER_LOGGED_OUT", "User", user_context.user_id, user_context)
        return blocked

    # Administration

    def list_users(self) -> List[Dict[str, Any]]:
        users = self.mongo_service.find(USERS, {}, sort=[("lastName", ASCENDING), ("firstName", ASCENDING)])
        return [User(**user).to_public() for user in users]

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self.get_user_entity(user_id).to_public()

    def update_user(self, user_id: str, request: UpdateUserRequest, user_context: UserContext) -> Dict[str, Any]:
        """
        Update a user's profile, role or active flag.

        Raises:
            AuthorizationException: If the caller may not make this change
            NotFoundException: If the user does not exist
        """
        changes = request.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)

        permission = can_update_user(
            user_context,
            user_id,
            changes_role="role" in changes,
            changes_status="isActive" in changes
        )
        if not permission.allowed:
            raise AuthorizationException(permission.reason)

        user = self.get_user_entity(user_id)
        if not changes:
            return user.to_public()

        updated = self.mongo_service.update_by_id(USERS, user_id, changes)
        if updated is None:
            raise NotFoundException(f"User {user_id} not found")

        self.audit_service.log_action("USER_UPDATED", "User", user_id, user_context, changes=changes)
        return User(**updated).to_public()

    def delete_user(self, user_id: str, user_context: UserContext) -> None:
        permission = can_delete_user(user_context, user_id)
        if not permission.allowed:
            raise AuthorizationException(permission.reason)

        self.get_user_entity(user_id)
        self.mongo_service.delete_by_id(USERS, user_id)
        self.audit_service.log_action("USER_DELETED", "User", user_id, user_context)
