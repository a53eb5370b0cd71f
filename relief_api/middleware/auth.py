# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

This module provides Flask decorators for validating bearer tokens, checking
the token blocklist, building the caller's user context and enforcing the
per-operation role sets.
"""

from functools import wraps
from flask import request, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from ..domain.authorization import check_role
from ..models.entities import UserContext
from ..services.auth import AuthService, TokenValidationError
from ..services.redis import RedisService
from .error_handler import AuthenticationException, AuthorizationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation, blocklist checking, and user context
    building for protected endpoints.
    """

    def __init__(self, auth_service: AuthService, redis_service: Optional[RedisService] = None):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for the token blocklist
        """
        self.auth_service = auth_service
        self.redis_service = redis_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from the Authorization header.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header.startswith('Bearer '):
            return None

        return auth_header[7:].strip() or None

    def is_token_blocked(self, token_payload: Dict[str, Any]) -> bool:
        """Check if the token's ID has been revoked."""
        if self.redis_service is None or not token_payload.get("jti"):
            return False
        return self.redis_service.is_token_blocked(token_payload["jti"])

    def build_user_context(self, token_payload: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=token_payload["sub"],
            email=token_payload.get("email"),
            role=token_payload["role"],
            token_payload=token_payload,
            ip_address=request.remote_addr,
            user_agent=request.headers.get('User-Agent', '')
        )

    def authenticate_request(self) -> UserContext:
        """
        Authenticate the current request.

        Raises:
            AuthenticationException: If the token is missing, invalid or revoked
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token")
                raise AuthenticationException("Authentication required")

            try:
                token_payload = self.auth_service.validate_token(token)
                user_context = self.build_user_context(token_payload)
            except (TokenValidationError, ValueError) as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}")
                raise AuthenticationException("Invalid or expired token")

            if self.is_token_blocked(token_payload):
                span.set_attribute("auth.result", "token_blocked")
                logger.warning("Authentication failed: token is blocked")
                raise AuthenticationException("Token has been revoked")

            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.role": str(user_context.role)
            })
            return user_context


def get_user_context() -> UserContext:
    """Authenticated caller for the current request."""
    return g.user_context


def require_auth(f: Callable) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    The caller is available through get_user_context() inside the route.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_context = current_app.auth_middleware.authenticate_request()
        return f(*args, **kwargs)

    return decorated_function


def require_roles(operation: str) -> Callable:
    """
    Decorator to require authentication and a role allowed for an operation.

    Args:
        operation: Operation key in the authorization role table

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = current_app.auth_middleware.authenticate_request()
            g.user_context = user_context

            with tracer.start_as_current_span("auth.middleware.check_role") as span:
                span.set_attributes({
                    "auth.operation": operation,
                    "user.id": user_context.user_id,
                    "user.role": str(user_context.role)
                })

                result = check_role(user_context, operation)
                if not result.allowed:
                    span.set_attribute("auth.role_result", "denied")
                    logger.warning(
                        f"Authorization failed for operation '{operation}'",
                        extra={
                            "user_id": user_context.user_id,
                            "role": str(user_context.role),
                            "operation": operation
                        }
                    )
                    raise AuthorizationException("Insufficient permissions")

                span.set_attribute("auth.role_result", "granted")

            return f(*args, **kwargs)

        return decorated_function
    return decorator
