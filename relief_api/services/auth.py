# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management and password hashing.

This module provides JWT token generation and validation (HS256 with a shared
secret) and bcrypt password hashing.
"""

import os
import uuid
import jwt
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from ..models.entities import User

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 7 * 24 * 60 * 60


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service with HS256 signing and bcrypt password hashing.
    """

    def __init__(self, secret: Optional[str] = None, expires_seconds: Optional[int] = None):
        """
        Initialize the authentication service.

        Args:
            secret: Shared secret used to sign tokens
            expires_seconds: Token lifetime in seconds
        """
        self.secret = secret or os.getenv("JWT_SECRET")
        if not self.secret:
            logger.warning("No JWT_SECRET configured, using development secret")
            self.secret = "dev-secret-key"
        self.algorithm = "HS256"
        self.expires_seconds = expires_seconds or DEFAULT_TOKEN_LIFETIME_SECONDS

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt with salt.

        Args:
            password: Plain text password to hash

        Returns:
            Hashed password string
        """
        with tracer.start_as_current_span("auth.hash_password") as span:
            span.set_attribute("auth.operation", "hash_password")

            salt = bcrypt.gensalt(rounds=12)
            hashed = bcrypt.hashpw(password.encode('utf-8'), salt)

            logger.debug("Password hashed successfully")
            return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Args:
            password: Plain text password to verify
            hashed_password: Stored hashed password

        Returns:
            True if password matches, False otherwise
        """
        with tracer.start_as_current_span("auth.verify_password") as span:
            span.set_attribute("auth.operation", "verify_password")

            try:
                result = bcrypt.checkpw(
                    password.encode('utf-8'),
                    hashed_password.encode('utf-8')
                )
            except ValueError as e:
                # Malformed stored hash
                span.set_attribute("auth.verification_result", "error")
                logger.error(f"Password verification error: {str(e)}")
                return False

            span.set_attribute("auth.verification_result", "success" if result else "failed")
            return result

    def generate_token(self, user: User) -> Dict[str, Any]:
        """
        Generate an access token for a user.

        Args:
            user: User entity to generate the token for

        Returns:
            Dictionary containing token and expiry metadata
        """
        with tracer.start_as_current_span("auth.generate_token") as span:
            span.set_attributes({
                "auth.operation": "generate_token",
                "user.id": user.id,
                "user.role": str(user.role)
            })

            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(seconds=self.expires_seconds)

            payload = {
                "sub": user.id,
                "email": user.email,
                "role": user.role,
                "iat": now,
                "exp": expires_at,
                "jti": uuid.uuid4().hex
            }

            try:
                token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
            except Exception as e:
                span.set_attribute("auth.token_generated", "error")
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            logger.info(
                "JWT token generated successfully",
                extra={
                    "user_id": user.id,
                    "expires_at": expires_at.isoformat()
                }
            )

            return {
                "token": token,
                "token_type": "Bearer",
                "expires_in": self.expires_seconds,
                "expires_at": expires_at.isoformat()
            }

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"require": ["sub", "exp", "role"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload.get("sub")
            })
            return payload

    def token_ttl_seconds(self, payload: Dict[str, Any]) -> int:
        """Seconds until a decoded token expires (never negative)."""
        remaining = int(payload.get("exp", 0) - datetime.now(timezone.utc).timestamp())
        return max(remaining, 0)
