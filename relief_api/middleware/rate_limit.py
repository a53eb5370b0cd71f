# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Rate limiting middleware for API endpoints.
Provides fixed-window rate limiting with a Redis backend.
"""

from functools import wraps
from flask import request, current_app
from typing import Dict, Any, Optional, Callable
import time
import hashlib
import logging

from ..services.redis import RedisService
from .error_handler import CustomException, RateLimitException

logger = logging.getLogger(__name__)

AUTH_LIMIT = 20
AUTH_WINDOW_SECONDS = 15 * 60


class RateLimiter:
    """Redis-based rate limiter with fixed windows."""

    def __init__(self, redis_service: RedisService):
        self.redis_service = redis_service

    def get_client_identifier(self) -> str:
        """Hash of client IP and user agent."""
        ip_address = request.remote_addr or 'unknown'
        user_agent = request.headers.get('User-Agent', '')
        identifier_hash = hashlib.sha256(f"{ip_address}:{user_agent}".encode()).hexdigest()[:32]
        return f"ip:{identifier_hash}"

    def get_rate_limit_key(self, identifier: str, endpoint: str, window_seconds: int) -> str:
        """Generate Redis key for the current window."""
        window_start = int(time.time()) // window_seconds
        return f"rate_limit:{identifier}:{endpoint}:{window_start}"

    def current_count(self, key: str) -> int:
        value = self.redis_service.get(key)
        try:
            return int(value) if value else 0
        except (TypeError, ValueError):
            return 0

    def window_status(self, count: int, limit: int, window_seconds: int) -> Dict[str, Any]:
        """Remaining allowance and reset time for a window."""
        now = int(time.time())
        reset_time = (now // window_seconds + 1) * window_seconds
        return {
            'allowed': count < limit,
            'limit': limit,
            'remaining': max(limit - count, 0),
            'reset_time': reset_time,
            'retry_after': reset_time - now if count >= limit else 0
        }


def rate_limit(
    limit: int,
    window_seconds: int = 3600,
    endpoint: Optional[str] = None,
    count_failures_only: bool = False
) -> Callable:
    """
    Decorator for rate limiting endpoints per client.

    Args:
        limit: Maximum requests allowed per window
        window_seconds: Window length in seconds
        endpoint: Custom endpoint identifier
        count_failures_only: Only count requests that end in an error

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            redis_service = getattr(current_app, 'redis_service', None)
            if (
                not current_app.config.get('RATE_LIMIT_ENABLED', True)
                or redis_service is None
                or not redis_service.is_available()
            ):
                return f(*args, **kwargs)

            limiter = RateLimiter(redis_service)
            identifier = limiter.get_client_identifier()
            endpoint_name = endpoint or request.endpoint or f.__name__
            key = limiter.get_rate_limit_key(identifier, endpoint_name, window_seconds)

            status = limiter.window_status(limiter.current_count(key), limit, window_seconds)
            if not status['allowed']:
                logger.warning(
                    "Rate limit exceeded",
                    extra={
                        'identifier': identifier,
                        'endpoint': endpoint_name,
                        'limit': limit,
                        'retry_after': status['retry_after']
                    }
                )
                raise RateLimitException(
                    f"Rate limit of {limit} requests per {window_seconds} seconds exceeded",
                    retry_after=status['retry_after']
                )

            if not count_failures_only:
                redis_service.increment_window(key, window_seconds)

            try:
                response = f(*args, **kwargs)
            except CustomException:
                if count_failures_only:
                    redis_service.increment_window(key, window_seconds)
                raise

            return response

        return decorated_function
    return decorator


def rate_limit_auth(f: Callable) -> Callable:
    """Rate limit for authentication endpoints: 20 failed attempts per 15 minutes."""
    return rate_limit(AUTH_LIMIT, AUTH_WINDOW_SECONDS, count_failures_only=True)(f)
