# SPDX-License-Identifier: Apache-2.0

"""
Redis service for rate limiting counters and the JWT token blocklist.

This module uses the Upstash HTTP client. When no Redis URL is configured the
service is unavailable and every operation degrades to a no-op.
"""

import os
import time
from typing import Optional, Dict, Any
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

BLOCKLIST_PREFIX = "blocklist:token:"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisService:
    """
    Redis service with Upstash HTTP client.

    Cache-style operations fail gracefully: errors are logged and reported
    as a miss or a failed write.
    """

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None):
        """
        Initialize the Redis service.

        Args:
            redis_url: Upstash Redis HTTP URL
            redis_token: Upstash Redis authentication token
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")
        self.client = None

        if not self.redis_url:
            logger.warning("No REDIS_URL configured, Redis operations will be disabled")
            return

        try:
            self.client = Redis(url=self.redis_url, token=self.redis_token or "")
            self._test_connection()
            logger.info("Redis service initialized successfully")
        except RedisConnectionError as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            result = self.client.ping()
        except Exception as e:
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")
        if result != "PONG":
            raise RedisConnectionError("Redis ping failed")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def _handle_redis_error(self, operation: str, error: Exception) -> None:
        logger.error(f"Redis {operation} failed: {str(error)}")

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> bool:
        """
        Set a key-value pair with TTL.

        Returns:
            True if successful, False otherwise
        """
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.set_with_ttl") as span:
            span.set_attributes({
                "redis.operation": "set_with_ttl",
                "redis.key": key,
                "redis.ttl": ttl_seconds
            })
            try:
                result = self.client.setex(key, ttl_seconds, value)
                return result == "OK" or result is True
            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("SET", e)
                return False

    def get(self, key: str) -> Optional[str]:
        """Get value by key, or None if missing or unavailable."""
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attributes({"redis.operation": "get", "redis.key": key})
            try:
                result = self.client.get(key)
                span.set_attribute("redis.result", "hit" if result else "miss")
                return result
            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("GET", e)
                return None

    def delete(self, key: str) -> bool:
        """Delete a key."""
        if not self.is_available():
            return False

        try:
            return self.client.delete(key) > 0
        except Exception as e:
            self._handle_redis_error("DELETE", e)
            return False

    def increment_window(self, key: str, window_seconds: int) -> Optional[int]:
        """
        Increment a counter that expires with its window.

        Returns:
            The new count, or None when Redis cannot be reached
        """
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.increment_window") as span:
            span.set_attributes({"redis.operation": "incr", "redis.key": key})
            try:
                count = self.client.incr(key)
                if count == 1:
                    self.client.expire(key, window_seconds)
                return count
            except Exception as e:
                span.set_attribute("redis.result", "error")
                self._handle_redis_error("INCR", e)
                return None

    # JWT Token Blocklist Methods

    def is_token_blocked(self, token_id: str) -> bool:
        """Check if a JWT token ID is in the blocklist."""
        if not self.is_available():
            return False

        try:
            return self.client.exists(f"{BLOCKLIST_PREFIX}{token_id}") > 0
        except Exception as e:
            self._handle_redis_error("EXISTS", e)
            return False

    def block_token(self, token_id: str, ttl_seconds: int) -> bool:
        """Add a JWT token ID to the blocklist until it would have expired."""
        if ttl_seconds <= 0:
            return True

        blocked = self.set_with_ttl(f"{BLOCKLIST_PREFIX}{token_id}", "blocked", ttl_seconds)
        if blocked:
            logger.info("Token added to blocklist", extra={"token_id": token_id, "ttl_seconds": ttl_seconds})
        return blocked

    # Health Check Methods

    def ping(self) -> bool:
        """Ping Redis server."""
        if not self.is_available():
            return False

        try:
            return self.client.ping() == "PONG"
        except Exception as e:
            logger.error(f"Redis ping failed: {str(e)}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """Perform Redis health check."""
        if not self.is_available():
            return {
                "status": "unavailable",
                "message": "Redis client not initialized",
                "timestamp": time.time()
            }

        start_time = time.time()
        healthy = self.ping()
        response_time = round((time.time() - start_time) * 1000, 2)

        return {
            "status": "healthy" if healthy else "unhealthy",
            "response_time_ms": response_time,
            "timestamp": time.time()
        }
