"""
Health Check Service

Reports the health of MongoDB and Redis together with process and system
metrics.
"""

import os
import time
import psutil
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from opentelemetry import trace

from .mongodb import MongoDBService
from .redis import RedisService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "relief360-api"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, redis_service: Optional[RedisService], version: str):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.service_version = version

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            mongodb_health = self._check_mongodb_health()
            redis_health = self._check_redis_health()

            overall_status = self._determine_overall_status(mongodb_health["status"], redis_health["status"])
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"],
                "health.redis_status": redis_health["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _timestamp(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "mongodb": mongodb_health,
                    "redis": redis_health
                },
                "system_metrics": self._get_system_metrics(),
                "configuration": self._get_configuration_status()
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        """Check MongoDB connectivity."""
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            result = self.mongodb_service.health_check()
            result["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            result["last_check"] = _timestamp()
            span.set_attribute("mongodb.status", result["status"])
            return result

    def _check_redis_health(self) -> Dict[str, Any]:
        """Check Redis connectivity; an unconfigured Redis is reported as unavailable."""
        with tracer.start_as_current_span("health.redis_check") as span:
            if self.redis_service is None:
                result = {"status": "unavailable", "message": "Redis not configured"}
            else:
                result = self.redis_service.health_check()
            result["last_check"] = _timestamp()
            span.set_attribute("redis.status", result["status"])
            return result

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic system performance metrics."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)

            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')
            process = psutil.Process(os.getpid())

            return {
                "cpu_percent": cpu_percent,
                "memory": {
                    "used_mb": round(memory.used / 1024 / 1024, 2),
                    "total_mb": round(memory.total / 1024 / 1024, 2),
                    "percent": memory.percent
                },
                "disk": {
                    "used_gb": round(disk.used / 1024 / 1024 / 1024, 2),
                    "total_gb": round(disk.total / 1024 / 1024 / 1024, 2),
                    "percent": round((disk.used / disk.total) * 100, 2)
                },
                "process": {
                    "rss_mb": round(process.memory_info().rss / 1024 / 1024, 2),
                    "threads": process.num_threads()
                },
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except Exception as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }

    def _get_configuration_status(self) -> Dict[str, Any]:
        """Get configuration validation status."""
        return {
            "mongodb_uri_configured": bool(os.getenv('MONGODB_URI')),
            "redis_configured": bool(os.getenv('REDIS_URL')),
            "jwt_secret_configured": bool(os.getenv('JWT_SECRET')),
            "environment": os.getenv('ENVIRONMENT', 'development')
        }

    def _determine_overall_status(self, mongodb_status: str, redis_status: str) -> str:
        """MongoDB is required; Redis only degrades the service."""
        if mongodb_status != "healthy":
            return "unhealthy"
        if redis_status != "healthy":
            return "degraded"
        return "healthy"
