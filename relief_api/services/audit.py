# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit service for action logging with OpenTelemetry correlation.
"""

import logging
from typing import Dict, Optional, Any
from opentelemetry import trace

from .mongodb import MongoDBService
from ..models.entities import AuditLog, UserContext

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

AUDIT_COLLECTION = "audit_logs"


class AuditService:
    """
    Service for audit logging with MongoDB persistence.

    Audit writes never fail the operation being audited: storage errors are
    logged and swallowed.
    """

    def __init__(self, mongo_service: MongoDBService, enabled: bool = True):
        """Initialize audit service with MongoDB dependency."""
        self.mongo_service = mongo_service
        self.enabled = enabled
        self.collection_name = AUDIT_COLLECTION
        logger.info("Audit service initialized", extra={"audit_enabled": enabled})

    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        user_context: Optional[UserContext] = None,
        application_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Log an audit trail entry with trace correlation and structured logging.

        Args:
            action: Action performed, e.g. APPLICATION_APPROVED
            entity_type: Type of entity acted upon
            entity_id: ID of the specific entity
            user_context: Caller with request details
            application_id: Related application, when there is one
            changes: Changed fields

        Returns:
            ID of the created audit entry, or None if auditing is disabled or failed
        """
        if not self.enabled:
            return None

        with tracer.start_as_current_span("audit.log_action") as span:
            span_context = span.get_span_context()
            trace_id = format(span_context.trace_id, "032x") if span_context.is_valid else None

            entry = AuditLog(
                user_id=user_context.user_id if user_context else None,
                application_id=application_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                changes=changes,
                ip_address=user_context.ip_address if user_context else None,
                user_agent=user_context.user_agent if user_context else None,
                trace_id=trace_id
            )

            span.set_attributes({
                "audit.entity_type": entity_type,
                "audit.action": action,
                "audit.entity_id": entity_id
            })

            try:
                audit_id = self.mongo_service.create(self.collection_name, entry.to_document())
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "entity_type": entity_type,
                        "entity_id": entity_id,
                        "action": action,
                        "error": str(e)
                    },
                    exc_info=True
                )
                return None

            logger.info(
                "Audit trail entry created",
                extra={
                    "audit_id": audit_id,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "action": action,
                    "user_id": entry.user_id,
                    "trace_id": trace_id
                }
            )
            return audit_id
