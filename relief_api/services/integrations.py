# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
External integration service for national ID verification and municipal
system synchronisation.

Each call is recorded as an IntegrationLog with its outcome and duration.
When an integration has no URL configured a local result is produced so the
workflow can be exercised without the external system.
"""

import time
import logging
from typing import Any, Dict, List, Optional, Tuple
from pymongo import DESCENDING
import requests
from opentelemetry import trace

from ..middleware.error_handler import NotFoundException
from ..models.base import utcnow
from ..models.entities import IntegrationLog, UserContext
from ..models.enums import IntegrationType
from ..models.requests import IntegrationLogQuery
from .audit import AuditService
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

INTEGRATION_LOGS = "integration_logs"
APPLICATIONS = "applications"

ID_VERIFICATION_ENDPOINT = "/verify-id"
MUNICIPAL_SYNC_ENDPOINT = "/municipal-sync"
DEFAULT_TIMEOUT_SECONDS = 10


class IntegrationEndpoint:
    """Base URL and API key of one external system."""

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None):
        self.url = url.rstrip("/") if url else None
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.url)


class IntegrationService:
    """Calls external systems and records every call."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        audit_service: AuditService,
        id_verification: Optional[IntegrationEndpoint] = None,
        municipal: Optional[IntegrationEndpoint] = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.mongo_service = mongo_service
        self.audit_service = audit_service
        self.id_verification = id_verification or IntegrationEndpoint()
        self.municipal = municipal or IntegrationEndpoint()
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _post(self, endpoint: IntegrationEndpoint, path: str, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """POST JSON to an external system; returns status code and JSON body."""
        headers = {"Content-Type": "application/json"}
        if endpoint.api_key:
            headers["Authorization"] = f"Bearer {endpoint.api_key}"

        response = self.session.post(
            f"{endpoint.url}{path}",
            json=payload,
            headers=headers,
            timeout=self.timeout_seconds
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        return response.status_code, body

    def _record(
        self,
        integration_type: IntegrationType,
        endpoint: str,
        request_data: Dict[str, Any],
        response_data: Dict[str, Any],
        status_code: int,
        success: bool,
        error_message: Optional[str],
        started: float
    ) -> None:
        log = IntegrationLog(
            integration_type=integration_type.value,
            endpoint=endpoint,
            method="POST",
            request_data=request_data,
            response_data=response_data,
            status_code=status_code,
            success=success,
            error_message=error_message,
            duration=int((time.monotonic() - started) * 1000)
        )
        self.mongo_service.create(INTEGRATION_LOGS, log.to_document())

    def _call(
        self,
        integration_type: IntegrationType,
        endpoint: IntegrationEndpoint,
        path: str,
        payload: Dict[str, Any],
        local_result
    ) -> Tuple[bool, Dict[str, Any]]:
        """Run one integration call, falling back to the local result when unconfigured."""
        with tracer.start_as_current_span(f"integration.{integration_type.value.lower()}") as span:
            span.set_attributes({
                "integration.type": integration_type.value,
                "integration.configured": endpoint.configured
            })
            started = time.monotonic()
            error_message = None

            if not endpoint.configured:
                status_code, result, success = 200, local_result(), True
            else:
                try:
                    status_code, result = self._post(endpoint, path, payload)
                    success = True
                except requests.HTTPError as e:
                    status_code = e.response.status_code if e.response is not None else 502
                    error_message = str(e)
                    result, success = {"error": error_message}, False
                except requests.RequestException as e:
                    status_code, error_message = 502, str(e)
                    result, success = {"error": error_message}, False

            span.set_attributes({"integration.success": success, "integration.status_code": status_code})
            if not success:
                logger.warning(
                    "Integration call failed",
                    extra={
                        "integration_type": integration_type.value,
                        "status_code": status_code,
                        "error": error_message
                    }
                )

            self._record(integration_type, path, payload, result, status_code, success, error_message, started)
            return success, result

    def verify_id(self, id_number: str, user_context: UserContext) -> Dict[str, Any]:
        """Verify a national ID number."""
        payload = {"idNumber": id_number}

        def local_result():
            return {
                "valid": True,
                "details": {"idNumber": id_number, "verified": True, "timestamp": utcnow().isoformat()}
            }

        success, result = self._call(
            IntegrationType.ID_VERIFICATION, self.id_verification, ID_VERIFICATION_ENDPOINT, payload, local_result
        )
        if not success:
            result = {"valid": False, **result}

        self.audit_service.log_action(
            "ID_VERIFICATION_REQUESTED", "Integration", id_number, user_context, changes={"success": success}
        )
        return result

    def sync_municipal(self, application_id: str, user_context: UserContext) -> Dict[str, Any]:
        """Push an application to the municipal system."""
        if self.mongo_service.find_by_id(APPLICATIONS, application_id) is None:
            raise NotFoundException(f"Application {application_id} not found")

        payload = {"applicationId": application_id}

        def local_result():
            return {"synced": True, "applicationId": application_id, "timestamp": utcnow().isoformat()}

        success, result = self._call(
            IntegrationType.MUNICIPAL_SYNC, self.municipal, MUNICIPAL_SYNC_ENDPOINT, payload, local_result
        )
        if not success:
            result = {"synced": False, **result}

        self.audit_service.log_action(
            "MUNICIPAL_SYNC_REQUESTED",
            "Application",
            application_id,
            user_context,
            application_id=application_id,
            changes={"success": success}
        )
        return result

    def list_logs(self, query: IntegrationLogQuery) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if query.integration_type:
            filters["integrationType"] = IntegrationType(query.integration_type).value

        logs = self.mongo_service.find(
            INTEGRATION_LOGS, filters, sort=[("createdAt", DESCENDING)], limit=query.limit
        )
        return [IntegrationLog(**log).to_public() for log in logs]
