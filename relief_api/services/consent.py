# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Consent service for data-protection consent records.
"""

import logging
from typing import Any, Dict, List
from pymongo import DESCENDING

from ..middleware.error_handler import NotFoundException
from ..models.base import utcnow
from ..models.entities import ConsentRecord, UserContext
from ..models.requests import ConsentQuery, CreateConsentRequest
from .audit import AuditService
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)

CONSENT_RECORDS = "consent_records"


class ConsentService:
    """Records consent given or revoked on behalf of applicants."""

    def __init__(self, mongo_service: MongoDBService, audit_service: AuditService):
        self.mongo_service = mongo_service
        self.audit_service = audit_service

    def list_consents(self, query: ConsentQuery) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if query.application_id:
            filters["applicationId"] = query.application_id
        if query.user_id:
            filters["userId"] = query.user_id

        records = self.mongo_service.find(CONSENT_RECORDS, filters, sort=[("createdAt", DESCENDING)])
        return [ConsentRecord(**record).to_public() for record in records]

    def get_consent(self, consent_id: str) -> Dict[str, Any]:
        stored = self.mongo_service.find_by_id(CONSENT_RECORDS, consent_id)
        if stored is None:
            raise NotFoundException(f"Consent record {consent_id} not found")
        return ConsentRecord(**stored).to_public()

    def create_consent(self, request: CreateConsentRequest, user_context: UserContext) -> Dict[str, Any]:
        """Record consent captured by the caller; grantedAt is stamped when granted."""
        record = ConsentRecord(
            user_id=user_context.user_id,
            granted_at=utcnow() if request.granted else None,
            **request.model_dump(exclude_none=True)
        )
        self.mongo_service.create(CONSENT_RECORDS, record.to_document())

        self.audit_service.log_action(
            "CONSENT_RECORDED",
            "ConsentRecord",
            record.id,
            user_context,
            application_id=record.application_id,
            changes={"consentType": record.consent_type, "granted": record.granted}
        )
        logger.info(
            "Consent recorded",
            extra={"consent_id": record.id, "consent_type": record.consent_type, "granted": record.granted}
        )
        return record.to_public()

    def revoke_consent(self, consent_id: str, user_context: UserContext) -> Dict[str, Any]:
        updated = self.mongo_service.update_by_id(
            CONSENT_RECORDS, consent_id, {"granted": False, "revokedAt": utcnow()}
        )
        if updated is None:
            raise NotFoundException(f"Consent record {consent_id} not found")

        record = ConsentRecord(**updated)
        self.audit_service.log_action(
            "CONSENT_REVOKED",
            "ConsentRecord",
            consent_id,
            user_context,
            application_id=record.application_id
        )
        return record.to_public()
