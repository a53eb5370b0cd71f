# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Benefit service for benefits granted to approved applications.
"""

import logging
from typing import Any, Dict, List, Optional
from pymongo import DESCENDING
from pydantic import ValidationError
from opentelemetry import trace

from ..middleware.error_handler import NotFoundException, PreconditionFailedException, ValidationException
from ..middleware.validation import format_validation_errors
from ..models.entities import Application, Benefit, UserContext
from ..models.enums import ApplicationStatus, BenefitStatus
from ..models.requests import BenefitQuery, CreateBenefitRequest, UpdateBenefitRequest
from .audit import AuditService
from .mongodb import MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BENEFITS = "benefits"
APPLICATIONS = "applications"

APPLICATION_SUMMARY_FIELDS = ("id", "applicationNumber", "firstName", "lastName")


class BenefitService:
    """CRUD for benefits; only approved applications may receive one."""

    def __init__(self, mongo_service: MongoDBService, audit_service: AuditService):
        self.mongo_service = mongo_service
        self.audit_service = audit_service

    def _application_summary(self, application_id: str) -> Optional[Dict[str, Any]]:
        application = self.mongo_service.find_by_id(APPLICATIONS, application_id)
        if application is None:
            return None
        return {key: application.get(key) for key in APPLICATION_SUMMARY_FIELDS}

    def get_benefit_entity(self, benefit_id: str) -> Benefit:
        stored = self.mongo_service.find_by_id(BENEFITS, benefit_id)
        if stored is None:
            raise NotFoundException(f"Benefit {benefit_id} not found")
        return Benefit(**stored)

    def list_benefits(self, query: BenefitQuery) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if query.application_id:
            filters["applicationId"] = query.application_id
        if query.status:
            filters["status"] = BenefitStatus(query.status).value

        benefits = []
        summaries: Dict[str, Dict[str, Any]] = {}
        for stored in self.mongo_service.find(BENEFITS, filters, sort=[("createdAt", DESCENDING)]):
            benefit = Benefit(**stored).to_public()
            application_id = benefit["applicationId"]
            if application_id not in summaries:
                summaries[application_id] = self._application_summary(application_id)
            benefit["application"] = summaries[application_id]
            benefits.append(benefit)
        return benefits

    def get_benefit(self, benefit_id: str) -> Dict[str, Any]:
        benefit = self.get_benefit_entity(benefit_id).to_public()
        benefit["application"] = self._application_summary(benefit["applicationId"])
        return benefit

    def create_benefit(self, request: CreateBenefitRequest, user_context: UserContext) -> Dict[str, Any]:
        """
        Grant a benefit to an application.

        Raises:
            NotFoundException: If the application does not exist
            PreconditionFailedException: If the application is not APPROVED
        """
        with tracer.start_as_current_span("benefit.create") as span:
            span.set_attribute("application.id", request.application_id)

            stored = self.mongo_service.find_by_id(APPLICATIONS, request.application_id)
            if stored is None:
                raise NotFoundException(f"Application {request.application_id} not found")

            application = Application(**stored)
            if ApplicationStatus(application.status) != ApplicationStatus.APPROVED:
                raise PreconditionFailedException("Application must be approved to assign benefits")

            benefit = Benefit(**request.model_dump(exclude_none=True))
            self.mongo_service.create(BENEFITS, benefit.to_document())

            self.audit_service.log_action(
                "BENEFIT_CREATED",
                "Benefit",
                benefit.id,
                user_context,
                application_id=request.application_id,
                changes=request.model_dump(by_alias=True, exclude_none=True, mode="json")
            )
            logger.info(
                "Benefit created",
                extra={
                    "benefit_id": benefit.id,
                    "application_id": request.application_id,
                    "benefit_type": benefit.benefit_type,
                    "amount": benefit.amount
                }
            )
            return benefit.to_public()

    def update_benefit(
        self,
        benefit_id: str,
        request: UpdateBenefitRequest,
        user_context: UserContext
    ) -> Dict[str, Any]:
        benefit = self.get_benefit_entity(benefit_id)

        changes = request.model_dump(exclude_unset=True)
        try:
            merged = Benefit(**{**benefit.model_dump(), **changes})
        except ValidationError as e:
            raise ValidationException("Benefit update is invalid", format_validation_errors(e), 422)

        if merged.end_date is not None and merged.end_date < merged.start_date:
            raise ValidationException(
                "Benefit update is invalid",
                [{"field": "endDate", "message": "endDate cannot be before startDate"}],
                422
            )

        changed_keys = request.model_dump(by_alias=True, exclude_unset=True)
        merged_document = merged.to_document()
        updated = self.mongo_service.update_by_id(
            BENEFITS, benefit_id, {key: merged_document[key] for key in changed_keys}
        )
        if updated is None:
            raise NotFoundException(f"Benefit {benefit_id} not found")

        self.audit_service.log_action(
            "BENEFIT_UPDATED",
            "Benefit",
            benefit_id,
            user_context,
            application_id=benefit.application_id,
            changes=request.model_dump(by_alias=True, exclude_unset=True, mode="json")
        )
        return Benefit(**updated).to_public()

    def delete_benefit(self, benefit_id: str, user_context: UserContext) -> None:
        benefit = self.get_benefit_entity(benefit_id)
        self.mongo_service.delete_by_id(BENEFITS, benefit_id)
        self.audit_service.log_action(
            "BENEFIT_DELETED",
            "Benefit",
            benefit_id,
            user_context,
            application_id=benefit.application_id
        )
