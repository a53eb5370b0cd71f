# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application case service.

Orchestrates the application lifecycle over MongoDB: numbering, search,
edits, the submit and review transitions, the means test, and household
members.
"""

import re
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from pydantic import ValidationError
from opentelemetry import trace

from ..domain import applications as lifecycle
from ..domain import eligibility
from ..domain.authorization import can_modify_application
from ..middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    PreconditionFailedException,
    ValidationException,
)
from ..middleware.validation import format_validation_errors
from ..models.base import utcnow
from ..models.entities import Application, Benefit, Document, HouseholdMember, UserContext
from ..models.enums import ApplicationStatus
from ..models.requests import (
    ApplicationQuery,
    CreateApplicationRequest,
    CreateHouseholdMemberRequest,
    ReviewApplicationRequest,
    UpdateApplicationRequest,
)
from .audit import AuditService
from .documents import DocumentService
from .mongodb import MongoDBService, PaginationResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

APPLICATIONS = "applications"
HOUSEHOLD_MEMBERS = "household_members"
DOCUMENTS = "documents"
BENEFITS = "benefits"

SEARCH_FIELDS = ("applicationNumber", "idNumber", "firstName", "lastName")
MAX_NUMBER_ATTEMPTS = 5


class ApplicationService:
    """Application lifecycle operations backed by MongoDB."""

    def __init__(
        self,
        mongo_service: MongoDBService,
        audit_service: AuditService,
        document_service: Optional[DocumentService] = None
    ):
        self.mongo_service = mongo_service
        self.audit_service = audit_service
        self.document_service = document_service or DocumentService(mongo_service, audit_service)

    # Numbering

    def generate_application_number(self, now: Optional[datetime] = None) -> str:
        """
        Issue the next application number for the current year.

        The per-year counter is seeded from the greatest number already
        stored with the year's prefix, then incremented atomically.
        """
        year = (now or utcnow()).year
        prefix = lifecycle.application_number_prefix(year)

        latest = self.mongo_service.find_one(
            APPLICATIONS,
            {"applicationNumber": {"$regex": f"^{re.escape(prefix)}"}},
            sort=[("applicationNumber", DESCENDING)]
        )
        floor = lifecycle.parse_application_sequence(
            latest.get("applicationNumber") if latest else None, year
        )

        sequence = self.mongo_service.next_sequence(f"applicationNumber:{year}", floor)
        return lifecycle.format_application_number(year, sequence)

    # Applications

    def create_application(self, request: CreateApplicationRequest, user_context: UserContext) -> Dict[str, Any]:
        """Capture a new PENDING application for the caller."""
        with tracer.start_as_current_span("application.create") as span:
            data = request.model_dump(exclude_none=True)

            for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
                application = Application(
                    application_number=self.generate_application_number(),
                    created_by_id=user_context.user_id,
                    **data
                )
                try:
                    self.mongo_service.create(APPLICATIONS, application.to_document())
                    break
                except DuplicateKeyError:
                    logger.warning(
                        "Application number already taken, retrying",
                        extra={
                            "application_number": application.application_number,
                            "attempt": attempt
                        }
                    )
            else:
                raise ConflictException("Could not allocate a unique application number")

            span.set_attributes({
                "application.id": application.id,
                "application.number": application.application_number
            })

            self.audit_service.log_action(
                "APPLICATION_CREATED",
                "Application",
                application.id,
                user_context,
                application_id=application.id,
                changes={"applicationNumber": application.application_number}
            )

            logger.info(
                "Application created",
                extra={
                    "application_id": application.id,
                    "application_number": application.application_number,
                    "user_id": user_context.user_id
                }
            )
            return application.to_public()

    def list_applications(self, query: ApplicationQuery) -> PaginationResult:
        """Paginated listing filtered by status and free-text search."""
        filters: Dict[str, Any] = {}
        if query.status:
            filters["status"] = ApplicationStatus(query.status).value
        if query.search and query.search.strip():
            pattern = re.escape(query.search.strip())
            filters["$or"] = [
                {field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS
            ]

        result = self.mongo_service.paginate(
            APPLICATIONS,
            page=query.page,
            page_size=query.limit,
            filters=filters,
            sort_by=query.sort_by,
            sort_order=ASCENDING if query.sort_order == "asc" else DESCENDING
        )
        result.items = [Application(**item).to_public() for item in result.items]
        return result

    def get_application_entity(self, application_id: str) -> Application:
        document = self.mongo_service.find_by_id(APPLICATIONS, application_id)
        if document is None:
            raise NotFoundException(f"Application {application_id} not found")
        return Application(**document)

    def get_application(self, application_id: str) -> Dict[str, Any]:
        """Application with its household members, documents and benefits."""
        application = self.get_application_entity(application_id)

        data = application.to_public()
        data["_embedded"] = {
            "householdMembers": [m.to_public() for m in self.list_household_member_entities(application_id)],
            "documents": [d.to_public() for d in self.list_document_entities(application_id)],
            "benefits": [
                Benefit(**benefit).to_public()
                for benefit in self.mongo_service.find(
                    BENEFITS, {"applicationId": application_id}, sort=[("startDate", DESCENDING)]
                )
            ],
        }
        return data

    def update_application(
        self,
        application_id: str,
        request: UpdateApplicationRequest,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """Merge editable fields into an application."""
        with tracer.start_as_current_span("application.update") as span:
            span.set_attribute("application.id", application_id)
            application = self.get_application_entity(application_id)

            permission = can_modify_application(user_context, application.status)
            if not permission.allowed:
                raise AuthorizationException(permission.reason)

            changes = request.model_dump(exclude_unset=True)
            if not changes:
                return application.to_public()

            try:
                merged = Application(**{**application.model_dump(), **changes})
            except ValidationError as e:
                raise ValidationException(
                    "Application update is invalid",
                    format_validation_errors(e),
                    422
                )

            merged_document = merged.to_document()
            updates = {
                key: merged_document[key]
                for key in request.model_dump(by_alias=True, exclude_unset=True)
            }
            updated = self.mongo_service.compare_and_set(
                APPLICATIONS,
                application_id,
                {"status": ApplicationStatus(application.status).value},
                updates
            )
            if updated is None:
                span.set_attribute("application.update_result", "conflict")
                raise PreconditionFailedException("Application status changed before it could be updated")

            self.audit_service.log_action(
                "APPLICATION_UPDATED",
                "Application",
                application_id,
                user_context,
                application_id=application_id,
                changes=request.model_dump(by_alias=True, exclude_unset=True, mode="json")
            )
            return Application(**updated).to_public()

    def submit_for_review(self, application_id: str, user_context: UserContext) -> Dict[str, Any]:
        """
        Move a PENDING application into review.

        Raises:
            NotFoundException: If the application does not exist
            PreconditionFailedException: If the application is not PENDING,
                required documents are missing or unverified, or the status
                changed concurrently
        """
        with tracer.start_as_current_span("application.submit") as span:
            span.set_attribute("application.id", application_id)
            application = self.get_application_entity(application_id)

            transition = lifecycle.validate_status_transition(
                application.status, ApplicationStatus.UNDER_REVIEW
            )
            if not transition.is_valid:
                span.set_attribute("application.submit_result", "invalid_status")
                raise PreconditionFailedException("Only pending applications can be submitted for review")

            missing = lifecycle.missing_required_documents(self.list_document_entities(application_id))
            if missing:
                span.set_attribute("application.submit_result", "missing_documents")
                raise PreconditionFailedException(
                    f"Required documents missing or unverified: {', '.join(missing)}"
                )

            updated = self.mongo_service.compare_and_set(
                APPLICATIONS,
                application_id,
                {"status": ApplicationStatus.PENDING.value},
                lifecycle.build_submit_update(utcnow())
            )
            if updated is None:
                span.set_attribute("application.submit_result", "conflict")
                raise PreconditionFailedException("Application status changed before it could be submitted")

            span.set_attribute("application.submit_result", "success")
            self.audit_service.log_action(
                "APPLICATION_SUBMITTED",
                "Application",
                application_id,
                user_context,
                application_id=application_id,
                changes={"status": ApplicationStatus.UNDER_REVIEW.value}
            )
            logger.info(
                "Application submitted for review",
                extra={"application_id": application_id, "user_id": user_context.user_id}
            )
            return Application(**updated).to_public()

    def review_application(
        self,
        application_id: str,
        request: ReviewApplicationRequest,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """
        Approve or reject an application under review.

        Only one of several concurrent reviews can succeed; the others see
        the status already changed and fail.
        """
        decision = ApplicationStatus(request.status)
        with tracer.start_as_current_span("application.review") as span:
            span.set_attributes({"application.id": application_id, "review.decision": decision.value})
            application = self.get_application_entity(application_id)

            transition = lifecycle.validate_status_transition(application.status, decision)
            if not transition.is_valid:
                raise PreconditionFailedException("Only applications under review can be reviewed")

            update = lifecycle.build_review_update(
                decision,
                user_context.user_id,
                utcnow(),
                notes=request.notes,
                rejection_reason=request.rejection_reason
            )
            updated = self.mongo_service.compare_and_set(
                APPLICATIONS,
                application_id,
                {"status": ApplicationStatus.UNDER_REVIEW.value},
                update
            )
            if updated is None:
                span.set_attribute("review.result", "conflict")
                raise PreconditionFailedException("Application is no longer under review")

            span.set_attribute("review.result", "success")
            self.audit_service.log_action(
                f"APPLICATION_{decision.value}",
                "Application",
                application_id,
                user_context,
                application_id=application_id,
                changes={"status": decision.value, "rejectionReason": request.rejection_reason}
            )
            logger.info(
                "Application reviewed",
                extra={
                    "application_id": application_id,
                    "decision": decision.value,
                    "reviewer_id": user_context.user_id
                }
            )
            return Application(**updated).to_public()

    def run_means_test(
        self,
        application_id: str,
        user_context: UserContext
    ) -> Tuple[Dict[str, Any], eligibility.MeansTestResult]:
        """Evaluate eligibility and store the latest score and status."""
        with tracer.start_as_current_span("application.means_test") as span:
            span.set_attribute("application.id", application_id)
            application = self.get_application_entity(application_id)
            members = self.list_household_member_entities(application_id)

            result = eligibility.evaluate(application, members)
            span.set_attributes({
                "means_test.score": result.score,
                "means_test.status": result.status.value
            })

            updated = self.mongo_service.update_by_id(
                APPLICATIONS,
                application_id,
                {"meansTestScore": result.score, "meansTestStatus": result.status.value}
            )
            if updated is None:
                raise NotFoundException(f"Application {application_id} not found")

            self.audit_service.log_action(
                "MEANS_TEST_RUN",
                "Application",
                application_id,
                user_context,
                application_id=application_id,
                changes={"meansTestScore": result.score, "meansTestStatus": result.status.value}
            )
            return Application(**updated).to_public(), result

    def delete_application(self, application_id: str, user_context: UserContext) -> None:
        """
        Remove an application with its household members, documents (records
        and stored files) and benefits. Consent records are kept.
        """
        self.get_application_entity(application_id)

        removed_members = self.mongo_service.delete_many(HOUSEHOLD_MEMBERS, {"applicationId": application_id})
        removed_documents = self.document_service.delete_application_documents(application_id)
        removed_benefits = self.mongo_service.delete_many(BENEFITS, {"applicationId": application_id})
        if not self.mongo_service.delete_by_id(APPLICATIONS, application_id):
            raise NotFoundException(f"Application {application_id} not found")

        self.audit_service.log_action(
            "APPLICATION_DELETED",
            "Application",
            application_id,
            user_context,
            application_id=application_id,
            changes={
                "householdMembersRemoved": removed_members,
                "documentsRemoved": removed_documents,
                "benefitsRemoved": removed_benefits
            }
        )

    # Documents attached to an application

    def list_document_entities(self, application_id: str) -> List[Document]:
        documents = self.mongo_service.find(
            DOCUMENTS, {"applicationId": application_id}, sort=[("createdAt", DESCENDING)]
        )
        return [Document(**document) for document in documents]

    # Household members

    def list_household_member_entities(self, application_id: str) -> List[HouseholdMember]:
        members = self.mongo_service.find(
            HOUSEHOLD_MEMBERS, {"applicationId": application_id}, sort=[("createdAt", ASCENDING)]
        )
        return [HouseholdMember(**member) for member in members]

    def list_household_members(self, application_id: str) -> List[Dict[str, Any]]:
        self.get_application_entity(application_id)
        return [m.to_public() for m in self.list_household_member_entities(application_id)]

    def _ensure_household_editable(self, application: Application, user_context: UserContext) -> None:
        permission = can_modify_application(user_context, application.status)
        if not permission.allowed:
            raise AuthorizationException(permission.reason)

    def _confirm_status_unchanged(self, application: Application) -> bool:
        """Touch the application only if its status still matches the one checked."""
        confirmed = self.mongo_service.compare_and_set(
            APPLICATIONS,
            application.id,
            {"status": ApplicationStatus(application.status).value},
            {"updatedAt": utcnow()}
        )
        return confirmed is not None

    def add_household_member(
        self,
        application_id: str,
        request: CreateHouseholdMemberRequest,
        user_context: UserContext
    ) -> Dict[str, Any]:
        """
        Store a household member under an application.

        The member is withdrawn again when the application's status changed
        after the permission check.
        """
        application = self.get_application_entity(application_id)
        self._ensure_household_editable(application, user_context)

        member = HouseholdMember(application_id=application_id, **request.model_dump(exclude_none=True))
        self.mongo_service.create(HOUSEHOLD_MEMBERS, member.to_document())

        if not self._confirm_status_unchanged(application):
            self.mongo_service.delete_by_id(HOUSEHOLD_MEMBERS, member.id)
            logger.warning(
                "Household member withdrawn after concurrent status change",
                extra={"application_id": application_id, "member_id": member.id}
            )
            raise PreconditionFailedException("Application status changed before the member could be added")

        self.audit_service.log_action(
            "HOUSEHOLD_MEMBER_ADDED",
            "HouseholdMember",
            member.id,
            user_context,
            application_id=application_id
        )
        return member.to_public()

    def remove_household_member(self, application_id: str, member_id: str, user_context: UserContext) -> None:
        application = self.get_application_entity(application_id)
        self._ensure_household_editable(application, user_context)

        member = self.mongo_service.find_by_id(HOUSEHOLD_MEMBERS, member_id)
        if member is None or member.get("applicationId") != application_id:
            raise NotFoundException(f"Household member {member_id} not found")

        self.mongo_service.delete_by_id(HOUSEHOLD_MEMBERS, member_id)

        if not self._confirm_status_unchanged(application):
            self.mongo_service.create(HOUSEHOLD_MEMBERS, member)
            logger.warning(
                "Household member restored after concurrent status change",
                extra={"application_id": application_id, "member_id": member_id}
            )
            raise PreconditionFailedException("Application status changed before the member could be removed")

        self.audit_service.log_action(
            "HOUSEHOLD_MEMBER_REMOVED",
            "HouseholdMember",
            member_id,
            user_context,
            application_id=application_id
        )
