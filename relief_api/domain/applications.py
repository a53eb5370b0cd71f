# SPDX-License-Identifier: Apache-2.0

"""
Application lifecycle domain logic.

This module contains pure functions for the application state machine:
legal status transitions, the document verification gate that guards
submission, review side effects, and application number formatting.
"""

import re
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from ..models.entities import Document
from ..models.enums import ApplicationStatus, DocumentType

APPLICATION_NUMBER_PREFIX = "IND"
APPLICATION_NUMBER_DIGITS = 6

REQUIRED_DOCUMENT_TYPES = (DocumentType.ID_DOCUMENT, DocumentType.PROOF_OF_INCOME)

# EXPIRED and SUSPENDED are set outside the review workflow
VALID_TRANSITIONS = {
    ApplicationStatus.PENDING: [ApplicationStatus.UNDER_REVIEW],
    ApplicationStatus.UNDER_REVIEW: [ApplicationStatus.APPROVED, ApplicationStatus.REJECTED],
    ApplicationStatus.APPROVED: [],  # Terminal state
    ApplicationStatus.REJECTED: [],  # Terminal state
    ApplicationStatus.EXPIRED: [],
    ApplicationStatus.SUSPENDED: [],
}

REVIEW_DECISIONS = (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)


@dataclass
class ValidationResult:
    """Result of a lifecycle validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def validate_status_transition(
    current_status: ApplicationStatus,
    new_status: ApplicationStatus
) -> ValidationResult:
    """
    Validate application status transition.

    Args:
        current_status: Current application status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    current = ApplicationStatus(current_status)
    target = ApplicationStatus(new_status)

    if target not in VALID_TRANSITIONS.get(current, []):
        return ValidationResult(
            is_valid=False,
            errors=[f"Invalid status transition from {current.value} to {target.value}"]
        )

    return ValidationResult(is_valid=True)


def has_required_documents(
    documents: Iterable[Document],
    required_types: Iterable[DocumentType] = REQUIRED_DOCUMENT_TYPES
) -> bool:
    """True when every required type has at least one verified document."""
    return not missing_required_documents(documents, required_types)


def missing_required_documents(
    documents: Iterable[Document],
    required_types: Iterable[DocumentType] = REQUIRED_DOCUMENT_TYPES
) -> List[str]:
    """
    List required document types with no verified document.

    Args:
        documents: Documents attached to the application
        required_types: Document types the gate demands

    Returns:
        Missing type names in the order they were required
    """
    verified_types = {
        DocumentType(document.document_type)
        for document in documents
        if document.verified
    }
    return [
        DocumentType(required).value
        for required in required_types
        if DocumentType(required) not in verified_types
    ]


def add_one_year(moment: datetime) -> datetime:
    """Same month and day next year; 29 February becomes 28 February."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, day=28)


def build_submit_update(now: datetime) -> Dict[str, Any]:
    """Fields written when an application moves into review."""
    return {
        "status": ApplicationStatus.UNDER_REVIEW.value,
        "updatedAt": now,
    }


def build_review_update(
    decision: ApplicationStatus,
    reviewer_id: str,
    now: datetime,
    notes: Optional[str] = None,
    rejection_reason: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the stored fields for a review decision.

    Args:
        decision: APPROVED or REJECTED
        reviewer_id: ID of the reviewing user
        now: Review timestamp
        notes: Reviewer notes
        rejection_reason: Reason recorded on rejection

    Returns:
        Dictionary of camelCase fields to set on the application

    Raises:
        ValueError: If the decision is not a review outcome
    """
    decision = ApplicationStatus(decision)
    if decision not in REVIEW_DECISIONS:
        raise ValueError(f"Invalid review decision: {decision.value}")

    update = {
        "status": decision.value,
        "reviewedById": reviewer_id,
        "reviewDate": now,
        "notes": notes,
        "updatedAt": now,
    }

    if decision == ApplicationStatus.APPROVED:
        update["approvalDate"] = now
        update["expiryDate"] = add_one_year(now)
    else:
        update["rejectionReason"] = rejection_reason

    return update


def application_number_prefix(year: int) -> str:
    """Prefix shared by all application numbers issued in a year."""
    return f"{APPLICATION_NUMBER_PREFIX}{year}"


def format_application_number(year: int, sequence: int) -> str:
    """Format e.g. IND2024000042."""
    return f"{application_number_prefix(year)}{sequence:0{APPLICATION_NUMBER_DIGITS}d}"


def parse_application_sequence(application_number: Optional[str], year: int) -> int:
    """
    Extract the sequence from an application number issued in a year.

    Returns 0 when the number is absent or belongs to another year, so the
    next issued sequence starts at 1.
    """
    if not application_number:
        return 0

    match = re.fullmatch(rf"{application_number_prefix(year)}(\d+)", application_number)
    if not match:
        return 0

    return int(match.group(1))
