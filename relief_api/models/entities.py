# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Relief360 case-management platform.
"""

import re
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import Field, field_validator
from .base import BaseEntity, CamelModel, utcnow
from .enums import (
    UserRole,
    ApplicationStatus,
    ApplicationPriority,
    Gender,
    MeansTestStatus,
    VerificationStatus,
    DocumentType,
    BenefitType,
    BenefitStatus,
    ConsentType,
)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class User(BaseEntity):
    """Staff user with a single role."""

    email: str = Field(..., description="User email address")
    password_hash: str = Field(..., description="Hashed password")
    first_name: str = Field(..., min_length=1, max_length=100, description="First name")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    role: UserRole = Field(default=UserRole.CLERK, description="User role")
    is_active: bool = Field(default=True, description="Whether the account may sign in")
    last_login_at: Optional[datetime] = Field(None, description="Last login timestamp")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate and normalize email."""
        normalized = v.strip().lower()
        if not re.match(EMAIL_PATTERN, normalized):
            raise ValueError('Invalid email format')
        return normalized

    def to_public(self) -> Dict[str, Any]:
        """Serialize without the password hash."""
        data = super().to_public()
        data.pop("passwordHash", None)
        return data


class Application(BaseEntity):
    """Benefit application, the central case record."""

    application_number: str = Field(..., description="Year-scoped sequential identifier")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, description="Lifecycle status")
    priority: ApplicationPriority = Field(default=ApplicationPriority.NORMAL, description="Handling priority")

    # Applicant demographics
    id_number: str = Field(..., min_length=13, max_length=13, description="National ID number")
    first_name: str = Field(..., min_length=1, description="Applicant first name")
    last_name: str = Field(..., min_length=1, description="Applicant last name")
    date_of_birth: datetime = Field(..., description="Applicant date of birth")
    gender: Gender = Field(..., description="Applicant gender")
    contact_number: str = Field(..., min_length=1, description="Contact phone number")
    email: Optional[str] = Field(None, description="Contact email")
    address: str = Field(..., min_length=1, description="Residential address")
    municipality: str = Field(..., min_length=1, description="Municipality")
    ward: Optional[str] = Field(None, description="Ward")

    # Household financials
    household_size: int = Field(..., ge=1, description="Number of people in the household")
    monthly_income: float = Field(..., ge=0, description="Applicant monthly income")
    monthly_expenses: float = Field(..., ge=0, description="Household monthly expenses")
    dependents: int = Field(default=0, ge=0, description="Number of dependents")

    # Lifecycle
    application_date: datetime = Field(default_factory=utcnow, description="Date the application was lodged")
    review_date: Optional[datetime] = Field(None, description="Review timestamp")
    approval_date: Optional[datetime] = Field(None, description="Approval timestamp")
    expiry_date: Optional[datetime] = Field(None, description="Approval expiry")
    rejection_reason: Optional[str] = Field(None, description="Reason for rejection")
    notes: Optional[str] = Field(None, description="Reviewer or clerk notes")

    # Eligibility
    means_test_score: Optional[int] = Field(None, ge=0, le=7, description="Latest means-test score")
    means_test_status: Optional[MeansTestStatus] = Field(None, description="Latest means-test outcome")
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.PENDING, description="Identity verification status"
    )

    created_by_id: str = Field(..., description="User ID who captured the application")
    reviewed_by_id: Optional[str] = Field(None, description="User ID who reviewed the application")

    @field_validator('first_name', 'last_name', 'address', 'municipality')
    @classmethod
    def strip_text(cls, v):
        """Trim text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()


class HouseholdMember(BaseEntity):
    """Co-resident whose income counts toward the household total."""

    application_id: str = Field(..., description="Owning application ID")
    id_number: str = Field(..., min_length=1, description="National ID number")
    first_name: str = Field(..., min_length=1, description="First name")
    last_name: str = Field(..., min_length=1, description="Last name")
    date_of_birth: datetime = Field(..., description="Date of birth")
    relationship: str = Field(..., min_length=1, description="Relationship to applicant")
    is_dependent: bool = Field(default=False, description="Whether the member is a dependent")
    monthly_income: Optional[float] = Field(None, ge=0, description="Monthly income")


class Document(BaseEntity):
    """Supporting document uploaded against an application."""

    application_id: str = Field(..., description="Owning application ID")
    file_name: str = Field(..., description="Stored file name")
    original_name: str = Field(..., description="Client-side file name")
    file_type: str = Field(..., description="MIME type")
    file_size: int = Field(..., ge=0, description="Size in bytes")
    file_path: str = Field(..., description="Path on disk")
    document_type: DocumentType = Field(..., description="Document type tag")
    uploaded_by: str = Field(..., description="User ID who uploaded the file")
    verified: bool = Field(default=False, description="Whether staff verified the document")
    verified_at: Optional[datetime] = Field(None, description="Verification timestamp")
    verified_by: Optional[str] = Field(None, description="User ID who verified the document")


class Benefit(BaseEntity):
    """Recurring benefit granted to an approved application."""

    application_id: str = Field(..., description="Application ID")
    benefit_type: BenefitType = Field(..., description="Benefit type")
    amount: float = Field(..., gt=0, description="Benefit amount")
    start_date: datetime = Field(..., description="Benefit start date")
    end_date: Optional[datetime] = Field(None, description="Benefit end date")
    status: BenefitStatus = Field(default=BenefitStatus.ACTIVE, description="Benefit status")
    payment_method: Optional[str] = Field(None, description="Payment method")
    notes: Optional[str] = Field(None, description="Notes")


class ConsentRecord(BaseEntity):
    """Data-protection consent given or revoked for an application."""

    application_id: Optional[str] = Field(None, description="Related application ID")
    user_id: Optional[str] = Field(None, description="User who captured the consent")
    consent_type: ConsentType = Field(..., description="Consent type")
    granted: bool = Field(..., description="Whether consent is currently granted")
    granted_at: Optional[datetime] = Field(None, description="Grant timestamp")
    revoked_at: Optional[datetime] = Field(None, description="Revocation timestamp")
    purpose: str = Field(..., min_length=1, description="Purpose of processing")
    legal_basis: str = Field(..., min_length=1, description="Legal basis for processing")


class AuditLog(BaseEntity):
    """Audit log entry for compliance and accountability."""

    user_id: Optional[str] = Field(None, description="User who performed the action")
    application_id: Optional[str] = Field(None, description="Related application ID")
    action: str = Field(..., description="Action performed")
    entity_type: str = Field(..., description="Entity type")
    entity_id: str = Field(..., description="Entity identifier")
    changes: Optional[Dict[str, Any]] = Field(None, description="Changed fields")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")


class IntegrationLog(BaseEntity):
    """Record of a call to an external system."""

    integration_type: str = Field(..., description="Integration identifier")
    endpoint: str = Field(..., description="Endpoint path")
    method: str = Field(..., description="HTTP method")
    request_data: Optional[Dict[str, Any]] = Field(None, description="Request payload")
    response_data: Optional[Dict[str, Any]] = Field(None, description="Response payload")
    status_code: int = Field(..., description="HTTP status code")
    success: bool = Field(..., description="Whether the call succeeded")
    error_message: Optional[str] = Field(None, description="Error message")
    duration: Optional[int] = Field(None, description="Duration in milliseconds")


class UserContext(CamelModel):
    """Authenticated caller for request processing."""

    user_id: str = Field(..., description="Authenticated user ID")
    email: Optional[str] = Field(None, description="User email")
    role: UserRole = Field(..., description="User role")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    def has_role(self, roles) -> bool:
        """Check if the caller's role is in the given set."""
        return UserRole(self.role) in roles

    @property
    def is_admin(self) -> bool:
        return UserRole(self.role) == UserRole.ADMIN
