# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Body and query models accept camelCase keys (matching stored field names);
path models use the URL variable names as-is.
"""

import re
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
from .base import CamelModel
from .entities import EMAIL_PATTERN
from .enums import (
    UserRole,
    ApplicationStatus,
    ApplicationPriority,
    Gender,
    DocumentType,
    BenefitType,
    BenefitStatus,
    ConsentType,
    IntegrationType,
)


def normalize_contact_email(value: Optional[str]) -> Optional[str]:
    """Lower-case an applicant's email and check its format."""
    if value is None:
        return value
    normalized = value.strip().lower()
    if not re.match(EMAIL_PATTERN, normalized):
        raise ValueError('Invalid email format')
    return normalized


# Path parameters

class ApplicationPath(BaseModel):
    application_id: str = Field(..., description="Application ID")


class HouseholdMemberPath(BaseModel):
    application_id: str = Field(..., description="Application ID")
    member_id: str = Field(..., description="Household member ID")


class DocumentPath(BaseModel):
    document_id: str = Field(..., description="Document ID")


class BenefitPath(BaseModel):
    benefit_id: str = Field(..., description="Benefit ID")


class ConsentPath(BaseModel):
    consent_id: str = Field(..., description="Consent record ID")


class UserPath(BaseModel):
    user_id: str = Field(..., description="User ID")


# Applications

class ApplicationQuery(CamelModel):
    """Listing filters and pagination for applications."""

    status: Optional[ApplicationStatus] = Field(None, description="Filter by status")
    search: Optional[str] = Field(None, description="Search number, ID number and names")
    page: int = Field(default=1, ge=1, description="Page number")
    limit: int = Field(default=20, ge=1, le=100, description="Items per page")
    sort_by: Literal[
        "applicationDate", "applicationNumber", "createdAt", "updatedAt", "status", "priority"
    ] = Field(default="applicationDate", description="Sort field")
    sort_order: Literal["asc", "desc"] = Field(default="desc", description="Sort direction")


class CreateApplicationRequest(CamelModel):
    """Request model for capturing a new application."""

    id_number: str = Field(..., min_length=13, max_length=13, description="National ID number")
    first_name: str = Field(..., min_length=1, description="Applicant first name")
    last_name: str = Field(..., min_length=1, description="Applicant last name")
    date_of_birth: datetime = Field(..., description="Date of birth (ISO 8601)")
    gender: Gender = Field(..., description="Gender")
    contact_number: str = Field(..., min_length=1, description="Contact phone number")
    email: Optional[str] = Field(None, description="Contact email")
    address: str = Field(..., min_length=1, description="Residential address")
    municipality: str = Field(..., min_length=1, description="Municipality")
    ward: Optional[str] = Field(None, description="Ward")
    household_size: int = Field(..., ge=1, description="Household size")
    monthly_income: float = Field(..., ge=0, description="Applicant monthly income")
    monthly_expenses: float = Field(..., ge=0, description="Household monthly expenses")
    dependents: int = Field(default=0, ge=0, description="Number of dependents")
    priority: ApplicationPriority = Field(default=ApplicationPriority.NORMAL, description="Priority")
    notes: Optional[str] = Field(None, description="Notes")

    @field_validator('first_name', 'last_name')
    @classmethod
    def strip_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_contact_email(v)


class UpdateApplicationRequest(CamelModel):
    """
    Request model for editing application fields.

    Lifecycle, review and means-test fields are deliberately absent: they
    only change through the workflow operations.
    """

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    date_of_birth: Optional[datetime] = None
    gender: Optional[Gender] = None
    contact_number: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    address: Optional[str] = Field(None, min_length=1)
    municipality: Optional[str] = Field(None, min_length=1)
    ward: Optional[str] = None
    household_size: Optional[int] = Field(None, ge=1)
    monthly_income: Optional[float] = Field(None, ge=0)
    monthly_expenses: Optional[float] = Field(None, ge=0)
    dependents: Optional[int] = Field(None, ge=0)
    priority: Optional[ApplicationPriority] = None
    notes: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return normalize_contact_email(v)


class ReviewApplicationRequest(CamelModel):
    """Reviewer decision on an application under review."""

    status: ApplicationStatus = Field(..., description="Decision: APPROVED or REJECTED")
    notes: Optional[str] = Field(None, description="Review notes")
    rejection_reason: Optional[str] = Field(None, description="Reason, required when rejecting")

    @field_validator('status')
    @classmethod
    def validate_decision(cls, v):
        if ApplicationStatus(v) not in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED):
            raise ValueError('status must be APPROVED or REJECTED')
        return v

    @model_validator(mode='after')
    def validate_rejection_reason(self):
        if self.status == ApplicationStatus.REJECTED and not (self.rejection_reason or "").strip():
            raise ValueError('rejectionReason is required when rejecting an application')
        return self


class CreateHouseholdMemberRequest(CamelModel):
    """Request model for adding a household member."""

    id_number: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: datetime
    relationship: str = Field(..., min_length=1)
    is_dependent: bool = False
    monthly_income: Optional[float] = Field(None, ge=0)


# Documents

class DocumentQuery(CamelModel):
    application_id: Optional[str] = None
    document_type: Optional[DocumentType] = None


class UploadDocumentRequest(CamelModel):
    """Form fields accompanying a document upload."""

    application_id: str = Field(..., min_length=1)
    document_type: DocumentType


class VerifyDocumentRequest(CamelModel):
    verified: bool = Field(..., description="Mark the document verified or unverified")


# Benefits

class BenefitQuery(CamelModel):
    application_id: Optional[str] = None
    status: Optional[BenefitStatus] = None


class CreateBenefitRequest(CamelModel):
    """Request model for granting a benefit."""

    application_id: str = Field(..., min_length=1)
    benefit_type: BenefitType
    amount: float = Field(..., gt=0)
    start_date: datetime
    end_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError('endDate cannot be before startDate')
        return self


class UpdateBenefitRequest(CamelModel):
    benefit_type: Optional[BenefitType] = None
    amount: Optional[float] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[BenefitStatus] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


# Consent

class ConsentQuery(CamelModel):
    application_id: Optional[str] = None
    user_id: Optional[str] = None


class CreateConsentRequest(CamelModel):
    """Request model for recording consent."""

    application_id: Optional[str] = None
    consent_type: ConsentType
    granted: bool
    purpose: str = Field(..., min_length=1)
    legal_basis: str = Field(..., min_length=1)


# Users and authentication

class LoginRequest(CamelModel):
    """Request model for user authentication."""

    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RegisterRequest(CamelModel):
    """Request model for registering a staff user."""

    email: str
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    role: Optional[UserRole] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        normalized = v.strip().lower()
        if not re.match(EMAIL_PATTERN, normalized):
            raise ValueError('Invalid email format')
        return normalized


class UpdateUserRequest(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# Integrations

class VerifyIdRequest(CamelModel):
    id_number: str = Field(..., min_length=1)


class MunicipalSyncRequest(CamelModel):
    application_id: str = Field(..., min_length=1)


class IntegrationLogQuery(CamelModel):
    integration_type: Optional[IntegrationType] = None
    limit: int = Field(default=50, ge=1, le=500)


# Reports

class ApplicationReportQuery(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ApplicationStatus] = None
    municipality: Optional[str] = None


class BenefitReportQuery(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[BenefitStatus] = None
    benefit_type: Optional[BenefitType] = None


class ExportQuery(CamelModel):
    type: Literal["applications"] = Field(..., description="Export type")
    format: Literal["json", "csv"] = Field(default="json", description="Export format")
