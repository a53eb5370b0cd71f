# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Relief360 case-management platform.
"""

from enum import Enum


class UserRole(str, Enum):
    """Staff role enumeration."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CLERK = "CLERK"
    REVIEWER = "REVIEWER"
    VIEWER = "VIEWER"


class ApplicationStatus(str, Enum):
    """Application lifecycle status enumeration."""
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    SUSPENDED = "SUSPENDED"


class ApplicationPriority(str, Enum):
    """Application handling priority."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class MeansTestStatus(str, Enum):
    """Outcome of the means-test eligibility calculation."""
    PASSED = "PASSED"
    FAILED = "FAILED"
    PENDING = "PENDING"


class VerificationStatus(str, Enum):
    """Identity verification status of an application."""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class DocumentType(str, Enum):
    """Supporting document types."""
    ID_DOCUMENT = "ID_DOCUMENT"
    PROOF_OF_INCOME = "PROOF_OF_INCOME"
    PROOF_OF_EXPENSES = "PROOF_OF_EXPENSES"
    BANK_STATEMENT = "BANK_STATEMENT"
    UTILITY_BILL = "UTILITY_BILL"
    AFFIDAVIT = "AFFIDAVIT"
    OTHER = "OTHER"


class BenefitType(str, Enum):
    """Benefit types granted to approved applicants."""
    WATER_REBATE = "WATER_REBATE"
    ELECTRICITY_REBATE = "ELECTRICITY_REBATE"
    RATES_REBATE = "RATES_REBATE"
    WASTE_REMOVAL_REBATE = "WASTE_REMOVAL_REBATE"
    TRANSPORT_SUBSIDY = "TRANSPORT_SUBSIDY"
    OTHER = "OTHER"


class BenefitStatus(str, Enum):
    """Benefit status enumeration."""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"
    EXPIRED = "EXPIRED"


class ConsentType(str, Enum):
    """Consent purposes tracked for compliance."""
    DATA_PROCESSING = "DATA_PROCESSING"
    DATA_SHARING = "DATA_SHARING"
    MARKETING = "MARKETING"
    RESEARCH = "RESEARCH"


class IntegrationType(str, Enum):
    """External integrations logged by the platform."""
    ID_VERIFICATION = "ID_VERIFICATION"
    MUNICIPAL_SYNC = "MUNICIPAL_SYNC"
