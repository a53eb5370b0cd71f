# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the Relief360 platform.
"""

# Base models
from .base import BaseEntity, CamelModel, generate_object_id, utcnow

# Enumerations
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
    IntegrationType
)

# Core entities
from .entities import (
    User,
    Application,
    HouseholdMember,
    Document,
    Benefit,
    ConsentRecord,
    AuditLog,
    IntegrationLog,
    UserContext
)

__all__ = [
    # Base models
    "BaseEntity",
    "CamelModel",
    "generate_object_id",
    "utcnow",

    # Enumerations
    "UserRole",
    "ApplicationStatus",
    "ApplicationPriority",
    "Gender",
    "MeansTestStatus",
    "VerificationStatus",
    "DocumentType",
    "BenefitType",
    "BenefitStatus",
    "ConsentType",
    "IntegrationType",

    # Core entities
    "User",
    "Application",
    "HouseholdMember",
    "Document",
    "Benefit",
    "ConsentRecord",
    "AuditLog",
    "IntegrationLog",
    "UserContext"
]
