#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Seed the database with one staff user per role.

Re-running the script resets the seeded users' passwords, names and roles.

Usage: python -m relief_api.scripts.seed
"""

import sys
import logging
from datetime import datetime, timezone

from ..models.enums import UserRole
from ..services.auth import AuthService
from ..services.mongodb import MongoDBService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

SEED_DOMAIN = "musina.gov.za"


def seed_users(mongodb_service: MongoDBService, auth_service: AuthService) -> int:
    """Create or reset one user per role; returns the number of users written."""
    users = mongodb_service.get_collection("users")
    written = 0

    for role in UserRole:
        name = role.value.lower()
        now = datetime.now(timezone.utc)
        users.update_one(
            {"email": f"{name}@{SEED_DOMAIN}"},
            {
                "$set": {
                    "passwordHash": auth_service.hash_password(f"{name}123"),
                    "firstName": name.capitalize(),
                    "lastName": "User",
                    "role": role.value,
                    "isActive": True,
                    "updatedAt": now,
                },
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True
        )
        logger.info(f"Seeded user {name}@{SEED_DOMAIN} with role {role.value}")
        written += 1

    return written


def main():
    """Seed staff users."""
    mongodb_service = MongoDBService()
    try:
        logger.info("Seeding database...")
        count = seed_users(mongodb_service, AuthService())
        logger.info(f"Seeding completed: {count} users")
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        sys.exit(1)
    finally:
        mongodb_service.close_connection()


if __name__ == "__main__":
    main()
