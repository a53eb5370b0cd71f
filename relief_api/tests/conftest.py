# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Services run against an in-memory stand-in for MongoDBService that supports
the subset of the query language the services use, including the
compare-and-set and counter primitives the workflow relies on.
"""

import os
import re
import copy
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ.pop('REDIS_URL', None)

from relief_api.models.base import generate_object_id
from relief_api.models.entities import Document, User, UserContext
from relief_api.models.enums import UserRole
from relief_api.services.audit import AuditService
from relief_api.services.auth import AuthService
from relief_api.services.mongodb import PaginationResult
from relief_api.services.redis import RedisService

TEST_JWT_SECRET = "test-secret-key"

UNIQUE_FIELDS = {
    "applications": ("applicationNumber",),
    "users": ("email",),
}


def _compare(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$in":
        return value in operand
    if operator == "$ne":
        return value != operand
    if value is None:
        return False
    if operator == "$gte":
        return value >= operand
    if operator == "$gt":
        return value > operand
    if operator == "$lte":
        return value <= operand
    if operator == "$lt":
        return value < operand
    raise NotImplementedError(f"Unsupported operator {operator}")


def matches(document: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """Evaluate a MongoDB-style filter against a stored document."""
    for key, condition in filters.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue

        value = document.get(key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            for operator, operand in condition.items():
                if operator == "$options":
                    continue
                if operator == "$regex":
                    flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                    if not isinstance(value, str) or re.search(operand, value, flags) is None:
                        return False
                elif not _compare(value, operator, operand):
                    return False
        elif value != condition:
            return False
    return True


def sort_documents(documents: List[Dict], sort: List[Tuple[str, int]]) -> List[Dict]:
    ordered = list(documents)
    for field, direction in reversed(sort or []):
        present = [d for d in ordered if d.get(field) is not None]
        missing = [d for d in ordered if d.get(field) is None]
        present.sort(key=lambda d: d[field], reverse=direction == DESCENDING)
        ordered = present + missing
    return ordered


class InMemoryMongoDBService:
    """Dictionary-backed replacement for MongoDBService."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict]] = defaultdict(dict)
        self.counters: Dict[str, int] = {}
        self._lock = threading.RLock()
        self.aggregate = MagicMock(return_value=[])
        self.healthy = True

    @staticmethod
    def _public(document: Optional[Dict]) -> Optional[Dict]:
        return copy.deepcopy(document) if document is not None else None

    def health_check(self) -> Dict[str, Any]:
        if self.healthy:
            return {"status": "healthy", "ping": True, "version": "7.0", "database": "relief360_test"}
        return {"status": "unhealthy", "error": "connection refused", "database": "relief360_test"}

    def close_connection(self) -> None:
        pass

    def create(self, collection: str, document: Dict) -> str:
        with self._lock:
            stored = copy.deepcopy(document)
            now = datetime.now(timezone.utc)
            stored.setdefault("createdAt", now)
            stored.setdefault("updatedAt", now)
            stored["id"] = stored.get("id") or generate_object_id()

            for field in UNIQUE_FIELDS.get(collection, ()):
                if any(existing.get(field) == stored.get(field)
                       for existing in self.collections[collection].values()):
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {collection} {field}")

            self.collections[collection][stored["id"]] = stored
            return stored["id"]

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        if not ObjectId.is_valid(doc_id):
            return None
        with self._lock:
            return self._public(self.collections[collection].get(doc_id))

    def find(self, collection: str, filters: Dict = None,
             sort: List[Tuple[str, int]] = None, limit: int = 0) -> List[Dict]:
        with self._lock:
            found = [d for d in self.collections[collection].values() if matches(d, filters or {})]
            found = sort_documents(found, sort)
            if limit:
                found = found[:limit]
            return [self._public(d) for d in found]

    def find_one(self, collection: str, filters: Dict,
                 sort: List[Tuple[str, int]] = None) -> Optional[Dict]:
        found = self.find(collection, filters, sort, limit=1)
        return found[0] if found else None

    def update_by_id(self, collection: str, doc_id: str, updates: Dict) -> Optional[Dict]:
        return self.compare_and_set(collection, doc_id, {}, updates)

    def compare_and_set(self, collection: str, doc_id: str,
                        expected: Dict, updates: Dict) -> Optional[Dict]:
        with self._lock:
            stored = self.collections[collection].get(doc_id)
            if stored is None or not matches(stored, expected):
                return None
            updates = copy.deepcopy(updates)
            updates.setdefault("updatedAt", datetime.now(timezone.utc))
            stored.update(updates)
            return self._public(stored)

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self.collections[collection].pop(doc_id, None) is not None

    def delete_many(self, collection: str, filters: Dict) -> int:
        with self._lock:
            doomed = [k for k, d in self.collections[collection].items() if matches(d, filters)]
            for key in doomed:
                del self.collections[collection][key]
            return len(doomed)

    def paginate(self, collection: str, page: int = 1, page_size: int = 20,
                 filters: Dict = None, sort_by: str = "createdAt",
                 sort_order: int = DESCENDING) -> PaginationResult:
        found = self.find(collection, filters, sort=[(sort_by, sort_order)])
        skip = (page - 1) * page_size
        return PaginationResult(found[skip:skip + page_size], len(found), page, page_size)

    def count(self, collection: str, filters: Dict = None) -> int:
        return len(self.find(collection, filters))

    def next_sequence(self, key: str, floor: int = 0) -> int:
        with self._lock:
            self.counters[key] = max(self.counters.get(key, 0), floor) + 1
            return self.counters[key]


class FakeUpstashClient:
    """Minimal Upstash client double for the commands RedisService issues."""

    def __init__(self):
        self.values: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}

    def ping(self):
        return "PONG"

    def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl
        return "OK"

    def get(self, key):
        value = self.values.get(key)
        return str(value) if value is not None else None

    def delete(self, *keys):
        return sum(1 for key in keys if self.values.pop(key, None) is not None)

    def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return 1

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.values)


@pytest.fixture
def mongo():
    """Empty in-memory store."""
    return InMemoryMongoDBService()


@pytest.fixture
def redis_service():
    """RedisService wired to an in-memory client."""
    service = RedisService()
    service.client = FakeUpstashClient()
    return service


@pytest.fixture
def audit_service(mongo):
    return AuditService(mongo)


@pytest.fixture
def auth_service():
    return AuthService(TEST_JWT_SECRET, 3600)


def make_context(role: UserRole, user_id: Optional[str] = None) -> UserContext:
    return UserContext(
        user_id=user_id or generate_object_id(),
        email=f"{UserRole(role).value.lower()}@example.org",
        role=role,
        ip_address="127.0.0.1",
        user_agent="pytest"
    )


@pytest.fixture
def clerk():
    return make_context(UserRole.CLERK)


@pytest.fixture
def reviewer():
    return make_context(UserRole.REVIEWER)


@pytest.fixture
def admin():
    return make_context(UserRole.ADMIN)


@pytest.fixture
def sample_application_data():
    """Valid application capture payload (camelCase, as sent by clients)."""
    return {
        "idNumber": "8001015009087",
        "firstName": "Thandi",
        "lastName": "Mokoena",
        "dateOfBirth": "1980-01-01T00:00:00Z",
        "gender": "FEMALE",
        "contactNumber": "0155340000",
        "address": "12 Station Road",
        "municipality": "Musina",
        "ward": "4",
        "householdSize": 4,
        "monthlyIncome": 2000,
        "monthlyExpenses": 1800,
        "dependents": 2
    }


def add_document(mongo, application_id: str, document_type: str, verified: bool = True,
                 uploaded_by: Optional[str] = None) -> Dict[str, Any]:
    """Store a document record for an application without touching disk."""
    document = Document(
        application_id=application_id,
        file_name=f"file-{generate_object_id()}.pdf",
        original_name="scan.pdf",
        file_type="application/pdf",
        file_size=1024,
        file_path="/tmp/scan.pdf",
        document_type=document_type,
        uploaded_by=uploaded_by or generate_object_id(),
        verified=verified
    )
    mongo.create("documents", document.to_document())
    return document.to_public()


def add_user(mongo, auth_service, role: UserRole, email: Optional[str] = None,
             password: str = "password123", is_active: bool = True) -> User:
    user = User(
        email=email or f"{UserRole(role).value.lower()}@musina.gov.za",
        password_hash=auth_service.hash_password(password),
        first_name=UserRole(role).value.capitalize(),
        last_name="User",
        role=role,
        is_active=is_active
    )
    mongo.create("users", user.to_document())
    return user


@pytest.fixture
def app(mongo, redis_service, tmp_path):
    """Application wired to the in-memory store."""
    from relief_api.app import create_app

    application = create_app(
        {
            "TESTING": True,
            "ENVIRONMENT": "test",
            "OTEL_ENABLED": False,
            "DOCS_ENABLED": False,
            "JWT_SECRET": TEST_JWT_SECRET,
            "JWT_EXPIRES_SECONDS": 3600,
            "UPLOAD_DIR": str(tmp_path / "uploads"),
            "BASE_URL": "http://localhost",
            "ID_VERIFICATION_API_URL": None,
            "MUNICIPAL_API_URL": None,
            "CORS_ORIGIN": "https://relief.musina.gov.za",
        },
        mongodb_service=mongo,
        redis_service=redis_service
    )
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app, mongo):
    """One stored user per role."""
    return {role: add_user(mongo, app.auth_service, role) for role in UserRole}


@pytest.fixture
def auth_headers(app, users):
    """Factory returning an Authorization header for a role's stored user."""
    def build(role: UserRole) -> Dict[str, str]:
        token = app.auth_service.generate_token(users[role])["token"]
        return {"Authorization": f"Bearer {token}"}
    return build
