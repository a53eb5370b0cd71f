# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, compare-and-set updates and
atomic counters.
"""

import os
import logging
from datetime import datetime, timezone
from typing import List, Dict, Optional, Any, Tuple
from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "counters"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


class MongoDBService:
    """MongoDB service with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/relief360'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'relief360')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _validate_object_id(self, doc_id: str) -> ObjectId:
        """Validate and convert string ID to ObjectId."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise ValueError(f"Invalid ObjectId format: {doc_id}")

    @staticmethod
    def _to_public_id(document: Optional[Dict]) -> Optional[Dict]:
        """Replace the ObjectId `_id` with a string `id`."""
        if document and "_id" in document:
            document["id"] = str(document["_id"])
            del document["_id"]
        return document

    def _id_query(self, doc_id: str, extra: Dict = None) -> Dict:
        query = {"_id": self._validate_object_id(doc_id)}
        if extra:
            query.update(extra)
        return query

    # CRUD Operations

    def create(self, collection: str, document: Dict) -> str:
        """Insert a document; an `id` field becomes its ObjectId."""
        try:
            document = dict(document)
            now = datetime.now(timezone.utc)
            document.setdefault("createdAt", now)
            document.setdefault("updatedAt", now)

            doc_id = document.pop("id", None)
            document["_id"] = self._validate_object_id(doc_id) if doc_id else ObjectId()

            result = self.get_collection(collection).insert_one(document)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.error(f"Duplicate key error in {collection}: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to create document in {collection}: {e}")
            raise

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Find a single document by ID; invalid IDs find nothing."""
        try:
            query = self._id_query(doc_id)
        except ValueError as e:
            logger.debug(f"Invalid document ID {doc_id}: {e}")
            return None

        try:
            document = self.get_collection(collection).find_one(query)
            if document is None:
                logger.debug(f"Document {doc_id} not found in {collection}")
            return self._to_public_id(document)
        except Exception as e:
            logger.error(f"Failed to find document {doc_id} in {collection}: {e}")
            raise

    def find_one(self, collection: str, filters: Dict,
                 sort: List[Tuple[str, int]] = None) -> Optional[Dict]:
        """Find the first document matching filters."""
        try:
            document = self.get_collection(collection).find_one(filters, sort=sort)
            return self._to_public_id(document)
        except Exception as e:
            logger.error(f"Failed to find document in {collection}: {e}")
            raise

    def find(self, collection: str, filters: Dict = None,
             sort: List[Tuple[str, int]] = None, limit: int = 0) -> List[Dict]:
        """Find documents with optional filters, sort and limit."""
        try:
            cursor = self.get_collection(collection).find(filters or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)

            documents = [self._to_public_id(doc) for doc in cursor]

            logger.debug(f"Found {len(documents)} documents in {collection}")
            return documents

        except Exception as e:
            logger.error(f"Failed to find documents in {collection}: {e}")
            raise

    def update_by_id(self, collection: str, doc_id: str, updates: Dict) -> Optional[Dict]:
        """Set fields on a document and return it as updated, or None if absent."""
        return self.compare_and_set(collection, doc_id, {}, updates)

    def compare_and_set(self, collection: str, doc_id: str,
                        expected: Dict, updates: Dict) -> Optional[Dict]:
        """
        Apply updates only if the stored document still matches expected.

        Args:
            collection: Collection name
            doc_id: Document ID
            expected: Field values the stored document must have
            updates: Fields to set

        Returns:
            The updated document, or None when the document is missing or
            no longer matches
        """
        try:
            query = self._id_query(doc_id, expected)
        except ValueError as e:
            logger.debug(f"Invalid document ID {doc_id}: {e}")
            return None

        try:
            updates = dict(updates)
            updates.setdefault("updatedAt", datetime.now(timezone.utc))

            document = self.get_collection(collection).find_one_and_update(
                query,
                {"$set": updates},
                return_document=ReturnDocument.AFTER
            )

            if document is None:
                logger.warning(f"No document updated for {doc_id} in {collection}")
            else:
                logger.info(f"Updated document {doc_id} in {collection}")

            return self._to_public_id(document)

        except Exception as e:
            logger.error(f"Failed to update document {doc_id} in {collection}: {e}")
            raise

    def delete_by_id(self, collection: str, doc_id: str) -> bool:
        """Delete a document by ID."""
        try:
            query = self._id_query(doc_id)
        except ValueError as e:
            logger.debug(f"Invalid document ID {doc_id}: {e}")
            return False

        try:
            result = self.get_collection(collection).delete_one(query)

            if result.deleted_count > 0:
                logger.info(f"Deleted document {doc_id} in {collection}")
                return True

            logger.warning(f"No document deleted for {doc_id} in {collection}")
            return False

        except Exception as e:
            logger.error(f"Failed to delete document {doc_id} in {collection}: {e}")
            raise

    def delete_many(self, collection: str, filters: Dict) -> int:
        """Delete all documents matching filters."""
        try:
            result = self.get_collection(collection).delete_many(filters)
            logger.info(f"Deleted {result.deleted_count} documents in {collection}")
            return result.deleted_count
        except Exception as e:
            logger.error(f"Failed to delete documents in {collection}: {e}")
            raise

    def paginate(self, collection: str, page: int = 1, page_size: int = 20,
                 filters: Dict = None, sort_by: str = "createdAt",
                 sort_order: int = DESCENDING) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        try:
            query = filters or {}
            collection_obj = self.get_collection(collection)

            skip = (page - 1) * page_size
            total = collection_obj.count_documents(query)

            cursor = collection_obj.find(query).sort(sort_by, sort_order).skip(skip).limit(page_size)
            documents = [self._to_public_id(doc) for doc in cursor]

            logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
            return PaginationResult(documents, total, page, page_size)

        except Exception as e:
            logger.error(f"Failed to paginate documents in {collection}: {e}")
            raise

    def count(self, collection: str, filters: Dict = None) -> int:
        """Count documents with optional filters."""
        try:
            count = self.get_collection(collection).count_documents(filters or {})
            logger.debug(f"Counted {count} documents in {collection}")
            return count
        except Exception as e:
            logger.error(f"Failed to count documents in {collection}: {e}")
            raise

    def aggregate(self, collection: str, pipeline: List[Dict]) -> List[Dict]:
        """Run an aggregation pipeline."""
        try:
            results = list(self.get_collection(collection).aggregate(pipeline))
            logger.debug(f"Aggregation returned {len(results)} results from {collection}")
            return results
        except Exception as e:
            logger.error(f"Failed to run aggregation in {collection}: {e}")
            raise

    # Atomic counters

    def next_sequence(self, key: str, floor: int = 0) -> int:
        """
        Atomically increment and return a named counter.

        The counter is first raised to at least `floor`, so a counter created
        after records already exist continues from the highest one.
        """
        counters = self.get_collection(COUNTERS_COLLECTION)
        try:
            counters.update_one({"_id": key}, {"$max": {"value": floor}}, upsert=True)
        except DuplicateKeyError:
            # Concurrent upsert created the counter first
            counters.update_one({"_id": key}, {"$max": {"value": floor}})

        document = counters.find_one_and_update(
            {"_id": key},
            {"$inc": {"value": 1}},
            return_document=ReturnDocument.AFTER
        )
        logger.debug(f"Counter {key} advanced to {document['value']}")
        return document["value"]

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            users = self.get_collection("users")
            users.create_index("email", unique=True)
            users.create_index("role")

            applications = self.get_collection("applications")
            applications.create_index("applicationNumber", unique=True)
            applications.create_index([("status", ASCENDING), ("applicationDate", DESCENDING)])
            applications.create_index("idNumber")
            applications.create_index("municipality")
            applications.create_index("createdById")

            members = self.get_collection("household_members")
            members.create_index("applicationId")

            documents = self.get_collection("documents")
            documents.create_index([("applicationId", ASCENDING), ("documentType", ASCENDING)])

            benefits = self.get_collection("benefits")
            benefits.create_index([("applicationId", ASCENDING), ("status", ASCENDING)])
            benefits.create_index("benefitType")

            consent = self.get_collection("consent_records")
            consent.create_index("applicationId")
            consent.create_index("userId")

            audit_logs = self.get_collection("audit_logs")
            audit_logs.create_index([("entityType", ASCENDING), ("entityId", ASCENDING), ("createdAt", DESCENDING)])
            audit_logs.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
            audit_logs.create_index("traceId")

            integration_logs = self.get_collection("integration_logs")
            integration_logs.create_index([("integrationType", ASCENDING), ("createdAt", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise
