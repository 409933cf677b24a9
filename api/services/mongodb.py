# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer: the ledger store behind the issue lifecycle engine.

Each operation is a single-document atomic write or a read. There are no
cross-collection transactions and no retries; pymongo failures surface as
PersistenceError.
"""

import os
import logging
from typing import List, Dict, Optional, Any, Tuple
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
    PyMongoError
)
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

ISSUES = "issues"
USERS = "users"
VOTES = "issue_votes"
PAYMENTS = "payments"
PAYMENT_SESSIONS = "payment_sessions"


class PersistenceError(Exception):
    """Raised when the ledger store fails an operation."""

    def __init__(self, message: str, original: Optional[Exception] = None):
        super().__init__(message)
        self.original = original


class DuplicateRecordError(Exception):
    """Raised when an insert violates a unique index."""
    pass


class MongoDBService:
    """MongoDB service with connection pooling and document-level atomic updates."""

    def __init__(self, connection_string: str = None, database_name: str = None, client: MongoClient = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/cityfix_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'cityfix_dev')
        self._client: Optional[MongoClient] = client
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
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                self._client = None
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise PersistenceError("Ledger store unavailable", e)

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
            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'database': self.database_name
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

    def _build_query(self, filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Translate an ``id`` filter into an ``_id`` ObjectId match."""
        query = dict(filters or {})
        if "id" in query:
            query["_id"] = self._validate_object_id(query.pop("id"))
        return query

    def _to_public(self, document: Optional[Dict]) -> Optional[Dict]:
        """Convert ObjectId to string id for the engine."""
        if document and "_id" in document:
            document["id"] = str(document.pop("_id"))
        return document

    def _fail(self, operation: str, collection: str, error: Exception) -> PersistenceError:
        logger.error(
            f"Failed to {operation} in {collection}: {error}",
            extra={"collection": collection, "operation": operation}
        )
        return PersistenceError(f"Failed to {operation} in {collection}", error)

    # Reads

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict]:
        """Find a single document matching filters."""
        try:
            query = self._build_query(filters)
        except ValueError as e:
            logger.debug(f"Invalid document ID in {collection}: {e}")
            return None

        try:
            document = self.get_collection(collection).find_one(query)
        except PyMongoError as e:
            raise self._fail("find document", collection, e)
        return self._to_public(document)

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        """Find a single document by ID."""
        return self.find_one(collection, {"id": doc_id})

    def find(self, collection: str, filters: Dict[str, Any] = None,
             sort: List[Tuple[str, int]] = None) -> List[Dict]:
        """Find documents with optional filters and sort order."""
        try:
            query = self._build_query(filters)
        except ValueError:
            return []

        try:
            cursor = self.get_collection(collection).find(query)
            if sort:
                cursor = cursor.sort(sort)
            documents = [self._to_public(doc) for doc in cursor]
        except PyMongoError as e:
            raise self._fail("find documents", collection, e)

        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def count(self, collection: str, filters: Dict[str, Any] = None) -> int:
        """Count documents with optional filters."""
        try:
            return self.get_collection(collection).count_documents(self._build_query(filters))
        except ValueError:
            return 0
        except PyMongoError as e:
            raise self._fail("count documents", collection, e)

    def sum_field(self, collection: str, field: str, filters: Dict[str, Any] = None) -> int:
        """Sum a numeric field over matching documents."""
        try:
            query = self._build_query(filters)
        except ValueError:
            return 0

        pipeline = [
            {"$match": query},
            {"$group": {"_id": None, "total": {"$sum": f"${field}"}}}
        ]
        try:
            results = list(self.get_collection(collection).aggregate(pipeline))
        except PyMongoError as e:
            raise self._fail("aggregate", collection, e)
        return results[0]["total"] if results else 0

    # Writes

    def insert(self, collection: str, document: Dict[str, Any]) -> str:
        """Insert a document, mapping its ``id`` to ``_id``."""
        document = dict(document)
        doc_id = document.pop("id", None)
        document["_id"] = self._validate_object_id(doc_id) if doc_id else ObjectId()

        try:
            result = self.get_collection(collection).insert_one(document)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key in {collection}: {e}")
            raise DuplicateRecordError(f"Document with this identifier already exists in {collection}")
        except PyMongoError as e:
            raise self._fail("create document", collection, e)

        logger.info(f"Created document in {collection}: {result.inserted_id}")
        return str(result.inserted_id)

    def _update_one(self, collection: str, filters: Dict[str, Any], update: Dict[str, Any],
                    operation: str) -> bool:
        try:
            query = self._build_query(filters)
        except ValueError:
            return False

        try:
            result = self.get_collection(collection).update_one(query, update)
        except PyMongoError as e:
            raise self._fail(operation, collection, e)
        return result.matched_count > 0

    def update_fields(self, collection: str, filters: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        """
        Atomically set fields on the first document matching filters.

        Extra filter keys act as a compare-and-set guard: the update applies
        only if the document still has those values.
        """
        return self._update_one(collection, filters, {"$set": fields}, "update document")

    def increment(self, collection: str, filters: Dict[str, Any], field: str, amount: int = 1) -> bool:
        """Atomically increment a numeric field."""
        return self._update_one(collection, filters, {"$inc": {field: amount}}, "increment field")

    def prepend(self, collection: str, filters: Dict[str, Any], field: str, value: Any,
                fields: Dict[str, Any] = None) -> bool:
        """Atomically insert value at the front of an array field, optionally setting fields too."""
        update = {"$push": {field: {"$each": [value], "$position": 0}}}
        if fields:
            update["$set"] = fields
        return self._update_one(collection, filters, update, "prepend to array")

    def upsert(self, collection: str, filters: Dict[str, Any], fields: Dict[str, Any],
               defaults: Dict[str, Any] = None) -> Dict:
        """Set fields on a matching document, inserting it with defaults if absent."""
        update = {}
        if fields:
            update["$set"] = fields
        if defaults:
            update["$setOnInsert"] = defaults
        try:
            query = self._build_query(filters)
            coll = self.get_collection(collection)
            coll.update_one(query, update, upsert=True)
            return self._to_public(coll.find_one(query))
        except DuplicateKeyError as e:
            raise DuplicateRecordError(str(e))
        except PyMongoError as e:
            raise self._fail("upsert document", collection, e)

    def delete_one(self, collection: str, filters: Dict[str, Any]) -> bool:
        """Hard delete a single document."""
        try:
            query = self._build_query(filters)
        except ValueError:
            return False

        try:
            result = self.get_collection(collection).delete_one(query)
        except PyMongoError as e:
            raise self._fail("delete document", collection, e)

        if result.deleted_count > 0:
            logger.warning(f"Hard deleted document in {collection}: {filters}")
            return True
        return False

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        """Hard delete all matching documents."""
        try:
            result = self.get_collection(collection).delete_many(self._build_query(filters))
        except PyMongoError as e:
            raise self._fail("delete documents", collection, e)
        logger.info(f"Deleted {result.deleted_count} documents from {collection}")
        return result.deleted_count

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and query indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            issues = self.get_collection(ISSUES)
            issues.create_index([("reporterEmail", ASCENDING), ("status", ASCENDING)])
            issues.create_index([("assignedTo", ASCENDING), ("priority", DESCENDING)])
            issues.create_index([("priority", DESCENDING), ("createdAt", DESCENDING)])

            users = self.get_collection(USERS)
            users.create_index("email", unique=True)
            users.create_index("role")

            # One vote per (issue, voter)
            votes = self.get_collection(VOTES)
            votes.create_index([("issueId", ASCENDING), ("voterEmail", ASCENDING)], unique=True)

            payments = self.get_collection(PAYMENTS)
            payments.create_index([("payerEmail", ASCENDING), ("createdAt", DESCENDING)])
            payments.create_index("issueId")
            payments.create_index(
                "sessionId",
                unique=True,
                partialFilterExpression={"sessionId": {"$type": "string"}}
            )

            # One application per confirmed provider session
            self.get_collection(PAYMENT_SESSIONS).create_index("sessionId", unique=True)

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            raise self._fail("create indexes", "all collections", e)

