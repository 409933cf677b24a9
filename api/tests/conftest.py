# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Engine and route tests run against an in-memory stand-in for MongoDBService
that keeps the same contract: single-document atomic writes, filter keys
acting as compare-and-set guards, and the unique indexes on votes, users
and claimed payment sessions.
"""

import os
import copy
import pytest
from typing import Dict, Any, List, Optional, Tuple
from unittest.mock import MagicMock
from bson import ObjectId

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

from models.entities import User, UserContext
from models.enums import UserRole
from models.requests import CreateIssueRequest
from services.mongodb import DuplicateRecordError, USERS, VOTES, PAYMENT_SESSIONS
from services.auth import AuthService, generate_key_pair
from services.payments import PaymentProcessor
from services.timeline import TimelineRecorder
from services.users import UserService
from services.issues import IssueService
from services.votes import VoteLedger
from services.escalation import EscalationHandler
from services.stats import StatsService

UNIQUE_KEYS = {
    VOTES: ("issueId", "voterEmail"),
    USERS: ("email",),
    PAYMENT_SESSIONS: ("sessionId",)
}


class InMemoryMongoDBService:
    """Dictionary-backed store with the MongoDBService interface."""

    def __init__(self):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        return self.collections.setdefault(collection, [])

    @staticmethod
    def _matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
        for key, expected in (filters or {}).items():
            if document.get(key) != expected:
                return False
        return True

    def _first(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for document in self._docs(collection):
            if self._matches(document, filters):
                return document
        return None

    def _check_unique(self, collection: str, candidate: Dict[str, Any]) -> None:
        keys = UNIQUE_KEYS.get(collection)
        if not keys:
            return
        for document in self._docs(collection):
            if all(document.get(key) == candidate.get(key) for key in keys):
                raise DuplicateRecordError(f"Document with this identifier already exists in {collection}")

    # Reads

    def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[Dict]:
        return copy.deepcopy(self._first(collection, filters))

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict]:
        return self.find_one(collection, {"id": doc_id})

    def find(self, collection: str, filters: Dict[str, Any] = None,
             sort: List[Tuple[str, int]] = None) -> List[Dict]:
        documents = [copy.deepcopy(doc) for doc in self._docs(collection) if self._matches(doc, filters)]
        for key, direction in reversed(sort or []):
            documents.sort(key=lambda doc: doc.get(key), reverse=direction < 0)
        return documents

    def count(self, collection: str, filters: Dict[str, Any] = None) -> int:
        return sum(1 for doc in self._docs(collection) if self._matches(doc, filters))

    def sum_field(self, collection: str, field: str, filters: Dict[str, Any] = None) -> int:
        return sum(doc.get(field, 0) for doc in self._docs(collection) if self._matches(doc, filters))

    # Writes

    def insert(self, collection: str, document: Dict[str, Any]) -> str:
        document = copy.deepcopy(document)
        document["id"] = document.get("id") or str(ObjectId())
        self._check_unique(collection, document)
        self._docs(collection).append(document)
        return document["id"]

    def update_fields(self, collection: str, filters: Dict[str, Any], fields: Dict[str, Any]) -> bool:
        document = self._first(collection, filters)
        if document is None:
            return False
        document.update(copy.deepcopy(fields))
        return True

    def increment(self, collection: str, filters: Dict[str, Any], field: str, amount: int = 1) -> bool:
        document = self._first(collection, filters)
        if document is None:
            return False
        document[field] = document.get(field, 0) + amount
        return True

    def prepend(self, collection: str, filters: Dict[str, Any], field: str, value: Any,
                fields: Dict[str, Any] = None) -> bool:
        document = self._first(collection, filters)
        if document is None:
            return False
        document.setdefault(field, []).insert(0, copy.deepcopy(value))
        if fields:
            document.update(copy.deepcopy(fields))
        return True

    def upsert(self, collection: str, filters: Dict[str, Any], fields: Dict[str, Any],
               defaults: Dict[str, Any] = None) -> Dict:
        document = self._first(collection, filters)
        if document is None:
            document = {**copy.deepcopy(defaults or {}), **copy.deepcopy(filters)}
            document["id"] = str(ObjectId())
            self._docs(collection).append(document)
        document.update(copy.deepcopy(fields or {}))
        return copy.deepcopy(document)

    def delete_one(self, collection: str, filters: Dict[str, Any]) -> bool:
        document = self._first(collection, filters)
        if document is None:
            return False
        self._docs(collection).remove(document)
        return True

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        keep = [doc for doc in self._docs(collection) if not self._matches(doc, filters)]
        removed = len(self._docs(collection)) - len(keep)
        self.collections[collection] = keep
        return removed

    # Lifecycle

    def health_check(self) -> Dict[str, Any]:
        return {'status': 'healthy', 'ping': True, 'database': 'cityfix_test'}

    def create_indexes(self) -> None:
        pass

    def close_connection(self) -> None:
        pass


# Engine fixtures

@pytest.fixture
def store():
    """Empty in-memory ledger store."""
    return InMemoryMongoDBService()


@pytest.fixture
def timeline_recorder(store):
    return TimelineRecorder(store)


@pytest.fixture
def user_service(store):
    return UserService(store)


@pytest.fixture
def issue_service(store, timeline_recorder, user_service):
    return IssueService(store, timeline_recorder, user_service, free_issue_limit=3)


@pytest.fixture
def vote_ledger(store):
    return VoteLedger(store)


@pytest.fixture
def escalation_handler(store, timeline_recorder):
    return EscalationHandler(store, timeline_recorder)


@pytest.fixture
def stats_service(store):
    return StatsService(store)


def make_context(email: str, role: UserRole = UserRole.CITIZEN) -> UserContext:
    return UserContext(email=email, role=role)


@pytest.fixture
def citizen():
    return make_context("citizen@example.com")


@pytest.fixture
def voter():
    return make_context("voter@example.com")


@pytest.fixture
def staff():
    return make_context("staff@example.com", UserRole.STAFF)


@pytest.fixture
def other_staff():
    return make_context("other.staff@example.com", UserRole.STAFF)


@pytest.fixture
def admin():
    return make_context("admin@example.com", UserRole.ADMIN)


@pytest.fixture
def issue_request():
    """Valid issue creation request."""
    return CreateIssueRequest(
        title="Broken streetlight",
        description="The streetlight on 5th Avenue has been out for a week",
        category="Streetlight",
        image_url="https://img.example.com/light.jpg",
        location="5th Avenue and Main Street"
    )


@pytest.fixture
def create_issue(issue_service, issue_request, citizen):
    """Factory filing an issue and returning it."""
    def _create(actor: UserContext = None, **overrides):
        request = issue_request.model_copy(update=overrides)
        result = issue_service.create_issue(request, actor or citizen)
        assert result.success, result.error_message
        return result.issue
    return _create


# Route fixtures

@pytest.fixture(scope="session")
def auth_service():
    """Identity verifier with a key pair generated once per test session."""
    private_key, public_key = generate_key_pair()
    return AuthService(private_key, public_key)


@pytest.fixture
def payment_processor():
    """Stripe checkout stand-in."""
    processor = MagicMock(spec=PaymentProcessor)
    processor.create_boost_checkout.return_value = "https://checkout.stripe.test/boost"
    processor.create_subscription_checkout.return_value = "https://checkout.stripe.test/premium"
    return processor


@pytest.fixture
def app(store, auth_service, payment_processor):
    """Flask application wired to the in-memory store."""
    from app import create_app

    application = create_app(
        mongodb_service=store,
        auth_service=auth_service,
        payment_processor=payment_processor,
        config={
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'BASE_URL': 'http://testserver',
            'FREE_ISSUE_LIMIT': 3
        }
    )
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def seed_user(store):
    """Insert a user record with the given role."""
    def _seed(email: str, role: UserRole = UserRole.CITIZEN, **fields) -> User:
        user = User(email=email, role=role, **fields)
        store.insert(USERS, user.to_document())
        return user
    return _seed


@pytest.fixture
def auth_headers(auth_service):
    """Bearer headers for a caller."""
    def _headers(email: str) -> Dict[str, str]:
        token = auth_service.generate_tokens(User(email=email))["access_token"]
        return {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json'
        }
    return _headers
