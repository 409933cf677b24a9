# SPDX-License-Identifier: Apache-2.0

"""
User records: first-contact provisioning, roles, profiles and moderation.
"""

import logging
from typing import List, Dict, Any, Optional
from opentelemetry import trace

from domain.results import ErrorCode, WorkflowResult
from models.base import utc_now
from models.entities import User, normalize_email
from models.enums import UserRole
from .mongodb import MongoDBService, DuplicateRecordError, USERS

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PROFILE_FIELDS = ("name", "photo_url", "phone")


def _provisioning_defaults(email: str) -> Dict[str, Any]:
    """Document fields written only when a user record is first created."""
    document = User.fresh_citizen(email).to_document()
    document.pop("id")
    return document


class UserService:
    """Reads and writes user records."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def get_user(self, email: str) -> Optional[User]:
        """Pure read: None when the user was never seen."""
        document = self.mongo_service.find_one(USERS, {"email": email.lower()})
        return User.from_document(document) if document else None

    def ensure_user(self, email: str, name: str = None, photo_url: str = None) -> User:
        """
        Return the user record, creating a default citizen on first contact.

        Name and photo are refreshed when given; role, premium and blocked
        flags are only ever set at creation.
        """
        email = normalize_email(email)
        fields = {}
        if name:
            fields["name"] = name
        if photo_url:
            fields["photoUrl"] = photo_url

        defaults = _provisioning_defaults(email)
        for key in fields:
            defaults.pop(key, None)

        document = self.mongo_service.upsert(USERS, {"email": email}, fields, defaults)
        logger.debug("User record ensured", extra={"email": email})
        return User.from_document(document)

    def get_role(self, email: str) -> UserRole:
        """Role lookup that provisions a citizen record for unknown users."""
        return UserRole(self.ensure_user(email).role)

    def update_profile(self, email: str, updates: Dict[str, Any]) -> WorkflowResult:
        """Update self-service profile fields."""
        unknown = sorted(set(updates) - set(PROFILE_FIELDS))
        if unknown:
            return WorkflowResult.fail(
                ErrorCode.VALIDATION_FAILED,
                "Invalid profile update",
                [f"Field cannot be updated: {name}" for name in unknown]
            )
        if not updates:
            return WorkflowResult.fail(ErrorCode.VALIDATION_FAILED, "Nothing to update")

        fields = {User.model_fields[name].alias: value for name, value in updates.items()}
        fields["updatedAt"] = utc_now()
        if not self.mongo_service.update_fields(USERS, {"email": email.lower()}, fields):
            return WorkflowResult.fail(ErrorCode.NOT_FOUND, "User not found")
        return WorkflowResult.ok(value=self.get_user(email))

    def set_blocked(self, email: str, blocked: bool) -> WorkflowResult:
        """Admin moderation: block or unblock a user."""
        with tracer.start_as_current_span("user.set_blocked") as span:
            span.set_attributes({"user.email": email, "user.blocked": blocked})
            matched = self.mongo_service.update_fields(
                USERS,
                {"email": email.lower()},
                {"isBlocked": blocked, "updatedAt": utc_now()}
            )
            if not matched:
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "User not found")

            logger.warning(
                "User block status changed",
                extra={"email": email, "blocked": blocked}
            )
            return WorkflowResult.ok(value=self.get_user(email))

    def list_by_role(self, role: UserRole) -> List[User]:
        documents = self.mongo_service.find(USERS, {"role": role.value}, sort=[("createdAt", -1)])
        return [User.from_document(doc) for doc in documents]

    def _create_account(self, email: str, name: str, password_hash: str, role: UserRole,
                        phone: str = "", photo_url: str = "") -> User:
        account = User(
            email=email,
            name=name,
            phone=phone,
            photo_url=photo_url,
            role=role,
            password_hash=password_hash
        )
        self.mongo_service.insert(USERS, account.to_document())
        return account

    def create_staff(self, email: str, name: str, password_hash: str,
                     phone: str = "", photo_url: str = "") -> WorkflowResult:
        """Create a staff account."""
        try:
            staff = self._create_account(email, name, password_hash, UserRole.STAFF, phone, photo_url)
        except DuplicateRecordError:
            return WorkflowResult.fail(ErrorCode.VALIDATION_FAILED, f"User already exists: {email}")

        logger.info("Staff account created", extra={"email": staff.email})
        return WorkflowResult.ok(value=staff)

    def register_citizen(self, email: str, name: str, password_hash: str,
                         phone: str = "", photo_url: str = "") -> WorkflowResult:
        """
        Self-registration with a password.

        A citizen record provisioned on first contact has no password yet; it
        is claimed by setting one. Accounts that already have a password are
        never overwritten.
        """
        try:
            citizen = self._create_account(email, name, password_hash, UserRole.CITIZEN, phone, photo_url)
        except DuplicateRecordError:
            claimed = self.mongo_service.update_fields(
                USERS,
                {"email": email.lower(), "passwordHash": None},
                {"passwordHash": password_hash, "name": name, "updatedAt": utc_now()}
            )
            if not claimed:
                return WorkflowResult.fail(ErrorCode.VALIDATION_FAILED, f"User already exists: {email}")
            citizen = self.get_user(email)

        logger.info("Citizen registered", extra={"email": citizen.email})
        return WorkflowResult.ok(value=citizen)

    def ensure_admin(self, email: str, name: str, password_hash: str) -> User:
        """Create or promote an admin account. Used by the bootstrap script."""
        email = normalize_email(email)
        fields = {
            "role": UserRole.ADMIN.value,
            "name": name,
            "passwordHash": password_hash,
            "updatedAt": utc_now()
        }
        defaults = {key: value for key, value in _provisioning_defaults(email).items() if key not in fields}
        document = self.mongo_service.upsert(USERS, {"email": email}, fields, defaults)
        logger.warning("Admin account ensured", extra={"email": email})
        return User.from_document(document)

    def update_staff(self, email: str, updates: Dict[str, Any]) -> WorkflowResult:
        """Update a staff member's profile fields."""
        user = self.get_user(email)
        if user is None or user.role != UserRole.STAFF:
            return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Staff member not found")
        return self.update_profile(email, updates)

    def delete_staff(self, email: str) -> WorkflowResult:
        """Remove a staff account. Issues stay assigned to the removed email."""
        deleted = self.mongo_service.delete_one(
            USERS,
            {"email": email.lower(), "role": UserRole.STAFF.value}
        )
        if not deleted:
            return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Staff member not found")
        logger.warning("Staff account deleted", extra={"email": email})
        return WorkflowResult.ok()
