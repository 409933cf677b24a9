# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the identity verifier.
"""

import jwt
import pytest
from datetime import datetime, timedelta, timezone

from models.entities import User
from services.auth import AuthService, TokenValidationError, generate_key_pair


class TestAuthService:

    @pytest.fixture
    def user(self):
        return User(email="citizen@example.com", name="Jane")

    def test_tokens_round_trip(self, auth_service, user):
        tokens = auth_service.generate_tokens(user)

        payload = auth_service.validate_token(tokens["access_token"])

        assert payload["sub"] == "citizen@example.com"
        assert payload["name"] == "Jane"
        assert "role" not in payload
        assert tokens["expires_in"] == auth_service.access_token_expire_minutes * 60

    def test_refresh_token_type_checked(self, auth_service, user):
        tokens = auth_service.generate_tokens(user)

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(tokens["refresh_token"], "access")

        refreshed = auth_service.refresh_access_token(tokens["refresh_token"])
        assert auth_service.validate_token(refreshed["access_token"])["sub"] == user.email

    def test_expired_token(self, auth_service):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "citizen@example.com", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1),
             "type": "access"},
            auth_service.private_key,
            algorithm="RS256"
        )

        with pytest.raises(TokenValidationError, match="expired"):
            auth_service.validate_token(token)

    def test_token_from_other_key_rejected(self, auth_service, user):
        other_private, other_public = generate_key_pair()
        foreign = AuthService(other_private, other_public).generate_tokens(user)["access_token"]

        with pytest.raises(TokenValidationError):
            auth_service.validate_token(foreign)

    def test_password_hashing(self, auth_service):
        hashed = auth_service.hash_password("Str0ngPass")

        assert hashed != "Str0ngPass"
        assert auth_service.verify_password("Str0ngPass", hashed)
        assert not auth_service.verify_password("WrongPass1", hashed)
        assert not auth_service.verify_password("Str0ngPass", None)
        assert not auth_service.verify_password("Str0ngPass", "not-a-bcrypt-hash")
