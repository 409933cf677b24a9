# SPDX-License-Identifier: Apache-2.0

"""
Identity verifier: RS256 bearer tokens and bcrypt password hashing.

Tokens carry the caller's email as subject. Roles are never read from the
token; they are resolved from the user record on every request.
"""

import os
import jwt
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from models.entities import User

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


def generate_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair (PEM private, PEM public) for development and tests."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


class AuthService:
    """
    JWT authentication service with RS256 signing and bcrypt password hashing.
    """

    def __init__(self, private_key: Optional[str] = None, public_key: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
        """
        # Keys from the environment may carry escaped newlines
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY", "").replace("\\n", "\n")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY", "").replace("\\n", "\n")
        if not private_key or not public_key:
            logger.warning("No JWT key pair configured, generating development key pair")
            private_key, public_key = generate_key_pair()

        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = "RS256"
        self.access_token_expire_minutes = int(os.getenv("JWT_ACCESS_TOKEN_MINUTES", "60"))
        self.refresh_token_expire_days = 7

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt with salt.

        Args:
            password: Plain text password to hash

        Returns:
            Hashed password string
        """
        with tracer.start_as_current_span("auth.hash_password") as span:
            span.set_attribute("auth.operation", "hash_password")

            salt = bcrypt.gensalt(rounds=12)
            hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
            return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: Optional[str]) -> bool:
        """Check a password against its stored hash. Accounts without a hash never match."""
        with tracer.start_as_current_span("auth.verify_password") as span:
            span.set_attribute("auth.operation", "verify_password")
            if not hashed_password:
                span.set_attribute("auth.verification_result", "no_password")
                return False

            try:
                result = bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
            except ValueError as e:
                span.set_attribute("auth.verification_result", "error")
                logger.error(f"Password verification error: {str(e)}")
                return False

            span.set_attribute("auth.verification_result", "success" if result else "failed")
            return result

    def _encode(self, payload: Dict[str, Any]) -> str:
        try:
            return jwt.encode(payload, self.private_key, algorithm=self.algorithm)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error(f"Token generation failed: {str(e)}")
            raise AuthenticationError(f"Failed to generate token: {str(e)}")

    def generate_tokens(self, user: User) -> Dict[str, Any]:
        """
        Generate access and refresh tokens for a user.

        Args:
            user: User entity to generate tokens for

        Returns:
            Dictionary containing access_token, refresh_token, and metadata
        """
        with tracer.start_as_current_span("auth.generate_tokens") as span:
            span.set_attributes({"auth.operation": "generate_tokens", "user.email": user.email})

            now = datetime.now(timezone.utc)
            access_exp = now + timedelta(minutes=self.access_token_expire_minutes)
            refresh_exp = now + timedelta(days=self.refresh_token_expire_days)

            access_token = self._encode({
                "sub": user.email,
                "email": user.email,
                "name": user.name,
                "iat": now,
                "exp": access_exp,
                "type": "access"
            })
            refresh_token = self._encode({
                "sub": user.email,
                "iat": now,
                "exp": refresh_exp,
                "type": "refresh"
            })

            logger.info(
                "JWT tokens generated",
                extra={"email": user.email, "access_expires_at": access_exp.isoformat()}
            )

            return {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "access_expires_at": access_exp.isoformat(),
                "refresh_expires_at": refresh_exp.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type ("access" or "refresh")

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({"auth.validation_result": "success", "user.email": payload["sub"]})
            return payload

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Generate a new access token using a valid refresh token.

        Raises:
            TokenValidationError: If refresh token is invalid
        """
        with tracer.start_as_current_span("auth.refresh_access_token") as span:
            span.set_attribute("auth.operation", "refresh_access_token")

            refresh_payload = self.validate_token(refresh_token, "refresh")

            now = datetime.now(timezone.utc)
            access_exp = now + timedelta(minutes=self.access_token_expire_minutes)
            access_token = self._encode({
                "sub": refresh_payload["sub"],
                "email": refresh_payload["sub"],
                "iat": now,
                "exp": access_exp,
                "type": "access"
            })

            logger.info(
                "Access token refreshed",
                extra={"email": refresh_payload["sub"], "new_expires_at": access_exp.isoformat()}
            )

            return {
                "access_token": access_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "expires_at": access_exp.isoformat()
            }
