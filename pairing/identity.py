"""Bearer token verification.

Tokens are JWTs issued by the identity provider. They are checked either with
a shared secret (HS*) or against the provider's JWKS endpoint when
``jwt_jwks_url`` is configured.
"""

import logging
from typing import List, Optional

import jwt

from pairing.config import settings
from pairing.errors import AuthenticationError
from pairing.schemas import Identity

logger = logging.getLogger(__name__)


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    if not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Invalid Authorization header")
    return token


def display_name(claims: dict) -> str:
    """Pick a display name from token claims.

    Falls back from ``name`` to the local part of ``email``, then to "User".
    """
    name = claims.get("name")
    if name:
        return name
    email = claims.get("email")
    if email:
        return email.split("@", 1)[0]
    return "User"


class IdentityVerifier:
    """Turns a bearer credential into a verified ``Identity``."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithms: Optional[List[str]] = None,
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        jwks_url: Optional[str] = None,
    ):
        self.secret = secret or settings.jwt_secret
        self.algorithms = algorithms or settings.jwt_algorithms
        self.audience = audience or settings.jwt_audience
        self.issuer = issuer or settings.jwt_issuer
        jwks_url = jwks_url or settings.jwt_jwks_url
        self.jwks_client = jwt.PyJWKClient(jwks_url) if jwks_url else None

    def _signing_key(self, token: str):
        if self.jwks_client is not None:
            return self.jwks_client.get_signing_key_from_jwt(token).key
        return self.secret

    def verify(self, token: str) -> Identity:
        """Verify a token and return the caller identity.

        Raises:
            AuthenticationError: If the token is invalid, expired, or lacks a subject.
        """
        try:
            claims = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.PyJWTError as e:
            logger.info(f"Rejected bearer token: {e}")
            raise AuthenticationError("Invalid token")

        return Identity(
            user_id=str(claims["sub"]),
            name=display_name(claims),
            email=claims.get("email"),
        )

    def verify_header(self, authorization: Optional[str]) -> Identity:
        return self.verify(parse_bearer(authorization))
