"""
Credential and session token primitives.

    - Passwords are stored as salted, cost-factored bcrypt hashes (passlib).
    - Session tokens are HS256 JWTs (python-jose) embedding the user's id,
      name, email and roles.
    - Only a token's *signature* segment is ever persisted, so the literal
      bearer token never reaches the database.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from pizza_service.core.config import get_settings
from pizza_service.core.errors import UnauthenticatedError

logger = logging.getLogger(__name__)


@lru_cache()
def get_password_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.password_hash_rounds,
    )


def hash_password(password: str) -> str:
    return get_password_context().hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return get_password_context().verify(password, hashed)
    except ValueError:
        # Malformed hash in storage
        logger.warning("Stored password hash could not be parsed")
        return False


def issue_token(claims: dict[str, Any]) -> str:
    """Sign ``claims`` into a bearer token."""
    settings = get_settings()
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify a bearer token against the issuer secret.
    
    Raises:
        UnauthenticatedError: If the signature or payload is invalid
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Token verification failed: {e}")
        raise UnauthenticatedError()


def token_signature(token: str) -> str:
    """
    Derive the persisted identifier of a token.
    
    This is the JWT's third segment (the keyed HMAC over header and
    payload), which cannot be turned back into a usable token.
    """
    parts = token.split(".")
    if len(parts) > 2:
        return parts[2]
    return ""


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
