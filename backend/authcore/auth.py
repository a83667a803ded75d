"""
Authentication adapter for AuthCore
Verifies bearer JWTs and turns the authenticated principal into a user id.

Token issuance and credential verification live in the identity service; this
module only validates tokens it is handed and exposes the principal.
"""

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .repositories.user_repository import UserRepository
from .utils.logging_security import sanitize_for_log

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

Principal = Dict[str, Any]


def _verification_key(settings: Settings) -> str:
    if settings.algorithm.upper().startswith("HS"):
        return settings.secret_key
    if not settings.jwt_public_key:
        raise ValueError(f"jwt_public_key is required for algorithm {settings.algorithm}")
    return settings.jwt_public_key


def verify_token(token: str, settings: Optional[Settings] = None) -> Principal:
    """
    Verify a JWT and return its claims.

    Raises:
        HTTPException: 401 if the token is expired or invalid
    """
    settings = settings or get_settings()
    try:
        options = {"verify_aud": settings.jwt_audience is not None}
        return jwt.decode(
            token,
            _verification_key(settings),
            algorithms=[settings.algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {sanitize_for_log(e, allow_special=True)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )


def decode_token(token: Optional[str], settings: Optional[Settings] = None) -> Optional[Principal]:
    """
    Decode JWT token for authorization middleware
    Returns token payload or None if invalid
    """
    if not token:
        return None
    try:
        return verify_token(token, settings)
    except Exception as e:
        logger.debug(f"Token decode failed: {e}")
        return None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header value"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Get current authenticated principal from the bearer JWT"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    if payload.get("sub") is None and payload.get("user_id") is None and payload.get("id") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return payload


def require_internal_access(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    internal_api_key: Optional[str] = Header(default=None, alias="X-Internal-Api-Key"),
) -> Principal:
    """
    Guard for /internal/authz/**: a valid bearer principal or the shared internal API key.
    """
    settings = get_settings()
    if internal_api_key and settings.internal_api_key:
        if hmac.compare_digest(internal_api_key, settings.internal_api_key):
            return {"sub": "internal-service", "internal": True}
        logger.warning("Rejected internal API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    return get_current_user(credentials)


class PrincipalResolver(ABC):
    """Maps an authenticated principal to the numeric user id the core works with"""

    @abstractmethod
    def user_id(self, principal: Optional[Principal]) -> Optional[int]:
        """Return the user id, or None when the principal cannot be resolved"""


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class ClaimsPrincipalResolver(PrincipalResolver):
    """Reads the ``user_id`` or ``id`` claim, falling back to a numeric ``sub``"""

    def user_id(self, principal: Optional[Principal]) -> Optional[int]:
        if not principal:
            return None
        for claim in ("user_id", "id", "sub"):
            user_id = _as_int(principal.get(claim))
            if user_id is not None:
                return user_id
        return None


class DatabasePrincipalResolver(PrincipalResolver):
    """Claims first; otherwise looks the ``sub`` username up in the users table"""

    def __init__(self, db: Session, claims_resolver: Optional[PrincipalResolver] = None):
        self.users = UserRepository(db)
        self.claims_resolver = claims_resolver or ClaimsPrincipalResolver()

    def user_id(self, principal: Optional[Principal]) -> Optional[int]:
        user_id = self.claims_resolver.user_id(principal)
        if user_id is not None or not principal:
            return user_id

        username = principal.get("sub") or principal.get("username")
        if not isinstance(username, str) or not username:
            return None
        user = self.users.find_by_username(username)
        return user.id if user else None


def get_principal_resolver(db: Session, settings: Optional[Settings] = None) -> PrincipalResolver:
    """Resolver configured for this deployment"""
    settings = settings or get_settings()
    if settings.resolve_username_principals:
        return DatabasePrincipalResolver(db)
    return ClaimsPrincipalResolver()
