"""
Authentication dependencies for FastAPI.
"""
from typing import Dict, Any
from fastapi import Depends, HTTPException, Request, status, Security
from fastapi.security import HTTPAuthorizationCredentials

from database.connection import Database
from database.models import User, UserRole
from services.account_directory import AccountDirectory
from auth.security import security, decode_access_token
from core.errors import Unauthorized
from core.logger import get_logger
import config

logger = get_logger(__name__)


def get_database(request: Request) -> Database:
    """Storage handle created by the app factory."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return database


def get_blob_store(request: Request):
    """Blob store created by the app factory."""
    blob_store = getattr(request.app.state, "blob_store", None)
    if blob_store is None:
        raise HTTPException(status_code=503, detail="Blob store not configured")
    return blob_store


def get_db_session(database: Database = Depends(get_database)):
    """Get database session."""
    with database.get_session() as session:
        yield session


def get_token_claims(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> Dict[str, Any]:
    """
    Verify the bearer token issued by the identity provider.

    Returns:
        Token payload; ``sub`` is the uid
    """
    payload = decode_access_token(credentials.credentials, config.SECRET_KEY)
    if payload is None or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_current_profile(
    claims: Dict[str, Any] = Depends(get_token_claims),
    database: Database = Depends(get_database)
) -> User:
    """
    Resolve the caller's profile and reject blocked accounts.

    Uses its own short session so that no transaction is open while the
    endpoint talks to external services.
    """
    uid = claims["sub"]
    with database.get_session() as session:
        user = AccountDirectory.get_profile(session, uid)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Profile not found. Sign in first.",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is blocked",
        )
    return user


def require_admin(
    current_user: User = Depends(get_current_profile),
    database: Database = Depends(get_database)
) -> User:
    """
    Allow only administrators.

    Both authorities must agree: the profile's role and an active entry in
    the admin registry.
    """
    with database.get_session() as session:
        registry_ok = AccountDirectory.is_admin(session, current_user.uid)

    if current_user.role != UserRole.ADMIN or not registry_ok:
        logger.warning(
            f"Admin access denied for {current_user.uid} "
            f"(role={current_user.role.value}, registry={registry_ok})"
        )
        raise Unauthorized("Administrator access required", resource_type="profile", resource_id=current_user.uid)
    return current_user


# Any signed-in, active account
require_active = get_current_profile
