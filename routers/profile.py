"""
Profile APIs (All Authenticated Users).
"""
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr

from database.models import User
from auth.dependencies import get_db_session, get_token_claims, require_active
from services.account_directory import AccountDirectory
from core.errors import NotFound
from core.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(prefix="/api/profile", tags=["profile"])


class LoginRequest(BaseModel):
    """Profile fields reported by the identity provider at sign-in."""
    email: Optional[EmailStr] = None
    displayName: Optional[str] = None
    photoURL: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Self-service profile update (onboarding)."""
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
    program: Optional[str] = None


def profile_to_dict(user: User) -> Dict[str, Any]:
    """Serialize a profile for API responses."""
    return {
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "photoURL": user.photo_url,
        "role": user.role.value,
        "status": user.status.value,
        "program": user.program,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "lastLogin": user.last_login.isoformat() if user.last_login else None,
    }


def _to_partial(fields: Dict[str, Any]) -> Dict[str, Any]:
    mapping = {"displayName": "display_name", "photoURL": "photo_url", "email": "email", "program": "program"}
    return {mapping[k]: v for k, v in fields.items() if v is not None}


@router.post("/login")
def login(
    request: LoginRequest,
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db_session)
):
    """
    Touch the caller's profile on sign-in (create on first visit) and log the sign-in.
    Blocked accounts are still recorded but receive their status so the client can refuse entry.
    """
    uid = claims["sub"]
    AccountDirectory.upsert_profile(db, uid, _to_partial(request.model_dump()))
    user = AccountDirectory.get_profile(db, uid)
    AccountDirectory.record_login(db, user)
    logger.info(f"Sign-in: {uid} ({user.role.value}, {user.status.value})")
    return profile_to_dict(user)


@router.get("/me")
def get_my_profile(current_user: User = Depends(require_active)):
    """Get the caller's profile."""
    return profile_to_dict(current_user)


@router.patch("/me")
def update_my_profile(
    request: ProfileUpdate,
    current_user: User = Depends(require_active),
    db: Session = Depends(get_db_session)
):
    """Update display name, photo or academic program."""
    AccountDirectory.upsert_profile(db, current_user.uid, _to_partial(request.model_dump()))
    user = AccountDirectory.get_profile(db, current_user.uid)
    if user is None:
        raise NotFound(f"Profile not found: {current_user.uid}", resource_type="profile")
    return profile_to_dict(user)
