"""
Student Management APIs (Admin).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from database.models import User, UserStatus
from auth.dependencies import get_db_session, require_admin
from services.account_directory import AccountDirectory
from routers.profile import profile_to_dict
from core.logger import get_logger

logger = get_logger(__name__)


router = APIRouter(prefix="/api/students", tags=["students"])


class StatusUpdate(BaseModel):
    """Set account status request."""
    status: UserStatus


@router.get("")
def list_students(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    List all student profiles.
    Admin only.
    """
    students = AccountDirectory.list_students(db)
    return {"data": [profile_to_dict(s) for s in students], "total": len(students)}


@router.patch("/{uid}/status")
def set_student_status(
    uid: str,
    request: StatusUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Block or reactivate an account.
    Admin only: require_admin is the authorization gate, set_status itself checks nothing.
    """
    user = AccountDirectory.set_status(db, uid, request.status)
    logger.info(f"{current_user.uid} set status of {uid} to {user.status.value}")
    return profile_to_dict(user)
