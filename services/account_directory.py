"""
Account directory: user profiles, account status and the admin registry.
"""
from typing import Optional, List, Dict, Any, Union
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database.models import User, AdminRole, LoginLog, UserRole, UserStatus, utcnow
from core.errors import NotFound, ValidationFailure
from core.validators import reject_unknown_keys
from core.logger import get_logger

logger = get_logger(__name__)


# Fields a profile touch may overlay
PROFILE_FIELDS = ("email", "display_name", "photo_url", "program")
# Fields silently dropped from a profile touch; only set by the directory itself
PROTECTED_FIELDS = ("uid", "status", "created_at", "last_login")


class AccountDirectory:
    """Service for profile, status and admin-registry operations."""

    @staticmethod
    def get_profile(db: Session, uid: str) -> Optional[User]:
        """Get profile by uid, or None."""
        return db.query(User).filter(User.uid == uid).first()

    @staticmethod
    def upsert_profile(db: Session, uid: str, partial: Optional[Dict[str, Any]] = None) -> None:
        """
        Create the profile on first touch, otherwise merge-update it.

        New profiles start as active students with created_at and last_login
        set by the service clock, then ``partial`` is overlaid. Existing
        profiles get ``partial`` overlaid and last_login refreshed. ``role`` is
        honoured only when the profile is created; status can only change
        through set_status.

        Args:
            db: Database session
            uid: Identity uid
            partial: Subset of email, display_name, photo_url, program (and role on creation)
        """
        if not uid or not str(uid).strip():
            raise ValidationFailure("uid is required", resource_type="profile")
        partial = dict(partial or {})
        reject_unknown_keys(partial, PROFILE_FIELDS + ("role",), PROTECTED_FIELDS)

        try:
            AccountDirectory._apply_upsert(db, uid, partial)
            db.commit()
        except IntegrityError:
            # Concurrent first touch created the row; merge into it instead
            db.rollback()
            logger.info(f"Profile {uid} created concurrently, merging")
            AccountDirectory._apply_upsert(db, uid, partial)
            db.commit()

    @staticmethod
    def _apply_upsert(db: Session, uid: str, partial: Dict[str, Any]) -> None:
        fields = {k: v for k, v in partial.items() if k in PROFILE_FIELDS}
        now = utcnow()
        user = db.query(User).filter(User.uid == uid).first()

        if user is None:
            role = AccountDirectory._coerce_role(partial.get("role", UserRole.STUDENT))
            user = User(
                uid=uid,
                role=role,
                status=UserStatus.ACTIVE,
                created_at=now,
                last_login=now,
                **fields
            )
            db.add(user)
            db.flush()
            logger.info(f"Created profile {uid} ({role.value})")
            return

        if "role" in partial and AccountDirectory._coerce_role(partial["role"]) != user.role:
            logger.warning(f"Ignoring role change for existing profile {uid}")
        for key, value in fields.items():
            setattr(user, key, value)
        user.last_login = now
        db.flush()

    @staticmethod
    def _coerce_role(role: Union[UserRole, str]) -> UserRole:
        try:
            return UserRole(role)
        except ValueError:
            raise ValidationFailure(f"Invalid role: {role}", resource_type="profile")

    @staticmethod
    def is_admin(db: Session, uid: str) -> bool:
        """
        Check the admin registry for an active entry.

        Independent of User.role; both must agree before privileged writes.
        Never raises: absence or a store error both mean "not an admin".
        """
        if not uid:
            return False
        try:
            entry = db.query(AdminRole).filter(AdminRole.uid == uid).first()
        except SQLAlchemyError as e:
            logger.error(f"Admin registry lookup failed for {uid}: {e}")
            return False
        return entry is not None and entry.active is True

    @staticmethod
    def list_students(db: Session) -> List[User]:
        """All student profiles, ordered by display name."""
        return (
            db.query(User)
            .filter(User.role == UserRole.STUDENT)
            .order_by(User.display_name.asc(), User.uid.asc())
            .all()
        )

    @staticmethod
    def set_status(db: Session, uid: str, status: Union[UserStatus, str]) -> User:
        """
        Overwrite a profile's status.

        Performs no authorization check: the caller must have confirmed
        is_admin for the acting user before calling.
        """
        try:
            new_status = UserStatus(status)
        except ValueError:
            raise ValidationFailure(f"Invalid status: {status}", resource_type="profile", resource_id=uid)

        user = db.query(User).filter(User.uid == uid).first()
        if user is None:
            raise NotFound(f"Profile not found: {uid}", resource_type="profile", resource_id=uid)

        user.status = new_status
        db.commit()
        db.refresh(user)
        logger.info(f"Status of {uid} set to {new_status.value}")
        return user

    @staticmethod
    def grant_admin(db: Session, uid: str, active: bool = True) -> AdminRole:
        """Create or update the admin registry entry for uid."""
        entry = db.query(AdminRole).filter(AdminRole.uid == uid).first()
        if entry is None:
            entry = AdminRole(uid=uid, active=active, granted_at=utcnow())
            db.add(entry)
        else:
            entry.active = active
        db.commit()
        db.refresh(entry)
        logger.info(f"Admin registry entry for {uid} set to active={active}")
        return entry

    @staticmethod
    def record_login(db: Session, user: User) -> LoginLog:
        """Append a sign-in event for the user."""
        event = LoginLog(
            user_id=user.uid,
            user_name=user.display_name,
            role=user.role,
            timestamp=utcnow()
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event
