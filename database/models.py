"""
Database models for the portal document repository.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index, CheckConstraint, TypeDecorator
)
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


def utcnow() -> datetime:
    """Service clock used for every server-assigned timestamp (naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# Custom Type Decorator for Enum Values
# ============================================================================

class EnumValue(TypeDecorator):
    """Type decorator to ensure enum values (not names) are stored."""
    impl = String
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        """Convert enum to its value when writing to database."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def process_result_value(self, value, dialect):
        """Convert database value back to enum when reading."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return self.enum_class(value)
            except ValueError:
                return value
        return value


# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles for authorization."""
    ADMIN = "admin"
    STUDENT = "student"


class UserStatus(str, enum.Enum):
    """User account status."""
    ACTIVE = "active"
    BLOCKED = "blocked"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """User profile keyed by the external identity uid."""
    __tablename__ = "users"

    uid = Column(String(128), primary_key=True)  # Identity-derived, immutable
    email = Column(String(255), nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    role = Column(EnumValue(UserRole, 20), default=UserRole.STUDENT, nullable=False)
    status = Column(EnumValue(UserStatus, 20), default=UserStatus.ACTIVE, nullable=False)
    program = Column(String(100), nullable=True)  # Academic track, e.g. BSCS, BSIT, BLIS

    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime, default=utcnow, nullable=True)

    __table_args__ = (
        Index('idx_user_role', 'role'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class AdminRole(Base):
    """Admin registry: second authority for administrative privilege, independent of User.role."""
    __tablename__ = "roles_admin"

    uid = Column(String(128), primary_key=True)
    active = Column(Boolean, default=True, nullable=False)
    granted_at = Column(DateTime, default=utcnow, nullable=False)


class Document(Base):
    """Catalog entry. The file itself lives in the blob store; only its URL is kept."""
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False)  # Memo, Form, Curriculum, News, ...
    file_url = Column(String(1024), nullable=False)
    file_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(128), ForeignKey("users.uid", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    download_count = Column(Integer, default=0, nullable=False)  # == number of downloads rows for this id
    version_id = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index('idx_document_created', 'created_at'),
        Index('idx_document_category', 'category'),
        CheckConstraint('download_count >= 0', name='ck_document_download_count_nonnegative'),
    )


class DownloadLog(Base):
    """Append-only download ledger. Title and student fields are frozen at download time."""
    __tablename__ = "downloads"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    document_title = Column(String(255), nullable=False)
    student_id = Column(String(128), ForeignKey("users.uid"), nullable=False)
    student_name = Column(String(255), nullable=False)
    student_program = Column(String(100), nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_download_timestamp', 'timestamp'),
        Index('idx_download_document', 'document_id'),
        Index('idx_download_student', 'student_id'),
    )


class LoginLog(Base):
    """Sign-in events recorded by the profile endpoint."""
    __tablename__ = "logins"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.uid"), nullable=False)
    user_name = Column(String(255), nullable=True)
    role = Column(EnumValue(UserRole, 20), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_login_timestamp', 'timestamp'),
    )
