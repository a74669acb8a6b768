"""
Download ledger: append-only record of successful downloads.
"""
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import DownloadLog, User, utcnow
from core.errors import NotFound, ValidationFailure
import config


class DownloadLedger:
    """Service for ledger reads and the single append used by download accounting."""

    @staticmethod
    def append(
        db: Session,
        document_id: int,
        document_title: str,
        student: User,
    ) -> DownloadLog:
        """
        Add a ledger entry inside the caller's transaction (flush, no commit).

        Title, name and program are copied onto the entry so later edits of
        the document or profile leave the audit trail unchanged. A student
        without a display name is logged under their email, or their uid.

        Raises:
            NotFound: the student has no stored profile
        """
        if db.get(User, student.uid) is None:
            raise NotFound(f"Profile {student.uid} not found", resource_type="user", resource_id=student.uid)

        entry = DownloadLog(
            document_id=document_id,
            document_title=document_title,
            student_id=student.uid,
            student_name=student.display_name or student.email or student.uid,
            student_program=student.program or config.UNKNOWN_PROGRAM,
            timestamp=utcnow()
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def list_recent(db: Session, limit: Optional[int] = None) -> List[DownloadLog]:
        """
        Newest-first ledger entries, never more than RECENT_DOWNLOADS_CAP.

        Args:
            db: Database session
            limit: Maximum entries (defaults to the cap; larger values are clamped)
        """
        cap = config.RECENT_DOWNLOADS_CAP
        if limit is None:
            limit = cap
        if limit < 1:
            raise ValidationFailure(f"limit must be at least 1, got {limit}")
        limit = min(limit, cap)

        return (
            db.query(DownloadLog)
            .order_by(DownloadLog.timestamp.desc(), DownloadLog.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_for_document(db: Session, document_id: int) -> int:
        """Number of ledger entries referencing document_id."""
        return (
            db.query(func.count(DownloadLog.id))
            .filter(DownloadLog.document_id == document_id)
            .scalar()
        ) or 0
