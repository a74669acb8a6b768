"""
Download accounting: increments a document's counter and appends the matching
ledger entry as one atomic unit.
"""
import logging
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    Retrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from database.connection import Database
from database.models import DownloadLog, User
from services.document_catalog import DocumentCatalog
from services.download_ledger import DownloadLedger
from core.errors import TransientStoreConflict, ValidationFailure
from core.validators import require_text
from core.logger import get_logger
import config

logger = get_logger(__name__)

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected
RETRYABLE_PGCODES = ("40001", "40P01")

# SQLite reports lock contention only through the message text
RETRYABLE_SQLITE_MESSAGES = ("database is locked", "database table is locked")


def is_write_conflict(exc: BaseException) -> bool:
    """
    True when a failed attempt lost a race and can be replayed from the read.

    Covers lost updates caught by the version column, PostgreSQL
    serialization failures and deadlocks, and a locked SQLite database.
    Every other OperationalError (missing table, refused connection, bad
    credentials) is permanent.
    """
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    orig = exc.orig
    if getattr(orig, "pgcode", None) in RETRYABLE_PGCODES:
        return True
    message = str(orig).lower()
    return any(text in message for text in RETRYABLE_SQLITE_MESSAGES)


def _record_once(
    database: Database,
    document_id: int,
    student: User,
    document_title_snapshot: str
) -> DownloadLog:
    """One attempt: read-increment-write the counter and append the entry in a single transaction."""
    with database.get_session() as session:
        new_count = DocumentCatalog.increment_download_count(
            session, document_id, lock=database.supports_row_locks
        )
        entry = DownloadLedger.append(session, document_id, document_title_snapshot, student)
    logger.info(
        f"Recorded download of document {document_id} by {student.uid} "
        f"(count={new_count}, entry={entry.id})"
    )
    return entry


class DownloadAccounting:
    """The only writer of Document.download_count."""

    @staticmethod
    def record_download(
        database: Database,
        document_id: int,
        student: User,
        document_title_snapshot: str,
        max_attempts: Optional[int] = None
    ) -> DownloadLog:
        """
        Record one download event.

        Both the counter increment and the ledger entry commit together or not
        at all. A missing document raises NotFound before anything is written.
        On a write conflict the whole transaction is retried from the read,
        with jittered backoff, up to ``max_attempts`` times.

        Args:
            database: Storage handle; each attempt opens its own session
            document_id: Document being downloaded
            student: Profile of the downloading student
            document_title_snapshot: Title as shown when the student clicked,
                stored as-is rather than re-read
            max_attempts: Override for TRANSACTION_MAX_ATTEMPTS

        Returns:
            The appended ledger entry

        Raises:
            NotFound: document_id or the student profile does not exist
            ValidationFailure: student profile lacks a uid
            TransientStoreConflict: every attempt hit a conflict
        """
        require_text(getattr(student, "uid", None), "student uid")
        if document_title_snapshot is None:
            raise ValidationFailure("document title snapshot is required", resource_type="document")

        attempts = max_attempts or config.TRANSACTION_MAX_ATTEMPTS
        retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_random_exponential(multiplier=0.02, max=0.5),
            retry=retry_if_exception(is_write_conflict),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(_record_once, database, document_id, student, document_title_snapshot)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(
                f"Download of document {document_id} by {student.uid} not recorded "
                f"after {attempts} attempts: {last_error}"
            )
            raise TransientStoreConflict(
                f"Could not record download after {attempts} attempts",
                attempts=attempts,
                resource_type="document",
                resource_id=str(document_id)
            ) from last_error
