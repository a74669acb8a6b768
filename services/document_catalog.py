"""
Document catalog: metadata, search and the per-document download counter.
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from database.models import Document, utcnow
from core.errors import NotFound
from core.validators import require_text, reject_unknown_keys
from core.logger import get_logger

logger = get_logger(__name__)


INSERT_FIELDS = ("title", "description", "category", "file_url", "file_type")
# Accepted in metadata but always replaced by the catalog
SERVER_ASSIGNED_FIELDS = ("id", "created_at", "download_count", "uploaded_by")
EDITABLE_FIELDS = ("title", "description", "category")


class DocumentCatalog:
    """Service for catalog operations."""

    @staticmethod
    def validate_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
        """
        Check publish metadata before anything is written or uploaded.

        Returns the cleaned field mapping (file_url may still be missing here;
        insert requires it).
        """
        reject_unknown_keys(metadata, INSERT_FIELDS, SERVER_ASSIGNED_FIELDS)
        ignored = [k for k in SERVER_ASSIGNED_FIELDS if k in metadata]
        if ignored:
            logger.debug(f"Ignoring client-supplied document fields: {ignored}")
        return {
            "title": require_text(metadata.get("title"), "title"),
            "category": require_text(metadata.get("category"), "category"),
            "description": (metadata.get("description") or "").strip(),
            "file_url": metadata.get("file_url"),
            "file_type": metadata.get("file_type"),
        }

    @staticmethod
    def insert(db: Session, metadata: Dict[str, Any], uploaded_by: str) -> Document:
        """
        Insert a catalog row for a file already stored in the blob store.

        download_count starts at 0 and created_at comes from the service
        clock regardless of what the caller supplied.

        Args:
            db: Database session
            metadata: title, category, file_url (required), description, file_type
            uploaded_by: Admin uid

        Returns:
            Created Document with its assigned id
        """
        fields = DocumentCatalog.validate_metadata(metadata)
        fields["file_url"] = require_text(fields["file_url"], "file_url")
        uploaded_by = require_text(uploaded_by, "uploaded_by")

        document = Document(
            title=fields["title"],
            description=fields["description"],
            category=fields["category"],
            file_url=fields["file_url"],
            file_type=fields["file_type"],
            uploaded_by=uploaded_by,
            created_at=utcnow(),
            download_count=0
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        logger.info(f"Inserted document {document.id}: {document.title} ({document.category})")
        return document

    @staticmethod
    def publish(
        db: Session,
        blob_store,
        file_bytes: bytes,
        filename: str,
        content_type: str,
        metadata: Dict[str, Any],
        uploaded_by: str
    ) -> Document:
        """
        Store the file in the blob store, then insert its catalog row.

        The blob store call happens before the session touches the database,
        so no transaction spans it. An AdapterFailure propagates and no row is
        created. If the insert fails after a successful store the blob is left
        orphaned.
        """
        fields = DocumentCatalog.validate_metadata(metadata)
        require_text(uploaded_by, "uploaded_by")

        file_url = blob_store.store(file_bytes, filename, content_type=content_type)

        fields["file_url"] = file_url
        fields["file_type"] = content_type
        try:
            return DocumentCatalog.insert(db, fields, uploaded_by)
        except Exception:
            logger.warning(f"Catalog insert failed after upload; orphaned blob at {file_url}")
            raise

    @staticmethod
    def get_document(db: Session, document_id: int) -> Document:
        """Get document by id or raise NotFound."""
        document = db.query(Document).filter(Document.id == document_id).first()
        if document is None:
            raise NotFound(f"Document not found: {document_id}", resource_type="document", resource_id=str(document_id))
        return document

    @staticmethod
    def search(db: Session, query_text: Optional[str] = None, category: Optional[str] = None) -> List[Document]:
        """
        Newest-first catalog listing filtered by a case-insensitive substring.

        A document matches when its title, description or category contains
        the query. This is a linear scan over the whole catalog, fine at
        institutional scale but not indexed.

        Args:
            db: Database session
            query_text: Substring to look for; blank returns the full catalog
            category: Optional exact category (case-insensitive)

        Returns:
            Matching documents ordered by created_at descending
        """
        documents = (
            db.query(Document)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )

        if category and category.strip():
            wanted = category.strip().lower()
            documents = [d for d in documents if (d.category or "").lower() == wanted]

        if not query_text or not query_text.strip():
            return documents

        needle = query_text.strip().lower()
        return [
            d for d in documents
            if needle in (d.title or "").lower()
            or needle in (d.description or "").lower()
            or needle in (d.category or "").lower()
        ]

    @staticmethod
    def update_metadata(db: Session, document_id: int, changes: Dict[str, Any]) -> Document:
        """Edit title, description or category. The download counter is never touched here."""
        reject_unknown_keys(changes, EDITABLE_FIELDS)
        document = DocumentCatalog.get_document(db, document_id)

        if "title" in changes:
            document.title = require_text(changes["title"], "title")
        if "category" in changes:
            document.category = require_text(changes["category"], "category")
        if "description" in changes:
            document.description = (changes["description"] or "").strip()

        db.commit()
        db.refresh(document)
        logger.info(f"Updated metadata of document {document_id}")
        return document

    @staticmethod
    def increment_download_count(db: Session, document_id: int, lock: bool = False) -> int:
        """
        Add one to the document's download counter inside the caller's transaction.

        Only the download accounting unit calls this; it flushes but does not
        commit. The flush carries the version check, so a concurrent writer
        surfaces as StaleDataError.

        Args:
            db: Database session (transaction owned by the caller)
            document_id: Document id
            lock: Read the row with SELECT ... FOR UPDATE

        Returns:
            New counter value
        """
        query = db.query(Document).filter(Document.id == document_id)
        if lock:
            query = query.with_for_update()
        document = query.first()
        if document is None:
            raise NotFound(f"Document not found: {document_id}", resource_type="document", resource_id=str(document_id))

        new_count = (document.download_count or 0) + 1
        document.download_count = new_count
        db.flush()
        return new_count
