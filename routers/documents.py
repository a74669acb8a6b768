"""
Document APIs: search (students and admins), publish and edit (admins),
download (students and admins).
"""
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, File, Form, UploadFile
from sqlalchemy.orm import Session
from pydantic import BaseModel

from database.connection import Database
from database.models import User, Document
from auth.dependencies import (
    get_database, get_db_session, get_blob_store, require_active, require_admin
)
from services.document_catalog import DocumentCatalog
from services.download_accounting import DownloadAccounting
from core.validators import validate_content_type, validate_file_size
from core.logger import get_logger
import config

logger = get_logger(__name__)


router = APIRouter(prefix="/api/documents", tags=["documents"])


class DocumentUpdate(BaseModel):
    """Edit document metadata."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None


def document_to_dict(document: Document) -> Dict[str, Any]:
    """Serialize a catalog entry for API responses."""
    return {
        "id": document.id,
        "title": document.title,
        "description": document.description,
        "category": document.category,
        "fileUrl": document.file_url,
        "fileType": document.file_type,
        "uploadedBy": document.uploaded_by,
        "createdAt": document.created_at.isoformat() if document.created_at else None,
        "downloadCount": document.download_count,
    }


@router.get("")
def search_documents(
    q: Optional[str] = Query(None, description="Substring matched against title, description and category"),
    category: Optional[str] = Query(None),
    current_user: User = Depends(require_active),
    db: Session = Depends(get_db_session)
):
    """Search the catalog, newest first."""
    documents = DocumentCatalog.search(db, q, category=category)
    return {"data": [document_to_dict(d) for d in documents], "total": len(documents)}


@router.post("", status_code=201)
def publish_document(
    title: str = Form(...),
    category: str = Form(...),
    description: str = Form(""),
    file: UploadFile = File(...),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session),
    blob_store=Depends(get_blob_store)
):
    """
    Upload a document file and add it to the catalog.
    Admin only.
    """
    content_type = validate_content_type(file.content_type, config.ALLOWED_DOCUMENT_CONTENT_TYPES)
    file_bytes = file.file.read()
    validate_file_size(len(file_bytes), config.MAX_DOCUMENT_SIZE_MB)

    document = DocumentCatalog.publish(
        db,
        blob_store,
        file_bytes,
        file.filename or "document",
        content_type,
        {"title": title, "description": description, "category": category},
        uploaded_by=current_user.uid
    )
    logger.info(f"Document {document.id} published by {current_user.uid}")
    return document_to_dict(document)


@router.patch("/{document_id}")
def update_document(
    document_id: int,
    request: DocumentUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Edit title, description or category.
    Admin only. Existing download records keep the title they were recorded with.
    """
    changes = request.model_dump(exclude_none=True)
    document = DocumentCatalog.update_metadata(db, document_id, changes)
    return document_to_dict(document)


@router.post("/{document_id}/download")
def download_document(
    document_id: int,
    current_user: User = Depends(require_active),
    database: Database = Depends(get_database),
    blob_store=Depends(get_blob_store)
):
    """
    Issue a download URL and record the download.

    The title is captured before the accounting transaction and stored on the
    ledger entry as it was at click time.
    """
    with database.get_session() as session:
        document = DocumentCatalog.get_document(session, document_id)
    title_snapshot = document.title

    url = blob_store.presigned_url(document.file_url, expires_in=config.PRESIGNED_URL_EXPIRE_SECONDS)
    entry = DownloadAccounting.record_download(database, document_id, current_user, title_snapshot)

    return {
        "documentId": document_id,
        "documentTitle": entry.document_title,
        "url": url,
        "downloadId": entry.id,
        "timestamp": entry.timestamp.isoformat(),
    }
