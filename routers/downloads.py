"""
Download ledger APIs (Admin).
"""
from datetime import datetime, timezone
from typing import Dict, Any
import csv
import io

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from database.models import User, DownloadLog
from auth.dependencies import get_db_session, require_admin
from services.download_ledger import DownloadLedger


router = APIRouter(prefix="/api/downloads", tags=["downloads"])


def entry_to_dict(entry: DownloadLog) -> Dict[str, Any]:
    """Serialize a ledger entry for API responses."""
    return {
        "id": entry.id,
        "documentId": entry.document_id,
        "documentTitle": entry.document_title,
        "studentId": entry.student_id,
        "studentName": entry.student_name,
        "studentProgram": entry.student_program,
        "timestamp": entry.timestamp.isoformat(),
    }


@router.get("")
def list_recent_downloads(
    limit: int = Query(100, ge=1),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Most recent downloads, newest first (at most 100).
    Admin only.
    """
    entries = DownloadLedger.list_recent(db, limit)
    return {"data": [entry_to_dict(e) for e in entries], "total": len(entries)}


@router.get("/export")
def export_recent_downloads(
    limit: int = Query(100, ge=1),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    """
    Export the recent downloads as CSV.
    Admin only.
    """
    entries = DownloadLedger.list_recent(db, limit)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["id", "timestamp", "documentId", "documentTitle", "studentId", "studentName", "studentProgram"])
    for entry in entries:
        writer.writerow([
            entry.id,
            entry.timestamp.isoformat(),
            entry.document_id,
            entry.document_title,
            entry.student_id,
            entry.student_name,
            entry.student_program or "",
        ])

    csv_content = output.getvalue()
    output.close()

    stamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=downloads_{stamp}.csv"}
    )
