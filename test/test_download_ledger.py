from datetime import timedelta

import pytest

from database.models import Document, DownloadLog, utcnow
from services.download_accounting import DownloadAccounting
from services.download_ledger import DownloadLedger
from core.errors import ValidationFailure


@pytest.fixture
def busy_ledger(database, make_document, student):
    """A document with 520 ledger entries, one second apart, counter kept in step."""
    document = make_document("Enrollment Form", category="Form")
    start = utcnow() - timedelta(days=1)
    with database.get_session() as db:
        db.add_all([
            DownloadLog(
                document_id=document.id,
                document_title=document.title,
                student_id=student.uid,
                student_name=student.display_name,
                student_program=student.program,
                timestamp=start + timedelta(seconds=i),
            )
            for i in range(520)
        ])
        db.query(Document).filter(Document.id == document.id).one().download_count = 520
    return document


def test_list_recent_never_exceeds_cap(database, busy_ledger):
    with database.get_session() as db:
        assert len(DownloadLedger.list_recent(db, 100)) == 100
        assert len(DownloadLedger.list_recent(db, 500)) == 100
        assert len(DownloadLedger.list_recent(db)) == 100
        assert len(DownloadLedger.list_recent(db, 7)) == 7


def test_list_recent_is_newest_first(database, busy_ledger, student):
    newest = DownloadAccounting.record_download(database, busy_ledger.id, student, busy_ledger.title)

    with database.get_session() as db:
        entries = DownloadLedger.list_recent(db, 10)

    assert entries[0].id == newest.id
    timestamps = [e.timestamp for e in entries]
    assert timestamps == sorted(timestamps, reverse=True)


def test_list_recent_rejects_non_positive_limit(database):
    with database.get_session() as db:
        with pytest.raises(ValidationFailure):
            DownloadLedger.list_recent(db, 0)


def test_count_for_document(database, busy_ledger, make_document):
    other = make_document("Unread Memo")
    with database.get_session() as db:
        assert DownloadLedger.count_for_document(db, busy_ledger.id) == 520
        assert DownloadLedger.count_for_document(db, other.id) == 0
