"""
Shared fixtures for the document repository tests.

Each test gets its own file-backed SQLite database (a real file so that
several threads can share it) and an in-memory blob store double.
"""
import os

# Settings are read at import time; keep tests off the network and the log file
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("USE_S3", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest

from database.connection import Database
from database.models import UserRole
from services.account_directory import AccountDirectory
from services.document_catalog import DocumentCatalog
from core.errors import AdapterFailure


class FakeBlobStore:
    """Blob store double recording what was stored."""

    def __init__(self):
        self.objects = {}
        self.fail = False

    def store(self, file_bytes, suggested_name, content_type=None):
        if self.fail:
            raise AdapterFailure("blob store unavailable")
        url = f"s3://test-bucket/documents/{len(self.objects) + 1}_{suggested_name}"
        self.objects[url] = (file_bytes, content_type)
        return url

    def presigned_url(self, file_url, expires_in=3600):
        return f"https://blobs.example.test/{file_url[len('s3://'):]}?expires={expires_in}"


@pytest.fixture
def database(tmp_path):
    db = Database(
        f"sqlite:///{tmp_path / 'repository.db'}",
        pool_size=20,
        max_overflow=20,
        sqlite_busy_timeout=30,
    )
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def make_profile(database):
    """Create a profile and return it (detached, readable after the session closes)."""

    def _make(uid, display_name=None, role=UserRole.STUDENT, program=None, admin_registry=False):
        partial = {"display_name": display_name or uid.title(), "email": f"{uid}@school.test", "role": role}
        if program:
            partial["program"] = program
        with database.get_session() as db:
            AccountDirectory.upsert_profile(db, uid, partial)
            if admin_registry:
                AccountDirectory.grant_admin(db, uid, active=True)
            return AccountDirectory.get_profile(db, uid)

    return _make


@pytest.fixture
def admin(make_profile):
    return make_profile("admin-1", "Registrar", role=UserRole.ADMIN, admin_registry=True)


@pytest.fixture
def student(make_profile):
    return make_profile("student-1", "Ana Cruz", program="BSCS")


@pytest.fixture
def make_document(database, admin):
    def _make(title, description="", category="Memo"):
        with database.get_session() as db:
            return DocumentCatalog.insert(db, {
                "title": title,
                "description": description,
                "category": category,
                "file_url": f"s3://test-bucket/documents/{title.replace(' ', '_')}.pdf",
                "file_type": "application/pdf",
            }, uploaded_by=admin.uid)

    return _make
