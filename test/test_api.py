import pytest
from fastapi.testclient import TestClient

import config
from app import create_app
from auth.security import create_access_token
from database.models import UserRole


def auth(uid):
    token = create_access_token({"sub": uid}, config.SECRET_KEY)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(database, blob_store):
    with TestClient(create_app(database=database, blob_store=blob_store)) as test_client:
        yield test_client


def publish(client, uid, title="Midyear Memo", category="Memo", content_type="application/pdf"):
    return client.post(
        "/api/documents",
        headers=auth(uid),
        data={"title": title, "category": category, "description": "For all students"},
        files={"file": ("memo.pdf", b"%PDF-1.4 test", content_type)},
    )


def test_health_is_public(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requests_without_token_are_rejected(client):
    assert client.get("/api/documents").status_code in (401, 403)


def test_login_creates_student_profile(client):
    response = client.post(
        "/api/profile/login",
        headers=auth("new-student"),
        json={"email": "new@school.test", "displayName": "New Student"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "student"
    assert body["status"] == "active"

    update = client.patch("/api/profile/me", headers=auth("new-student"), json={"program": "BLIS"})
    assert update.json()["program"] == "BLIS"
    assert update.json()["role"] == "student"


def test_admin_publishes_and_student_downloads(client, admin, student, blob_store):
    published = publish(client, admin.uid)
    assert published.status_code == 201
    document = published.json()
    assert document["downloadCount"] == 0
    assert document["fileUrl"] in blob_store.objects

    found = client.get("/api/documents", params={"q": "MEMO"}, headers=auth(student.uid)).json()
    assert [d["id"] for d in found["data"]] == [document["id"]]

    download = client.post(f"/api/documents/{document['id']}/download", headers=auth(student.uid))
    assert download.status_code == 200
    assert download.json()["url"].startswith("https://")

    after = client.get("/api/documents", headers=auth(student.uid)).json()["data"][0]
    assert after["downloadCount"] == 1

    ledger = client.get("/api/downloads", headers=auth(admin.uid)).json()["data"]
    assert ledger[0]["documentTitle"] == "Midyear Memo"
    assert ledger[0]["studentName"] == "Ana Cruz"

    export = client.get("/api/downloads/export", headers=auth(admin.uid))
    assert export.headers["content-type"].startswith("text/csv")
    assert "Midyear Memo" in export.text


def test_download_of_missing_document_is_404(client, student):
    assert client.post("/api/documents/404/download", headers=auth(student.uid)).status_code == 404


def test_publish_rejects_non_pdf(client, admin, blob_store):
    response = publish(client, admin.uid, content_type="image/png")
    assert response.status_code == 400
    assert blob_store.objects == {}


def test_publish_blob_failure_is_502_and_creates_nothing(client, admin, student, blob_store):
    blob_store.fail = True
    assert publish(client, admin.uid).status_code == 502
    assert client.get("/api/documents", headers=auth(student.uid)).json()["total"] == 0


def test_students_cannot_publish_or_manage(client, student):
    assert publish(client, student.uid).status_code == 403
    assert client.get("/api/students", headers=auth(student.uid)).status_code == 403
    assert client.get("/api/downloads", headers=auth(student.uid)).status_code == 403


def test_admin_needs_both_role_and_registry(client, make_profile):
    make_profile("role-only", role=UserRole.ADMIN)
    make_profile("registry-only", admin_registry=True)

    assert client.get("/api/students", headers=auth("role-only")).status_code == 403
    assert client.get("/api/students", headers=auth("registry-only")).status_code == 403


def test_admin_blocks_student(client, admin, student):
    students = client.get("/api/students", headers=auth(admin.uid)).json()
    assert [s["uid"] for s in students["data"]] == [student.uid]

    response = client.patch(
        f"/api/students/{student.uid}/status", headers=auth(admin.uid), json={"status": "blocked"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "blocked"

    assert client.get("/api/documents", headers=auth(student.uid)).status_code == 403


def test_set_status_for_unknown_uid_is_404(client, admin):
    response = client.patch("/api/students/ghost/status", headers=auth(admin.uid), json={"status": "blocked"})
    assert response.status_code == 404


def test_edit_keeps_download_history_title(client, admin, student):
    document = publish(client, admin.uid, title="Old Title").json()
    client.post(f"/api/documents/{document['id']}/download", headers=auth(student.uid))

    edited = client.patch(f"/api/documents/{document['id']}", headers=auth(admin.uid), json={"title": "New Title"})
    assert edited.json()["title"] == "New Title"

    ledger = client.get("/api/downloads", headers=auth(admin.uid)).json()["data"]
    assert ledger[0]["documentTitle"] == "Old Title"


def test_api_responses_are_not_cacheable(client, student):
    api = client.get("/api/documents", headers=auth(student.uid))
    health = client.get("/health")

    assert api.headers["Cache-Control"] == "no-store"
    assert api.headers["X-Content-Type-Options"] == "nosniff"
    assert "Cache-Control" not in health.headers
    assert health.headers["X-Frame-Options"] == "DENY"


def test_nameless_student_can_download(client, admin):
    client.post("/api/profile/login", headers=auth("s-42"), json={})
    document = publish(client, admin.uid).json()

    download = client.post(f"/api/documents/{document['id']}/download", headers=auth("s-42"))
    assert download.status_code == 200

    ledger = client.get("/api/downloads", headers=auth(admin.uid)).json()["data"]
    assert ledger[0]["studentName"] == "s-42"
