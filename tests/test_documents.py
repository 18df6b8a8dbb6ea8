import asyncio
import io

import pytest
from docx import Document as DocxDocument

from lissan import models
from lissan.config import settings
from lissan.services.document_service import DocumentService
from lissan.services.event_bus import DOCUMENT_DELETED, DOCUMENT_UPLOADED

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def upload(client, headers, name="notes.txt", content=b"Opening hours are 9 to 5.", content_type="text/plain", language=None):
    data = {"language": language} if language else {}
    return client.post(
        "/api/documents/upload",
        headers=headers,
        files={"document": (name, content, content_type)},
        data=data
    )


def stored_files(upload_dir):
    return list(upload_dir.iterdir()) if upload_dir.exists() else []


def test_upload_text_document(client, register, upload_dir, events):
    account = register()

    response = upload(client, account["headers"])

    assert response.status_code == 201
    document = response.json()["document"]
    assert document["originalName"] == "notes.txt"
    assert document["fileType"] == "text/plain"
    assert document["fileSize"] == len(b"Opening hours are 9 to 5.")
    assert document["language"] == "en"
    assert len(stored_files(upload_dir)) == 1
    assert [e.name for e in events] == [DOCUMENT_UPLOADED]
    assert events[0].company_id == account["company"]["id"]
    assert events[0].payload["originalName"] == "notes.txt"


def test_upload_detects_amharic_content(client, register):
    account = register()

    response = upload(client, account["headers"], content="የስራ ሰዓት ከ 9 እስከ 5 ነው።".encode("utf-8"))

    assert response.json()["document"]["language"] == "am"


def test_declared_language_is_kept(client, register):
    account = register()

    response = upload(client, account["headers"], language="auto")

    assert response.json()["document"]["language"] == "auto"


def test_docx_text_is_extracted(client, register):
    account = register()
    buffer = io.BytesIO()
    docx = DocxDocument()
    docx.add_paragraph("Delivery takes two days.")
    docx.add_paragraph("Returns are free.")
    docx.save(buffer)

    response = upload(client, account["headers"], name="policy.docx", content=buffer.getvalue(), content_type=DOCX_TYPE)

    assert response.status_code == 201
    document_id = response.json()["document"]["id"]
    detail = client.get(f"/api/documents/{document_id}", headers=account["headers"]).json()["document"]
    assert detail["content"] == "Delivery takes two days.\n\nReturns are free."


def test_unsupported_file_is_rejected_before_writing(client, register, upload_dir, db):
    account = register()

    bad_type = upload(client, account["headers"], name="photo.png", content=b"\x89PNG", content_type="image/png")
    bad_extension = upload(client, account["headers"], name="script.exe", content=b"MZ", content_type="text/plain")

    for response in (bad_type, bad_extension):
        assert response.status_code == 400
        assert response.json() == {"error": "Only PDF, DOC, DOCX, TXT, and RTF files are allowed"}
    assert stored_files(upload_dir) == []
    assert db.query(models.Document).count() == 0


def test_oversized_file_is_rejected_before_writing(client, register, upload_dir, monkeypatch):
    monkeypatch.setattr(settings, "max_file_size", 10)
    account = register()

    response = upload(client, account["headers"], content=b"x" * 11)

    assert response.status_code == 400
    assert "File size exceeds" in response.json()["error"]
    assert stored_files(upload_dir) == []


def test_upload_without_file(client, register):
    account = register()

    response = client.post("/api/documents/upload", headers=account["headers"], data={"language": "en"})

    assert response.status_code == 400
    assert response.json() == {"error": "No file uploaded"}


def test_failed_insert_removes_stored_file(db, upload_dir, monkeypatch):
    company = models.Company(name="Acme", email="acme@example.com", hashed_password="x")
    db.add(company)
    db.commit()

    service = DocumentService(db)

    def broken_commit():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(RuntimeError):
        asyncio.run(service.upload_document(company.id, io.BytesIO(b"hello"), "notes.txt", "text/plain"))

    assert stored_files(upload_dir) == []


def test_list_search_filter_and_paginate(client, register):
    account = register()
    upload(client, account["headers"], name="menu.txt", content=b"Injera and coffee")
    upload(client, account["headers"], name="hours.txt", content=b"Open daily")
    upload(client, account["headers"], name="amharic.txt", content="ቡና".encode("utf-8"))

    everything = client.get("/api/documents", headers=account["headers"]).json()
    by_content = client.get("/api/documents", headers=account["headers"], params={"search": "COFFEE"}).json()
    by_name = client.get("/api/documents", headers=account["headers"], params={"search": "hours"}).json()
    amharic = client.get("/api/documents", headers=account["headers"], params={"language": "am"}).json()
    all_languages = client.get("/api/documents", headers=account["headers"], params={"language": "all"}).json()
    first_page = client.get("/api/documents", headers=account["headers"], params={"limit": 2, "page": 1}).json()

    assert [d["originalName"] for d in everything["documents"]] == ["amharic.txt", "hours.txt", "menu.txt"]
    assert [d["originalName"] for d in by_content["documents"]] == ["menu.txt"]
    assert [d["originalName"] for d in by_name["documents"]] == ["hours.txt"]
    assert [d["originalName"] for d in amharic["documents"]] == ["amharic.txt"]
    assert all_languages["pagination"]["total"] == 3
    assert len(first_page["documents"]) == 2
    assert first_page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}


def test_documents_are_tenant_scoped(client, register):
    owner = register()
    other = register()
    document_id = upload(client, owner["headers"]).json()["document"]["id"]

    assert client.get("/api/documents", headers=other["headers"]).json()["documents"] == []
    response = client.get(f"/api/documents/{document_id}", headers=other["headers"])
    assert response.status_code == 404
    assert response.json() == {"error": "Document not found"}
    assert client.delete(f"/api/documents/{document_id}", headers=other["headers"]).status_code == 404
    assert client.get(f"/api/documents/{document_id}", headers=owner["headers"]).status_code == 200


def test_delete_removes_row_and_file(client, register, upload_dir, events):
    account = register()
    document_id = upload(client, account["headers"]).json()["document"]["id"]

    response = client.delete(f"/api/documents/{document_id}", headers=account["headers"])

    assert response.status_code == 200
    assert stored_files(upload_dir) == []
    assert client.get(f"/api/documents/{document_id}", headers=account["headers"]).status_code == 404
    assert events[-1].name == DOCUMENT_DELETED
    assert events[-1].payload == {"id": document_id}


def test_documents_require_token(client):
    assert client.get("/api/documents").status_code == 401
