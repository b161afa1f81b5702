"""
Resources API tests: subjects, uploads, downloads and the subject cascade.

Uses the in-memory catalog and a temporary storage root from conftest.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from acadvault.storage.local import LocalFileStorage
from acadvault.web import main, wiring

pytestmark = pytest.mark.anyio("asyncio")

ADMIN = {"Authorization": "Bearer admin1:admin"}
STUDENT = {"Authorization": "Bearer 21CS001:student"}
PDF = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


async def _upload(c: httpx.AsyncClient, *, subject="Data Structures", resource_type="notes",
                  filename="ds-notes.pdf", content=PDF, mime="application/pdf", headers=ADMIN):
    return await c.post(
        "/api/resources/upload",
        data={"semester": "3", "subject": subject, "resourceType": resource_type},
        files={"file": (filename, content, mime)},
        headers=headers,
    )


def _files(storage: LocalFileStorage):
    return [storage.relative(p) for p in storage.walk_files("")]


async def test_upload_then_download_returns_identical_bytes(storage: LocalFileStorage):
    async with _client() as c:
        r = await _upload(c)
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["created"] is True
        assert body["stored"]["relativePath"].startswith("resources/sem3/notes/Data_Structures_")
        assert body["stored"]["originalName"] == "ds-notes.pdf"

        overview = (await c.get("/api/resources/3")).json()["resources"]
        assert overview["subjects"] == ["Data Structures"]
        entry = overview["notes"]["Data Structures"]
        assert entry["fileName"] == "ds-notes.pdf"
        assert overview["books"]["Data Structures"] is None

        download = await c.get(f"/resource/download/{entry['id']}")

    assert download.status_code == 200
    assert download.content == PDF
    assert "ds-notes.pdf" in download.headers.get("content-disposition", "")
    assert "no-store" in download.headers.get("Cache-Control", "")


async def test_reupload_keeps_one_record_and_one_file(storage: LocalFileStorage):
    async with _client() as c:
        first = await _upload(c)
        second = await _upload(c, filename="ds-v2.pdf", content=PDF + b"v2")
        listed = (await c.get("/api/resources/3/notes")).json()["resources"]

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["resource"]["id"] == first.json()["resource"]["id"]
    assert listed["Data Structures"]["fileName"] == "ds-v2.pdf"
    assert _files(storage) == [second.json()["stored"]["relativePath"]]


async def test_rejected_mime_type_creates_nothing(storage: LocalFileStorage):
    async with _client() as c:
        r = await _upload(c, filename="evil.pdf", mime="text/html")
        subjects = (await c.get("/api/resources/subjects/3")).json()["subjects"]
    assert r.status_code == 415
    assert r.json() == {"error": "unsupported_media_type", "detail": "mime_not_allowed"}
    assert subjects == []
    assert _files(storage) == []


async def test_oversized_upload_does_not_leave_new_subject(storage: LocalFileStorage, monkeypatch):
    monkeypatch.setenv("DOCUMENT_MAX_UPLOAD_BYTES", "10")
    async with _client() as c:
        r = await _upload(c, subject="Ghost")
        subjects = (await c.get("/api/resources/subjects/3")).json()["subjects"]
    assert r.status_code == 413
    assert r.json()["detail"] == "size_exceeded"
    assert subjects == []
    assert _files(storage) == []


async def test_oversized_upload_keeps_existing_subject(monkeypatch):
    wiring.get_store().add_subject("3", "Data Structures")
    monkeypatch.setenv("DOCUMENT_MAX_UPLOAD_BYTES", "10")
    async with _client() as c:
        r = await _upload(c)
        subjects = (await c.get("/api/resources/subjects/3")).json()["subjects"]
    assert r.status_code == 413
    assert subjects == ["Data Structures"]


async def test_upload_requires_admin():
    async with _client() as c:
        guest = await _upload(c, headers={})
        student = await _upload(c, headers=STUDENT)
        malformed = await _upload(c, headers={"Authorization": "Token abc"})
    assert guest.status_code == 401
    assert student.status_code == 403
    assert malformed.status_code == 401
    assert malformed.json()["error"] == "unauthenticated"


async def test_upload_missing_fields_is_bad_request():
    async with _client() as c:
        r = await c.post(
            "/api/resources/upload",
            data={"semester": "3", "resourceType": "notes"},
            files={"file": ("a.pdf", PDF, "application/pdf")},
            headers=ADMIN,
        )
    assert r.status_code == 400
    assert r.json()["detail"] == "missing_fields"


async def test_video_upload_creates_subject_and_channel():
    async with _client() as c:
        r = await c.post(
            "/api/resources/upload",
            data={
                "semester": "2",
                "subject": "Physics",
                "resourceType": "videoMaterials",
                "channel": "NPTEL",
                "topics": "waves, optics ,",
            },
            headers=ADMIN,
        )
        dup = await c.post(
            "/api/resources/video",
            json={"semester": "2", "subject": "Physics", "channel": "NPTEL", "topics": ["x"]},
            headers=ADMIN,
        )
        other = await c.post(
            "/api/resources/video",
            json={"semester": "2", "subject": "Physics", "channel": "MIT", "topics": "mechanics"},
            headers=ADMIN,
        )
        videos = (await c.get("/api/resources/2/videoMaterials")).json()["resources"]
        deleted = await c.delete("/api/resources/video/2/Physics/MIT", headers=ADMIN)

    assert r.status_code == 201
    assert r.json()["resource"]["topics"] == ["waves", "optics"]
    assert dup.status_code == 409
    assert dup.json()["detail"] == "channel_exists"
    assert other.status_code == 201
    assert [v["channel"] for v in videos["Physics"]] == ["NPTEL", "MIT"]
    assert deleted.status_code == 200


async def test_video_for_unknown_subject_is_not_found():
    async with _client() as c:
        r = await c.post(
            "/api/resources/video",
            json={"semester": "2", "subject": "Nope", "channel": "c", "topics": "t"},
            headers=ADMIN,
        )
    assert r.status_code == 404
    assert r.json()["detail"] == "subject_not_found"


async def test_subjects_add_list_and_conflict():
    async with _client() as c:
        a = await c.post("/api/resources/subjects", json={"semester": "1", "name": "Maths"}, headers=ADMIN)
        b = await c.post("/api/resources/subjects", json={"semester": "1", "name": "Chemistry"}, headers=ADMIN)
        dup = await c.post("/api/resources/subjects", json={"semester": "1", "name": "Maths"}, headers=ADMIN)
        bad = await c.post("/api/resources/subjects", content=b"[1]", headers=ADMIN)
        listed = await c.get("/api/resources/subjects/1")
    assert a.status_code == 201 and b.status_code == 201
    assert dup.status_code == 409
    assert bad.status_code == 400
    assert bad.json()["detail"] == "invalid_json"
    assert listed.json()["subjects"] == ["Chemistry", "Maths"]
    assert "private" in listed.headers["Cache-Control"]


async def test_subject_delete_cascades_to_resources_and_files(storage: LocalFileStorage):
    async with _client() as c:
        up = await _upload(c)
        await _upload(c, resource_type="books", filename="book.pdf")
        await _upload(c, subject="Networks")
        resource_id = up.json()["resource"]["id"]

        r = await c.delete("/api/resources/subjects/3/Data Structures", headers=ADMIN)
        subjects = (await c.get("/api/resources/subjects/3")).json()["subjects"]
        gone = await c.get(f"/resource/download/{resource_id}")
        again = await c.delete("/api/resources/subjects/3/Data Structures", headers=ADMIN)

    assert r.status_code == 200
    assert r.json() == {"status": "success", "removedResources": 2}
    assert subjects == ["Networks"]
    assert gone.status_code == 404
    assert again.status_code == 404
    remaining = _files(storage)
    assert len(remaining) == 1
    assert remaining[0].startswith("resources/sem3/notes/Networks_")
    assert wiring.get_store().orphaned_resources() == []


async def test_subject_delete_by_body():
    async with _client() as c:
        await c.post("/api/resources/subjects", json={"semester": "4", "name": "Law"}, headers=ADMIN)
        r = await c.request("DELETE", "/api/subjects", json={"semester": "4", "name": "Law"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["removedResources"] == 0


async def test_file_resource_with_external_url_redirects():
    async with _client() as c:
        await c.post("/api/resources/subjects", json={"semester": "5", "name": "Art"}, headers=ADMIN)
        r = await c.post(
            "/api/resources/file",
            data={
                "semester": "5",
                "subject": "Art",
                "resourceType": "books",
                "fileUrl": "https://library.example.org/art.pdf",
                "fileName": "art.pdf",
            },
            headers=ADMIN,
        )
        download = await c.get(f"/resource/download/{r.json()['resource']['id']}")
    assert r.status_code == 201
    assert "stored" not in r.json()
    assert download.status_code == 307
    assert download.headers["location"] == "https://library.example.org/art.pdf"


async def test_file_resource_requires_existing_subject_and_payload():
    async with _client() as c:
        missing = await c.post(
            "/api/resources/file",
            data={"semester": "5", "subject": "Ghost", "resourceType": "notes", "fileUrl": "u", "fileName": "n"},
            headers=ADMIN,
        )
        await c.post("/api/resources/subjects", json={"semester": "5", "name": "Art"}, headers=ADMIN)
        empty = await c.post(
            "/api/resources/file",
            data={"semester": "5", "subject": "Art", "resourceType": "notes"},
            headers=ADMIN,
        )
    assert missing.status_code == 404
    assert empty.status_code == 400
    assert empty.json()["detail"] == "file_or_url_required"


async def test_delete_file_resource_removes_record_and_file(storage: LocalFileStorage):
    async with _client() as c:
        await _upload(c)
        r = await c.delete("/api/resources/file/3/notes/Data Structures", headers=ADMIN)
        again = await c.request(
            "DELETE",
            "/api/resources/delete",
            json={"semester": "3", "resourceType": "notes", "subject": "Data Structures"},
            headers=ADMIN,
        )
        overview = (await c.get("/resources/3")).json()
    assert r.status_code == 200
    assert again.status_code == 404
    assert overview["notes"] == {"Data Structures": None}
    assert _files(storage) == []


async def test_download_reports_attempted_paths_when_file_is_missing(storage: LocalFileStorage):
    async with _client() as c:
        up = await _upload(c)
        storage.unlink(up.json()["stored"]["relativePath"])
        r = await c.get(f"/resource/download/{up.json()['resource']['id']}")
    assert r.status_code == 404
    body = r.json()
    assert body["detail"] == "file_not_found"
    assert body["storedPath"] == up.json()["stored"]["relativePath"]
    assert body["attempted"]


async def test_download_tolerates_leading_separator_in_stored_path():
    async with _client() as c:
        up = await _upload(c)
        record = up.json()["resource"]
        wiring.get_store().update_resource_path(record["id"], "/" + record["fileUrl"])
        r = await c.get(f"/resource/download/{record['id']}")
    assert r.status_code == 200
    assert r.content == PDF


async def test_download_unknown_and_video_records():
    async with _client() as c:
        unknown = await c.get("/resource/download/does-not-exist")
        video = await c.post(
            "/api/resources/upload",
            data={"semester": "1", "subject": "S", "resourceType": "videoMaterials", "channel": "c", "topics": "t"},
            headers=ADMIN,
        )
        no_file = await c.get(f"/resource/download/{video.json()['resource']['id']}")
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "resource_not_found"
    assert no_file.status_code == 404
    assert no_file.json()["detail"] == "no_file"


async def test_invalid_resource_type_listing():
    async with _client() as c:
        r = await c.get("/api/resources/3/slides")
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_resource_type"


async def test_health_is_public_and_hardened():
    async with _client() as c:
        r = await c.get("/health", headers={"Authorization": "garbage"})
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    assert r.headers["X-Content-Type-Options"] == "nosniff"
