"""
Upload ingestor tests.

Validation happens before any I/O; a successful upload leaves exactly one
file and one record per key; replacing a file removes the superseded one.
"""
from __future__ import annotations

import io

import pytest

from acadvault.catalog.documents import InMemoryDocumentStore
from acadvault.catalog.errors import PayloadTooLarge, UnsupportedMediaType, ValidationError
from acadvault.catalog.services.ingest import (
    DOCUMENT_POLICY,
    IMAGE_POLICY,
    MediaPolicy,
    QuestionPaperUploadInput,
    ResourceUploadInput,
    UploadIngestor,
    default_policies,
)
from acadvault.catalog.store import CatalogStore
from acadvault.storage.local import LocalFileStorage

PDF = b"%PDF-1.4\n% test\n"


@pytest.fixture
def ingestor(storage: LocalFileStorage) -> UploadIngestor:
    return UploadIngestor(store=CatalogStore(InMemoryDocumentStore()), storage=storage)


def _files(storage: LocalFileStorage):
    return [storage.relative(p) for p in storage.walk_files("")]


def _resource(subject="Data Structures", resource_type="notes", filename="DS notes.pdf"):
    return ResourceUploadInput(semester="3", subject=subject, resource_type=resource_type, filename=filename)


def _paper(**overrides):
    data = dict(
        year="2023-24", semester="5", subject="Operating Systems", exam_type="Final", uploaded_by="21CS001",
        filename="os.pdf",
    )
    data.update(overrides)
    return QuestionPaperUploadInput(**data)


def test_ingest_resource_stores_file_under_canonical_path(ingestor: UploadIngestor, storage: LocalFileStorage):
    result = ingestor.ingest_resource(_resource(), io.BytesIO(PDF), "application/pdf")

    assert result.created is True
    assert result.stored.relative_path.startswith("resources/sem3/notes/Data_Structures_")
    assert result.stored.relative_path.endswith(".pdf")
    assert result.stored.original_name == "DS notes.pdf"
    assert result.stored.size_bytes == len(PDF)
    assert result.record.file_url == result.stored.relative_path
    assert result.record.file_name == "DS notes.pdf"
    assert (storage.root / result.stored.relative_path).read_bytes() == PDF


def test_reupload_repoints_record_and_removes_old_file(ingestor: UploadIngestor, storage: LocalFileStorage):
    first = ingestor.ingest_resource(_resource(), io.BytesIO(PDF), "application/pdf")
    second = ingestor.ingest_resource(_resource(filename="v2.pdf"), io.BytesIO(PDF + b"v2"), "application/pdf")

    assert second.created is False
    assert second.record.id == first.record.id
    assert second.stored.previous_path == first.stored.relative_path
    assert _files(storage) == [second.stored.relative_path]
    assert len(ingestor.store.list_resources("3", "notes")) == 1


@pytest.mark.parametrize(
    "mime,filename,detail",
    [
        ("image/png", "notes.pdf", "mime_not_allowed"),
        ("application/pdf", "notes.exe", "extension_not_allowed"),
        ("", "notes.pdf", "mime_not_allowed"),
    ],
)
def test_rejected_media_leaves_no_file_or_record(ingestor, storage, mime, filename, detail):
    with pytest.raises(UnsupportedMediaType) as exc:
        ingestor.ingest_resource(_resource(filename=filename), io.BytesIO(PDF), mime)
    assert exc.value.detail == detail
    assert _files(storage) == []
    assert ingestor.store.list_all_resources() == []


def test_mime_parameters_are_ignored(ingestor: UploadIngestor):
    result = ingestor.ingest_resource(_resource(filename="A.PDF"), io.BytesIO(PDF), "Application/PDF; charset=binary")
    assert result.stored.relative_path.endswith(".pdf")


def test_oversized_upload_is_rejected_without_record(storage: LocalFileStorage):
    policies = default_policies()
    policies[DOCUMENT_POLICY] = MediaPolicy({"application/pdf": (".pdf",)}, max_bytes=8)
    ingestor = UploadIngestor(store=CatalogStore(InMemoryDocumentStore()), storage=storage, policies=policies)
    with pytest.raises(PayloadTooLarge):
        ingestor.ingest_resource(_resource(), io.BytesIO(PDF), "application/pdf")
    assert _files(storage) == []
    assert ingestor.store.list_all_resources() == []


@pytest.mark.parametrize(
    "overrides,detail",
    [
        (dict(subject=""), "missing_fields"),
        (dict(resource_type="videoMaterials"), "invalid_resource_type"),
        (dict(filename=""), "missing_file"),
    ],
)
def test_resource_input_validation(ingestor, overrides, detail):
    data = dict(subject="S", resource_type="notes", filename="a.pdf")
    data.update(overrides)
    with pytest.raises(ValidationError) as exc:
        ingestor.ingest_resource(_resource(**data), io.BytesIO(PDF), "application/pdf")
    assert exc.value.detail == detail


def test_client_path_components_are_dropped_from_original_name(ingestor: UploadIngestor):
    result = ingestor.ingest_resource(
        _resource(filename="C:\\Users\\me\\notes.pdf"), io.BytesIO(PDF), "application/pdf"
    )
    assert result.stored.original_name == "notes.pdf"


def test_ingest_question_paper_and_overwrite(ingestor: UploadIngestor, storage: LocalFileStorage):
    first = ingestor.ingest_question_paper(_paper(), io.BytesIO(PDF), "application/pdf")
    assert first.created is True
    assert first.stored.relative_path.startswith("question-papers/2023-24/5/Operating_Systems_Final_")
    assert first.record.semester == 5
    assert first.record.uploaded_by == "21CS001"

    second = ingestor.ingest_question_paper(_paper(filename="os-v2.pdf"), io.BytesIO(PDF + b"2"), "application/pdf")
    assert second.created is False
    assert second.record.id == first.record.id
    assert second.record.file_name == "os-v2.pdf"
    assert _files(storage) == [second.stored.relative_path]


@pytest.mark.parametrize(
    "overrides,detail",
    [
        (dict(year="23"), "invalid_year"),
        (dict(semester="9"), "invalid_semester"),
        (dict(semester="two"), "invalid_semester"),
        (dict(uploaded_by=""), "missing_fields"),
        (dict(filename=""), "missing_file"),
    ],
)
def test_question_paper_validation(ingestor, storage, overrides, detail):
    with pytest.raises(ValidationError) as exc:
        ingestor.ingest_question_paper(_paper(**overrides), io.BytesIO(PDF), "application/pdf")
    assert exc.value.detail == detail
    assert _files(storage) == []


def test_record_failure_discards_new_file(ingestor: UploadIngestor, storage: LocalFileStorage, monkeypatch):
    def boom(**_kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(ingestor.store, "upsert_file_resource", boom)
    with pytest.raises(RuntimeError):
        ingestor.ingest_resource(_resource(), io.BytesIO(PDF), "application/pdf")
    assert _files(storage) == []


def test_event_banner_image_policy(ingestor: UploadIngestor, storage: LocalFileStorage):
    stored = ingestor.ingest_event_banner("Fest Banner.JPG", io.BytesIO(b"\xff\xd8\xff"), "image/jpeg")
    assert stored.relative_path.startswith("events/event-")
    assert stored.relative_path.endswith(".jpg")
    with pytest.raises(UnsupportedMediaType):
        ingestor.ingest_event_banner("doc.pdf", io.BytesIO(PDF), "application/pdf")
    assert IMAGE_POLICY in ingestor.policies


def test_replace_event_banner_removes_previous(ingestor: UploadIngestor, storage: LocalFileStorage):
    old = ingestor.ingest_event_banner("a.png", io.BytesIO(b"png"), "image/png")
    new = ingestor.replace_event_banner(old.relative_path, "b.gif", io.BytesIO(b"gif"), "image/gif")
    assert new.previous_path == old.relative_path
    assert _files(storage) == [new.relative_path]


def test_superseded_external_url_is_left_alone(ingestor: UploadIngestor, storage: LocalFileStorage):
    ingestor.store.upsert_file_resource(
        semester="3", subject="Data Structures", resource_type="notes",
        file_url="https://example.org/ds.pdf", file_name="ds.pdf",
    )
    result = ingestor.ingest_resource(_resource(), io.BytesIO(PDF), "application/pdf")
    assert result.created is False
    assert result.stored.previous_path == "https://example.org/ds.pdf"
    assert _files(storage) == [result.stored.relative_path]


def test_replace_event_banner_accepts_leading_separator(ingestor: UploadIngestor, storage: LocalFileStorage):
    old = ingestor.ingest_event_banner("a.png", io.BytesIO(b"png"), "image/png")
    new = ingestor.replace_event_banner("/" + old.relative_path, "b.png", io.BytesIO(b"png"), "image/png")
    assert _files(storage) == [new.relative_path]


def test_delete_question_paper_removes_record_and_legacy_path_file(ingestor: UploadIngestor, storage: LocalFileStorage):
    result = ingestor.ingest_question_paper(_paper(), io.BytesIO(PDF), "application/pdf")
    ingestor.store.update_question_paper_path(result.record.id, "/" + result.stored.relative_path)

    removed = ingestor.delete_question_paper(result.record.id)

    assert removed.id == result.record.id
    assert ingestor.store.get_question_paper(result.record.id) is None
    assert _files(storage) == []
