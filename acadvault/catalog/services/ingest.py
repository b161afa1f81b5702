"""
Upload ingestor: validate an incoming file, store it under its canonical
path and point the catalog at it.

Order of effects per upload:
    1. Validate metadata and media type (no I/O yet).
    2. Ensure the destination directory exists (idempotent).
    3. Stream the file to disk, enforcing the size limit.
    4. Upsert the catalog record.
    5. Unlink the superseded file, if any. Failures here are logged only.

A crash between steps 3 and 4 leaves an orphan file; the resolver and the
repair tool handle the resulting drift. Re-running an upload writes a fresh
uniquely named file and repoints the catalog.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional, Tuple, Union

from acadvault.catalog.errors import (
    CatalogError,
    StorageIOError,
    UnsupportedMediaType,
    ValidationError,
)
from acadvault.catalog.models import FILE_RESOURCE_TYPES, QuestionPaperRecord, ResourceRecord, StoredFile
from acadvault.catalog.services.resolver import strip_leading_separator
from acadvault.catalog.store import CatalogStore
from acadvault.storage import keys
from acadvault.storage.config import get_document_max_upload_bytes, get_image_max_upload_bytes
from acadvault.storage.ports import FileStorage

_log = logging.getLogger("acadvault.catalog.ingest")

_YEAR_RE = re.compile(r"^\d{4}(?:-\d{2,4})?$")

DOCUMENT_POLICY = "document"
IMAGE_POLICY = "image"


@dataclass(frozen=True)
class MediaPolicy:
    """Allowed MIME types mapped to the extensions accepted for each."""

    mime_extensions: Dict[str, Tuple[str, ...]]
    max_bytes: int

    def check(self, filename: str, declared_mime_type: str | None) -> None:
        mime = (declared_mime_type or "").split(";", 1)[0].strip().lower()
        allowed_exts = self.mime_extensions.get(mime)
        if allowed_exts is None:
            raise UnsupportedMediaType("mime_not_allowed")
        _, ext = os.path.splitext(filename or "")
        if ext.lower() not in allowed_exts:
            raise UnsupportedMediaType("extension_not_allowed")


def default_policies() -> Dict[str, MediaPolicy]:
    return {
        DOCUMENT_POLICY: MediaPolicy(
            mime_extensions={"application/pdf": (".pdf",)},
            max_bytes=get_document_max_upload_bytes(),
        ),
        IMAGE_POLICY: MediaPolicy(
            mime_extensions={
                "image/jpeg": (".jpg", ".jpeg"),
                "image/png": (".png",),
                "image/gif": (".gif",),
            },
            max_bytes=get_image_max_upload_bytes(),
        ),
    }


def _clean(value: object) -> str:
    return str(value).strip() if value is not None else ""


@dataclass
class ResourceUploadInput:
    semester: str
    subject: str
    resource_type: str
    filename: str

    def validate(self) -> None:
        self.semester = _clean(self.semester)
        self.subject = _clean(self.subject)
        self.resource_type = _clean(self.resource_type)
        self.filename = os.path.basename(_clean(self.filename).replace("\\", "/"))
        if not self.semester or not self.subject or not self.resource_type:
            raise ValidationError("missing_fields")
        if self.resource_type not in FILE_RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        if not self.filename:
            raise ValidationError("missing_file")


@dataclass
class QuestionPaperUploadInput:
    year: str
    semester: object
    subject: str
    exam_type: str
    uploaded_by: str
    filename: str
    semester_number: int = field(default=0, init=False)

    def validate(self) -> None:
        self.year = _clean(self.year)
        self.subject = _clean(self.subject)
        self.exam_type = _clean(self.exam_type)
        self.uploaded_by = _clean(self.uploaded_by)
        self.filename = os.path.basename(_clean(self.filename).replace("\\", "/"))
        raw_semester = _clean(self.semester)
        if not all((self.year, raw_semester, self.subject, self.exam_type, self.uploaded_by)):
            raise ValidationError("missing_fields")
        if not _YEAR_RE.match(self.year):
            raise ValidationError("invalid_year")
        try:
            number = int(raw_semester)
        except ValueError:
            raise ValidationError("invalid_semester")
        if number < 1 or number > 8:
            raise ValidationError("invalid_semester")
        self.semester_number = number
        if not self.filename:
            raise ValidationError("missing_file")


@dataclass
class IngestResult:
    stored: Optional[StoredFile]
    record: Union[ResourceRecord, QuestionPaperRecord]
    created: bool


@dataclass
class UploadIngestor:
    """Coordinate storage writes and catalog upserts for uploaded files."""

    store: CatalogStore
    storage: FileStorage
    policies: Dict[str, MediaPolicy] = field(default_factory=default_policies)

    def ingest_resource(
        self, upload: ResourceUploadInput, stream: BinaryIO, declared_mime_type: str | None
    ) -> IngestResult:
        upload.validate()
        policy = self.policies[DOCUMENT_POLICY]
        policy.check(upload.filename, declared_mime_type)
        relative_path = keys.make_resource_path(
            semester=upload.semester,
            resource_type=upload.resource_type,
            subject=upload.subject,
            filename=upload.filename,
        )
        size = self._write(relative_path, stream, policy.max_bytes)
        try:
            record, previous, created = self.store.upsert_file_resource(
                semester=upload.semester,
                subject=upload.subject,
                resource_type=upload.resource_type,
                file_url=relative_path,
                file_name=upload.filename,
            )
        except Exception:
            self._discard_new(relative_path)
            raise
        self._unlink_stored(previous)
        _log.info(
            "resource stored semester=%s type=%s created=%s bytes=%s",
            upload.semester,
            upload.resource_type,
            created,
            size,
        )
        stored = StoredFile(relative_path, upload.filename, size_bytes=size, previous_path=previous)
        return IngestResult(stored=stored, record=record, created=created)

    def ingest_question_paper(
        self, upload: QuestionPaperUploadInput, stream: BinaryIO, declared_mime_type: str | None
    ) -> IngestResult:
        upload.validate()
        policy = self.policies[DOCUMENT_POLICY]
        policy.check(upload.filename, declared_mime_type)
        relative_path = keys.make_question_paper_path(
            year=upload.year,
            semester=upload.semester_number,
            subject=upload.subject,
            exam_type=upload.exam_type,
            filename=upload.filename,
        )
        size = self._write(relative_path, stream, policy.max_bytes)
        try:
            record, previous, created = self.store.upsert_question_paper(
                year=upload.year,
                semester=upload.semester_number,
                subject=upload.subject,
                exam_type=upload.exam_type,
                file_path=relative_path,
                file_name=upload.filename,
                uploaded_by=upload.uploaded_by,
            )
        except Exception:
            self._discard_new(relative_path)
            raise
        self._unlink_stored(previous)
        _log.info("question paper stored year=%s semester=%s created=%s", upload.year, upload.semester_number, created)
        stored = StoredFile(relative_path, upload.filename, size_bytes=size, previous_path=previous)
        return IngestResult(stored=stored, record=record, created=created)

    def delete_question_paper(self, paper_id: str) -> QuestionPaperRecord:
        """Remove the catalog record first, then its file."""
        record = self.store.delete_question_paper(paper_id)
        self._unlink_stored(record.file_path)
        _log.info("question paper deleted year=%s semester=%s", record.year, record.semester)
        return record

    def ingest_event_banner(self, filename: str, stream: BinaryIO, declared_mime_type: str | None) -> StoredFile:
        """Store an event banner image; the caller owns the referencing record.

        No route in this service calls it; the events domain lives outside
        this package and embeds the ingestor as a library.
        """
        name = os.path.basename(_clean(filename).replace("\\", "/"))
        if not name:
            raise ValidationError("missing_file")
        policy = self.policies[IMAGE_POLICY]
        policy.check(name, declared_mime_type)
        relative_path = keys.make_event_banner_path(filename=name)
        size = self._write(relative_path, stream, policy.max_bytes)
        return StoredFile(relative_path, name, size_bytes=size)

    def replace_event_banner(
        self, previous_path: Optional[str], filename: str, stream: BinaryIO, declared_mime_type: str | None
    ) -> StoredFile:
        """Store a new banner, then drop the file it supersedes."""
        stored = self.ingest_event_banner(filename, stream, declared_mime_type)
        if previous_path and previous_path != stored.relative_path:
            self._unlink_stored(previous_path)
        return StoredFile(stored.relative_path, stored.original_name, stored.size_bytes, previous_path)

    # --- helpers ---------------------------------------------------------------
    def _write(self, relative_path: str, stream: BinaryIO, max_bytes: int) -> int:
        self.storage.ensure_directory(relative_path.rsplit("/", 1)[0])
        try:
            return self.storage.write_stream(relative_path, stream, max_bytes=max_bytes)
        except StorageIOError:
            _log.exception("primary write failed path=%s", relative_path)
            raise

    def _discard_new(self, relative_path: str) -> None:
        try:
            self.storage.unlink(relative_path)
        except CatalogError as exc:
            _log.warning("rollback unlink failed path=%s detail=%s", relative_path, exc.detail)

    def _unlink_stored(self, stored_path: Optional[str]) -> None:
        if not stored_path or "://" in stored_path:
            return
        try:
            removed = self.storage.unlink(strip_leading_separator(stored_path))
        except CatalogError as exc:
            _log.warning("stored file cleanup failed path=%s detail=%s", stored_path, exc.detail)
            return
        if not removed:
            _log.info("stored file already absent path=%s", stored_path)


__all__ = [
    "DOCUMENT_POLICY",
    "IMAGE_POLICY",
    "IngestResult",
    "MediaPolicy",
    "QuestionPaperUploadInput",
    "ResourceUploadInput",
    "UploadIngestor",
    "default_policies",
]
