"""Resource catalog use cases (subjects, notes/books files, video channels)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Union

from acadvault.catalog.errors import CatalogError, NotFoundError, ValidationError
from acadvault.catalog.models import (
    BOOKS,
    FILE_RESOURCE_TYPES,
    NOTES,
    RESOURCE_TYPES,
    VIDEO_MATERIALS,
    ResourceRecord,
    SubjectRecord,
)
from acadvault.catalog.services.ingest import DOCUMENT_POLICY, IngestResult, ResourceUploadInput, UploadIngestor
from acadvault.catalog.services.resolver import strip_leading_separator
from acadvault.catalog.store import CatalogStore

_log = logging.getLogger("acadvault.catalog.resources")


def _required(*values: object) -> List[str]:
    cleaned = [str(v).strip() if v is not None else "" for v in values]
    if not all(cleaned):
        raise ValidationError("missing_fields")
    return cleaned


def parse_topics(topics: Union[str, Iterable[str], None]) -> List[str]:
    """Split comma-separated topics; lists are trimmed. Empty entries are dropped."""
    if topics is None:
        return []
    items = topics.split(",") if isinstance(topics, str) else list(topics)
    return [str(t).strip() for t in items if str(t).strip()]


def _file_entry(record: ResourceRecord) -> Dict[str, Any]:
    return {"id": record.id, "fileUrl": record.file_url, "fileName": record.file_name}


def _video_entry(record: ResourceRecord) -> Dict[str, Any]:
    return {"id": record.id, "channel": record.channel, "topics": list(record.topics)}


@dataclass
class ResourceCatalogService:
    store: CatalogStore
    ingestor: UploadIngestor

    # --- Subjects -------------------------------------------------------------
    def list_subject_names(self, semester: str) -> List[str]:
        return [s.name for s in self.store.list_subjects(semester)]

    def add_subject(self, semester: str, name: str) -> SubjectRecord:
        semester, name = _required(semester, name)
        return self.store.add_subject(semester, name)

    def delete_subject(self, semester: str, name: str) -> List[ResourceRecord]:
        """Delete a subject, its resources, then their files (file failures are logged)."""
        semester, name = _required(semester, name)
        removed = self.store.delete_subject(semester, name)
        for record in removed:
            self._unlink_file(record)
        return removed

    # --- Queries --------------------------------------------------------------
    def overview(self, semester: str) -> Dict[str, Any]:
        """Everything in a semester, grouped by type then subject.

        Every listed subject appears in each group: an empty channel list for
        videoMaterials and None for notes/books without a file.
        """
        subjects = self.list_subject_names(semester)
        result: Dict[str, Any] = {
            "subjects": subjects,
            VIDEO_MATERIALS: {name: [] for name in subjects},
            NOTES: {name: None for name in subjects},
            BOOKS: {name: None for name in subjects},
        }
        for record in self.store.list_resources(semester):
            if record.resource_type == VIDEO_MATERIALS:
                result[VIDEO_MATERIALS].setdefault(record.subject, []).append(_video_entry(record))
            elif record.resource_type in FILE_RESOURCE_TYPES:
                result[record.resource_type][record.subject] = _file_entry(record)
        return result

    def resources_by_type(self, semester: str, resource_type: str) -> Dict[str, Any]:
        if resource_type not in RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        grouped: Dict[str, Any] = {}
        for record in self.store.list_resources(semester, resource_type):
            if resource_type == VIDEO_MATERIALS:
                grouped.setdefault(record.subject, []).append(_video_entry(record))
            else:
                grouped[record.subject] = _file_entry(record)
        return grouped

    # --- Uploads --------------------------------------------------------------
    def upload(
        self,
        *,
        semester: str,
        subject: str,
        resource_type: str,
        stream: Optional[BinaryIO] = None,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        channel: Optional[str] = None,
        topics: Union[str, Iterable[str], None] = None,
    ) -> Union[IngestResult, ResourceRecord]:
        """Combined upload: creates the subject on demand.

        A subject created here is removed again when storing the file fails.

        videoMaterials need `channel` and `topics`; notes/books need a file.
        """
        semester, subject, resource_type = _required(semester, subject, resource_type)
        if resource_type not in RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        if resource_type == VIDEO_MATERIALS:
            channel_name, topic_list = self._video_fields(channel, topics)
            self.store.ensure_subject(semester, subject)
            return self.store.add_video_channel(
                semester=semester, subject=subject, channel=channel_name, topics=topic_list
            )
        if stream is None or not (filename or "").strip():
            raise ValidationError("missing_file")
        upload = ResourceUploadInput(semester=semester, subject=subject, resource_type=resource_type, filename=filename or "")
        upload.validate()
        self.ingestor.policies[DOCUMENT_POLICY].check(upload.filename, mime_type)
        _, created = self.store.ensure_subject(semester, subject)
        try:
            return self.ingestor.ingest_resource(upload, stream, mime_type)
        except Exception:
            if created:
                self._drop_new_subject(semester, subject)
            raise

    def _drop_new_subject(self, semester: str, subject: str) -> None:
        try:
            self.store.delete_subject(semester, subject)
        except CatalogError as exc:
            _log.warning("subject rollback failed semester=%s detail=%s", semester, exc.detail)
        else:
            _log.info("subject rolled back after failed upload semester=%s", semester)

    def add_file_resource(
        self,
        *,
        semester: str,
        subject: str,
        resource_type: str,
        stream: Optional[BinaryIO] = None,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        file_url: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> IngestResult:
        """Attach a file (or an external URL) to an existing subject.

        URL-only resources carry no stored file, so `stored` is None.
        """
        semester, subject, resource_type = _required(semester, subject, resource_type)
        if resource_type not in FILE_RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        if self.store.get_subject(semester, subject) is None:
            raise NotFoundError("subject_not_found")
        if stream is not None and (filename or "").strip():
            upload = ResourceUploadInput(
                semester=semester, subject=subject, resource_type=resource_type, filename=filename or ""
            )
            return self.ingestor.ingest_resource(upload, stream, mime_type)
        url = (file_url or "").strip()
        name = (file_name or "").strip()
        if not url or not name:
            raise ValidationError("file_or_url_required")
        record, previous, created = self.store.upsert_file_resource(
            semester=semester, subject=subject, resource_type=resource_type, file_url=url, file_name=name
        )
        if previous:
            self._unlink_path(previous)
        return IngestResult(stored=None, record=record, created=created)

    def delete_file_resource(self, semester: str, resource_type: str, subject: str) -> ResourceRecord:
        """Remove the catalog record first, then its file."""
        semester, resource_type, subject = _required(semester, resource_type, subject)
        if resource_type not in FILE_RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        record = self.store.delete_file_resource(semester, resource_type, subject)
        self._unlink_file(record)
        return record

    # --- Video channels -------------------------------------------------------
    def add_video(self, semester: str, subject: str, channel: Optional[str], topics: Any) -> ResourceRecord:
        semester, subject = _required(semester, subject)
        channel_name, topic_list = self._video_fields(channel, topics)
        if self.store.get_subject(semester, subject) is None:
            raise NotFoundError("subject_not_found")
        return self.store.add_video_channel(semester=semester, subject=subject, channel=channel_name, topics=topic_list)

    def delete_video(self, semester: str, subject: str, channel: str) -> ResourceRecord:
        semester, subject, channel = _required(semester, subject, channel)
        return self.store.delete_video_channel(semester, subject, channel)

    # --- helpers ---------------------------------------------------------------
    @staticmethod
    def _video_fields(channel: Optional[str], topics: Any) -> tuple[str, List[str]]:
        name = (channel or "").strip()
        topic_list = parse_topics(topics)
        if not name or not topic_list:
            raise ValidationError("channel_and_topics_required")
        return name, topic_list

    def _unlink_file(self, record: ResourceRecord) -> None:
        if record.is_file and record.file_url:
            self._unlink_path(record.file_url)

    def _unlink_path(self, stored_path: str) -> None:
        if "://" in stored_path:
            return
        try:
            self.ingestor.storage.unlink(strip_leading_separator(stored_path))
        except CatalogError as exc:
            _log.warning("resource file cleanup failed detail=%s", exc.detail)


__all__ = ["ResourceCatalogService", "parse_topics"]
