"""
Catalog record types.

Records are plain dataclasses. They convert to and from the document shape
persisted in the document store, which uses the same camelCase field names
that the HTTP API exposes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

NOTES = "notes"
BOOKS = "books"
VIDEO_MATERIALS = "videoMaterials"

RESOURCE_TYPES = (VIDEO_MATERIALS, NOTES, BOOKS)
FILE_RESOURCE_TYPES = (NOTES, BOOKS)

RESOURCES = "resources"
SUBJECTS = "subjects"
QUESTION_PAPERS = "question_papers"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SubjectRecord:
    id: str
    semester: str
    name: str

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "SubjectRecord":
        return cls(id=str(doc["id"]), semester=str(doc["semester"]), name=str(doc["name"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "semester": self.semester, "name": self.name}


@dataclass
class ResourceRecord:
    id: str
    semester: str
    resource_type: str
    subject: str
    file_url: str = ""
    file_name: str = ""
    channel: str = ""
    topics: List[str] = field(default_factory=list)
    updated_at: str = ""

    @property
    def is_file(self) -> bool:
        return self.resource_type in FILE_RESOURCE_TYPES

    @property
    def stored_path(self) -> str:
        return self.file_url

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "ResourceRecord":
        return cls(
            id=str(doc["id"]),
            semester=str(doc.get("semester") or ""),
            resource_type=str(doc.get("resourceType") or ""),
            subject=str(doc.get("subject") or ""),
            file_url=str(doc.get("fileUrl") or ""),
            file_name=str(doc.get("fileName") or ""),
            channel=str(doc.get("channel") or ""),
            topics=[str(t) for t in (doc.get("topics") or [])],
            updated_at=str(doc.get("updatedAt") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "semester": self.semester,
            "resourceType": self.resource_type,
            "subject": self.subject,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "channel": self.channel,
            "topics": list(self.topics),
            "updatedAt": self.updated_at,
        }


@dataclass
class QuestionPaperRecord:
    id: str
    year: str
    semester: int
    subject: str
    exam_type: str
    file_path: str
    file_name: str
    uploaded_by: str
    upload_date: str

    @property
    def stored_path(self) -> str:
        return self.file_path

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "QuestionPaperRecord":
        return cls(
            id=str(doc["id"]),
            year=str(doc.get("year") or ""),
            semester=int(doc.get("semester") or 0),
            subject=str(doc.get("subject") or ""),
            exam_type=str(doc.get("examType") or ""),
            file_path=str(doc.get("filePath") or ""),
            file_name=str(doc.get("fileName") or ""),
            uploaded_by=str(doc.get("uploadedBy") or ""),
            upload_date=str(doc.get("uploadDate") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "year": self.year,
            "semester": self.semester,
            "subject": self.subject,
            "examType": self.exam_type,
            "filePath": self.file_path,
            "fileName": self.file_name,
            "uploadedBy": self.uploaded_by,
            "uploadDate": self.upload_date,
        }


@dataclass(frozen=True)
class StoredFile:
    relative_path: str
    original_name: str
    size_bytes: int = 0
    previous_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"relativePath": self.relative_path, "originalName": self.original_name}


__all__ = [
    "BOOKS",
    "FILE_RESOURCE_TYPES",
    "NOTES",
    "QUESTION_PAPERS",
    "QuestionPaperRecord",
    "RESOURCES",
    "RESOURCE_TYPES",
    "ResourceRecord",
    "SUBJECTS",
    "StoredFile",
    "SubjectRecord",
    "VIDEO_MATERIALS",
    "utcnow_iso",
]
