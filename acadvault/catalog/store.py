"""
Catalog store: subjects, resources and question papers over a document store.

Why:
    The document store offers no multi-document transactions, so uniqueness
    invariants are enforced here with check-then-write under this store's own
    lock. Updates are infrequent and scoped to one owning key, which makes a
    single process-local lock sufficient.

Invariants:
    - Subjects are unique on (semester, name).
    - notes/books: at most one record per (semester, subject, resourceType).
    - videoMaterials: many per subject, unique per channel.
    - Question papers are unique on (year, semester, subject, examType).

Cascade:
    `delete_subject` removes the subject first and its resources second. A
    failure in between leaves orphaned resources that `orphaned_resources`
    reports and the repair tool's reconcile pass removes.
"""
from __future__ import annotations

import logging
from threading import RLock
from typing import List, Optional, Tuple

from acadvault.catalog.documents import DocumentStoreProtocol
from acadvault.catalog.errors import ConflictError, NotFoundError, ValidationError
from acadvault.catalog.models import (
    FILE_RESOURCE_TYPES,
    QUESTION_PAPERS,
    RESOURCES,
    SUBJECTS,
    VIDEO_MATERIALS,
    QuestionPaperRecord,
    ResourceRecord,
    SubjectRecord,
    utcnow_iso,
)

_log = logging.getLogger("acadvault.catalog")


def _semester_key(semester: object) -> str:
    return str(semester if semester is not None else "").strip()


class CatalogStore:
    def __init__(self, documents: DocumentStoreProtocol) -> None:
        self._docs = documents
        self._lock = RLock()

    # --- Subjects -------------------------------------------------------------
    def list_subjects(self, semester: object) -> List[SubjectRecord]:
        docs = self._docs.find(SUBJECTS, {"semester": _semester_key(semester)})
        return sorted((SubjectRecord.from_document(d) for d in docs), key=lambda s: s.name.lower())

    def list_all_subjects(self) -> List[SubjectRecord]:
        return [SubjectRecord.from_document(d) for d in self._docs.find(SUBJECTS)]

    def get_subject(self, semester: object, name: str) -> Optional[SubjectRecord]:
        doc = self._docs.find_one(SUBJECTS, {"semester": _semester_key(semester), "name": name})
        return SubjectRecord.from_document(doc) if doc else None

    def add_subject(self, semester: object, name: str) -> SubjectRecord:
        with self._lock:
            if self.get_subject(semester, name) is not None:
                raise ConflictError("subject_exists")
            doc = self._docs.insert(SUBJECTS, {"semester": _semester_key(semester), "name": name})
        _log.info("subject added semester=%s", _semester_key(semester))
        return SubjectRecord.from_document(doc)

    def ensure_subject(self, semester: object, name: str) -> Tuple[SubjectRecord, bool]:
        """Return the subject, creating it when absent. Second item is True when created."""
        with self._lock:
            existing = self.get_subject(semester, name)
            if existing is not None:
                return existing, False
            return self.add_subject(semester, name), True

    def delete_subject(self, semester: object, name: str) -> List[ResourceRecord]:
        """Delete a subject and cascade to its resources; return the removed resources."""
        sem = _semester_key(semester)
        with self._lock:
            subject = self.get_subject(sem, name)
            if subject is None:
                raise NotFoundError("subject_not_found")
            self._docs.delete(SUBJECTS, subject.id)
            doomed = [ResourceRecord.from_document(d) for d in self._docs.find(RESOURCES, {"semester": sem, "subject": name})]
            for record in doomed:
                self._docs.delete(RESOURCES, record.id)
        _log.info("subject deleted semester=%s resources=%s", sem, len(doomed))
        return doomed

    # --- Resources ------------------------------------------------------------
    def get_resource(self, resource_id: str) -> Optional[ResourceRecord]:
        doc = self._docs.get(RESOURCES, resource_id)
        return ResourceRecord.from_document(doc) if doc else None

    def list_resources(self, semester: object, resource_type: str | None = None) -> List[ResourceRecord]:
        flt = {"semester": _semester_key(semester)}
        if resource_type:
            flt["resourceType"] = resource_type
        return [ResourceRecord.from_document(d) for d in self._docs.find(RESOURCES, flt)]

    def list_all_resources(self) -> List[ResourceRecord]:
        return [ResourceRecord.from_document(d) for d in self._docs.find(RESOURCES)]

    def find_file_resource(self, semester: object, subject: str, resource_type: str) -> Optional[ResourceRecord]:
        doc = self._docs.find_one(
            RESOURCES,
            {"semester": _semester_key(semester), "subject": subject, "resourceType": resource_type},
        )
        return ResourceRecord.from_document(doc) if doc else None

    def upsert_file_resource(
        self,
        *,
        semester: object,
        subject: str,
        resource_type: str,
        file_url: str,
        file_name: str,
    ) -> Tuple[ResourceRecord, Optional[str], bool]:
        """Create or repoint the single notes/books record for a key.

        Returns (record, previous_file_url, created). `previous_file_url` is the
        superseded path when it differs from `file_url`, else None.
        """
        if resource_type not in FILE_RESOURCE_TYPES:
            raise ValidationError("invalid_resource_type")
        sem = _semester_key(semester)
        changes = {"fileUrl": file_url, "fileName": file_name, "updatedAt": utcnow_iso()}
        with self._lock:
            existing = self.find_file_resource(sem, subject, resource_type)
            if existing is None:
                doc = self._docs.insert(
                    RESOURCES,
                    {
                        "semester": sem,
                        "resourceType": resource_type,
                        "subject": subject,
                        "channel": "",
                        "topics": [],
                        **changes,
                    },
                )
                return ResourceRecord.from_document(doc), None, True
            doc = self._docs.update(RESOURCES, existing.id, changes)
            if doc is None:
                raise NotFoundError("resource_not_found")
        previous = existing.file_url if existing.file_url and existing.file_url != file_url else None
        return ResourceRecord.from_document(doc), previous, False

    def delete_file_resource(self, semester: object, resource_type: str, subject: str) -> ResourceRecord:
        with self._lock:
            existing = self.find_file_resource(semester, subject, resource_type)
            if existing is None:
                raise NotFoundError("resource_not_found")
            self._docs.delete(RESOURCES, existing.id)
        return existing

    def delete_resource(self, resource_id: str) -> bool:
        return self._docs.delete(RESOURCES, resource_id)

    def add_video_channel(self, *, semester: object, subject: str, channel: str, topics: List[str]) -> ResourceRecord:
        sem = _semester_key(semester)
        with self._lock:
            dup = self._docs.find_one(
                RESOURCES,
                {"semester": sem, "subject": subject, "resourceType": VIDEO_MATERIALS, "channel": channel},
            )
            if dup is not None:
                raise ConflictError("channel_exists")
            doc = self._docs.insert(
                RESOURCES,
                {
                    "semester": sem,
                    "resourceType": VIDEO_MATERIALS,
                    "subject": subject,
                    "fileUrl": "",
                    "fileName": "",
                    "channel": channel,
                    "topics": list(topics),
                    "updatedAt": utcnow_iso(),
                },
            )
        return ResourceRecord.from_document(doc)

    def delete_video_channel(self, semester: object, subject: str, channel: str) -> ResourceRecord:
        sem = _semester_key(semester)
        with self._lock:
            doc = self._docs.find_one(
                RESOURCES,
                {"semester": sem, "subject": subject, "resourceType": VIDEO_MATERIALS, "channel": channel},
            )
            if doc is None:
                raise NotFoundError("channel_not_found")
            self._docs.delete(RESOURCES, doc["id"])
        return ResourceRecord.from_document(doc)

    def update_resource_path(self, resource_id: str, new_path: str) -> ResourceRecord:
        doc = self._docs.update(RESOURCES, resource_id, {"fileUrl": new_path})
        if doc is None:
            raise NotFoundError("resource_not_found")
        return ResourceRecord.from_document(doc)

    def orphaned_resources(self) -> List[ResourceRecord]:
        """Resources whose owning subject no longer exists."""
        owners = {(s.semester, s.name) for s in self.list_all_subjects()}
        return [r for r in self.list_all_resources() if (r.semester, r.subject) not in owners]

    # --- Question papers --------------------------------------------------------
    def get_question_paper(self, paper_id: str) -> Optional[QuestionPaperRecord]:
        doc = self._docs.get(QUESTION_PAPERS, paper_id)
        return QuestionPaperRecord.from_document(doc) if doc else None

    def find_question_paper(
        self, *, year: str, semester: int, subject: str, exam_type: str
    ) -> Optional[QuestionPaperRecord]:
        doc = self._docs.find_one(
            QUESTION_PAPERS,
            {"year": str(year), "semester": int(semester), "subject": subject, "examType": exam_type},
        )
        return QuestionPaperRecord.from_document(doc) if doc else None

    def list_question_papers(self) -> List[QuestionPaperRecord]:
        records = [QuestionPaperRecord.from_document(d) for d in self._docs.find(QUESTION_PAPERS)]
        records.sort(key=lambda r: (r.semester, r.subject.lower(), r.exam_type))
        records.sort(key=lambda r: r.year, reverse=True)
        return records

    def upsert_question_paper(
        self,
        *,
        year: str,
        semester: int,
        subject: str,
        exam_type: str,
        file_path: str,
        file_name: str,
        uploaded_by: str,
    ) -> Tuple[QuestionPaperRecord, Optional[str], bool]:
        """Create or overwrite the paper for (year, semester, subject, examType)."""
        changes = {
            "filePath": file_path,
            "fileName": file_name,
            "uploadedBy": uploaded_by,
            "uploadDate": utcnow_iso(),
        }
        with self._lock:
            existing = self.find_question_paper(year=year, semester=semester, subject=subject, exam_type=exam_type)
            if existing is None:
                doc = self._docs.insert(
                    QUESTION_PAPERS,
                    {"year": str(year), "semester": int(semester), "subject": subject, "examType": exam_type, **changes},
                )
                return QuestionPaperRecord.from_document(doc), None, True
            doc = self._docs.update(QUESTION_PAPERS, existing.id, changes)
            if doc is None:
                raise NotFoundError("question_paper_not_found")
        previous = existing.file_path if existing.file_path and existing.file_path != file_path else None
        return QuestionPaperRecord.from_document(doc), previous, False

    def delete_question_paper(self, paper_id: str) -> QuestionPaperRecord:
        with self._lock:
            existing = self.get_question_paper(paper_id)
            if existing is None:
                raise NotFoundError("question_paper_not_found")
            self._docs.delete(QUESTION_PAPERS, paper_id)
        return existing

    def update_question_paper_path(self, paper_id: str, new_path: str) -> QuestionPaperRecord:
        doc = self._docs.update(QUESTION_PAPERS, paper_id, {"filePath": new_path})
        if doc is None:
            raise NotFoundError("question_paper_not_found")
        return QuestionPaperRecord.from_document(doc)


__all__ = ["CatalogStore"]
