"""
Resolve catalog records back to files on disk.

Tiers, tried in order until one hits:
    canonical   Stored path with one leading separator stripped, joined to
                the storage root.
    structural  The directory the path convention would produce for the
                record's metadata; first the stored basename (unless that is
                the canonical path again), then files whose name carries the
                sanitized subject (and exam type) fragments.
    exhaustive  Sorted walk of the whole storage root matching the stored
                file name stem, the original upload name stem or the sanitized
                subject. Diagnostic use only; never enabled on the download
                path.

Resolution never mutates the catalog or the filesystem. OS errors during a
lookup count as misses and are logged.
"""
from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from acadvault.catalog.errors import StorageIOError
from acadvault.catalog.models import QuestionPaperRecord, ResourceRecord
from acadvault.storage import keys
from acadvault.storage.ports import FileStorage

_log = logging.getLogger("acadvault.catalog.resolver")

TIER_CANONICAL = "canonical"
TIER_STRUCTURAL = "structural"
TIER_EXHAUSTIVE = "exhaustive"

CatalogFileRecord = Union[ResourceRecord, QuestionPaperRecord]


@dataclass
class Resolution:
    path: Optional[Path] = None
    tier: Optional[str] = None
    attempted: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.path is not None

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "path": str(self.path) if self.path else "",
            "tier": self.tier or "",
            "attempted": list(self.attempted),
        }


def strip_leading_separator(stored_path: str) -> str:
    """Remove exactly one leading '/' or '\\'."""
    if stored_path and stored_path[0] in ("/", "\\"):
        return stored_path[1:]
    return stored_path or ""


def stored_basename(stored_path: str) -> str:
    return posixpath.basename((stored_path or "").replace("\\", "/"))


def expected_directory(record: CatalogFileRecord) -> str:
    if isinstance(record, QuestionPaperRecord):
        return keys.question_paper_directory(record.year, record.semester)
    return keys.resource_directory(record.semester, record.resource_type)


def name_fragments(record: CatalogFileRecord) -> List[str]:
    fragments = [keys.sanitize_fragment(record.subject)]
    if isinstance(record, QuestionPaperRecord):
        fragments.append(keys.sanitize_fragment(record.exam_type))
    return [f for f in fragments if f]


class Resolver:
    def __init__(self, storage: FileStorage) -> None:
        self._storage = storage

    @property
    def storage(self) -> FileStorage:
        return self._storage

    def resolve(self, record: CatalogFileRecord, *, exhaustive: bool = False) -> Resolution:
        result = Resolution()
        hit = self.canonical(record, result)
        if hit is not None:
            return self._hit(result, hit, TIER_CANONICAL)
        hit = self.structural(record, result)
        if hit is not None:
            return self._hit(result, hit, TIER_STRUCTURAL)
        if exhaustive:
            hit = self.exhaustive(record, result)
            if hit is not None:
                return self._hit(result, hit, TIER_EXHAUSTIVE)
        _log.info("resolve miss id=%s attempted=%s", record.id, len(result.attempted))
        return result

    def canonical(self, record: CatalogFileRecord, result: Resolution) -> Optional[Path]:
        stored = record.stored_path
        if not stored:
            result.attempted.append("<empty stored path>")
            return None
        return self._check(strip_leading_separator(stored), result)

    def structural(self, record: CatalogFileRecord, result: Resolution) -> Optional[Path]:
        directory = expected_directory(record)
        basename = stored_basename(record.stored_path)
        candidate = f"{directory}/{basename}"
        canonical = strip_leading_separator(record.stored_path).replace("\\", "/")
        if basename and candidate != canonical:
            hit = self._check(candidate, result)
            if hit is not None:
                return hit
        fragments = name_fragments(record)
        if not fragments:
            return None
        result.attempted.append(f"{directory}/*{'*'.join(fragments)}*")
        for name in self._list(directory):
            if all(fragment in name for fragment in fragments):
                try:
                    return self._storage.absolute(f"{directory}/{name}")
                except StorageIOError:
                    continue
        return None

    def exhaustive(self, record: CatalogFileRecord, result: Resolution) -> Optional[Path]:
        needles = self._needles(record)
        if not needles:
            return None
        result.attempted.append(f"{self._storage.root}/**/*{{{','.join(needles)}}}*")
        for path in self._walk():
            if any(n in path.name for n in needles):
                return path
        return None

    # --- helpers ---------------------------------------------------------------
    def _needles(self, record: CatalogFileRecord) -> List[str]:
        needles: List[str] = []
        stem = os.path.splitext(stored_basename(record.stored_path))[0]
        if stem:
            needles.append(stem)
        original_stem = os.path.splitext(record.file_name or "")[0]
        if original_stem:
            needles.append(original_stem)
        subject = keys.sanitize_fragment(record.subject)
        if subject:
            needles.append(subject)
        return list(dict.fromkeys(needles))

    def _check(self, relative: str, result: Resolution) -> Optional[Path]:
        try:
            candidate = self._storage.absolute(relative)
        except StorageIOError as exc:
            result.attempted.append(relative)
            _log.info("resolve refused path detail=%s", exc.detail)
            return None
        result.attempted.append(str(candidate))
        try:
            if candidate.is_file():
                return candidate
        except OSError as exc:
            _log.warning("resolve check failed error=%s", exc.__class__.__name__)
        return None

    def _list(self, directory: str) -> List[str]:
        try:
            return self._storage.list_directory(directory)
        except (OSError, StorageIOError) as exc:
            _log.warning("resolve listing failed dir=%s error=%s", directory, exc.__class__.__name__)
            return []

    def _walk(self) -> Iterable[Path]:
        try:
            yield from self._storage.walk_files("")
        except (OSError, StorageIOError) as exc:
            _log.warning("resolve walk aborted error=%s", exc.__class__.__name__)

    @staticmethod
    def _hit(result: Resolution, path: Path, tier: str) -> Resolution:
        result.path = path
        result.tier = tier
        return result


__all__ = [
    "CatalogFileRecord",
    "Resolution",
    "Resolver",
    "TIER_CANONICAL",
    "TIER_EXHAUSTIVE",
    "TIER_STRUCTURAL",
    "expected_directory",
    "name_fragments",
    "strip_leading_separator",
    "stored_basename",
]
