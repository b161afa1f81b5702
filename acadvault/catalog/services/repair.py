"""
Repair tool: batch diagnosis and correction of stored file paths.

Operations:
    diagnose     Report for every record whether its file can be found, where,
                 and a suggested corrected path. Never mutates.
    apply_fixes  Overwrite stored paths from operator-reviewed `{id, newPath}`
                 pairs. Each item succeeds or fails independently.
    normalize    Strip a leading separator from every stored path.
    reconcile    Find resources whose subject no longer exists (interrupted
                 cascade) and, when asked, delete them and their files.

No operation fails the whole batch because of one bad record.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from acadvault.catalog.errors import CatalogError, NotFoundError, ValidationError
from acadvault.catalog.models import ResourceRecord
from acadvault.catalog.services.resolver import (
    CatalogFileRecord,
    Resolution,
    Resolver,
    strip_leading_separator,
)
from acadvault.catalog.store import CatalogStore

_log = logging.getLogger("acadvault.catalog.repair")

KIND_QUESTION_PAPERS = "questionPapers"
KIND_RESOURCES = "resources"
KINDS = (KIND_QUESTION_PAPERS, KIND_RESOURCES)

_LEGACY_PREFIX = "uploads/"


def _is_external(path: str) -> bool:
    return "://" in (path or "")


@dataclass
class RepairTool:
    store: CatalogStore
    resolver: Resolver
    cwd: Optional[Path] = None

    # --- record access -----------------------------------------------------------
    def records(self, kind: str) -> List[CatalogFileRecord]:
        if kind == KIND_QUESTION_PAPERS:
            return list(self.store.list_question_papers())
        if kind == KIND_RESOURCES:
            return [
                r
                for r in self.store.list_all_resources()
                if r.is_file and r.file_url and not _is_external(r.file_url)
            ]
        raise ValidationError("invalid_kind")

    def _update_path(self, kind: str) -> Callable[[str, str], Any]:
        if kind == KIND_QUESTION_PAPERS:
            return self.store.update_question_paper_path
        return self.store.update_resource_path

    # --- diagnose ------------------------------------------------------------------
    def diagnose(self, kind: str) -> Dict[str, Any]:
        records = self.records(kind)
        details = [self.diagnose_record(r) for r in records]
        working = sum(1 for d in details if d["exists"])
        return {
            "kind": kind,
            "total": len(details),
            "workingPaths": working,
            "brokenPaths": len(details) - working,
            "details": details,
        }

    def diagnose_record(self, record: CatalogFileRecord) -> Dict[str, Any]:
        report = {
            "id": record.id,
            "fileName": record.file_name,
            "storedPath": record.stored_path,
            "exists": False,
            "resolvedPath": "",
            "suggestedFix": "",
        }
        resolution = self.resolver.resolve(record)
        found: Optional[Path] = resolution.path
        if found is None:
            found = self._alternate_joins(record.stored_path)
        if found is not None:
            report["exists"] = True
            report["resolvedPath"] = str(found)
            relative = self._root_relative(found)
            if relative and relative != record.stored_path:
                report["suggestedFix"] = relative
            return report
        fallback = self.resolver.exhaustive(record, Resolution())
        if fallback is not None:
            report["suggestedFix"] = self._root_relative(fallback)
        return report

    def _alternate_joins(self, stored_path: str) -> Optional[Path]:
        if not stored_path:
            return None
        root = self.resolver.storage.root
        cwd = self.cwd or Path.cwd()
        forward = stored_path.replace("\\", "/")
        stripped = strip_leading_separator(forward)
        candidates = [
            cwd / stripped,
            Path(stored_path),
            root / stripped[len(_LEGACY_PREFIX):] if stripped.startswith(_LEGACY_PREFIX) else None,
            root.parent / stripped,
        ]
        for candidate in candidates:
            if candidate is None:
                continue
            try:
                if candidate.is_file():
                    return candidate.resolve()
            except OSError as exc:
                _log.warning("diagnose check failed error=%s", exc.__class__.__name__)
        return None

    def _root_relative(self, path: Path) -> str:
        root = self.resolver.storage.root
        try:
            return path.resolve().relative_to(root).as_posix()
        except ValueError:
            return ""

    # --- apply fixes ---------------------------------------------------------------
    def apply_fixes(self, kind: str, fixes: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        if kind not in KINDS:
            raise ValidationError("invalid_kind")
        update = self._update_path(kind)
        results: List[Dict[str, Any]] = []
        for fix in fixes:
            results.append(self._apply_one(update, fix))
        succeeded = sum(1 for r in results if r["success"])
        _log.info("fix paths kind=%s succeeded=%s failed=%s", kind, succeeded, len(results) - succeeded)
        return {
            "kind": kind,
            "total": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": results,
        }

    def _apply_one(self, update: Callable[[str, str], Any], fix: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(fix, Mapping):
            return {"id": None, "success": False, "message": "invalid_fix"}
        record_id = str(fix.get("id") or "").strip()
        new_path = str(fix.get("newPath") or "").strip().replace("\\", "/")
        if not record_id or not new_path:
            return {"id": record_id or None, "success": False, "message": "missing_id_or_new_path"}
        try:
            self.resolver.storage.absolute(strip_leading_separator(new_path))
            update(record_id, new_path)
        except NotFoundError:
            return {"id": record_id, "success": False, "message": "not_found"}
        except CatalogError as exc:
            return {"id": record_id, "success": False, "message": exc.detail}
        return {"id": record_id, "success": True, "message": "updated", "newPath": new_path}

    # --- normalize -----------------------------------------------------------------
    def normalize(self, kind: str) -> Dict[str, Any]:
        records = self.records(kind)
        update = self._update_path(kind)
        results: List[Dict[str, Any]] = []
        for record in records:
            original = record.stored_path
            fixed = strip_leading_separator(original)
            if fixed == original:
                results.append({"id": record.id, "path": original, "status": "unchanged"})
                continue
            try:
                update(record.id, fixed)
            except CatalogError as exc:
                results.append({"id": record.id, "path": original, "status": "failed", "message": exc.detail})
                continue
            results.append({"id": record.id, "original": original, "fixed": fixed, "status": "fixed"})
        counts = {s: sum(1 for r in results if r["status"] == s) for s in ("fixed", "unchanged", "failed")}
        return {"kind": kind, "total": len(results), **counts, "results": results}

    # --- reconcile -----------------------------------------------------------------
    def reconcile(self, *, apply: bool = False) -> Dict[str, Any]:
        orphans = self.store.orphaned_resources()
        results: List[Dict[str, Any]] = []
        for record in orphans:
            item = {
                "id": record.id,
                "semester": record.semester,
                "subject": record.subject,
                "resourceType": record.resource_type,
                "fileUrl": record.file_url,
                "removed": False,
                "fileRemoved": False,
            }
            if apply:
                item.update(self._remove_orphan(record))
            results.append(item)
        removed = sum(1 for r in results if r["removed"])
        if orphans:
            _log.info("reconcile orphans=%s removed=%s apply=%s", len(orphans), removed, apply)
        return {"applied": apply, "orphans": len(orphans), "removed": removed, "results": results}

    def _remove_orphan(self, record: ResourceRecord) -> Dict[str, Any]:
        outcome: Dict[str, Any] = {"removed": self.store.delete_resource(record.id)}
        if record.is_file and record.file_url and not _is_external(record.file_url):
            try:
                outcome["fileRemoved"] = self.resolver.storage.unlink(strip_leading_separator(record.file_url))
            except CatalogError as exc:
                _log.warning("orphan file cleanup failed id=%s detail=%s", record.id, exc.detail)
        return outcome


def parse_kind(value: str) -> str:
    raw = (value or "").strip()
    aliases = {"question-papers": KIND_QUESTION_PAPERS, "questionpapers": KIND_QUESTION_PAPERS}
    kind = aliases.get(raw.lower(), raw)
    if kind not in KINDS:
        raise ValidationError("invalid_kind")
    return kind


__all__ = [
    "KINDS",
    "KIND_QUESTION_PAPERS",
    "KIND_RESOURCES",
    "RepairTool",
    "parse_kind",
]
