"""Operations endpoints (path diagnosis and repair for operators).

Every route here is admin-only. Diagnosis is read-only; fix, normalize and
reconcile report per item and never fail the whole batch for one record.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request

from acadvault.catalog.errors import CatalogError
from acadvault.catalog.services.repair import KIND_QUESTION_PAPERS, KIND_RESOURCES
from acadvault.web import wiring
from acadvault.web.http_utils import (
    bad_request,
    error_response,
    json_private,
    read_json_object,
    require_admin,
)

operations_router = APIRouter(tags=["Operations"])


async def _diagnose(request: Request, kind: str):
    _, error = require_admin(request)
    if error:
        return error
    report = await asyncio.to_thread(wiring.get_repair_tool().diagnose, kind)
    return json_private(report)


async def _fix(request: Request, kind: str):
    _, error = require_admin(request)
    if error:
        return error
    payload, error = await read_json_object(request)
    if error:
        return error
    fixes = payload.get("fixes")
    if not isinstance(fixes, list):
        return bad_request("invalid_fixes")
    try:
        report = await asyncio.to_thread(wiring.get_repair_tool().apply_fixes, kind, fixes)
    except CatalogError as exc:
        return error_response(exc)
    return json_private(report)


async def _normalize(request: Request, kind: str):
    _, error = require_admin(request)
    if error:
        return error
    report = await asyncio.to_thread(wiring.get_repair_tool().normalize, kind)
    return json_private(report)


@operations_router.get("/question-papers/diagnose-paths")
async def diagnose_question_paper_paths(request: Request):
    return await _diagnose(request, KIND_QUESTION_PAPERS)


@operations_router.post("/question-papers/fix-paths")
async def fix_question_paper_paths(request: Request):
    """Apply `{fixes: [{id, newPath}]}`; the response lists each item's outcome."""
    return await _fix(request, KIND_QUESTION_PAPERS)


@operations_router.post("/question-papers/normalize-paths")
async def normalize_question_paper_paths(request: Request):
    return await _normalize(request, KIND_QUESTION_PAPERS)


@operations_router.get("/api/resources/diagnose-paths")
async def diagnose_resource_paths(request: Request):
    return await _diagnose(request, KIND_RESOURCES)


@operations_router.post("/api/resources/fix-paths")
async def fix_resource_paths(request: Request):
    return await _fix(request, KIND_RESOURCES)


@operations_router.post("/api/resources/normalize-paths")
async def normalize_resource_paths(request: Request):
    return await _normalize(request, KIND_RESOURCES)


@operations_router.post("/api/resources/reconcile")
async def reconcile_resources(request: Request):
    """Report resources left behind by an interrupted subject delete.

    Query `apply=true` deletes them and their files.
    """
    _, error = require_admin(request)
    if error:
        return error
    apply = (request.query_params.get("apply") or "").strip().lower() in ("1", "true", "yes")
    report = await asyncio.to_thread(wiring.get_repair_tool().reconcile, apply=apply)
    return json_private(report)


__all__ = ["operations_router"]
