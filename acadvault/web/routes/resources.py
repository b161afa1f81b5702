"""
Resources API routes (subjects, notes/books files, video channels, downloads).

Routing order matters: fixed segments (`subjects`, `file`, `video`, ...) are
registered before the `/{semester}` catch-alls. The operator endpoints under
`/api/resources/*-paths` live in `routes.operations`, which the app includes
first.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, RedirectResponse

from acadvault.catalog.errors import CatalogError
from acadvault.catalog.models import ResourceRecord
from acadvault.catalog.services.ingest import IngestResult
from acadvault.web import wiring
from acadvault.web.http_utils import (
    PRIVATE_HEADERS,
    error_response,
    form_file,
    form_text,
    json_private,
    private_error,
    read_json_object,
    require_admin,
)

resources_router = APIRouter(tags=["Resources"])
logger = logging.getLogger("acadvault.web.resources")


def _ingest_body(result: IngestResult) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success", "resource": result.record.to_dict(), "created": result.created}
    if result.stored is not None:
        body["stored"] = result.stored.to_dict()
    return body


# --- Subjects -----------------------------------------------------------------

@resources_router.get("/api/resources/subjects/{semester}")
async def list_subjects(request: Request, semester: str):
    """List subject names for a semester, sorted by name."""
    names = wiring.get_resource_service().list_subject_names(semester)
    return json_private({"status": "success", "subjects": names})


@resources_router.post("/api/resources/subjects")
async def add_subject(request: Request):
    _, error = require_admin(request)
    if error:
        return error
    payload, error = await read_json_object(request)
    if error:
        return error
    try:
        subject = wiring.get_resource_service().add_subject(payload.get("semester"), payload.get("name"))
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success", "subject": subject.to_dict()}, status_code=201)


def _delete_subject(semester: Any, name: Any):
    try:
        removed = wiring.get_resource_service().delete_subject(semester, name)
    except CatalogError as exc:
        return error_response(exc)
    logger.info("subject deleted semester=%s removed_resources=%s", semester, len(removed))
    return json_private({"status": "success", "removedResources": len(removed)})


@resources_router.delete("/api/resources/subjects/{semester}/{name}")
async def delete_subject(request: Request, semester: str, name: str):
    """Delete a subject and cascade to its resources and their files."""
    _, error = require_admin(request)
    if error:
        return error
    return await asyncio.to_thread(_delete_subject, semester, name)


@resources_router.delete("/api/subjects")
async def delete_subject_by_body(request: Request):
    """Same cascade as above with `{semester, name}` in the JSON body."""
    _, error = require_admin(request)
    if error:
        return error
    payload, error = await read_json_object(request)
    if error:
        return error
    return await asyncio.to_thread(_delete_subject, payload.get("semester"), payload.get("name"))


# --- Uploads --------------------------------------------------------------------

@resources_router.post("/api/resources/upload")
async def upload_resource(request: Request):
    """Combined upload; creates the subject on demand.

    Multipart fields: semester, subject, resourceType and either `file`
    (notes/books) or `channel` + comma-separated `topics` (videoMaterials).
    """
    _, error = require_admin(request)
    if error:
        return error
    form = await request.form()
    upload = form_file(form)
    service = wiring.get_resource_service()
    try:
        result = await asyncio.to_thread(
            service.upload,
            semester=form_text(form, "semester"),
            subject=form_text(form, "subject"),
            resource_type=form_text(form, "resourceType"),
            stream=upload.file if upload else None,
            filename=upload.filename if upload else None,
            mime_type=upload.content_type if upload else None,
            channel=form_text(form, "channel"),
            topics=form_text(form, "topics"),
        )
    except CatalogError as exc:
        return error_response(exc)
    finally:
        if upload is not None:
            await upload.close()
    if isinstance(result, ResourceRecord):
        return json_private({"status": "success", "resource": result.to_dict(), "created": True}, status_code=201)
    return json_private(_ingest_body(result), status_code=201 if result.created else 200)


@resources_router.post("/api/resources/file")
async def add_file_resource(request: Request):
    """Attach a file or an external `fileUrl` + `fileName` to an existing subject."""
    _, error = require_admin(request)
    if error:
        return error
    form = await request.form()
    upload = form_file(form)
    service = wiring.get_resource_service()
    try:
        result = await asyncio.to_thread(
            service.add_file_resource,
            semester=form_text(form, "semester"),
            subject=form_text(form, "subject"),
            resource_type=form_text(form, "resourceType"),
            stream=upload.file if upload else None,
            filename=upload.filename if upload else None,
            mime_type=upload.content_type if upload else None,
            file_url=form_text(form, "fileUrl"),
            file_name=form_text(form, "fileName"),
        )
    except CatalogError as exc:
        return error_response(exc)
    finally:
        if upload is not None:
            await upload.close()
    return json_private(_ingest_body(result), status_code=201 if result.created else 200)


# --- Deletes ----------------------------------------------------------------------

def _delete_file_resource(semester: Any, resource_type: Any, subject: Any):
    try:
        wiring.get_resource_service().delete_file_resource(semester, resource_type, subject)
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success"})


@resources_router.delete("/api/resources/file/{semester}/{resource_type}/{subject}")
async def delete_file_resource(request: Request, semester: str, resource_type: str, subject: str):
    _, error = require_admin(request)
    if error:
        return error
    return await asyncio.to_thread(_delete_file_resource, semester, resource_type, subject)


@resources_router.delete("/api/resources/delete")
async def delete_resource_by_body(request: Request):
    _, error = require_admin(request)
    if error:
        return error
    payload, error = await read_json_object(request)
    if error:
        return error
    return await asyncio.to_thread(
        _delete_file_resource, payload.get("semester"), payload.get("resourceType"), payload.get("subject")
    )


# --- Video channels ---------------------------------------------------------------

@resources_router.post("/api/resources/video")
async def add_video(request: Request):
    """Add a video channel `{semester, subject, channel, topics}` to an existing subject."""
    _, error = require_admin(request)
    if error:
        return error
    payload, error = await read_json_object(request)
    if error:
        return error
    try:
        record = wiring.get_resource_service().add_video(
            payload.get("semester"), payload.get("subject"), payload.get("channel"), payload.get("topics")
        )
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success", "resource": record.to_dict()}, status_code=201)


@resources_router.delete("/api/resources/video/{semester}/{subject}/{channel}")
async def delete_video(request: Request, semester: str, subject: str, channel: str):
    _, error = require_admin(request)
    if error:
        return error
    try:
        wiring.get_resource_service().delete_video(semester, subject, channel)
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success"})


# --- Download ---------------------------------------------------------------------

@resources_router.get("/resource/download/{catalog_id}")
async def download_resource(request: Request, catalog_id: str):
    """Stream a notes/books file under its original name.

    Resolution uses the canonical and structural tiers only. A miss returns
    404 with the attempted paths.
    """
    record = wiring.get_store().get_resource(catalog_id)
    if record is None:
        return private_error({"error": "not_found", "detail": "resource_not_found"}, status_code=404)
    if not record.is_file or not record.file_url:
        return private_error({"error": "not_found", "detail": "no_file"}, status_code=404)
    if "://" in record.file_url:
        return RedirectResponse(record.file_url, status_code=307, headers=dict(PRIVATE_HEADERS))
    resolution = await asyncio.to_thread(wiring.get_resolver().resolve, record)
    if not resolution.found:
        logger.warning("download unresolved id=%s attempted=%s", record.id, len(resolution.attempted))
        return private_error(
            {
                "error": "not_found",
                "detail": "file_not_found",
                "storedPath": record.file_url,
                "attempted": resolution.attempted,
            },
            status_code=404,
        )
    return FileResponse(
        resolution.path,
        filename=record.file_name or resolution.path.name,
        headers=dict(PRIVATE_HEADERS),
    )


# --- Semester views (catch-alls last) ---------------------------------------------

@resources_router.get("/resources/{semester}")
async def semester_overview_public(request: Request, semester: str):
    return json_private(wiring.get_resource_service().overview(semester))


@resources_router.get("/api/resources/{semester}")
async def semester_overview(request: Request, semester: str):
    """All subjects and resources of a semester grouped by type."""
    return json_private({"status": "success", "resources": wiring.get_resource_service().overview(semester)})


@resources_router.get("/api/resources/{semester}/{resource_type}")
async def resources_by_type(request: Request, semester: str, resource_type: str):
    try:
        grouped = wiring.get_resource_service().resources_by_type(semester, resource_type)
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success", "resources": grouped})


__all__ = ["resources_router"]
