"""Question paper routes: nested listing, upload (create or overwrite), download and delete."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from acadvault.catalog.errors import CatalogError
from acadvault.catalog.services.ingest import QuestionPaperUploadInput
from acadvault.web import wiring
from acadvault.web.http_utils import (
    PRIVATE_HEADERS,
    bad_request,
    error_response,
    form_file,
    form_text,
    json_private,
    private_error,
    require_admin,
)

question_papers_router = APIRouter(tags=["QuestionPapers"])
logger = logging.getLogger("acadvault.web.question_papers")


@question_papers_router.get("/question-papers")
async def list_question_papers(request: Request):
    """Return `{year: {semester: {subject: {examType: {id, filePath, fileName}}}}}`.

    Years are ordered newest first; semesters and subjects ascending.
    """
    nested: Dict[str, Dict[str, Dict[str, Dict[str, Any]]]] = {}
    for paper in wiring.get_store().list_question_papers():
        by_semester = nested.setdefault(paper.year, {})
        by_subject = by_semester.setdefault(str(paper.semester), {})
        by_exam = by_subject.setdefault(paper.subject, {})
        by_exam[paper.exam_type] = {"id": paper.id, "filePath": paper.file_path, "fileName": paper.file_name}
    return json_private(nested)


@question_papers_router.post("/question-papers/upload")
async def upload_question_paper(request: Request):
    """Upload a paper; re-uploading the same (year, semester, subject, examType) overwrites it.

    Responds 201 when created and 200 when an existing paper was replaced.
    """
    _, error = require_admin(request)
    if error:
        return error
    form = await request.form()
    upload = form_file(form)
    if upload is None:
        return bad_request("missing_file")
    data = QuestionPaperUploadInput(
        year=form_text(form, "year"),
        semester=form_text(form, "semester"),
        subject=form_text(form, "subject"),
        exam_type=form_text(form, "examType"),
        uploaded_by=form_text(form, "registerno"),
        filename=upload.filename or "",
    )
    try:
        result = await asyncio.to_thread(
            wiring.get_ingestor().ingest_question_paper, data, upload.file, upload.content_type
        )
    except CatalogError as exc:
        return error_response(exc)
    finally:
        await upload.close()
    body = {
        "status": "success",
        "message": "Question paper uploaded" if result.created else "Question paper updated",
        "paper": result.record.to_dict(),
        "stored": result.stored.to_dict() if result.stored else None,
    }
    return json_private(body, status_code=201 if result.created else 200)


@question_papers_router.get("/question-papers/download/{paper_id}")
async def download_question_paper(request: Request, paper_id: str):
    paper = wiring.get_store().get_question_paper(paper_id)
    if paper is None:
        return private_error({"error": "not_found", "detail": "question_paper_not_found"}, status_code=404)
    resolution = await asyncio.to_thread(wiring.get_resolver().resolve, paper)
    if not resolution.found:
        logger.warning("download unresolved id=%s attempted=%s", paper.id, len(resolution.attempted))
        return private_error(
            {
                "error": "not_found",
                "detail": "file_not_found",
                "paperDetails": {
                    "year": paper.year,
                    "semester": paper.semester,
                    "subject": paper.subject,
                    "examType": paper.exam_type,
                },
                "storedPath": paper.file_path,
                "attempted": resolution.attempted,
            },
            status_code=404,
        )
    return FileResponse(resolution.path, filename=paper.file_name or resolution.path.name, headers=dict(PRIVATE_HEADERS))


def _delete_question_paper(paper_id: str):
    try:
        paper = wiring.get_ingestor().delete_question_paper(paper_id)
    except CatalogError as exc:
        return error_response(exc)
    return json_private({"status": "success", "paper": paper.to_dict()})


@question_papers_router.delete("/question-papers/{paper_id}")
async def delete_question_paper(request: Request, paper_id: str):
    """Delete the catalog record, then its file."""
    _, error = require_admin(request)
    if error:
        return error
    return await asyncio.to_thread(_delete_question_paper, paper_id)


__all__ = ["question_papers_router"]
