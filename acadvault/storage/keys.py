"""
Helpers to generate canonical storage paths for uploaded catalog files.

Why:
    Keep path shapes consistent between the upload ingestor, the resolver and
    the repair tool. Everything here is pure: no filesystem or database access,
    so the convention can be tested without I/O.

Conventions:
    - Resources: resources/sem{semester}/{resourceType}/{subject}_{ms}-{rand}.{ext}
    - Question papers: question-papers/{year}/{semester}/{subject}_{examType}_{ms}.{ext}
    - Event banners: events/event-{ms}-{rand}.{ext}

Security:
    - Name fragments replace every character outside [A-Za-z0-9] with "_".
    - Directory segments are sanitized as well, so no segment can be "..".
    - Filename extensions are lowercased and filtered to alphanumerics.
"""
from __future__ import annotations

import os
import random
import re
import time

_FRAGMENT_RE = re.compile(r"[^A-Za-z0-9]")
_SEGMENT_RE = re.compile(r"[^A-Za-z0-9-]+")

RESOURCES_DIR = "resources"
QUESTION_PAPERS_DIR = "question-papers"
EVENTS_DIR = "events"


def sanitize_fragment(value: str) -> str:
    """Replace every character outside [A-Za-z0-9] with an underscore.

    Used for the subject and exam type parts of file names. The mapping is
    one character to one character so the resolver can recompute the same
    fragment from catalog metadata.
    """
    return _FRAGMENT_RE.sub("_", value or "")


def _sanitize_segment(value: object, *, fallback: str) -> str:
    sanitized = _SEGMENT_RE.sub("-", str(value if value is not None else "")).strip("-")
    return sanitized or fallback


def _sanitize_ext_from_filename(filename: str | None) -> str:
    if not filename:
        return ""
    _, ext = os.path.splitext(os.path.basename(filename))
    ext = "".join(ch for ch in ext.lower() if ch.isalnum())
    return f".{ext}" if ext else ""


def now_ms() -> int:
    return int(time.time() * 1000)


def unique_suffix(*, epoch_ms: int | None = None, rand: int | None = None) -> str:
    """Return `<millisecond-timestamp>-<random-int>` for collision-free names."""
    ms = now_ms() if epoch_ms is None else int(epoch_ms)
    r = random.randint(0, 10**9) if rand is None else int(rand)
    return f"{ms}-{r}"


def resource_directory(semester: object, resource_type: str) -> str:
    sem = _sanitize_segment(semester, fallback="x")
    kind = _sanitize_segment(resource_type, fallback="misc")
    return f"{RESOURCES_DIR}/sem{sem}/{kind}"


def question_paper_directory(year: object, semester: object) -> str:
    y = _sanitize_segment(year, fallback="unknown")
    sem = _sanitize_segment(semester, fallback="x")
    return f"{QUESTION_PAPERS_DIR}/{y}/{sem}"


def make_resource_path(
    *,
    semester: object,
    resource_type: str,
    subject: str,
    filename: str,
    suffix: str | None = None,
) -> str:
    """Build the canonical relative path for a notes/books file.

    Returns: resources/sem{semester}/{resourceType}/{subject}_{suffix}.{ext}
    """
    directory = resource_directory(semester, resource_type)
    tail = suffix or unique_suffix()
    ext = _sanitize_ext_from_filename(filename)
    return f"{directory}/{sanitize_fragment(subject)}_{tail}{ext}"


def make_question_paper_path(
    *,
    year: object,
    semester: object,
    subject: str,
    exam_type: str,
    filename: str,
    epoch_ms: int | None = None,
) -> str:
    """Build the canonical relative path for a question paper.

    Returns: question-papers/{year}/{semester}/{subject}_{examType}_{epoch_ms}.{ext}
    """
    directory = question_paper_directory(year, semester)
    stamp = now_ms() if epoch_ms is None else int(epoch_ms)
    ext = _sanitize_ext_from_filename(filename)
    return f"{directory}/{sanitize_fragment(subject)}_{sanitize_fragment(exam_type)}_{stamp}{ext}"


def make_event_banner_path(*, filename: str, suffix: str | None = None) -> str:
    """Build the relative path for an event banner image.

    Returns: events/event-{suffix}.{ext}
    """
    tail = suffix or unique_suffix()
    return f"{EVENTS_DIR}/event-{tail}{_sanitize_ext_from_filename(filename)}"


__all__ = [
    "EVENTS_DIR",
    "QUESTION_PAPERS_DIR",
    "RESOURCES_DIR",
    "make_event_banner_path",
    "make_question_paper_path",
    "make_resource_path",
    "now_ms",
    "question_paper_directory",
    "resource_directory",
    "sanitize_fragment",
    "unique_suffix",
]
