"""
LocalFileStorage tests: containment, atomic writes and stable listings.
"""
from __future__ import annotations

import io

import pytest

from acadvault.catalog.errors import PayloadTooLarge, StorageIOError
from acadvault.storage.local import LocalFileStorage


def test_absolute_joins_under_root(storage: LocalFileStorage):
    assert storage.absolute("resources/a.pdf") == storage.root / "resources" / "a.pdf"
    assert storage.absolute("resources\\b.pdf") == storage.root / "resources" / "b.pdf"


@pytest.mark.parametrize("path", ["/resources/a.pdf", "//resources/a.pdf", "\\resources\\a.pdf"])
def test_absolute_refuses_leading_separator(storage: LocalFileStorage, path):
    with pytest.raises(StorageIOError) as exc:
        storage.absolute(path)
    assert exc.value.detail == "path_escape"


def test_absolute_refuses_escape(storage: LocalFileStorage):
    with pytest.raises(StorageIOError) as exc:
        storage.absolute("../outside.pdf")
    assert exc.value.detail == "path_escape"


def test_relative_inverts_absolute(storage: LocalFileStorage, tmp_path):
    assert storage.relative(storage.root / "events" / "x.png") == "events/x.png"
    assert storage.relative(tmp_path / "elsewhere.txt") is None


def test_ensure_directory_is_idempotent(storage: LocalFileStorage):
    first = storage.ensure_directory("resources/sem1/notes")
    second = storage.ensure_directory("resources/sem1/notes")
    assert first == second
    assert first.is_dir()


def test_write_stream_writes_bytes_and_reports_size(storage: LocalFileStorage):
    storage.ensure_directory("resources/sem1/notes")
    size = storage.write_stream("resources/sem1/notes/a.pdf", io.BytesIO(b"%PDF-1.4 hello"), max_bytes=1024)
    assert size == 14
    assert (storage.root / "resources/sem1/notes/a.pdf").read_bytes() == b"%PDF-1.4 hello"
    # No temporary siblings remain
    assert storage.list_directory("resources/sem1/notes") == ["a.pdf"]
    assert [p.name for p in (storage.root / "resources/sem1/notes").iterdir()] == ["a.pdf"]


def test_write_stream_over_limit_leaves_nothing(storage: LocalFileStorage):
    storage.ensure_directory("resources/sem1/notes")
    with pytest.raises(PayloadTooLarge):
        storage.write_stream("resources/sem1/notes/big.pdf", io.BytesIO(b"x" * 2048), max_bytes=1024)
    assert list((storage.root / "resources/sem1/notes").iterdir()) == []


def test_write_stream_into_missing_directory_raises_storage_error(storage: LocalFileStorage):
    with pytest.raises(StorageIOError) as exc:
        storage.write_stream("nope/a.pdf", io.BytesIO(b"x"), max_bytes=10)
    assert exc.value.detail == "write_failed"


def test_unlink_reports_missing_file(storage: LocalFileStorage):
    storage.ensure_directory("events")
    storage.write_stream("events/e.png", io.BytesIO(b"png"), max_bytes=10)
    assert storage.unlink("events/e.png") is True
    assert storage.unlink("events/e.png") is False
    assert storage.exists("events/e.png") is False


def test_listing_and_walk_are_sorted_and_skip_dotfiles(storage: LocalFileStorage):
    for rel in ("b/z.pdf", "b/a.pdf", "a/m.pdf", "a/.hidden"):
        storage.ensure_directory(rel.rsplit("/", 1)[0])
        storage.write_stream(rel, io.BytesIO(b"1"), max_bytes=10)
    assert storage.list_directory("b") == ["a.pdf", "z.pdf"]
    assert storage.list_directory("missing") == []
    walked = [storage.relative(p) for p in storage.walk_files("")]
    assert walked == ["a/m.pdf", "b/a.pdf", "b/z.pdf"]


def test_exists_is_false_for_escaping_paths(tmp_path):
    storage = LocalFileStorage(tmp_path / "root")
    assert storage.exists("../../etc/passwd") is False
