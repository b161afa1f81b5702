"""
Filesystem-backed storage for catalog files.

Why:
    Uploads land on local disk under a single storage root. All path handling
    (containment, directory creation, atomic writes) lives here so services
    only deal with root-relative paths.

Behavior:
    - `ensure_directory` is idempotent and safe under concurrent callers.
    - `write_stream` writes to a temporary sibling and renames it into place,
      so readers never observe a half-written file. Exceeding `max_bytes`
      removes the partial file and raises PayloadTooLarge.
    - `walk_files` yields files in a sorted, stable order.
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, List

from acadvault.catalog.errors import PayloadTooLarge, StorageIOError

_log = logging.getLogger("acadvault.storage")

_CHUNK_SIZE = 64 * 1024


class LocalFileStorage:
    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def absolute(self, relative_path: str) -> Path:
        """Join a root-relative path under the root, refusing escapes.

        A leading separator makes the path absolute and is refused like any
        other escape; callers strip the single separator stored paths carry.
        """
        rel = str(relative_path or "").replace("\\", "/")
        target = (self._root / rel).resolve()
        try:
            common = os.path.commonpath([str(self._root), str(target)])
        except ValueError:
            raise StorageIOError("path_error")
        if common != str(self._root):
            raise StorageIOError("path_escape")
        return target

    def relative(self, path: Path | str) -> str | None:
        """Return the forward-slash path relative to the root, or None when outside."""
        try:
            return Path(path).resolve().relative_to(self._root).as_posix()
        except ValueError:
            return None

    def ensure_directory(self, relative_dir: str) -> Path:
        target = self.absolute(relative_dir)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            _log.warning("ensure_directory failed dir=%s error=%s", relative_dir, exc.__class__.__name__)
            raise StorageIOError("directory_create_failed", str(exc)) from exc
        return target

    def write_stream(self, relative_path: str, stream: BinaryIO, *, max_bytes: int) -> int:
        """Copy `stream` to `relative_path` and return the number of bytes written."""
        target = self.absolute(relative_path)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex}.part")
        total = 0
        try:
            with tmp.open("wb") as fh:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > max_bytes:
                        raise PayloadTooLarge("size_exceeded")
                    fh.write(chunk)
            os.replace(tmp, target)
        except PayloadTooLarge:
            self._discard(tmp)
            raise
        except OSError as exc:
            self._discard(tmp)
            _log.warning("write failed path=%s error=%s", relative_path, exc.__class__.__name__)
            raise StorageIOError("write_failed", str(exc)) from exc
        return total

    def unlink(self, relative_path: str) -> bool:
        """Remove a file; a missing file is not an error."""
        target = self.absolute(relative_path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageIOError("unlink_failed", str(exc)) from exc
        return True

    def exists(self, relative_path: str) -> bool:
        try:
            return self.absolute(relative_path).is_file()
        except StorageIOError:
            return False

    def list_directory(self, relative_dir: str) -> List[str]:
        """Return sorted file names in a directory; missing directories are empty."""
        target = self.absolute(relative_dir)
        if not target.is_dir():
            return []
        return sorted(e.name for e in target.iterdir() if e.is_file() and not e.name.startswith("."))

    def walk_files(self, relative_dir: str = "") -> Iterator[Path]:
        start = self.absolute(relative_dir)
        if not start.is_dir():
            return

        def _onerror(exc: OSError) -> None:
            _log.warning("walk skipped entry error=%s", exc.__class__.__name__)

        for dirpath, dirnames, filenames in os.walk(start, onerror=_onerror):
            dirnames.sort()
            for name in sorted(n for n in filenames if not n.startswith(".")):
                yield Path(dirpath) / name

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:  # pragma: no cover - best effort
            _log.warning("temp file cleanup failed error=%s", exc.__class__.__name__)


__all__ = ["LocalFileStorage"]
