"""
Storage ports used by the ingestor, resolver and repair tool.

Keep these small and framework-agnostic so tests can supply simple fakes.
"""
from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, List, Protocol


class FileStorage(Protocol):
    """Minimal interface to a rooted directory tree holding catalog files.

    Intent:
        Let services write, test and remove files by root-relative path
        without depending on where or how the tree is mounted.

    Permissions:
        Implementations must refuse paths that escape the root.
    """

    @property
    def root(self) -> Path: ...

    def absolute(self, relative_path: str) -> Path: ...

    def ensure_directory(self, relative_dir: str) -> Path: ...

    def write_stream(self, relative_path: str, stream: BinaryIO, *, max_bytes: int) -> int: ...

    def unlink(self, relative_path: str) -> bool: ...

    def exists(self, relative_path: str) -> bool: ...

    def list_directory(self, relative_dir: str) -> List[str]: ...

    def walk_files(self, relative_dir: str = "") -> Iterator[Path]: ...


__all__ = ["FileStorage"]
