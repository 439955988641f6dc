"""Data models for remote file metadata."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
import posixpath
from typing import Optional


class FileKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class UnixPex:
    """Permission classes for owner, group and others, each 0-7."""

    user: int = 0
    group: int = 0
    others: int = 0

    def __post_init__(self) -> None:
        for value in (self.user, self.group, self.others):
            if not 0 <= value <= 7:
                raise ValueError(f"Permission class out of range: {value}")

    @classmethod
    def from_mode(cls, mode: int) -> "UnixPex":
        return cls(user=(mode >> 6) & 0o7, group=(mode >> 3) & 0o7, others=mode & 0o7)

    def to_mode(self) -> int:
        return (self.user << 6) | (self.group << 3) | self.others

    def __str__(self) -> str:
        return f"{self.to_mode():o}"


@dataclass(frozen=True)
class FileEntry:
    path: str
    kind: FileKind
    mode: Optional[UnixPex] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    size: int = 0
    modified: Optional[datetime] = None
    symlink: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.kind is FileKind.SYMLINK) != (self.symlink is not None):
            raise ValueError("Only symlink entries carry a symlink target")

    @property
    def name(self) -> str:
        return posixpath.basename(self.path.rstrip("/")) or "/"

    @property
    def is_dir(self) -> bool:
        return self.kind is FileKind.DIRECTORY

    @classmethod
    def directory(cls, path: str) -> "FileEntry":
        return cls(path=path, kind=FileKind.DIRECTORY)

    def with_path(self, path: str) -> "FileEntry":
        return replace(self, path=path)


@dataclass(frozen=True)
class SetStat:
    """Attributes to apply to a remote file; unset fields are left alone."""

    mode: Optional[UnixPex] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    accessed: Optional[datetime] = None
    modified: Optional[datetime] = None
