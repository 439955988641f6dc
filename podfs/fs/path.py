"""Decomposition of ``/pod/container/path`` style virtual paths."""

from __future__ import annotations

from dataclasses import dataclass
import posixpath
from typing import Optional, Union


@dataclass(frozen=True)
class RootLevel:
    pass


@dataclass(frozen=True)
class PodLevel:
    pod: str


@dataclass(frozen=True)
class ContainerLevel:
    pod: str
    container: str


@dataclass(frozen=True)
class PathLevel:
    pod: str
    container: str
    path: str


Level = Union[RootLevel, PodLevel, ContainerLevel, PathLevel]


@dataclass(frozen=True)
class VirtualPath:
    """A caller path split into pod, container and the rest.

    ``remainder`` never carries a leading slash. When the selectors were
    read from the path itself the remainder is anchored at the container
    root; when they were inherited from the current binding it is relative
    to the container's working directory.
    """

    pod: Optional[str] = None
    container: Optional[str] = None
    remainder: Optional[str] = None
    anchored: bool = True

    def __post_init__(self) -> None:
        if self.container is not None and self.pod is None:
            raise ValueError("Cannot specify a container without a pod")

    @classmethod
    def parse(
        cls,
        path: str,
        pod: Optional[str] = None,
        container: Optional[str] = None,
    ) -> "VirtualPath":
        if path.startswith("/"):
            return cls._from_parts(_split(posixpath.normpath(path)))
        if pod is None and container is not None:
            raise ValueError("Cannot specify a container without a pod")
        parts = _split(path)
        if pod is None:
            return cls._from_parts(parts)
        if container is None:
            return cls._from_parts([pod] + parts)
        return cls(pod=pod, container=container, remainder="/".join(parts) or ".", anchored=False)

    @classmethod
    def _from_parts(cls, parts: list[str]) -> "VirtualPath":
        pod = parts[0] if parts else None
        container = parts[1] if len(parts) > 1 else None
        remainder = "/".join(parts[2:]) or None
        return cls(pod=pod, container=container, remainder=remainder)

    @property
    def container_path(self) -> Optional[str]:
        """Path to hand to the container client, if any."""
        if self.remainder is None:
            return None
        return f"/{self.remainder}" if self.anchored else self.remainder

    def level(self) -> Level:
        if self.pod is None:
            return RootLevel()
        if self.container is None:
            return PodLevel(self.pod)
        if self.remainder is None:
            return ContainerLevel(self.pod, self.container)
        return PathLevel(self.pod, self.container, self.container_path or "/")

    def __str__(self) -> str:
        parts = [p for p in (self.pod, self.container) if p is not None]
        if self.remainder is not None:
            parts.append(self.remainder)
        prefix = "/" if self.anchored else ""
        return prefix + "/".join(parts)


def _split(path: str) -> list[str]:
    return [part for part in path.split("/") if part and part != "."]
