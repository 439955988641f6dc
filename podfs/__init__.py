"""Remote POSIX-like filesystem over container exec."""

from podfs.errors import RemoteError, RemoteErrorType
from podfs.fs import ContainerFs, MultiPodFs

__all__ = ["ContainerFs", "MultiPodFs", "RemoteError", "RemoteErrorType"]
