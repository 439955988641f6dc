"""Error types raised by the remote filesystem clients."""

from __future__ import annotations

from enum import Enum


class RemoteErrorType(str, Enum):
    NOT_CONNECTED = "not_connected"
    CONNECTION_ERROR = "connection_error"
    PROTOCOL_ERROR = "protocol_error"
    NO_SUCH_FILE_OR_DIRECTORY = "no_such_file_or_directory"
    DIRECTORY_ALREADY_EXISTS = "directory_already_exists"
    DIRECTORY_NOT_EMPTY = "directory_not_empty"
    COULD_NOT_REMOVE_FILE = "could_not_remove_file"
    COULD_NOT_OPEN_FILE = "could_not_open_file"
    FILE_CREATE_DENIED = "file_create_denied"
    STAT_FAILED = "stat_failed"
    UNSUPPORTED_FEATURE = "unsupported_feature"
    IO_ERROR = "io_error"


class RemoteError(Exception):
    def __init__(self, kind: RemoteErrorType, detail: object | None = None) -> None:
        self.kind = kind
        self.detail = str(detail) if detail is not None else None
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind.value}: {self.detail}"
        return self.kind.value
