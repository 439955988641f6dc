"""Shared data models for the podfs package."""

from podfs.models.exec import CommandResult, Environment, EnvironmentBinding
from podfs.models.files import FileEntry, FileKind, SetStat, UnixPex

__all__ = [
    "CommandResult",
    "Environment",
    "EnvironmentBinding",
    "FileEntry",
    "FileKind",
    "SetStat",
    "UnixPex",
]
