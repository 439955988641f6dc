"""Exec provider interface."""

from __future__ import annotations

from typing import IO, Protocol, Sequence

from podfs.models.exec import Environment


class ExecHandle(Protocol):
    """A running remote command.

    Streams are only present when they were requested from ``exec``.
    """

    stdin: IO[bytes] | None
    stdout: IO[bytes] | None
    stderr: IO[bytes] | None

    def communicate(self, input: bytes | None = None) -> tuple[bytes | None, bytes | None]:
        ...

    def wait(self) -> int:
        ...


class ExecProvider(Protocol):
    def exec(
        self,
        environment: Environment,
        command: Sequence[str],
        stdin: bool = False,
        stdout: bool = True,
        stderr: bool = False,
    ) -> ExecHandle:
        ...

    def ping(self) -> None:
        ...

    def environment_exists(self, pod: str) -> bool:
        ...

    def list_environments(self) -> Sequence[str]:
        ...

    def list_sub_environments(self, pod: str) -> Sequence[str]:
        ...
