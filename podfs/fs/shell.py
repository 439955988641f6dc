"""Shell protocol driver.

Commands run through ``/bin/sh -c`` inside the target environment. The only
channel back is the command's stdout, so the exit status is appended to it
as ``;<rc>`` and split off again on the way back. Output that itself ends in
``;<digits>`` right before the suffix cannot be told apart from the status.
"""

from __future__ import annotations

import io
import logging
import posixpath
import shlex
import shutil
import tarfile
import tempfile
from typing import BinaryIO, Optional

from podfs.errors import RemoteError, RemoteErrorType
from podfs.models.exec import CommandResult, Environment
from podfs.providers.exec.base import ExecHandle, ExecProvider

logger = logging.getLogger(__name__)

SEPARATOR = ";"
SHELL = "/bin/sh"


def wrap_command(command: str, cwd: str) -> str:
    return f'cd {shlex.quote(cwd)} && {command}; echo -n "{SEPARATOR}$?"'


def decode_output(output: str) -> CommandResult:
    """Split the combined stream into command stdout and exit code."""
    token_count = output.count(SEPARATOR)
    if token_count == 0:
        raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, "missing exit status")
    tokens = output.split(SEPARATOR)
    stdout = SEPARATOR.join(tokens[:token_count])
    rc = tokens[token_count]
    if not (rc.isascii() and rc.isdigit()):
        raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, f"bad exit status: {rc!r}")
    return CommandResult(exit_code=int(rc), stdout=stdout)


class ShellDriver:
    def __init__(
        self, provider: ExecProvider, log: Optional[logging.Logger] = None
    ) -> None:
        self._provider = provider
        self._log = log or logger

    @property
    def provider(self) -> ExecProvider:
        return self._provider

    def run(self, environment: Environment, command: str, cwd: str) -> CommandResult:
        shell_cmd = wrap_command(command, cwd)
        self._log.debug("Executing shell command on %s: %s", environment, shell_cmd)
        capture_stderr = self._log.isEnabledFor(logging.DEBUG)
        handle = self._open(
            environment, [SHELL, "-c", shell_cmd], stdout=True, stderr=capture_stderr
        )
        stdout, stderr = self._finish(handle)
        if capture_stderr:
            self._log.debug("Shell command stderr: %s", _decode(stderr))
        result = decode_output(_decode(stdout))
        self._log.debug("Shell command exit code: %d", result.exit_code)
        self._log.debug("Shell command output: %s", result.stdout)
        return result

    def upload(
        self, environment: Environment, path: str, data: bytes, mode: int | None = None
    ) -> int:
        """Write ``data`` to ``path`` by piping a one-entry tar into ``tar xf``."""
        directory = posixpath.dirname(path) or "/"
        name = posixpath.basename(path)
        if not name:
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, path)
        archive = build_archive(name, data, mode)
        self._log.debug(
            "Uploading %d bytes archive to %s in dir %s", len(archive), environment, directory
        )
        handle = self._open(
            environment, ["tar", "xf", "-", "-C", directory], stdin=True, stdout=False
        )
        self._finish(handle, archive, command="tar xf")
        self._log.debug("Uploaded archive to %s", path)
        return len(data)

    def download(self, environment: Environment, path: str, dest: BinaryIO) -> int:
        """Copy the file at ``path`` into ``dest`` through a ``tar cf`` stream."""
        directory = posixpath.dirname(path) or "/"
        name = posixpath.basename(path)
        if not name:
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, path)
        with tempfile.TemporaryFile(prefix="podfs-") as spool:
            handle = self._open(environment, ["tar", "cf", "-", "-C", directory, name])
            if handle.stdout is None:
                raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, "failed to read stdout")
            shutil.copyfileobj(handle.stdout, spool)
            handle.stdout.close()
            rc = handle.wait()
            if rc != 0:
                raise RemoteError(
                    RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"tar cf exited with {rc}: {path}"
                )
            self._log.debug("Copied %d bytes of archive from %s", spool.tell(), environment)
            spool.seek(0)
            size = extract_first_entry(spool, dest)
        self._log.debug("Extracted file to dest; %d bytes", size)
        return size

    def _open(
        self,
        environment: Environment,
        argv: list[str],
        stdin: bool = False,
        stdout: bool = True,
        stderr: bool = False,
    ) -> ExecHandle:
        try:
            return self._provider.exec(
                environment, argv, stdin=stdin, stdout=stdout, stderr=stderr
            )
        except RemoteError:
            raise
        except OSError as exc:
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, exc) from exc

    def _finish(
        self,
        handle: ExecHandle,
        input: bytes | None = None,
        command: str = SHELL,
    ) -> tuple[bytes | None, bytes | None]:
        try:
            stdout, stderr = handle.communicate(input)
        except OSError as exc:
            handle.wait()
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, exc) from exc
        rc = handle.wait()
        if rc != 0:
            raise RemoteError(
                RemoteErrorType.PROTOCOL_ERROR, f"{command} exited with status {rc}"
            )
        return stdout, stderr


def build_archive(name: str, data: bytes, mode: int | None = None) -> bytes:
    buffer = io.BytesIO()
    info = tarfile.TarInfo(name=name)
    info.size = len(data)
    if mode is not None:
        info.mode = mode
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as archive:
        archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def extract_first_entry(source: BinaryIO, dest: BinaryIO) -> int:
    try:
        with tarfile.open(fileobj=source, mode="r:") as archive:
            member = archive.next()
            if member is None:
                raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, "empty archive")
            reader = archive.extractfile(member)
            if reader is None:
                raise RemoteError(
                    RemoteErrorType.IO_ERROR, f"not a regular file: {member.name}"
                )
            with reader:
                size = 0
                while True:
                    chunk = reader.read(io.DEFAULT_BUFFER_SIZE)
                    if not chunk:
                        break
                    dest.write(chunk)
                    size += len(chunk)
    except tarfile.TarError as exc:
        raise RemoteError(RemoteErrorType.IO_ERROR, exc) from exc
    return size


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
