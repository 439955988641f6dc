"""
Shared pytest fixtures for podfs tests.

This module provides:
- FakeExecProvider: an in-memory stand-in for kubectl exec that understands
  the driver's ``/bin/sh -c`` wrapper and the tar transfer commands
- fixtures for connected ContainerFs and MultiPodFs clients
"""

import io
import posixpath
import re
import shlex
import tarfile
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from podfs.errors import RemoteError, RemoteErrorType
from podfs.fs.container import ContainerFs
from podfs.fs.multipod import MultiPodFs
from podfs.fs.shell import build_archive
from podfs.models.exec import Environment

WRAPPED_RE = re.compile(r'^cd (.+?) && (.*); echo -n ";\$\?"$', re.DOTALL)


@dataclass
class ShellCall:
    """Record of a shell command run through the driver."""
    environment: Environment
    command: str
    cwd: str


class FakeHandle:
    """Mimics the parts of ``subprocess.Popen`` the driver relies on."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0, on_stdin=None):
        self.stdin = io.BytesIO() if on_stdin is not None else None
        self.stdout = io.BytesIO(stdout)
        self.stderr = io.BytesIO(stderr)
        self.returncode = returncode
        self.waited = False
        self._on_stdin = on_stdin

    def communicate(self, input: Optional[bytes] = None):
        if self._on_stdin is not None:
            self._on_stdin(input or b"")
        return self.stdout.read(), self.stderr.read()

    def wait(self) -> int:
        self.waited = True
        return self.returncode


@dataclass
class FakeExecProvider:
    pods: Dict[str, List[str]] = field(default_factory=lambda: {"web": ["app", "sidecar"], "db": ["postgres"]})
    responses: Dict[str, Tuple[str, Optional[int]]] = field(default_factory=dict)
    files: Dict[str, bytes] = field(default_factory=dict)
    uploads: List[Tuple[Environment, str, bytes]] = field(default_factory=list)
    calls: List[ShellCall] = field(default_factory=list)
    handles: List[FakeHandle] = field(default_factory=list)
    argv: List[List[str]] = field(default_factory=list)
    stderr: bytes = b""
    tar_returncode: int = 0
    reachable: bool = True

    def on(self, command: str, stdout: str = "", rc: Optional[int] = 0) -> None:
        """Register a canned reply; ``rc=None`` replies without the exit status suffix."""
        self.responses[command] = (stdout, rc)

    def commands(self) -> List[str]:
        return [call.command for call in self.calls]

    def exec(self, environment, command: Sequence[str], stdin=False, stdout=True, stderr=False):
        argv = list(command)
        self.argv.append(argv)
        if environment.container not in self.pods.get(environment.pod, []):
            handle = FakeHandle(stderr=b"error: pod or container not found", returncode=1)
        elif argv[:2] == ["/bin/sh", "-c"]:
            handle = self._shell(environment, argv[2])
        elif argv[:3] == ["tar", "xf", "-"]:
            directory = argv[4]
            handle = FakeHandle(
                returncode=self.tar_returncode,
                on_stdin=lambda data: self._untar(environment, directory, data),
            )
        elif argv[:3] == ["tar", "cf", "-"]:
            path = posixpath.join(argv[4], argv[5])
            if path in self.files:
                handle = FakeHandle(stdout=build_archive(argv[5], self.files[path]))
            else:
                handle = FakeHandle(stderr=b"tar: No such file", returncode=2)
        else:
            raise AssertionError(f"unexpected command: {argv}")
        if not stderr:
            handle.stderr = io.BytesIO()
        self.handles.append(handle)
        return handle

    def ping(self) -> None:
        if not self.reachable:
            raise RemoteError(RemoteErrorType.CONNECTION_ERROR, "cluster unreachable")

    def environment_exists(self, pod: str) -> bool:
        return pod in self.pods

    def list_environments(self) -> List[str]:
        return list(self.pods)

    def list_sub_environments(self, pod: str) -> List[str]:
        if pod not in self.pods:
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, pod)
        return list(self.pods[pod])

    def _shell(self, environment, script: str) -> FakeHandle:
        match = WRAPPED_RE.match(script)
        assert match, f"command not wrapped: {script}"
        cwd = shlex.split(match.group(1))[0]
        command = match.group(2)
        self.calls.append(ShellCall(environment, command, cwd))
        out, rc = self.responses.get(command, ("", 1))
        if rc is not None:
            out = f"{out};{rc}"
        return FakeHandle(stdout=out.encode("utf-8"), stderr=self.stderr)

    def _untar(self, environment, directory: str, data: bytes) -> None:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as archive:
            for member in archive.getmembers():
                payload = archive.extractfile(member).read()
                self.uploads.append((environment, posixpath.join(directory, member.name), payload))


@pytest.fixture
def provider():
    return FakeExecProvider()


@pytest.fixture
def container_fs(provider):
    """ContainerFs connected to web/app with working directory /home/app."""
    provider.on("pwd", "/home/app\n")
    fs = ContainerFs(provider, "web", "app")
    fs.connect()
    provider.calls.clear()
    return fs


@pytest.fixture
def multipod_fs(provider):
    fs = MultiPodFs(provider)
    fs.connect()
    return fs
