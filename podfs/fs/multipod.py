"""Filesystem spanning every container of every pod reachable by a provider.

Paths have the form ``/pod-name/container-name/path/to/file``. The first two
levels are synthesized from the pod inventory; anything deeper is served by a
``ContainerFs`` bound to the selected container for the duration of the call.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import posixpath
from typing import BinaryIO, Iterator, Optional, Union

from podfs.errors import RemoteError, RemoteErrorType
from podfs.fs.container import ContainerFs
from podfs.fs.path import ContainerLevel, Level, PathLevel, PodLevel, RootLevel, VirtualPath
from podfs.models.exec import CommandResult, Environment, EnvironmentBinding
from podfs.models.files import FileEntry, SetStat, UnixPex
from podfs.providers.exec.base import ExecProvider

logger = logging.getLogger(__name__)

REQUIRES_CONTAINER = "This operation requires a pod and a container"


class MultiPodFs:
    def __init__(self, provider: ExecProvider, log: Optional[logging.Logger] = None) -> None:
        self._provider = provider
        self._log = log or logger
        self._template = ContainerFs(provider, "", "", log=self._log)
        self._pod: Optional[str] = None
        self._client: Optional[ContainerFs] = None
        self._connected = False

    @property
    def binding(self) -> EnvironmentBinding:
        if self._client is not None:
            env = self._client.environment
            return EnvironmentBinding(env.pod, env.container, self._client.pwd())
        return EnvironmentBinding(pod=self._pod)

    def pod_name(self) -> Optional[str]:
        return self._pod

    def container_name(self) -> Optional[str]:
        if self._client is None:
            return None
        return self._client.environment.container

    def connect(self) -> str:
        self._log.debug("Initializing cluster connection...")
        self._provider.ping()
        self._connected = True
        self._log.info("Connection established")
        return self.pwd()

    def disconnect(self) -> None:
        if not self._connected:
            raise RemoteError(RemoteErrorType.NOT_CONNECTED)
        self._pod = None
        self._client = None
        self._connected = False
        self._log.info("Disconnected from cluster")

    def is_connected(self) -> bool:
        if not self._connected:
            return False
        if self._client is not None:
            return self._client.is_connected()
        try:
            self._provider.ping()
        except RemoteError as exc:
            self._log.debug("Cluster unreachable: %s", exc)
            return False
        return True

    def pwd(self) -> str:
        self._check_connection()
        if self._pod is None:
            return "/"
        if self._client is None:
            return f"/{self._pod}"
        return _reroot(self._client.environment, self._client.pwd())

    def change_dir(self, path: str) -> str:
        self._check_connection()
        vpath = self._parse(path)
        self._log.debug("Changing directory to %s", vpath)
        if vpath.pod is not None and not self._provider.environment_exists(vpath.pod):
            raise RemoteError(
                RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"Pod {vpath.pod} does not exist"
            )
        if vpath.pod is None or vpath.container is None:
            self._pod = vpath.pod
            self._client = None
            return self.pwd()
        if vpath.container not in self._provider.list_sub_environments(vpath.pod):
            raise RemoteError(
                RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY,
                f"Container {vpath.container} does not exist",
            )
        client = self._view_client(Environment(vpath.pod, vpath.container))
        if vpath.container_path is not None:
            client.change_dir(vpath.container_path)
        else:
            client = client.bound_to(client.environment, "/")
        self._pod = vpath.pod
        self._client = client
        return self.pwd()

    def list_dir(self, path: str) -> list[FileEntry]:
        self._check_connection()
        level = self._resolve(path)
        if isinstance(level, RootLevel):
            return self._list_pods()
        if isinstance(level, PodLevel):
            return self._list_containers(level.pod)
        with self._bound(level) as (fs, target):
            return [_reroot_entry(fs.environment, f) for f in fs.list_dir(target)]

    def stat(self, path: str) -> FileEntry:
        self._check_connection()
        level = self._resolve(path)
        if isinstance(level, RootLevel):
            return FileEntry.directory("/")
        if isinstance(level, PodLevel):
            return self._stat_pod(level.pod)
        if isinstance(level, ContainerLevel):
            return self._stat_container(level.pod, level.container)
        with self._bound(level) as (fs, target):
            return _reroot_entry(fs.environment, fs.stat(target))

    def exists(self, path: str) -> bool:
        self._check_connection()
        level = self._resolve(path)
        if isinstance(level, RootLevel):
            return True
        if isinstance(level, PodLevel):
            return self._provider.environment_exists(level.pod)
        if isinstance(level, ContainerLevel):
            return self._exists_container(level.pod, level.container)
        with self._bound(level) as (fs, target):
            return fs.exists(target)

    def setstat(self, path: str, attrs: SetStat) -> None:
        with self._bound(self._require_path(path)) as (fs, target):
            fs.setstat(target, attrs)

    def remove_file(self, path: str) -> None:
        with self._bound(self._require_path(path)) as (fs, target):
            fs.remove_file(target)

    def remove_dir(self, path: str) -> None:
        with self._bound(self._require_path(path)) as (fs, target):
            fs.remove_dir(target)

    def remove_dir_all(self, path: str) -> None:
        with self._bound(self._require_path(path)) as (fs, target):
            fs.remove_dir_all(target)

    def create_dir(self, path: str, mode: Union[UnixPex, int] = 0o755) -> None:
        with self._bound(self._require_path(path)) as (fs, target):
            fs.create_dir(target, mode)

    def symlink(self, path: str, target: str) -> None:
        """Create a link at the virtual ``path`` pointing at ``target``.

        ``target`` is the link content and is written verbatim, so it is a
        path inside the link's container, not a ``/pod/container`` path.
        """
        with self._bound(self._require_path(path)) as (fs, link):
            fs.symlink(link, target)

    def copy(self, src: str, dest: str) -> None:
        """Copy ``src`` to ``dest``; both are virtual paths in one container."""
        source, destination = self._require_same_container(src, dest)
        with self._bound(source) as (fs, target):
            fs.copy(target, destination)

    def move(self, src: str, dest: str) -> None:
        source, destination = self._require_same_container(src, dest)
        with self._bound(source) as (fs, target):
            fs.move(target, destination)

    def exec(self, command: str) -> CommandResult:
        self._check_connection()
        if self._client is None:
            raise RemoteError(
                RemoteErrorType.PROTOCOL_ERROR, "No pod or container to execute command on"
            )
        return self._client.exec(command)

    def create_file(
        self,
        path: str,
        data: Union[bytes, BinaryIO],
        mode: Union[UnixPex, int, None] = None,
    ) -> int:
        with self._bound(self._require_path(path)) as (fs, target):
            return fs.create_file(target, data, mode)

    def append_file(self, path: str, data: Union[bytes, BinaryIO]) -> int:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "append is not supported")

    def open_file(self, path: str, dest: BinaryIO) -> int:
        with self._bound(self._require_path(path)) as (fs, target):
            return fs.open_file(target, dest)

    def open(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming reads")

    def create(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming writes")

    def append(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming appends")

    # -- dispatch

    def _check_connection(self) -> None:
        if not self._connected:
            raise RemoteError(RemoteErrorType.NOT_CONNECTED)

    def _parse(self, path: str) -> VirtualPath:
        return VirtualPath.parse(path, self.pod_name(), self.container_name())

    def _resolve(self, path: str) -> Level:
        return self._parse(path).level()

    def _require_path(self, path: str) -> PathLevel:
        self._check_connection()
        level = self._resolve(path)
        if not isinstance(level, PathLevel):
            raise RemoteError(RemoteErrorType.COULD_NOT_OPEN_FILE, REQUIRES_CONTAINER)
        return level

    def _require_same_container(self, src: str, dest: str) -> tuple[PathLevel, str]:
        """Resolve a transfer; the destination may be a container root."""
        source = self._require_path(src)
        destination = self._resolve(dest)
        if not isinstance(destination, (ContainerLevel, PathLevel)):
            raise RemoteError(RemoteErrorType.COULD_NOT_OPEN_FILE, REQUIRES_CONTAINER)
        if (source.pod, source.container) != (destination.pod, destination.container):
            raise RemoteError(
                RemoteErrorType.FILE_CREATE_DENIED,
                "Source and destination must be in the same container",
            )
        target = destination.path if isinstance(destination, PathLevel) else "/"
        return source, target

    def _view_client(self, environment: Environment) -> ContainerFs:
        workdir = "/"
        if self._client is not None and self._client.environment == environment:
            workdir = self._client.pwd()
        return self._template.bound_to(environment, workdir)

    @contextmanager
    def _bound(self, level: Union[ContainerLevel, PathLevel]) -> Iterator[tuple[ContainerFs, str]]:
        """Yield a client bound to the level's container and the path to use in it.

        The view is discarded on exit, so the current binding is untouched
        whatever the delegated call does.
        """
        environment = Environment(level.pod, level.container)
        target = level.path if isinstance(level, PathLevel) else "/"
        self._log.debug("Dispatching %s to %s", target, environment)
        yield self._view_client(environment), target

    # -- inventory

    def _list_pods(self) -> list[FileEntry]:
        return [FileEntry.directory(f"/{pod}") for pod in self._provider.list_environments()]

    def _list_containers(self, pod: str) -> list[FileEntry]:
        entries = []
        for container in self._provider.list_sub_environments(pod):
            path = posixpath.join("/", pod, container)
            self._log.debug("found container %s -> %s", container, path)
            entries.append(FileEntry.directory(path))
        return entries

    def _stat_pod(self, pod: str) -> FileEntry:
        for entry in self._list_pods():
            if entry.name == pod:
                return entry
        raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"Pod {pod} not found")

    def _stat_container(self, pod: str, container: str) -> FileEntry:
        for entry in self._list_containers(pod):
            if entry.name == container:
                return entry
        raise RemoteError(
            RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"Container {container} not found"
        )

    def _exists_container(self, pod: str, container: str) -> bool:
        if not self._provider.environment_exists(pod):
            return False
        return container in self._provider.list_sub_environments(pod)


def _reroot(environment: Environment, path: str) -> str:
    relative = path.lstrip("/")
    parts = ["/", environment.pod, environment.container]
    if relative:
        parts.append(relative)
    return posixpath.join(*parts)


def _reroot_entry(environment: Environment, entry: FileEntry) -> FileEntry:
    return entry.with_path(_reroot(environment, entry.path))
