"""Filesystem client for a single container, driven through its shell."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import posixpath
import shlex
from typing import BinaryIO, Optional, Union

from podfs.errors import RemoteError, RemoteErrorType
from podfs.fs.listing import ListingParseError, parse_listing, parse_ls_line
from podfs.fs.shell import ShellDriver
from podfs.models.exec import CommandResult, Environment
from podfs.models.files import FileEntry, SetStat, UnixPex
from podfs.providers.exec.base import ExecProvider

logger = logging.getLogger(__name__)

TOUCH_TIME_FORMAT = "%Y%m%d%H%M.%S"


def absolutize(workdir: str, path: str) -> str:
    return posixpath.normpath(posixpath.join(workdir, path))


def _q(path: str) -> str:
    return shlex.quote(path)


class ContainerFs:
    """Remote filesystem living in one container of one pod.

    Every operation is one or more shell commands; nothing is cached
    except the working directory reported by the last ``cd``.
    """

    def __init__(
        self,
        provider: ExecProvider,
        pod: str,
        container: str,
        log: Optional[logging.Logger] = None,
        driver: Optional[ShellDriver] = None,
    ) -> None:
        self._log = log or logger
        self._driver = driver or ShellDriver(provider, log=self._log)
        self._environment = Environment(pod=pod, container=container)
        self._workdir = "/"
        self._connected = False

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def driver(self) -> ShellDriver:
        return self._driver

    def bound_to(self, environment: Environment, workdir: str = "/") -> "ContainerFs":
        """Return a connected client sharing this client's driver."""
        view = ContainerFs(
            self._driver.provider,
            environment.pod,
            environment.container,
            log=self._log,
            driver=self._driver,
        )
        view._workdir = workdir
        view._connected = True
        return view

    def connect(self) -> str:
        self._log.debug("Initializing connection to %s", self._environment)
        if not self._environment.pod or not self._environment.container:
            raise RemoteError(RemoteErrorType.CONNECTION_ERROR, "pod and container are required")
        if not self._driver.provider.environment_exists(self._environment.pod):
            raise RemoteError(
                RemoteErrorType.CONNECTION_ERROR, f"pod not found: {self._environment.pod}"
            )
        self._log.debug("Getting working directory...")
        output = self._driver.run(self._environment, "pwd", "/").stdout
        if not output.startswith("/"):
            raise RemoteError(RemoteErrorType.CONNECTION_ERROR, f"bad pwd response: {output}")
        self._workdir = output.strip()
        self._connected = True
        self._log.info("Connection established; working directory: %s", self._workdir)
        return self._workdir

    def disconnect(self) -> None:
        if not self._connected:
            raise RemoteError(RemoteErrorType.NOT_CONNECTED)
        self._connected = False
        self._log.info("Disconnected from %s", self._environment)

    def is_connected(self) -> bool:
        if not self._connected:
            return False
        return self._driver.provider.environment_exists(self._environment.pod)

    def pwd(self) -> str:
        self._check_connection()
        return self._workdir

    def change_dir(self, path: str) -> str:
        self._check_connection()
        target = self._abs(path)
        self._log.debug("Changing working directory to %s", target)
        output = self._run(f"cd {_q(target)}; echo $?; pwd").stdout.strip()
        if not output.startswith("0"):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target)
        self._workdir = output[1:].strip()
        self._log.debug("Changed working directory to %s", self._workdir)
        return self._workdir

    def list_dir(self, path: str) -> list[FileEntry]:
        self._check_connection()
        target = self._abs(path)
        self._log.debug("Getting file entries in %s", target)
        if not self.exists(target):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target)
        listing_path = target if target.endswith("/") else f"{target}/"
        output = self._run(f"ls -la {_q(listing_path)}").stdout
        return parse_listing(target, output, self._log)

    def stat(self, path: str) -> FileEntry:
        self._check_connection()
        target = self._abs(path)
        self._log.debug("Stat %s", target)
        parent = posixpath.dirname(target)
        if target == parent:
            raise RemoteError(RemoteErrorType.STAT_FAILED, "Path has no parent")
        flags = "-ld" if self._is_directory(target) else "-l"
        line = self._run(f"ls {flags} {_q(target)}").stdout.strip()
        try:
            return parse_ls_line(parent, line, self._log)
        except ListingParseError as exc:
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target) from exc

    def exists(self, path: str) -> bool:
        self._check_connection()
        target = self._abs(path)
        return self._run(f"test -e {_q(target)}").ok

    def setstat(self, path: str, attrs: SetStat) -> None:
        self._check_connection()
        target = self._abs(path)
        self._log.debug("Setting attributes for %s", target)
        if not self.exists(target):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target)
        if attrs.mode is not None:
            self._assert_stat_command(f"chmod {attrs.mode} {_q(target)}")
        if attrs.uid is not None or attrs.gid is not None:
            owner = "" if attrs.uid is None else str(attrs.uid)
            if attrs.gid is not None:
                owner = f"{owner}:{attrs.gid}"
            self._assert_stat_command(f"chown {owner} {_q(target)}")
        if attrs.accessed is not None:
            self._assert_stat_command(f"touch -a -t {_fmt_time(attrs.accessed)} {_q(target)}")
        if attrs.modified is not None:
            self._assert_stat_command(f"touch -m -t {_fmt_time(attrs.modified)} {_q(target)}")

    def remove_file(self, path: str) -> None:
        self._remove(path, "rm -f", RemoteErrorType.COULD_NOT_REMOVE_FILE)

    def remove_dir(self, path: str) -> None:
        self._remove(path, "rmdir", RemoteErrorType.DIRECTORY_NOT_EMPTY)

    def remove_dir_all(self, path: str) -> None:
        self._remove(path, "rm -rf", RemoteErrorType.COULD_NOT_REMOVE_FILE)

    def create_dir(self, path: str, mode: Union[UnixPex, int] = 0o755) -> None:
        self._check_connection()
        target = self._abs(path)
        if self.exists(target):
            raise RemoteError(RemoteErrorType.DIRECTORY_ALREADY_EXISTS, target)
        pex = mode if isinstance(mode, UnixPex) else UnixPex.from_mode(mode)
        self._log.debug("Creating directory at %s with mode %s", target, pex)
        if not self._run(f"mkdir -m {pex} {_q(target)}").ok:
            raise RemoteError(RemoteErrorType.FILE_CREATE_DENIED, target)

    def symlink(self, path: str, target: str) -> None:
        self._check_connection()
        link = self._abs(path)
        self._log.debug("Creating a symlink at %s pointing at %s", link, target)
        if not self.exists(target):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target)
        if self.exists(link):
            raise RemoteError(RemoteErrorType.FILE_CREATE_DENIED, link)
        if not self._run(f"ln -s {_q(target)} {_q(link)}").ok:
            raise RemoteError(RemoteErrorType.FILE_CREATE_DENIED, link)

    def copy(self, src: str, dest: str) -> None:
        self._transfer("cp -rf", src, dest)

    def move(self, src: str, dest: str) -> None:
        self._transfer("mv -f", src, dest)

    def exec(self, command: str) -> CommandResult:
        self._check_connection()
        self._log.debug('Executing command "%s"', command)
        return self._run(command)

    def create_file(
        self,
        path: str,
        data: Union[bytes, BinaryIO],
        mode: Union[UnixPex, int, None] = None,
    ) -> int:
        self._check_connection()
        target = self._abs(path)
        payload = data if isinstance(data, bytes) else data.read()
        if isinstance(mode, UnixPex):
            mode = mode.to_mode()
        size = self._driver.upload(self._environment, target, payload, mode)
        if not self.exists(target):
            raise RemoteError(
                RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"failed to create file {target}"
            )
        return size

    def append_file(self, path: str, data: Union[bytes, BinaryIO]) -> int:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "append is not supported")

    def open_file(self, path: str, dest: BinaryIO) -> int:
        self._check_connection()
        target = self._abs(path)
        self._log.debug("Opening file from %s at %s", self._environment, target)
        return self._driver.download(self._environment, target, dest)

    def open(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming reads")

    def create(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming writes")

    def append(self, path: str) -> BinaryIO:
        raise RemoteError(RemoteErrorType.UNSUPPORTED_FEATURE, "streaming appends")

    def _check_connection(self) -> None:
        if not self._connected:
            raise RemoteError(RemoteErrorType.NOT_CONNECTED)

    def _abs(self, path: str) -> str:
        return absolutize(self._workdir, path)

    def _run(self, command: str) -> CommandResult:
        return self._driver.run(self._environment, command, self._workdir)

    def _is_directory(self, path: str) -> bool:
        return self._run(f"test -d {_q(path)}").ok

    def _assert_stat_command(self, command: str) -> None:
        if not self._run(command).ok:
            raise RemoteError(RemoteErrorType.STAT_FAILED, command)

    def _remove(self, path: str, command: str, failure: RemoteErrorType) -> None:
        self._check_connection()
        target = self._abs(path)
        if not self.exists(target):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, target)
        self._log.debug("Removing %s (%s)", target, command)
        if not self._run(f"{command} {_q(target)}").ok:
            raise RemoteError(failure, target)

    def _transfer(self, command: str, src: str, dest: str) -> None:
        self._check_connection()
        source = self._abs(src)
        if not self.exists(source):
            raise RemoteError(RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, source)
        target = self._abs(dest)
        self._log.debug("%s %s -> %s", command, source, target)
        if not self._run(f"{command} {_q(source)} {_q(target)}").ok:
            raise RemoteError(RemoteErrorType.FILE_CREATE_DENIED, target)


def _fmt_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TOUCH_TIME_FORMAT)
