"""Exec provider backed by the kubectl command line client."""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Sequence

from podfs.errors import RemoteError, RemoteErrorType
from podfs.models.exec import Environment
from podfs.providers.exec.base import ExecHandle, ExecProvider

logger = logging.getLogger(__name__)


class KubectlProvider(ExecProvider):
    def __init__(
        self,
        kubectl: str = "kubectl",
        namespace: str | None = None,
        context: str | None = None,
        kubeconfig: str | None = None,
    ) -> None:
        self._kubectl = kubectl
        self._namespace = namespace
        self._context = context
        self._kubeconfig = kubeconfig

    def exec(
        self,
        environment: Environment,
        command: Sequence[str],
        stdin: bool = False,
        stdout: bool = True,
        stderr: bool = False,
    ) -> ExecHandle:
        args = self._base_args() + ["exec"]
        if stdin:
            args.append("-i")
        args.extend([environment.pod, "-c", environment.container, "--"])
        args.extend(command)
        logger.debug("Launching %s", " ".join(args))
        try:
            return subprocess.Popen(
                args,
                stdin=subprocess.PIPE if stdin else subprocess.DEVNULL,
                stdout=subprocess.PIPE if stdout else subprocess.DEVNULL,
                stderr=subprocess.PIPE if stderr else subprocess.DEVNULL,
            )
        except OSError as exc:
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, exc) from exc

    def ping(self) -> None:
        result = self._run(["get", "pods", "-o", "name"])
        if result.returncode != 0:
            raise RemoteError(
                RemoteErrorType.CONNECTION_ERROR, result.stderr.strip() or None
            )

    def environment_exists(self, pod: str) -> bool:
        return self._run(["get", "pod", pod, "-o", "name"]).returncode == 0

    def list_environments(self) -> Sequence[str]:
        data = self._get_json(["get", "pods", "-o", "json"])
        items = data.get("items", [])
        if not isinstance(items, list):
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, "Unexpected pod list")
        names = []
        for item in items:
            name = item.get("metadata", {}).get("name") if isinstance(item, dict) else None
            if name:
                names.append(name)
        return names

    def list_sub_environments(self, pod: str) -> Sequence[str]:
        data = self._get_json(
            ["get", "pod", pod, "-o", "json"],
            missing=RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY,
        )
        spec = data.get("spec")
        if not isinstance(spec, dict):
            raise RemoteError(
                RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY, f"Pod spec not found: {pod}"
            )
        return [
            container["name"]
            for container in spec.get("containers", [])
            if isinstance(container, dict) and container.get("name")
        ]

    def _base_args(self) -> list[str]:
        args = [self._kubectl]
        if self._kubeconfig:
            args.extend(["--kubeconfig", self._kubeconfig])
        if self._context:
            args.extend(["--context", self._context])
        if self._namespace:
            args.extend(["--namespace", self._namespace])
        return args

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        command = self._base_args() + list(args)
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise RemoteError(RemoteErrorType.CONNECTION_ERROR, exc) from exc

    def _get_json(
        self,
        args: Sequence[str],
        missing: RemoteErrorType = RemoteErrorType.PROTOCOL_ERROR,
    ) -> dict[str, Any]:
        result = self._run(args)
        if result.returncode != 0:
            raise RemoteError(missing, result.stderr.strip() or " ".join(args))
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, exc) from exc
        if not isinstance(data, dict):
            raise RemoteError(RemoteErrorType.PROTOCOL_ERROR, "Unexpected response from kubectl")
        return data
