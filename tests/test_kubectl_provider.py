"""Tests for KubectlProvider command construction and output parsing."""

import json
import subprocess

import pytest

from podfs.errors import RemoteError, RemoteErrorType
from podfs.models.exec import Environment
from podfs.providers.exec.kubectl import KubectlProvider


class KubectlMocker:
    """Records kubectl invocations and replays canned results."""

    def __init__(self):
        self.run_calls = []
        self.popen_calls = []
        self.results = {}

    def set_result(self, args, stdout="", returncode=0, stderr=""):
        self.results[tuple(args)] = (stdout, returncode, stderr)

    def run(self, command, **kwargs):
        self.run_calls.append((command, kwargs))
        stdout, returncode, stderr = self.results.get(tuple(command[1:]), ("", 1, "not found"))
        return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr=stderr)

    def popen(self, args, **kwargs):
        self.popen_calls.append((args, kwargs))
        return object()


@pytest.fixture
def kubectl(monkeypatch):
    mocker = KubectlMocker()
    monkeypatch.setattr(subprocess, "run", mocker.run)
    monkeypatch.setattr(subprocess, "Popen", mocker.popen)
    return mocker


def test_exec_builds_argv(kubectl):
    provider = KubectlProvider(namespace="apps", context="staging", kubeconfig="/tmp/kc")
    provider.exec(Environment("web", "app"), ["/bin/sh", "-c", "ls"])

    args, kwargs = kubectl.popen_calls[0]
    assert args == [
        "kubectl", "--kubeconfig", "/tmp/kc", "--context", "staging", "--namespace", "apps",
        "exec", "web", "-c", "app", "--", "/bin/sh", "-c", "ls",
    ]
    assert kwargs["stdin"] == subprocess.DEVNULL
    assert kwargs["stdout"] == subprocess.PIPE
    assert kwargs["stderr"] == subprocess.DEVNULL


def test_exec_with_stdin(kubectl):
    KubectlProvider().exec(
        Environment("web", "app"), ["tar", "xf", "-", "-C", "/tmp"], stdin=True, stdout=False
    )
    args, kwargs = kubectl.popen_calls[0]
    assert args[:3] == ["kubectl", "exec", "-i"]
    assert kwargs["stdin"] == subprocess.PIPE
    assert kwargs["stdout"] == subprocess.DEVNULL


def test_exec_launch_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise FileNotFoundError("kubectl")

    monkeypatch.setattr(subprocess, "Popen", fail)
    with pytest.raises(RemoteError) as exc:
        KubectlProvider().exec(Environment("web", "app"), ["ls"])
    assert exc.value.kind is RemoteErrorType.PROTOCOL_ERROR


def test_ping(kubectl):
    provider = KubectlProvider()
    with pytest.raises(RemoteError) as exc:
        provider.ping()
    assert exc.value.kind is RemoteErrorType.CONNECTION_ERROR

    kubectl.set_result(["get", "pods", "-o", "name"], "pod/web\n")
    provider.ping()


def test_ping_without_kubectl(monkeypatch):
    def fail(*args, **kwargs):
        raise FileNotFoundError("kubectl")

    monkeypatch.setattr(subprocess, "run", fail)
    with pytest.raises(RemoteError) as exc:
        KubectlProvider().ping()
    assert exc.value.kind is RemoteErrorType.CONNECTION_ERROR


def test_environment_exists(kubectl):
    kubectl.set_result(["get", "pod", "web", "-o", "name"], "pod/web\n")
    provider = KubectlProvider()
    assert provider.environment_exists("web")
    assert not provider.environment_exists("db")


def test_list_environments(kubectl):
    pods = {"items": [{"metadata": {"name": "web"}}, {"metadata": {"name": "db"}}, {}]}
    kubectl.set_result(["get", "pods", "-o", "json"], json.dumps(pods))
    assert KubectlProvider().list_environments() == ["web", "db"]


def test_list_environments_bad_json(kubectl):
    kubectl.set_result(["get", "pods", "-o", "json"], "not json")
    with pytest.raises(RemoteError) as exc:
        KubectlProvider().list_environments()
    assert exc.value.kind is RemoteErrorType.PROTOCOL_ERROR


def test_list_sub_environments(kubectl):
    pod = {"spec": {"containers": [{"name": "app"}, {"name": "sidecar"}]}}
    kubectl.set_result(["get", "pod", "web", "-o", "json"], json.dumps(pod))
    assert KubectlProvider().list_sub_environments("web") == ["app", "sidecar"]


def test_list_sub_environments_unknown_pod(kubectl):
    with pytest.raises(RemoteError) as exc:
        KubectlProvider().list_sub_environments("ghost")
    assert exc.value.kind is RemoteErrorType.NO_SUCH_FILE_OR_DIRECTORY


def test_namespace_is_passed_to_queries(kubectl):
    KubectlProvider(namespace="apps").environment_exists("web")
    command, kwargs = kubectl.run_calls[0]
    assert command == ["kubectl", "--namespace", "apps", "get", "pod", "web", "-o", "name"]
    assert kwargs["capture_output"] is True
    assert kwargs["check"] is False
