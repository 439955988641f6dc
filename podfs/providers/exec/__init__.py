"""Exec provider implementations and interfaces."""

from podfs.providers.exec.base import ExecHandle, ExecProvider
from podfs.providers.exec.kubectl import KubectlProvider

__all__ = ["ExecHandle", "ExecProvider", "KubectlProvider"]
