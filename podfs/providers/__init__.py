"""Provider package for remote environment integrations."""

from podfs.providers.exec import ExecHandle, ExecProvider, KubectlProvider

__all__ = ["ExecHandle", "ExecProvider", "KubectlProvider"]
