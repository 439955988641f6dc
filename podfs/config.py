"""Settings loading for podfs."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = "config/podfs.yaml"
ENV_PREFIX = "PODFS_"


@dataclass(frozen=True)
class Settings:
    kubectl: str = "kubectl"
    namespace: Optional[str] = None
    context: Optional[str] = None
    kubeconfig: Optional[str] = None
    log_level: str = "INFO"


def load_settings(
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Read settings from YAML, then apply ``PODFS_*`` environment overrides."""
    environ = os.environ if environ is None else environ
    path = Path(config_path or environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG_PATH))
    settings = Settings(**_load_yaml(path))
    overrides = {}
    for field in fields(Settings):
        value = environ.get(f"{ENV_PREFIX}{field.name.upper()}")
        if value:
            overrides[field.name] = value
    return replace(settings, **overrides)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    known = {field.name for field in fields(Settings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
    return data
