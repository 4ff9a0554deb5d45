"""Writing and reading the YAML description of an export."""

from __future__ import annotations

from typing import Any

import yaml

from pmdump import models_v2, models_v3
from pmdump.types import AppVersion

_MODELS: dict[AppVersion, type] = {
    AppVersion.V2_0: models_v2.Data,
    AppVersion.V3_2: models_v3.Data,
    AppVersion.V3_3: models_v3.Data,
}


def create_yaml(file_name: str, data: Any, app_version: Any) -> None:
    """Write ``data`` as YAML in the layout used by ``app_version``."""
    try:
        version = AppVersion(app_version)
    except ValueError:
        version = None
    model = _MODELS.get(version) if version is not None else None
    if model is None:
        raise ValueError(f"CreateYaml: app version {str(app_version)!r} not supported")
    if not isinstance(data, model):
        raise TypeError(
            f"CreateYaml: expected {model.__module__}.{model.__name__} "
            f"for app version {version}, got {type(data).__name__}"
        )
    content = yaml.safe_dump(data.to_dict(), sort_keys=False, allow_unicode=True)
    with open(file_name, "w", encoding="utf-8") as fh:
        fh.write(content)


def read_yaml(file_name: str) -> models_v3.Data:
    """Read an export description written for a 3.x application."""
    with open(file_name, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"{file_name!r} does not hold a YAML mapping")
    return models_v3.Data.from_dict(raw)