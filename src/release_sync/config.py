"""YAML configuration for release-sync.

Everything has a working default, so the config file is optional. A file
only needs the keys it overrides:

    release_marker: "#Release#"
    manifest_file: get_all_manifests.sh
    aliases:
      workbenches/notebook-controller:
        - odh-notebook-controller
        - kf-notebook-controller

``aliases`` maps a component name as written in the tracker issue to the
manifest names it must be exported under. A component listed here is
exported under each target name with identical values, and not under its
own name.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

DEFAULT_ALIASES: dict[str, list[str]] = {
    "workbenches/notebook-controller": [
        "odh-notebook-controller",
        "kf-notebook-controller",
    ],
}


class SyncConfig(BaseModel):
    """Top-level configuration loaded from YAML."""

    release_marker: str = Field("#Release#", min_length=1)
    manifest_file: str = "get_all_manifests.sh"
    aliases: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ALIASES.items()}
    )


def load_sync_config(path: str | Path) -> SyncConfig:
    """Load and validate a YAML config file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A validated SyncConfig. Returns defaults if the file doesn't exist.

    Raises:
        ValueError: If the YAML content is invalid or fails validation.
    """
    config_path = Path(path)
    if not config_path.exists():
        return SyncConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        return SyncConfig.model_validate(raw)
    except Exception as exc:
        raise ValueError(f"Invalid sync config in {path}: {exc}") from exc
