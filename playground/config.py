"""Sandbox configuration with YAML support."""

from __future__ import annotations

from pathlib import Path

import yaml

from playground.schemas import SandboxConfig


def _anchor(value: str | None, root: Path) -> str | None:
    if value is None or Path(value).is_absolute():
        return value
    return str(root / value)


def resolve_relative_paths(config: SandboxConfig, root: Path) -> SandboxConfig:
    """
    Anchor relative filesystem settings at ``root``.

    Artifact locations without a scheme are read relative to ``fetch.base_dir``,
    which defaults to ``root`` itself.
    """
    fetch = config.fetch.model_copy(
        update={
            "base_dir": _anchor(config.fetch.base_dir, root) or str(root),
            "cache_path": _anchor(config.fetch.cache_path, root),
        }
    )
    return config.model_copy(update={"fetch": fetch, "stub_dir": _anchor(config.stub_dir, root)})


def load_config(yaml_path: str | Path) -> SandboxConfig:
    """Load sandbox configuration from a YAML file.

    Relative paths in the file are taken relative to the file's directory.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        SandboxConfig instance

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is invalid or has invalid fields
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {yaml_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {yaml_path}")

    try:
        config = SandboxConfig.from_dict(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e
    return resolve_relative_paths(config, yaml_path.parent.resolve())


def save_config(config: SandboxConfig, yaml_path: str | Path) -> None:
    """Save sandbox configuration to a YAML file, omitting unset settings."""
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(exclude_none=True)

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2, allow_unicode=True)
