"""Build a ``Config`` from an optional YAML file plus the environment.

The YAML file is located in this order:

1. ``config_path`` passed by the caller
2. the ``SHIFTWATCH_CONFIG`` environment variable
3. ``config.yaml`` in the working directory

A path named by 1 or 2 must exist: a typo there raises instead of silently
falling back to defaults. Only the implicit ``config.yaml`` is optional.
Environment variables still override whatever the file sets (see ``Config``).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from shiftwatch.core.config.schema import Config

CONFIG_ENV_VAR = "SHIFTWATCH_CONFIG"
DEFAULT_CONFIG_FILE = Path("config.yaml")


def load_config(config_path: str | Path | None = None) -> Config:
    source = find_config_file(config_path)
    if source is None:
        logger.debug("No config file found, using env and defaults")
        return Config()
    logger.debug(f"Loading config from {source}")
    return Config(**read_yaml_mapping(source))


def find_config_file(config_path: str | Path | None = None) -> Path | None:
    """Return the config file to read, or None when only defaults apply.

    Raises:
        FileNotFoundError: an explicit or env-named path does not exist.
    """
    requested = config_path or os.environ.get(CONFIG_ENV_VAR)
    if requested:
        path = Path(requested)
        if not path.is_file():
            origin = "argument" if config_path else CONFIG_ENV_VAR
            raise FileNotFoundError(f"Config file not found: {path} (from {origin})")
        return path
    return DEFAULT_CONFIG_FILE if DEFAULT_CONFIG_FILE.is_file() else None


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Parse ``path``; an empty file is an empty mapping, any other top level is an error."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {path} must contain a mapping at the top level, "
            f"got {type(data).__name__}"
        )
    return data
