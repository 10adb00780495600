"""Configuration loading and saving.

The config file stores keys in camelCase; the schema uses snake_case.
"""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger

from kindred.config.schema import Config
from kindred.utils.helpers import ensure_dir


def get_data_dir() -> Path:
    """Return the default kindred home directory."""
    return ensure_dir(Path.home() / ".kindred")


def get_config_path() -> Path:
    """Return the default config file path."""
    return get_data_dir() / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def convert_keys(data: Any, converter=camel_to_snake) -> Any:
    """Recursively convert dict keys with *converter*."""
    if isinstance(data, dict):
        return {converter(k): convert_keys(v, converter) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item, converter) for item in data]
    return data


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, falling back to defaults.

    Environment variables (KINDRED_*) still apply on top of file values
    that are not set explicitly.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Config(**convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using defaults.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file with camelCase keys."""
    path = config_path or get_config_path()
    ensure_dir(path.parent)

    data = convert_keys(config.model_dump(), snake_to_camel)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
