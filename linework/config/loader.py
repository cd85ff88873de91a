# linework/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
import os
from pathlib import Path

import yaml
from platformdirs import user_config_path

from .schema import LineworkConfig

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


def get_config_dir() -> Path:
    """Get the linework config directory, creating it if needed."""
    return user_config_path("linework", ensure_exists=True)


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    return get_config_dir() / "config.yaml"


def resolve_api_key(config: LineworkConfig) -> str | None:
    """Return the configured API key, falling back to the environment."""
    if config.genai.api_key:
        return config.genai.api_key
    for name in API_KEY_ENV_VARS:
        if value := os.environ.get(name):
            return value
    return None


def load_config(config_path: Path | None = None) -> LineworkConfig:
    """
    Load configuration from YAML file.

    If config file doesn't exist, creates it with defaults.
    Returns validated Pydantic model.

    Args:
        config_path: Override path (defaults to the platform config dir)
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        default_config = LineworkConfig()
        config_dict = default_config.model_dump(mode="json")

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Created default config at {config_path}")
        return default_config

    with config_path.open("r") as f:
        config_data = yaml.safe_load(f) or {}

    config = LineworkConfig(**config_data)
    logger.info(f"Loaded config from {config_path}")
    return config
