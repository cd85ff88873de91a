# linework/config/__init__.py
"""Configuration system for linework."""

from .loader import get_config_dir, get_config_path, load_config, resolve_api_key
from .schema import (
    BookConfig,
    GenAIConfig,
    LineworkConfig,
    OutputConfig,
    QueueConfig,
    RetryPolicy,
)

__all__ = [
    "LineworkConfig",
    "GenAIConfig",
    "RetryPolicy",
    "QueueConfig",
    "BookConfig",
    "OutputConfig",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "resolve_api_key",
]
