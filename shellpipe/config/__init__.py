"""Configuration for shellpipe."""

from shellpipe.config.base_config import BaseConfig
from shellpipe.config.execution_config import (
    CONFIG_PATH_ENV,
    ExecutionConfig,
    get_execution_config,
    load_execution_config,
    reset_execution_config,
)

__all__ = [
    "BaseConfig",
    "CONFIG_PATH_ENV",
    "ExecutionConfig",
    "get_execution_config",
    "load_execution_config",
    "reset_execution_config",
]
