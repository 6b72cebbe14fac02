from buildx_plugin.common.config.settings import PluginSettings, get_settings
from buildx_plugin.common.config.logging_config import setup_logging, get_logger, get_build_logger
from buildx_plugin.common.config.constants import (
    LayerState,
    BuilderDriver,
    RegistryType,
)

__all__ = [
    "PluginSettings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "get_build_logger",
    "LayerState",
    "BuilderDriver",
    "RegistryType",
]
