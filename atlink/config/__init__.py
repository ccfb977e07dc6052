"""Configuration package.

Provides zero-config defaults, YAML file loading, environment variable
overrides and schema validation.
"""

from atlink.config.config_loader import build_link_settings, build_profile, load_config
from atlink.config.config_models import (
    Config,
    LinkConfig,
    FramerConfig,
    ObserverConfig,
    LoggingConfig,
    LogLevel
)
from atlink.config.config_schema import ConfigSchema
from atlink.config.defaults import get_default_config

__all__ = [
    'load_config',
    'build_link_settings',
    'build_profile',
    'get_default_config',
    'ConfigSchema',
    'Config',
    'LinkConfig',
    'FramerConfig',
    'ObserverConfig',
    'LoggingConfig',
    'LogLevel',
]
