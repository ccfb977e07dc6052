"""Configuration loading for atlink.

Layers configuration sources in order of increasing precedence:

1. Built-in defaults
2. YAML file (explicit path, ./atlink.yaml or ~/.atlink/config.yaml)
3. Environment variables (ATLINK_<SECTION>_<KEY>)

The merged dictionary is validated against the JSON schema before being
converted to frozen dataclasses.
"""

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging
import os

import yaml

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
from atlink.core.exceptions import ConfigError
from atlink.core.framer import BUILTIN_PROFILES, CompletionMode, DeviceProfile
from atlink.core.link_session import Handshake, LinkSettings, Parity, StopBits

logger = logging.getLogger(__name__)

ENV_PREFIX = "ATLINK_"

CONFIG_FILENAME = "atlink.yaml"


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from defaults, file and environment.

    Args:
        path: Explicit YAML file. When None the search paths are tried and
            a missing file falls back to defaults.

    Returns:
        Validated Config

    Raises:
        ConfigError: File unreadable, malformed YAML or schema violations

    Example:
        >>> config = load_config()
        >>> config.link.baud_rate
        115200
    """
    config_dict = get_default_config().to_dict()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")
    else:
        config_path = _search_config_paths()

    if config_path is not None:
        logger.debug("Loading configuration from %s", config_path)
        config_dict = _merge_configs(config_dict, _load_from_file(config_path))

    config_dict = _merge_configs(config_dict, _apply_env_overrides())

    is_valid, errors = ConfigSchema.validate_config(config_dict)
    if not is_valid:
        raise ConfigError("Invalid configuration", errors)

    return _dict_to_config(config_dict)


def build_link_settings(config: Config, port: Optional[str] = None) -> LinkSettings:
    """Build LinkSettings from the link section.

    Args:
        config: Loaded configuration
        port: Overrides config.link.port when given

    Raises:
        ConfigError: No port configured
    """
    link = config.link
    port = port or link.port
    if not port:
        raise ConfigError("No serial port configured",
                          ["Section 'link', field 'port': required"])

    return LinkSettings(
        port=port,
        baud_rate=link.baud_rate,
        data_bits=link.data_bits,
        parity=link.parity,
        stop_bits=link.stop_bits,
        handshake=link.handshake,
        dtr_enable=link.dtr_enable,
        rts_enable=link.rts_enable,
        read_timeout=link.read_timeout,
        write_timeout=link.write_timeout,
        newline=link.newline,
        encoding=link.encoding,
        poll_interval=link.poll_interval,
        discard_before_write=link.discard_before_write
    )


def build_profile(config: Config) -> DeviceProfile:
    """Build the DeviceProfile named by the framer section, applying overrides."""
    framer = config.framer
    try:
        base = BUILTIN_PROFILES[framer.profile]
    except KeyError:
        raise ConfigError(f"Unknown device profile: {framer.profile}",
                          [f"Section 'framer', field 'profile': Expected one of "
                           f"{sorted(BUILTIN_PROFILES)}, got {framer.profile!r}"])

    return DeviceProfile(
        name=base.name,
        final_results=(tuple(framer.final_results) if framer.final_results is not None
                       else base.final_results),
        prompt=base.prompt if framer.prompt_enabled else None,
        error_prefixes=(tuple(framer.error_prefixes) if framer.error_prefixes is not None
                        else base.error_prefixes)
    )


def _search_config_paths() -> Optional[Path]:
    """Return the first existing file among the search paths."""
    for path in (Path.cwd() / CONFIG_FILENAME, Path.home() / ".atlink" / "config.yaml"):
        if path.exists():
            return path
    return None


def _load_from_file(path: Path) -> Dict[str, Any]:
    """Load a YAML configuration file.

    Raises:
        ConfigError: File cannot be read or is not a YAML mapping
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", [str(e)])
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}", [str(e)])

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration file {path}",
                          ["root: Expected a mapping of sections"])
    return data


def _apply_env_overrides() -> Dict[str, Any]:
    """Collect overrides from ATLINK_<SECTION>_<KEY> environment variables.

    Examples:
        ATLINK_LINK_PORT=/dev/ttyUSB2
        ATLINK_LINK_READ_TIMEOUT=2.5
        ATLINK_FRAMER_FINAL_RESULTS=OK,ERROR,NO CARRIER
    """
    overrides: Dict[str, Dict[str, Any]] = {}

    for env_name, env_value in os.environ.items():
        if not env_name.startswith(ENV_PREFIX):
            continue

        # ATLINK_LINK_READ_TIMEOUT -> ["link", "read_timeout"]
        parts = env_name[len(ENV_PREFIX):].lower().split('_', 1)
        if len(parts) != 2:
            continue

        section, key = parts
        overrides.setdefault(section, {})[key] = _parse_env_value(
            env_value, as_list=_is_list_field(section, key))

    return overrides


def _is_list_field(section: str, key: str) -> bool:
    """Check whether the schema declares section.key as a list."""
    properties = ConfigSchema.get_schema()["properties"]
    field = properties.get(section, {}).get("properties", {}).get(key, {})
    field_type = field.get("type", [])
    return "array" in (field_type if isinstance(field_type, list) else [field_type])


def _parse_env_value(value: str, as_list: bool = False) -> Any:
    """Parse an environment value to bool, None, int, float or str.

    With as_list the value is split on commas, so a single item still
    yields a one-element list.
    """
    lowered = value.strip().lower()
    if as_list:
        if lowered in ('none', 'null'):
            return None
        return [v.strip() for v in value.split(',') if v.strip()]

    if lowered in ('true', 'yes', 'on'):
        return True
    if lowered in ('false', 'no', 'off'):
        return False
    if lowered in ('none', 'null'):
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    # Allow escaped line terminators such as "\r\n"
    return value.replace('\\r', '\r').replace('\\n', '\n')


def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override sections into base (override takes precedence)."""
    merged = deepcopy(base)

    for section, section_values in override.items():
        if isinstance(section_values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(section_values)
        else:
            merged[section] = section_values

    return merged


def _dict_to_config(config_dict: Dict[str, Any]) -> Config:
    """Convert a validated configuration dictionary to Config dataclasses."""
    link = config_dict.get('link', {})
    framer = config_dict.get('framer', {})
    observer = config_dict.get('observer', {})
    log = config_dict.get('logging', {})

    return Config(
        link=LinkConfig(
            port=link.get('port'),
            baud_rate=link.get('baud_rate', 115200),
            data_bits=link.get('data_bits', 8),
            parity=Parity[link.get('parity', 'none').upper()],
            stop_bits=StopBits(link.get('stop_bits', 1)),
            handshake=Handshake(link.get('handshake', 'none')),
            dtr_enable=link.get('dtr_enable', True),
            rts_enable=link.get('rts_enable', True),
            read_timeout=link.get('read_timeout'),
            write_timeout=link.get('write_timeout'),
            newline=link.get('newline', '\r\n'),
            encoding=link.get('encoding', 'latin-1'),
            poll_interval=link.get('poll_interval', 0.001),
            discard_before_write=link.get('discard_before_write', False)
        ),
        framer=FramerConfig(
            profile=framer.get('profile', 'generic'),
            completion_mode=CompletionMode(framer.get('completion_mode', 'terminator')),
            stability_window=framer.get('stability_window', 0.05),
            final_results=framer.get('final_results'),
            error_prefixes=framer.get('error_prefixes'),
            prompt_enabled=framer.get('prompt_enabled', True)
        ),
        observer=ObserverConfig(
            enabled=observer.get('enabled', True),
            settle_window=observer.get('settle_window', 0.05)
        ),
        logging=LoggingConfig(
            level=LogLevel(log.get('level', 'INFO')),
            file_path=log.get('file_path'),
            console_output=log.get('console_output', True),
            max_file_size_mb=log.get('max_file_size_mb', 10),
            backup_count=log.get('backup_count', 5),
            buffer_size=log.get('buffer_size', 1000)
        )
    )
