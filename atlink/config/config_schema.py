"""JSON Schema validation for atlink configuration.

Provides schema definition and validation logic with clear error messages.
"""

from typing import Any, Dict, List, Tuple

import jsonschema
from jsonschema import Draft7Validator

from atlink.core.framer import BUILTIN_PROFILES


class ConfigSchema:
    """Configuration schema validator using JSON Schema Draft 7.

    Example:
        >>> is_valid, errors = ConfigSchema.validate_config({"link": {"baud_rate": 9600}})
        >>> assert is_valid
    """

    VALID_BAUD_RATES = [1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200,
                        230400, 460800, 921600, 3000000]

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get JSON Schema Draft 7 for configuration validation."""
        timeout = {"type": ["number", "null"], "exclusiveMinimum": 0}
        string_list = {
            "type": ["array", "null"],
            "items": {"type": "string", "minLength": 1}
        }
        return {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "atlink Configuration",
            "type": "object",
            "properties": {
                "link": {
                    "type": "object",
                    "properties": {
                        "port": {"type": ["string", "null"], "minLength": 1},
                        "baud_rate": {"type": "integer", "enum": ConfigSchema.VALID_BAUD_RATES},
                        "data_bits": {"type": "integer", "enum": [5, 6, 7, 8]},
                        "parity": {"type": "string", "enum": ["none", "even", "odd", "mark", "space"]},
                        "stop_bits": {"type": "number", "enum": [1, 1.5, 2]},
                        "handshake": {"type": "string",
                                      "enum": ["none", "xon_xoff", "rts_cts", "rts_cts_xon_xoff"]},
                        "dtr_enable": {"type": "boolean"},
                        "rts_enable": {"type": "boolean"},
                        "read_timeout": timeout,
                        "write_timeout": timeout,
                        "newline": {"type": "string", "minLength": 1},
                        "encoding": {"type": "string", "minLength": 1},
                        "poll_interval": {"type": "number", "exclusiveMinimum": 0, "maximum": 1},
                        "discard_before_write": {"type": "boolean"}
                    },
                    "additionalProperties": False
                },
                "framer": {
                    "type": "object",
                    "properties": {
                        "profile": {"type": "string", "enum": sorted(BUILTIN_PROFILES)},
                        "completion_mode": {"type": "string", "enum": ["terminator", "stability"]},
                        "stability_window": {"type": "number", "exclusiveMinimum": 0, "maximum": 10},
                        "final_results": string_list,
                        "error_prefixes": string_list,
                        "prompt_enabled": {"type": "boolean"}
                    },
                    "additionalProperties": False
                },
                "observer": {
                    "type": "object",
                    "properties": {
                        "enabled": {"type": "boolean"},
                        "settle_window": {"type": "number", "exclusiveMinimum": 0, "maximum": 10}
                    },
                    "additionalProperties": False
                },
                "logging": {
                    "type": "object",
                    "properties": {
                        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
                        "file_path": {"type": ["string", "null"]},
                        "console_output": {"type": "boolean"},
                        "max_file_size_mb": {"type": "integer", "minimum": 1, "maximum": 1024},
                        "backup_count": {"type": "integer", "minimum": 0, "maximum": 100},
                        "buffer_size": {"type": "integer", "minimum": 1}
                    },
                    "additionalProperties": False
                }
            },
            "additionalProperties": False
        }

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """Validate configuration dictionary against schema.

        Args:
            config: Configuration dictionary (enum values as plain strings)

        Returns:
            Tuple of (is_valid, list of formatted error messages)
        """
        validator = Draft7Validator(ConfigSchema.get_schema())
        errors = [
            ConfigSchema._format_error(error)
            for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path))
        ]
        return len(errors) == 0, errors

    @staticmethod
    def _format_error(error: jsonschema.exceptions.ValidationError) -> str:
        """Format validation error with section and field context."""
        path_parts = [str(p) for p in error.path]
        if not path_parts:
            location = "root"
        elif len(path_parts) == 1:
            location = f"Section '{path_parts[0]}'"
        else:
            location = f"Section '{path_parts[0]}', field '{'.'.join(path_parts[1:])}'"

        if error.validator == "enum":
            return f"{location}: Expected one of {error.validator_value}, got {error.instance!r}"
        if error.validator == "type":
            return (f"{location}: Expected type {error.validator_value}, "
                    f"got {type(error.instance).__name__} (value: {error.instance!r})")
        return f"{location}: {error.message}"
