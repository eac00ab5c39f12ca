"""
Configuration loading and logging setup.

Settings come from an optional YAML file, for example:

    result_cache_size: 100
    jsonpath_cache_size: 500
    jsonpath_key_length: null
    debounce_window_ms: 250
    presets_path: webhook_search/presets.json
    log_level: INFO
"""

import logging
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


@dataclass
class SearchConfig:
    """Engine and service settings.

    Attributes:
        result_cache_size: Maximum cached query results
        jsonpath_cache_size: Maximum cached JSONPath evaluations
        jsonpath_key_length: Serialized-prefix length for JSONPath cache keys;
            None keys on a digest of the full value
        debounce_window_ms: Quiescence window for debounced filtering
        presets_path: JSON file holding saved filter presets
        log_level: Root logging level name
    """
    result_cache_size: int = 100
    jsonpath_cache_size: int = 500
    jsonpath_key_length: Optional[int] = None
    debounce_window_ms: float = 250
    presets_path: str = 'webhook_search/presets.json'
    log_level: str = 'INFO'

    def __post_init__(self):
        for name in ('result_cache_size', 'jsonpath_cache_size'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.jsonpath_key_length is not None and (
            not isinstance(self.jsonpath_key_length, int) or self.jsonpath_key_length < 1
        ):
            raise ConfigError(
                f"jsonpath_key_length must be a positive integer or null, "
                f"got {self.jsonpath_key_length!r}"
            )
        if not isinstance(self.debounce_window_ms, (int, float)) or self.debounce_window_ms < 0:
            raise ConfigError(
                f"debounce_window_ms must be a non-negative number, got {self.debounce_window_ms!r}"
            )
        level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigError(f"Unknown log_level: {self.log_level!r}")
        self.log_level = level

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchConfig':
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_config(config_path: Optional[str] = None) -> SearchConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file; None or a missing file gives defaults

    Returns:
        SearchConfig instance

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    if not config_path:
        return SearchConfig()

    path = Path(config_path)
    if not path.exists():
        logger.info(f"Config file {config_path} not found, using defaults")
        return SearchConfig()

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config from {config_path}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = SearchConfig.from_dict(data)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def setup_logging(level: str = 'INFO', debug: bool = False) -> None:
    """Configure root logging for the service and CLI."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
