"""
Configuration management and loading.

Resolves the cache directory and the log sources, either from a YAML file
or from home-directory defaults.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml

from toktrack.storage.sources import DEFAULT_PATTERN


DEFAULT_SOURCE = "claude-code"
DEFAULT_RECENT_HOURS = 24.0


@dataclass(frozen=True)
class SourceConfig:
    """Location of one source's JSONL logs."""
    data_dir: Path
    pattern: str = DEFAULT_PATTERN

    def __post_init__(self):
        """Validate the glob pattern."""
        if not self.pattern:
            raise ValueError("pattern cannot be empty")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    cache_dir: Path
    sources: Dict[str, SourceConfig]
    recent_hours: float = DEFAULT_RECENT_HOURS

    def __post_init__(self):
        """Validate the warm-path window is positive."""
        if self.recent_hours <= 0:
            raise ValueError("recent_hours must be > 0")


def default_config(home: Optional[Path] = None) -> AppConfig:
    """Build the configuration used when no config file exists.

    Args:
        home: Home directory; defaults to the current user's home

    Returns:
        AppConfig with ``~/.toktrack/cache`` and the Claude Code projects dir
    """
    home = Path(home) if home is not None else Path.home()
    return AppConfig(
        cache_dir=home / ".toktrack" / "cache",
        sources={
            DEFAULT_SOURCE: SourceConfig(data_dir=home / ".claude" / "projects"),
        },
    )


def default_config_path(home: Optional[Path] = None) -> Path:
    home = Path(home) if home is not None else Path.home()
    return home / ".toktrack" / "config.yaml"


def load_config(path: str, home: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Every key is optional; missing keys fall back to ``default_config``.
    Unknown keys are rejected so typos do not go unnoticed.

    Args:
        path: Path to YAML configuration file
        home: Home directory used for defaults

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'cache_dir', 'recent_hours', 'sources'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    defaults = default_config(home)

    cache_dir = defaults.cache_dir
    if 'cache_dir' in raw_config:
        cache_dir = _parse_path(raw_config['cache_dir'], 'cache_dir')

    recent_hours = defaults.recent_hours
    if 'recent_hours' in raw_config:
        value = raw_config['recent_hours']
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValueError("'recent_hours' must be a number > 0")
        recent_hours = float(value)

    sources = defaults.sources
    if 'sources' in raw_config:
        sources_data = raw_config['sources']
        if not isinstance(sources_data, dict) or not sources_data:
            raise ValueError("'sources' must be a non-empty dictionary")
        sources = {}
        for source_name, source_data in sources_data.items():
            if not isinstance(source_data, dict):
                raise ValueError(f"Source '{source_name}' must be a dictionary")
            sources[str(source_name)] = _parse_source_config(source_data, f"sources.{source_name}")

    return AppConfig(
        cache_dir=cache_dir,
        sources=sources,
        recent_hours=recent_hours,
    )


def _parse_source_config(data: Dict, path: str) -> SourceConfig:
    """Parse and validate a source entry.

    Args:
        data: Source configuration data
        path: Path for error messages

    Returns:
        Validated SourceConfig

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'data_dir', 'pattern'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    if 'data_dir' not in data:
        raise ValueError(f"Missing required 'data_dir' in {path}")
    data_dir = _parse_path(data['data_dir'], f"{path}.data_dir")

    pattern = data.get('pattern', DEFAULT_PATTERN)
    if not isinstance(pattern, str) or not pattern:
        raise ValueError(f"'pattern' in {path} must be a non-empty string")

    return SourceConfig(data_dir=data_dir, pattern=pattern)


def _parse_path(value, path: str) -> Path:
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{path}' must be a non-empty string")
    return Path(value).expanduser()
