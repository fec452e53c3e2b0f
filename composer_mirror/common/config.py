"""Configuration management for composer-mirror.

Handles loading and validation of YAML configuration files for the
metadata dumper, URL routes and logging.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_ROUTES = {
    "track_download": "/downloads/{name}",
    "track_download_batch": "/downloads/",
}


@dataclass
class MetadataConfig:
    """Protocol URLs and transport hints for synthesized metadata."""

    providers_url: str = "/p/%package%$%hash%.json"
    metadata_url: str = "/p2/%package%.json"
    provider_includes_path: str = "p/providers$%hash%.json"
    # Hint for the transport layer, in seconds
    cache_ttl: int = 60
    gzip_level: int = 6


@dataclass
class LoggingConfig:
    """Configuration for library logging."""

    level: str = "INFO"
    log_dir: str = "/var/log/composer-mirror"
    file_logging: bool = False
    console_logging: bool = True
    max_bytes: int = 10485760
    backup_count: int = 5


@dataclass
class MirrorCoreConfig:
    """Top-level configuration for composer-mirror."""

    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    base_url: str = ""
    routes: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ROUTES))
    output_dir: str = "/var/lib/composer-mirror/public"


def parse_metadata_config(metadata_dict: Dict[str, Any]) -> MetadataConfig:
    """Parse a metadata configuration dictionary.

    Args:
        metadata_dict: Metadata configuration dictionary

    Returns:
        MetadataConfig instance

    Raises:
        ValueError: If a URL template lacks its required placeholder
    """
    defaults = MetadataConfig()
    config = MetadataConfig(
        providers_url=metadata_dict.get("providers_url", defaults.providers_url),
        metadata_url=metadata_dict.get("metadata_url", defaults.metadata_url),
        provider_includes_path=metadata_dict.get(
            "provider_includes_path", defaults.provider_includes_path
        ),
        cache_ttl=int(metadata_dict.get("cache_ttl", defaults.cache_ttl)),
        gzip_level=int(metadata_dict.get("gzip_level", defaults.gzip_level)),
    )

    if "%package%" not in config.metadata_url:
        raise ValueError(f"metadata_url must contain %package%: {config.metadata_url}")
    if "%hash%" not in config.provider_includes_path:
        raise ValueError(
            f"provider_includes_path must contain %hash%: {config.provider_includes_path}"
        )
    if not 0 <= config.gzip_level <= 9:
        raise ValueError(f"gzip_level must be between 0 and 9, got {config.gzip_level}")

    return config


def parse_logging_config(logging_dict: Dict[str, Any]) -> LoggingConfig:
    """Parse logging configuration dictionary.

    Args:
        logging_dict: Logging configuration dictionary

    Returns:
        LoggingConfig instance
    """
    defaults = LoggingConfig()
    return LoggingConfig(
        level=logging_dict.get("level", defaults.level),
        log_dir=logging_dict.get("log_dir", defaults.log_dir),
        file_logging=logging_dict.get("file_logging", defaults.file_logging),
        console_logging=logging_dict.get("console_logging", defaults.console_logging),
        max_bytes=logging_dict.get("max_bytes", defaults.max_bytes),
        backup_count=logging_dict.get("backup_count", defaults.backup_count),
    )


def parse_config(config_dict: Dict[str, Any]) -> MirrorCoreConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        MirrorCoreConfig instance
    """
    routes = dict(DEFAULT_ROUTES)
    routes.update(config_dict.get("routes", {}) or {})

    return MirrorCoreConfig(
        metadata=parse_metadata_config(config_dict.get("metadata", {}) or {}),
        logging=parse_logging_config(config_dict.get("logging", {}) or {}),
        base_url=config_dict.get("base_url", ""),
        routes=routes,
        output_dir=config_dict.get("output_dir", "/var/lib/composer-mirror/public"),
    )


def load_config(config_path: str = "/etc/composer-mirror/config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
        TypeError: If the YAML root is not a mapping
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(
    config_path: str = "/etc/composer-mirror/config.yaml",
) -> MirrorCoreConfig:
    """Load and parse configuration into typed dataclasses.

    Args:
        config_path: Path to configuration file

    Returns:
        MirrorCoreConfig instance
    """
    return parse_config(load_config(config_path))
