"""Configuration loader for the lecture transcript extractor.

Loads configuration from:
1. Default values (hardcoded)
2. config.yaml file (if exists)
3. Environment variables (highest priority, .env is read first)

Environment variables use the pattern: LTX_SECTION__KEY
Examples:
    LTX_EXTRACTION__LANES=3
    LTX_EXTRACTION__PREFERRED_LOCALE=de_DE
    LTX_LOGGING__LEVEL=DEBUG

The access token may also be given as COURSE_ACCESS_TOKEN.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError, MissingConfigError
from .logging_config import get_logger

logger = get_logger('config')

ENV_PREFIX = "LTX_"
TOKEN_ENV_VAR = "COURSE_ACCESS_TOKEN"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PlatformConfig:
    """Course platform endpoints and credentials."""
    base_url: str = "https://www.udemy.com"
    access_token: Optional[str] = None


@dataclass
class ApiConfig:
    """Course content API configuration."""
    page_size: int = 1000
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    retry_delay: float = 2.0


@dataclass
class BrowserConfig:
    """Browser automation configuration."""
    headless: bool = True
    storage_state: Optional[str] = None
    navigation_timeout: float = 60.0
    selector_timeout: float = 10.0
    panel_timeout: float = 5.0
    user_agent: Optional[str] = None


@dataclass
class ExtractionConfig:
    """Per-lecture extraction and lane configuration."""
    lanes: int = 5
    preferred_locale: str = "en_US"
    download_captions: bool = False
    text_read_attempts: int = 5
    text_read_delay: float = 1.0
    # Settle delays, one per suspension class
    settle_after_navigation: float = 3.0
    settle_after_click: float = 1.0
    settle_after_panel_open: float = 1.5


@dataclass
class OutputConfig:
    """Output file configuration."""
    directory: str = "output/lecture-transcripts"
    manifest_name: str = "contents.txt"
    date_format: str = "%x"
    archive: bool = False
    max_filename_length: int = 150


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    json_format: bool = False


@dataclass
class Config:
    """Main configuration container."""
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def _check_types(self) -> None:
        """Values must have the type of their default (YAML quoting yields strings)."""
        for section in fields(self):
            values = getattr(self, section.name)
            for item in fields(values):
                default, value = item.default, getattr(values, item.name)
                key = f"{section.name}.{item.name}"
                if isinstance(default, bool):
                    ok = isinstance(value, bool)
                    expected = "a boolean"
                elif isinstance(default, int):
                    ok = isinstance(value, int) and not isinstance(value, bool)
                    expected = "an integer"
                elif isinstance(default, float):
                    ok = isinstance(value, (int, float)) and not isinstance(value, bool)
                    expected = "a number"
                elif isinstance(default, str):
                    ok = isinstance(value, str)
                    expected = "a string"
                else:
                    continue
                if not ok:
                    raise ConfigurationError(
                        f"Invalid configuration: '{key}' must be {expected}, got {value!r}",
                        config_key=key,
                    )

    def validate(self) -> None:
        """Basic type and range checks.

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range
        """
        self._check_types()
        checks = [
            (isinstance(self.extraction.lanes, int) and self.extraction.lanes >= 1,
             'extraction.lanes', "must be an integer >= 1"),
            (self.extraction.text_read_attempts >= 1,
             'extraction.text_read_attempts', "must be >= 1"),
            (bool(self.extraction.preferred_locale),
             'extraction.preferred_locale', "cannot be empty"),
            (self.browser.navigation_timeout > 0,
             'browser.navigation_timeout', "must be positive"),
            (self.browser.selector_timeout > 0,
             'browser.selector_timeout', "must be positive"),
            (self.browser.panel_timeout > 0,
             'browser.panel_timeout', "must be positive"),
            (self.api.max_attempts >= 1,
             'api.max_attempts', "must be >= 1"),
            (self.output.max_filename_length >= 16,
             'output.max_filename_length', "must be >= 16"),
            (self.logging.level.upper() in LOG_LEVELS,
             'logging.level', f"must be one of {', '.join(LOG_LEVELS)}"),
        ]
        for ok, key, problem in checks:
            if not ok:
                raise ConfigurationError(f"Invalid configuration: '{key}' {problem}", config_key=key)

        delays = [
            'text_read_delay',
            'settle_after_navigation',
            'settle_after_click',
            'settle_after_panel_open',
        ]
        for name in delays:
            if getattr(self.extraction, name) < 0:
                key = f'extraction.{name}'
                raise ConfigurationError(f"Invalid configuration: '{key}' cannot be negative", config_key=key)

    def require_access_token(self) -> str:
        """Return the access token or fail before any work starts."""
        if not self.platform.access_token:
            raise MissingConfigError('platform.access_token')
        return self.platform.access_token


SECTIONS = {
    'platform': PlatformConfig,
    'api': ApiConfig,
    'browser': BrowserConfig,
    'extraction': ExtractionConfig,
    'output': OutputConfig,
    'logging': LoggingConfig,
}


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dictionary."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(value: str, original, key: str):
    """Convert an environment string to the type of the default value."""
    try:
        if isinstance(original, bool):
            return value.lower() in ('true', '1', 'yes')
        if isinstance(original, int):
            return int(value)
        if isinstance(original, float):
            return float(value)
    except ValueError:
        raise ConfigurationError(f"Cannot parse environment value for {key}: '{value}'", config_key=key)
    return value


def _apply_env_overrides(config_dict: dict) -> dict:
    """Apply environment variable overrides.

    Environment variables use the pattern: LTX_SECTION__KEY
    Double underscore separates nested keys.
    """
    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        config_dict['platform']['access_token'] = token

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        path = key[len(ENV_PREFIX):].lower().split("__")
        if len(path) != 2 or path[0] not in config_dict:
            continue

        section, final_key = path
        current = config_dict[section]
        if final_key in current:
            value = _coerce(value, current[final_key], key)

        current[final_key] = value
        logger.debug(f"Applied env override: {key}")

    return config_dict


def _dict_to_config(config_dict: dict) -> Config:
    """Convert a dictionary to Config dataclass, ignoring unknown keys."""
    sections = {}
    for name, section_cls in SECTIONS.items():
        known = {f.name for f in fields(section_cls)}
        values = config_dict.get(name) or {}
        unknown = set(values) - known
        if unknown:
            logger.warning(f"Ignoring unknown keys in '{name}': {sorted(unknown)}")
        sections[name] = section_cls(**{k: v for k, v in values.items() if k in known})
    return Config(**sections)


def _find_config_file() -> Optional[str]:
    search_paths = [
        Path("config.yaml"),
        Path("config.yml"),
        Path(__file__).parent.parent / "config.yaml",
        Path(__file__).parent.parent / "config.yml",
    ]
    for path in search_paths:
        if path.exists():
            return str(path)
    return None


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file. If None, searches for config.yaml
                    in the working directory and project root.

    Returns:
        Config object with all settings loaded

    Raises:
        ConfigurationError: If an explicitly given file is missing or unreadable
    """
    load_dotenv()

    config_dict = asdict(Config())

    if config_path is not None and not Path(config_path).exists():
        raise ConfigurationError(f"Config file not found: {config_path}", config_key='config')

    config_path = config_path or _find_config_file()

    if config_path:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config file {config_path}: {e}", config_key='config')
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping", config_key='config')
        config_dict = _deep_update(config_dict, file_config)
        logger.debug(f"Loaded config from: {config_path}")

    config_dict = _apply_env_overrides(config_dict)

    return _dict_to_config(config_dict)


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Loads config on first call, returns cached instance on subsequent calls.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(config_path: Optional[str] = None) -> Config:
    """Reload configuration, clearing the cache."""
    global _config
    _config = load_config(config_path)
    return _config
