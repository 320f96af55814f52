#!/usr/bin/env python3
"""
Centralized Configuration Manager

Provides a single source of truth for pipeline configuration, including
environment variables, defaults, and validation.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple

import pytz

from .env_loader import load_env_file
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

API_KEY_ENV = 'GEMINI_API_KEY'


@dataclass
class IntegrationConfig:
    """Remote analysis API configuration."""
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.2
    api_timeout: int = 60


@dataclass
class RetryConfig:
    """Retry and pacing policy for the rate-limited analysis API."""
    max_attempts: int = 3
    rate_limit_margin_seconds: float = 5.0
    rate_limit_cooldown_seconds: float = 70.0
    transient_delay_seconds: float = 5.0
    pacing_seconds: float = 65.0
    deadline_seconds: Optional[float] = None


@dataclass
class ApplicationConfig:
    """Core pipeline configuration."""
    # Inputs
    entities_file: str = "config/entities.json"
    feed_timeout: int = 10
    feed_user_agent: str = "Mozilla/5.0 (compatible; MoodPulse/1.0)"
    max_headlines: int = 15

    # Outputs
    output_dir: str = "public/data"
    timezone: str = "Asia/Seoul"
    schedule_hours: Tuple[int, ...] = (0, 8, 12, 16, 20)
    languages: Tuple[str, ...] = ("en", "ko", "zh")

    # Logging
    log_level: str = "INFO"
    verbose_logging: bool = False
    llm_debug_log: Optional[str] = None


@dataclass
class Config:
    """Master configuration container."""
    integrations: IntegrationConfig
    retry: RetryConfig
    app: ApplicationConfig

    environment: str = field(default_factory=lambda: os.getenv('ENVIRONMENT', 'development'))
    is_ci: bool = field(default_factory=lambda: bool(os.getenv('CI') or os.getenv('GITHUB_ACTIONS')))

    def has_api_key(self) -> bool:
        """Check if the analysis API credential is available."""
        return bool(self.integrations.gemini_api_key)

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigError; called before any network activity."""
        if not self.integrations.gemini_api_key:
            raise ConfigError(API_KEY_ENV, "environment variable is missing or empty")
        return self.integrations.gemini_api_key


def _parse_int_list(raw: str, key: str) -> Tuple[int, ...]:
    try:
        return tuple(int(part) for part in raw.split(',') if part.strip())
    except ValueError:
        raise ConfigError(key, f"expected comma-separated integers, got {raw!r}")


def _parse_str_list(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(',') if part.strip())


def _parse_number(raw: Optional[str], key: str, default, cast=float):
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(key, f"expected a number, got {raw!r}")


class ConfigManager:
    """Manages pipeline configuration with validation and environment loading."""

    def __init__(self, env_file_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Optional explicit .env path
            environ: Mapping to read from instead of os.environ (tests)
        """
        self._config: Optional[Config] = None
        if environ is None:
            load_env_file(env_file_path)
            environ = os.environ
        self._environ = environ

    def get_config(self, force_reload: bool = False) -> Config:
        """Get pipeline configuration, building it on first use."""
        if self._config is None or force_reload:
            self._config = self._build_config()
        return self._config

    def _get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._environ.get(key, default)

    def _build_config(self) -> Config:
        """Build configuration from environment variables."""
        integration_config = IntegrationConfig(
            gemini_api_key=self._get(API_KEY_ENV) or None,
            gemini_model=self._get('GEMINI_MODEL', 'gemini-2.0-flash'),
            gemini_api_base=self._get('GEMINI_API_BASE', 'https://generativelanguage.googleapis.com/v1beta').rstrip('/'),
            temperature=_parse_number(self._get('GEMINI_TEMPERATURE'), 'GEMINI_TEMPERATURE', 0.2),
            api_timeout=_parse_number(self._get('API_TIMEOUT'), 'API_TIMEOUT', 60, int),
        )

        deadline_raw = self._get('PULSE_DEADLINE_SECONDS')
        retry_config = RetryConfig(
            max_attempts=_parse_number(self._get('PULSE_MAX_ATTEMPTS'), 'PULSE_MAX_ATTEMPTS', 3, int),
            rate_limit_margin_seconds=_parse_number(self._get('PULSE_RATE_LIMIT_MARGIN'), 'PULSE_RATE_LIMIT_MARGIN', 5.0),
            rate_limit_cooldown_seconds=_parse_number(self._get('PULSE_RATE_LIMIT_COOLDOWN'), 'PULSE_RATE_LIMIT_COOLDOWN', 70.0),
            transient_delay_seconds=_parse_number(self._get('PULSE_TRANSIENT_DELAY'), 'PULSE_TRANSIENT_DELAY', 5.0),
            pacing_seconds=_parse_number(self._get('PULSE_PACING_SECONDS'), 'PULSE_PACING_SECONDS', 65.0),
            deadline_seconds=_parse_number(deadline_raw, 'PULSE_DEADLINE_SECONDS', None),
        )

        app_config = ApplicationConfig(
            entities_file=self._get('PULSE_ENTITIES_FILE', 'config/entities.json'),
            feed_timeout=_parse_number(self._get('FEED_TIMEOUT'), 'FEED_TIMEOUT', 10, int),
            feed_user_agent=self._get('FEED_USER_AGENT', 'Mozilla/5.0 (compatible; MoodPulse/1.0)'),
            max_headlines=_parse_number(self._get('PULSE_MAX_HEADLINES'), 'PULSE_MAX_HEADLINES', 15, int),
            output_dir=self._get('PULSE_OUTPUT_DIR', 'public/data'),
            timezone=self._get('PULSE_TIMEZONE', 'Asia/Seoul'),
            schedule_hours=_parse_int_list(self._get('PULSE_SCHEDULE_HOURS', '0,8,12,16,20'), 'PULSE_SCHEDULE_HOURS'),
            languages=_parse_str_list(self._get('PULSE_LANGUAGES', 'en,ko,zh')),
            log_level=self._get('LOG_LEVEL', 'INFO').upper(),
            verbose_logging=self._get('VERBOSE_LOGGING', 'false').lower() == 'true',
            llm_debug_log=self._get('LLM_DEBUG_LOG') or None,
        )

        config = Config(
            integrations=integration_config,
            retry=retry_config,
            app=app_config
        )

        self._validate_config(config)
        return config

    def _validate_config(self, config: Config) -> None:
        """Validate configuration values."""
        errors: List[str] = []

        if not config.app.schedule_hours:
            errors.append("PULSE_SCHEDULE_HOURS must contain at least one hour")
        elif any(hour < 0 or hour > 23 for hour in config.app.schedule_hours):
            errors.append("PULSE_SCHEDULE_HOURS entries must be between 0 and 23")

        try:
            pytz.timezone(config.app.timezone)
        except pytz.UnknownTimeZoneError:
            errors.append(f"PULSE_TIMEZONE is not a known timezone: {config.app.timezone}")

        if not config.app.languages:
            errors.append("PULSE_LANGUAGES must contain at least one language code")

        if config.app.max_headlines < 1:
            errors.append("PULSE_MAX_HEADLINES must be at least 1")

        if config.app.feed_timeout < 1:
            errors.append("FEED_TIMEOUT must be at least 1 second")

        if config.retry.max_attempts < 1:
            errors.append("PULSE_MAX_ATTEMPTS must be at least 1")

        if config.retry.pacing_seconds < 0:
            errors.append("PULSE_PACING_SECONDS must not be negative")

        if not 0.0 <= config.integrations.temperature <= 2.0:
            errors.append("GEMINI_TEMPERATURE must be between 0 and 2")

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if config.app.log_level not in valid_log_levels:
            errors.append(f"LOG_LEVEL must be one of: {', '.join(valid_log_levels)}")

        if errors:
            raise ConfigError('environment', '; '.join(errors))

        logger.debug("Configuration validation passed")

    def update_logging(self, verbose: bool = False) -> None:
        """Configure root logging based on current configuration."""
        config = self.get_config()

        verbose = verbose or config.app.verbose_logging
        numeric_level = logging.DEBUG if verbose else getattr(logging, config.app.log_level)
        logging.getLogger().setLevel(numeric_level)

        if verbose:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
        else:
            format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        for handler in logging.getLogger().handlers:
            handler.setLevel(numeric_level)
            formatter = logging.Formatter(format_str, datefmt='%Y-%m-%d %H:%M:%S')
            handler.setFormatter(formatter)


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    """Get pipeline configuration."""
    return get_config_manager().get_config()
