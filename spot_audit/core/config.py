"""
Configuration management for spot-audit.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, with credential
overrides from the environment (.env files are loaded automatically).

The configuration file contains:
    - Spotify API credentials and token cache location
    - Audit defaults: reference market, write batch size, worker count
    - Retry policy for catalog calls
    - Log directory

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"

    audit:
      market: "US"
      batch_size: 50
      workers: 4

    retry:
      max_attempts: 3
      base_delay: 1.5
      max_delay: 15.0

    output:
      log_directory: "./logs"

Environment Overrides:
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI,
    SPOT_AUDIT_MARKET take precedence over file values.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from spot_audit.core.exceptions import ConfigurationError
from spot_audit.core.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    RetryPolicy,
)
from spot_audit.utils import normalize_market


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_CACHE_PATH = ".spotify_token_cache"
DEFAULT_REQUESTS_TIMEOUT = 10
DEFAULT_BATCH_SIZE = 50
DEFAULT_WORKERS = 4
DEFAULT_LOG_DIRECTORY = "logs"

ENV_OVERRIDES = {
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "SPOTIFY_REDIRECT_URI": ("spotify", "redirect_uri"),
    "SPOT_AUDIT_MARKET": ("audit", "market"),
}


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify API credentials configuration.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: Redirect URI registered for the application.
        cache_path: Where spotipy caches the user token.
        requests_timeout: HTTP timeout in seconds for each Spotify request.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    cache_path: Path = Path(DEFAULT_CACHE_PATH)
    requests_timeout: int = DEFAULT_REQUESTS_TIMEOUT


@dataclass(frozen=True)
class RetrySettings:
    """
    Retry behavior for catalog calls.

    Attributes:
        max_attempts: Total attempts per call, including the first one.
        base_delay: Initial backoff delay in seconds.
        max_delay: Cap for any single backoff wait.
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY


@dataclass(frozen=True)
class AuditSettings:
    """
    Engine settings shared by audit and sync runs.

    Attributes:
        market: Default reference market (ISO 3166-1 alpha-2), or None
                when every run supplies its own.
        batch_size: Maximum ids per write call. The catalog enforces its
                    own ceiling; this value must not exceed it.
        workers: Maximum concurrent relink lookups per page.
        retry: Retry policy settings.
    """
    market: str | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    workers: int = DEFAULT_WORKERS
    retry: RetrySettings = field(default_factory=RetrySettings)

    def validate(self) -> None:
        """
        Check the numeric settings.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigurationError(
                "'audit.batch_size' must be a positive integer",
                details={"field": "audit.batch_size", "value": self.batch_size}
            )
        if not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(
                "'audit.workers' must be a positive integer",
                details={"field": "audit.workers", "value": self.workers}
            )
        if not isinstance(self.retry.max_attempts, int) or self.retry.max_attempts < 1:
            raise ConfigurationError(
                "'retry.max_attempts' must be a positive integer",
                details={"field": "retry.max_attempts", "value": self.retry.max_attempts}
            )
        if self.retry.base_delay < 0 or self.retry.max_delay < 0:
            raise ConfigurationError(
                "Retry delays must not be negative",
                details={"field": "retry"}
            )

    def retry_policy(self) -> RetryPolicy:
        """Build the RetryPolicy described by these settings."""
        return RetryPolicy(
            max_attempts=self.retry.max_attempts,
            base_delay=self.retry.base_delay,
            max_delay=self.retry.max_delay,
        )


@dataclass(frozen=True)
class OutputConfig:
    """
    Output configuration.

    Attributes:
        log_directory: Absolute path of the directory for log files.
    """
    log_directory: Path


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Attributes:
        spotify: Spotify API credentials.
        audit: Engine settings.
        output: Log output settings.
    """
    spotify: SpotifyConfig
    audit: AuditSettings
    output: OutputConfig


def load_config(config_path: Path | None = None, use_env: bool = True) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.
        use_env: If True (default), load .env and apply environment overrides.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigurationError: If the config file is not found, has invalid YAML
                            syntax, is missing required fields, or contains
                            invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Apply environment overrides
        4. Validate and extract each section
        5. Create and return frozen Config object
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    for section in ("spotify", "audit", "retry", "output"):
        if section in raw_config and not isinstance(raw_config[section], dict):
            raise ConfigurationError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    if use_env:
        load_dotenv()
        _apply_env_overrides(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config.get("spotify") or {}),
        audit=_parse_audit_settings(raw_config.get("audit") or {}, raw_config.get("retry") or {}),
        output=_parse_output_config(raw_config.get("output") or {})
    )


def _apply_env_overrides(raw_config: dict[str, Any]) -> None:
    """Copy non-empty environment overrides into the raw config in place."""
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            raw_config.setdefault(section, {})
            raw_config[section][key] = value


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigurationError: If client_id or client_secret is missing or empty.
    """
    values = {}
    for key in ("client_id", "client_secret"):
        value = spotify_section.get(key, "")
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(
                f"'spotify.{key}' must be a non-empty string",
                details={"field": f"spotify.{key}"}
            )
        values[key] = value.strip()

    redirect_uri = spotify_section.get("redirect_uri") or DEFAULT_REDIRECT_URI
    cache_path = Path(spotify_section.get("cache_path") or DEFAULT_CACHE_PATH).expanduser()

    timeout = spotify_section.get("requests_timeout", DEFAULT_REQUESTS_TIMEOUT)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigurationError(
            "'spotify.requests_timeout' must be a positive number",
            details={"field": "spotify.requests_timeout", "value": timeout}
        )

    return SpotifyConfig(
        client_id=values["client_id"],
        client_secret=values["client_secret"],
        redirect_uri=str(redirect_uri).strip(),
        cache_path=cache_path,
        requests_timeout=timeout
    )


def _parse_audit_settings(
    audit_section: dict[str, Any],
    retry_section: dict[str, Any]
) -> AuditSettings:
    """
    Parse the audit and retry sections, applying defaults.

    The market is optional here (a run may pass its own) but when
    present it must be a valid two-letter code.
    """
    market = audit_section.get("market")
    if market is not None:
        market = normalize_market(market)

    try:
        retry = RetrySettings(
            max_attempts=retry_section.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
            base_delay=float(retry_section.get("base_delay", DEFAULT_BASE_DELAY)),
            max_delay=float(retry_section.get("max_delay", DEFAULT_MAX_DELAY)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid retry settings: {e}",
            details={"section": "retry", "original_error": str(e)}
        ) from e

    settings = AuditSettings(
        market=market,
        batch_size=audit_section.get("batch_size", DEFAULT_BATCH_SIZE),
        workers=audit_section.get("workers", DEFAULT_WORKERS),
        retry=retry
    )
    settings.validate()
    return settings


def _parse_output_config(output_section: dict[str, Any]) -> OutputConfig:
    """Expand ~ and resolve the log directory (created at logging setup)."""
    directory = output_section.get("log_directory") or DEFAULT_LOG_DIRECTORY

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigurationError(
            "'output.log_directory' must be a non-empty string",
            details={"field": "output.log_directory"}
        )

    return OutputConfig(log_directory=Path(directory.strip()).expanduser().resolve())
