"""
Core module for spot-audit.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - logger: Logging system with multiple outputs
    - retry: Bounded retry policy for catalog calls
    - config: Configuration loading and validation

Usage:
    from spot_audit.core import (
        Config, load_config,
        setup_logging, get_logger,
        RetryPolicy,
        SpotAuditError, ConfigurationError
    )
"""

# Import order matters: config pulls in spot_audit.utils, which needs exceptions.
from spot_audit.core.exceptions import (
    CatalogError,
    ConfigurationError,
    PermanentCatalogError,
    SpotAuditError,
    TransientCatalogError,
)
from spot_audit.core.logger import (
    get_logger,
    log_removal_candidate,
    log_sync_failure,
    setup_logging,
    shutdown_logging,
)
from spot_audit.core.retry import CallResult, RetryPolicy
from spot_audit.core.config import (
    AuditSettings,
    Config,
    OutputConfig,
    RetrySettings,
    SpotifyConfig,
    load_config,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "AuditSettings",
    "RetrySettings",
    "OutputConfig",
    "load_config",
    # Exceptions
    "SpotAuditError",
    "ConfigurationError",
    "CatalogError",
    "TransientCatalogError",
    "PermanentCatalogError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_sync_failure",
    "log_removal_candidate",
    "shutdown_logging",
    # Retry
    "RetryPolicy",
    "CallResult",
]
