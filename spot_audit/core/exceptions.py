"""
Exception classes for spot-audit.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary,
and the hierarchy separates failures that abort a run from failures that
only degrade a single track.

Exception Hierarchy:
    SpotAuditError (base)
        ConfigurationError - Invalid configuration or run arguments (fatal)
        CatalogError - Catalog service failures
            TransientCatalogError - Timeouts, rate limits, 5xx (retryable)
            PermanentCatalogError - Not found, forbidden, bad request
"""


class SpotAuditError(Exception):
    """
    Base exception for all spot-audit errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all spot-audit errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (track id, status...).

    Example:
        try:
            report = run_audit(catalog, collection_id, "US")
        except SpotAuditError as e:
            logger.error(f"Audit failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'track_id': Spotify track ID involved in the error
                     - 'collection_id': Playlist or liked library key
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigurationError(SpotAuditError):
    """
    Raised when the configuration or the run arguments are invalid.

    This is a CRITICAL error. It is always raised before any catalog
    call is attempted, so a run that fails with ConfigurationError has
    not touched the remote library.

    Common causes:
        - config.yaml not found or invalid YAML
        - Missing or malformed reference market (must be a 2-letter code)
        - Empty collection id
        - Syncing the liked library into itself
        - Non-positive batch size or worker count

    Example:
        raise ConfigurationError(
            "Reference market must be a two-letter country code",
            details={'market': 'USA'}
        )
    """
    pass


class CatalogError(SpotAuditError):
    """
    Raised when a catalog service call fails.

    Never raised directly; use one of the two subclasses so the retry
    policy can tell whether another attempt makes sense.

    Attributes:
        http_status: HTTP status reported by the service, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        http_status: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.http_status = http_status


class TransientCatalogError(CatalogError):
    """
    A catalog failure that may succeed if retried.

    Common causes:
        - HTTP 429 (rate limited)
        - HTTP 5xx
        - Request timeout or dropped connection

    Attributes:
        is_rate_limit: True if the service rejected the call for rate limiting.
        retry_after: Seconds the service asked us to wait, if it said so.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        http_status: int | None = None,
        is_rate_limit: bool = False,
        retry_after: float | None = None
    ) -> None:
        """
        Initialize a transient catalog error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            http_status: HTTP status code, None for network-level failures.
            is_rate_limit: Set to True for HTTP 429 responses.
            retry_after: Value of the Retry-After header in seconds, if present.
        """
        super().__init__(message, details, http_status)
        self.is_rate_limit = is_rate_limit
        self.retry_after = retry_after


class PermanentCatalogError(CatalogError):
    """
    A catalog failure that will not go away by retrying.

    This is a NON-CRITICAL error for the run: it degrades only the
    affected item (or the affected page) and processing continues.

    Common causes:
        - Track or playlist not found (404)
        - Permission denied / missing scope (401, 403)
        - Malformed id rejected by the service (400)
    """
    pass
