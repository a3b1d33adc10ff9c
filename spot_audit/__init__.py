"""
spot-audit: Audit and repair a Spotify library.

This package finds tracks that went grey in a Spotify library, cleans up
dead duplicates and syncs playlists into Liked Songs with relinking.

Architecture:
    The engine talks to an abstract Catalog Service; Spotify is one
    implementation of it.

    catalog/: Catalog Service boundary
        - CatalogService interface (pages, relinks, liked library)
        - SpotifyCatalog over spotipy
        - Track, TrackInspection, PlaylistSummary models

    audit/: The engine
        - Classify tracks as LIVE, GEO_LOCKED or DEAD for one market
        - Group tracks by ISRC and find dead duplicates of live tracks
        - Sync a playlist into Liked Songs, substituting relinks for dead tracks

Modules:
    core/       - Configuration, logging, retry policy, exceptions
    catalog/    - Catalog Service interface and Spotify implementation
    audit/      - Classifier, matcher, resolver, sync pipeline, orchestrator
    utils/      - Chunking, market validation, Spotify id parsing

Usage:
    from spot_audit import LIKED_LIBRARY, SpotifyCatalog, load_config, run_audit, setup_logging

    config = load_config()
    setup_logging(config.output.log_directory)

    catalog = SpotifyCatalog.from_config(config.spotify)
    report = run_audit(catalog, LIKED_LIBRARY, config.audit.market, dedup=True,
                       settings=config.audit)

Configuration:
    Requires a config.yaml file in the current directory:

        spotify:
          client_id: "your_client_id"
          client_secret: "your_client_secret"

        audit:
          market: "US"

Dependencies:
    - spotipy: Spotify API client
    - requests: HTTP errors raised under spotipy
    - tqdm: Progress bars and tqdm-safe console logging
    - pyyaml: Configuration file parsing
    - python-dotenv: .env credential overrides
"""

__version__ = "0.1.0"
__author__ = "spot-audit"
__license__ = "MIT"

# Convenience imports for common usage
from spot_audit.core import (
    AuditSettings,
    CatalogError,
    Config,
    ConfigurationError,
    PermanentCatalogError,
    SpotAuditError,
    TransientCatalogError,
    get_logger,
    load_config,
    setup_logging,
)
from spot_audit.catalog import LIKED_LIBRARY, CatalogService, SpotifyCatalog, Track
from spot_audit.audit import (
    AuditOrchestrator,
    AuditReport,
    PlayabilityState,
    SyncAction,
    run_audit,
    run_sync,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "AuditSettings",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SpotAuditError",
    "ConfigurationError",
    "CatalogError",
    "TransientCatalogError",
    "PermanentCatalogError",
    # Catalog
    "LIKED_LIBRARY",
    "CatalogService",
    "SpotifyCatalog",
    "Track",
    # Engine
    "AuditOrchestrator",
    "AuditReport",
    "PlayabilityState",
    "SyncAction",
    "run_audit",
    "run_sync",
]
