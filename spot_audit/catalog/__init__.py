"""
Catalog Service boundary for spot-audit.

This package contains:
    - base: The abstract CatalogService the engine talks to
    - models: Track, TrackInspection, PlaylistSummary
    - spotify: SpotifyCatalog, the spotipy-backed implementation

Usage:
    from spot_audit.catalog import LIKED_LIBRARY, SpotifyCatalog

    catalog = SpotifyCatalog.from_config(config.spotify)
"""

from spot_audit.catalog.base import (
    LIKED_LIBRARY,
    CatalogService,
    CollectionPage,
    ContinuationToken,
)
from spot_audit.catalog.models import PlaylistSummary, Track, TrackInspection
from spot_audit.catalog.spotify import SpotifyCatalog

__all__ = [
    "LIKED_LIBRARY",
    "CatalogService",
    "CollectionPage",
    "ContinuationToken",
    "Track",
    "TrackInspection",
    "PlaylistSummary",
    "SpotifyCatalog",
]
