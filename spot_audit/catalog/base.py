"""
Catalog Service interface.

The audit engine never talks to Spotify directly: it consumes the abstract
CatalogService defined here. SpotifyCatalog (spot_audit.catalog.spotify)
is the production implementation; tests use an in-memory one.

Contract Notes:
    - Pagination is driven by opaque continuation tokens. The engine passes
      the token back unmodified and never assumes numeric offsets.
    - Failures are raised as TransientCatalogError (worth retrying) or
      PermanentCatalogError (not worth retrying). Retrying is the caller's
      job (see spot_audit.core.retry).
    - Batch writes take max_batch_size and return a per-id result:
      None for success, a reason string for failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, NewType, Sequence

from spot_audit.catalog.models import Track


ContinuationToken = NewType("ContinuationToken", str)

# Collection id naming the user's Liked Songs
LIKED_LIBRARY = "__liked_library__"

# Per-id result of a batch write: None on success, failure reason otherwise
WriteResult = dict[str, str | None]


@dataclass(frozen=True)
class CollectionPage:
    """
    One page of a playlist or of the liked library.

    Attributes:
        tracks: Tracks on this page, in collection order.
        next_token: Token for the following page, None on the last page.
        skipped_items: Entries the catalog could not express as tracks
                       (local files, podcast episodes, null items).
        total: Total number of entries in the collection, if known.
    """

    tracks: tuple[Track, ...] = field(default_factory=tuple)
    next_token: ContinuationToken | None = None
    skipped_items: int = 0
    total: int | None = None


class CatalogService(ABC):
    """Abstract collaborator exposing track, market and library data."""

    @abstractmethod
    def get_collection_page(
        self,
        collection_id: str,
        continuation_token: ContinuationToken | None = None
    ) -> CollectionPage:
        """
        Fetch one page of a collection.

        Args:
            collection_id: A playlist id, or LIKED_LIBRARY.
            continuation_token: None for the first page, otherwise the
                                next_token of the previous page.
        """

    @abstractmethod
    def get_track_detail(self, track_id: str) -> Track:
        """Fetch a single track."""

    @abstractmethod
    def get_relink(self, track_id: str, reference_market: str) -> str | None:
        """Return a substitute track id playable in reference_market, or None."""

    @abstractmethod
    def is_in_liked_library(self, track_ids: Iterable[str]) -> dict[str, bool]:
        """Batched membership check against the liked library."""

    @abstractmethod
    def add_to_liked_library(
        self,
        track_ids: Sequence[str],
        max_batch_size: int
    ) -> WriteResult:
        """Add tracks to the liked library, at most max_batch_size ids per call."""

    @abstractmethod
    def remove_from_liked_library(
        self,
        track_ids: Sequence[str],
        max_batch_size: int
    ) -> WriteResult:
        """Remove tracks from the liked library, at most max_batch_size ids per call."""

    @abstractmethod
    def get_liked_library_count(self) -> int:
        """Number of tracks currently in the liked library."""
