"""
Spotify implementation of the Catalog Service.

This module wraps the spotipy library and translates Spotify Web API
responses and failures into the catalog contract used by the engine.

Authentication:
    SpotifyCatalog.from_config() builds the spotipy client with spotipy's
    own SpotifyOAuth auth manager and a file token cache. The scopes cover
    reading playlists and reading/modifying Liked Songs.

Retries:
    spotipy's internal retries are disabled (retries=0). Every failure is
    surfaced as TransientCatalogError or PermanentCatalogError and the
    engine's RetryPolicy decides whether to try again.

Error Mapping:
    HTTP 429, HTTP 5xx, timeouts, dropped connections -> TransientCatalogError
    Any other HTTP error (400, 401, 403, 404...)      -> PermanentCatalogError

Usage:
    from spot_audit.catalog.spotify import SpotifyCatalog

    catalog = SpotifyCatalog.from_config(config.spotify)
    page = catalog.get_collection_page(LIKED_LIBRARY)
"""

from typing import Any, Callable, Iterable, Sequence

import requests
import spotipy
from spotipy.cache_handler import CacheFileHandler
from spotipy.oauth2 import SpotifyOAuth

from spot_audit.catalog.base import (
    LIKED_LIBRARY,
    CatalogService,
    CollectionPage,
    ContinuationToken,
    WriteResult,
)
from spot_audit.catalog.models import PlaylistSummary, Track, TrackInspection
from spot_audit.core.config import SpotifyConfig
from spot_audit.core.exceptions import (
    CatalogError,
    PermanentCatalogError,
    TransientCatalogError,
)
from spot_audit.core.logger import get_logger
from spot_audit.utils import chunked

logger = get_logger(__name__)


SCOPES = (
    "user-library-read "
    "user-library-modify "
    "playlist-read-private "
    "playlist-read-collaborative"
)

# Spotify Web API limits
PLAYLIST_PAGE_LIMIT = 100
SAVED_TRACKS_PAGE_LIMIT = 50
CONTAINS_LIMIT = 50
WRITE_LIMIT = 50
PLAYLISTS_PAGE_LIMIT = 50


def _retry_after(error: spotipy.SpotifyException) -> float | None:
    headers = getattr(error, "headers", None) or {}
    value = headers.get("Retry-After") or headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def translate_error(error: Exception, description: str, details: dict) -> CatalogError:
    """
    Translate a spotipy / requests failure into a catalog error.

    Args:
        error: The exception raised by spotipy or requests.
        description: What was being attempted, used in the message.
        details: Context for the error's details dict.

    Returns:
        TransientCatalogError or PermanentCatalogError.
    """
    details = {**details, "original_error": str(error)}

    if isinstance(error, spotipy.SpotifyException):
        status = error.http_status
        details["http_status"] = status

        if status == 429:
            return TransientCatalogError(
                f"Rate limited while trying to {description}",
                details=details,
                http_status=status,
                is_rate_limit=True,
                retry_after=_retry_after(error)
            )
        if status is None or status >= 500:
            return TransientCatalogError(
                f"Spotify unavailable while trying to {description}: {error.msg}",
                details=details,
                http_status=status
            )
        if status == 404:
            return PermanentCatalogError(
                f"Not found while trying to {description}",
                details=details,
                http_status=status
            )
        if status in (401, 403):
            return PermanentCatalogError(
                f"Permission denied while trying to {description}",
                details=details,
                http_status=status
            )
        return PermanentCatalogError(
            f"Failed to {description}: {error.msg}",
            details=details,
            http_status=status
        )

    if isinstance(error, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return TransientCatalogError(
            f"Network error while trying to {description}: {error}",
            details=details
        )

    return PermanentCatalogError(f"Failed to {description}: {error}", details=details)


class SpotifyCatalog(CatalogService):
    """
    Catalog Service backed by the Spotify Web API.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.

    Thread Safety:
        spotipy shares one requests session; concurrent reads from the
        engine's worker threads are safe. The engine never issues
        concurrent writes.
    """

    def __init__(self, spotify: spotipy.Spotify) -> None:
        """
        Args:
            spotify: Configured spotipy.Spotify instance with user auth.
        """
        self._spotify = spotify

    @classmethod
    def from_config(cls, config: SpotifyConfig) -> "SpotifyCatalog":
        """
        Build a SpotifyCatalog from the spotify configuration section.

        The first run opens a browser for the user to authorize the app;
        later runs reuse the cached token at config.cache_path.

        Raises:
            PermanentCatalogError: If the client cannot be created.
        """
        try:
            auth_manager = SpotifyOAuth(
                client_id=config.client_id,
                client_secret=config.client_secret,
                redirect_uri=config.redirect_uri,
                scope=SCOPES,
                cache_handler=CacheFileHandler(cache_path=str(config.cache_path)),
                open_browser=True
            )
            spotify = spotipy.Spotify(
                auth_manager=auth_manager,
                requests_timeout=config.requests_timeout,
                retries=0,
                status_retries=0
            )
        except spotipy.SpotifyException as e:
            raise translate_error(e, "initialize Spotify client", {}) from e

        return cls(spotify)

    def _call(
        self,
        description: str,
        func: Callable[..., Any],
        *args: Any,
        details: dict | None = None,
        **kwargs: Any
    ) -> Any:
        """Invoke a spotipy method, translating its failures."""
        try:
            return func(*args, **kwargs)
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise translate_error(e, description, details or {}) from e

    # =========================================================================
    # Collections
    # =========================================================================

    def get_collection_page(
        self,
        collection_id: str,
        continuation_token: ContinuationToken | None = None
    ) -> CollectionPage:
        """
        Fetch one page of a playlist or of Liked Songs.

        The continuation token is the 'next' URL Spotify returned with the
        previous page; it is followed as-is.

        Note:
            No market is sent, so Spotify returns available_markets for
            every track instead of resolving playability itself.
        """
        details = {"collection_id": collection_id}

        if continuation_token is not None:
            data = self._call(
                "fetch next collection page",
                self._spotify.next,
                {"next": continuation_token},
                details=details
            )
        elif collection_id == LIKED_LIBRARY:
            data = self._call(
                "fetch saved tracks",
                self._spotify.current_user_saved_tracks,
                limit=SAVED_TRACKS_PAGE_LIMIT,
                offset=0,
                details=details
            )
        else:
            data = self._call(
                "fetch playlist items",
                self._spotify.playlist_items,
                collection_id,
                limit=PLAYLIST_PAGE_LIMIT,
                offset=0,
                additional_types=["track"],
                details=details
            )

        if data is None:
            raise PermanentCatalogError(
                f"Empty response for collection: {collection_id}",
                details=details
            )

        tracks: list[Track] = []
        skipped = 0
        for item in data.get("items") or []:
            track_data = (item or {}).get("track")
            if not self._is_valid_track(track_data):
                skipped += 1
                continue
            tracks.append(Track.from_spotify_api(track_data))

        if skipped:
            logger.debug(f"Skipped {skipped} non-track items (local files, episodes, removed)")

        next_url = data.get("next")
        return CollectionPage(
            tracks=tuple(tracks),
            next_token=ContinuationToken(next_url) if next_url else None,
            skipped_items=skipped,
            total=data.get("total")
        )

    @staticmethod
    def _is_valid_track(track_data: dict[str, Any] | None) -> bool:
        """
        Check whether a playlist / saved-track entry is an auditable track.

        Invalid entries:
            - None (removed from Spotify)
            - Local files (is_local = True)
            - Podcast episodes (type != 'track')
            - Missing id
        """
        if not isinstance(track_data, dict):
            return False
        if track_data.get("is_local", False):
            return False
        if track_data.get("type", "track") != "track":
            return False
        return bool(track_data.get("id"))

    def list_playlists(self) -> list[PlaylistSummary]:
        """List all playlists of the current user."""
        playlists: list[PlaylistSummary] = []
        data = self._call(
            "list playlists",
            self._spotify.current_user_playlists,
            limit=PLAYLISTS_PAGE_LIMIT
        )
        while data:
            playlists.extend(
                PlaylistSummary.from_spotify_api(item)
                for item in data.get("items") or []
                if item
            )
            if not data.get("next"):
                break
            data = self._call("list playlists", self._spotify.next, data)
        return playlists

    # =========================================================================
    # Tracks
    # =========================================================================

    def get_track_detail(self, track_id: str) -> Track:
        data = self._call(
            "fetch track", self._spotify.track, track_id, details={"track_id": track_id}
        )
        if data is None:
            raise PermanentCatalogError(
                f"Track not found: {track_id}", details={"track_id": track_id}
            )
        return Track.from_spotify_api(data)

    def inspect_track(self, track_id: str) -> TrackInspection:
        """Fetch everything Spotify exposes about one track."""
        data = self._call(
            "inspect track", self._spotify.track, track_id, details={"track_id": track_id}
        )
        if data is None:
            raise PermanentCatalogError(
                f"Track not found: {track_id}", details={"track_id": track_id}
            )
        return TrackInspection.from_spotify_api(data)

    def get_relink(self, track_id: str, reference_market: str) -> str | None:
        """
        Ask Spotify for a version of track_id playable in reference_market.

        With a market, Spotify applies track relinking: when the requested
        track is unavailable but an equivalent one is, the response carries
        the equivalent's id and a 'linked_from' pointing at the request.

        Returns:
            The substitute id, or None if Spotify offers no playable relink.
        """
        data = self._call(
            "fetch relink",
            self._spotify.track,
            track_id,
            market=reference_market,
            details={"track_id": track_id, "market": reference_market}
        )
        if not data or not data.get("is_playable"):
            return None

        substitute_id = data.get("id")
        if substitute_id and substitute_id != track_id:
            return substitute_id
        return None

    # =========================================================================
    # Liked Songs
    # =========================================================================

    def is_in_liked_library(self, track_ids: Iterable[str]) -> dict[str, bool]:
        unique_ids = list(dict.fromkeys(track_ids))
        membership: dict[str, bool] = {}

        for chunk in chunked(unique_ids, CONTAINS_LIMIT):
            flags = self._call(
                "check saved tracks",
                self._spotify.current_user_saved_tracks_contains,
                chunk,
                details={"batch_size": len(chunk)}
            )
            if flags is None or len(flags) != len(chunk):
                raise PermanentCatalogError(
                    "Unexpected response while checking saved tracks",
                    details={"batch_size": len(chunk)}
                )
            membership.update(zip(chunk, (bool(flag) for flag in flags)))

        return membership

    def add_to_liked_library(self, track_ids: Sequence[str], max_batch_size: int) -> WriteResult:
        return self._write(
            "add saved tracks",
            self._spotify.current_user_saved_tracks_add,
            track_ids,
            max_batch_size
        )

    def remove_from_liked_library(self, track_ids: Sequence[str], max_batch_size: int) -> WriteResult:
        return self._write(
            "remove saved tracks",
            self._spotify.current_user_saved_tracks_delete,
            track_ids,
            max_batch_size
        )

    def _write(
        self,
        description: str,
        func: Callable[[list[str]], Any],
        track_ids: Sequence[str],
        max_batch_size: int
    ) -> WriteResult:
        """
        Run a Liked Songs write in chunks.

        Spotify rejects the whole request when one id is bad, so a chunk
        that fails permanently is replayed one id at a time to find the
        culprit. Transient failures propagate to the caller's retry policy.
        """
        results: WriteResult = {}
        size = max(1, min(max_batch_size, WRITE_LIMIT))

        for chunk in chunked(list(track_ids), size):
            try:
                self._call(description, func, chunk, details={"batch_size": len(chunk)})
                results.update((track_id, None) for track_id in chunk)
                continue
            except PermanentCatalogError as e:
                if len(chunk) == 1:
                    results[chunk[0]] = e.message
                    continue
                logger.warning(
                    f"Failed to {description} for a batch of {len(chunk)}, "
                    f"retrying one by one: {e.message}"
                )

            for track_id in chunk:
                try:
                    self._call(description, func, [track_id], details={"track_id": track_id})
                    results[track_id] = None
                except PermanentCatalogError as item_error:
                    results[track_id] = item_error.message

        return results

    def get_liked_library_count(self) -> int:
        data = self._call(
            "count saved tracks",
            self._spotify.current_user_saved_tracks,
            limit=1,
            offset=0
        )
        return int((data or {}).get("total", 0))
