"""
Data models for catalog entities.

This module defines immutable dataclasses representing Spotify objects
as the audit engine sees them: tracks with their availability and
identity facts, plus the inspection and playlist listing views.

Design Decisions:
    - All dataclasses are frozen (immutable) to prevent accidental modification
    - A track's identity is its id; titles and artists are display metadata
    - Missing availability data is kept distinct (None) from an empty market set
    - Models are independent of the transport that produced them

Usage:
    from spot_audit.catalog.models import Track

    track = Track.from_spotify_api(track_data)
    if track.available_in("US"):
        ...
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, eq=False)
class Track:
    """
    Immutable representation of a catalog track.

    Attributes:
        track_id: Spotify track ID as stored in the user's library.
                  Never empty. Example: "4cOdK2wGLETKBW3PvgPWqT"

        name: Track title, for reporting only.

        artist: Primary artist name (first artist), for reporting only.

        artists: All artist names.

        album: Album name, for reporting only.

        markets: ISO country codes where the track is playable.
                 An empty set means the track was removed globally.
                 None means the catalog returned no availability data.

        isrc: International Standard Recording Code, upper-cased.
              None when the catalog has no code (the track is unmatchable).

        relinked_id: Substitute id the catalog relinked this track to for
                     the caller's market, if the response carried one.

        spotify_url: Public URL of the track.

    Equality:
        Two tracks are equal when their track_id is equal.
    """

    track_id: str
    name: str = ""
    artist: str = ""
    artists: tuple[str, ...] = field(default_factory=tuple)
    album: str = ""
    markets: frozenset[str] | None = None
    isrc: str | None = None
    relinked_id: str | None = None
    spotify_url: str = ""

    def __post_init__(self) -> None:
        if not self.track_id:
            raise ValueError("Track id must not be empty")

        if self.markets is not None:
            markets = frozenset(market.strip().upper() for market in self.markets)
            object.__setattr__(self, "markets", markets)

        if self.isrc is not None:
            isrc = self.isrc.strip().upper()
            object.__setattr__(self, "isrc", isrc or None)

        if not self.spotify_url:
            object.__setattr__(
                self, "spotify_url", f"https://open.spotify.com/track/{self.track_id}"
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Track):
            return NotImplemented
        return self.track_id == other.track_id

    def __hash__(self) -> int:
        return hash(self.track_id)

    @property
    def has_market_data(self) -> bool:
        return self.markets is not None

    def available_in(self, market: str) -> bool:
        """
        Check whether the track is playable in the given market.

        Args:
            market: ISO 3166-1 alpha-2 code (case-insensitive).

        Returns:
            True if the market set includes market. False when the market
            set is empty or missing.
        """
        if not self.markets:
            return False
        return market.upper() in self.markets

    @property
    def display_name(self) -> str:
        """'Artist - Title' for log messages."""
        return f"{self.artist or 'Unknown Artist'} - {self.name or self.track_id}"

    @classmethod
    def from_spotify_api(cls, track_data: dict[str, Any]) -> "Track":
        """
        Create a Track from a Spotify track object.

        Args:
            track_data: The track object from Spotify API, i.e. the response
                        of spotify.track() or the 'track' field of a
                        playlist / saved-tracks item.

        Returns:
            Track: A new Track instance.

        Raises:
            ValueError: If the object has no id (local files, removed items).

        Behavior:
            1. When 'linked_from' is present, the library holds the original
               id: it becomes track_id and the response id becomes relinked_id
            2. 'available_markets' missing or null -> markets=None
            3. ISRC read from external_ids
        """
        response_id = track_data.get("id")
        linked_from = track_data.get("linked_from") or {}
        original_id = linked_from.get("id")

        if original_id and original_id != response_id:
            track_id = original_id
            relinked_id = response_id
        else:
            track_id = response_id
            relinked_id = None

        if not track_id:
            raise ValueError("Spotify track object has no id")

        artists_list = [a.get("name", "") for a in track_data.get("artists") or []]
        raw_markets = track_data.get("available_markets")

        return cls(
            track_id=track_id,
            name=track_data.get("name") or "",
            artist=artists_list[0] if artists_list else "Unknown Artist",
            artists=tuple(artists_list),
            album=(track_data.get("album") or {}).get("name", ""),
            markets=frozenset(raw_markets) if raw_markets is not None else None,
            isrc=(track_data.get("external_ids") or {}).get("isrc"),
            relinked_id=relinked_id,
            spotify_url=(track_data.get("external_urls") or {}).get("spotify", ""),
        )


@dataclass(frozen=True)
class TrackInspection:
    """
    Detailed forensic information about a single track.

    Used by inspect-style callers that want everything the catalog knows
    about one track (why is this song grey?).
    """

    track_id: str
    name: str
    artists: tuple[str, ...]
    album: str
    release_date: str
    duration_ms: int
    popularity: int
    is_playable: bool | None
    available_markets: tuple[str, ...]
    external_ids: dict[str, str]
    external_urls: dict[str, str]
    disc_number: int
    track_number: int
    is_local: bool

    @classmethod
    def from_spotify_api(cls, track_data: dict[str, Any]) -> "TrackInspection":
        album = track_data.get("album") or {}
        return cls(
            track_id=track_data.get("id") or "",
            name=track_data.get("name") or "",
            artists=tuple(a.get("name", "") for a in track_data.get("artists") or []),
            album=album.get("name", ""),
            release_date=album.get("release_date") or "",
            duration_ms=track_data.get("duration_ms") or 0,
            popularity=track_data.get("popularity") or 0,
            is_playable=track_data.get("is_playable"),
            available_markets=tuple(sorted(track_data.get("available_markets") or [])),
            external_ids=dict(track_data.get("external_ids") or {}),
            external_urls=dict(track_data.get("external_urls") or {}),
            disc_number=track_data.get("disc_number") or 1,
            track_number=track_data.get("track_number") or 1,
            is_local=bool(track_data.get("is_local", False)),
        )


@dataclass(frozen=True)
class PlaylistSummary:
    """Summary of a playlist for listing purposes."""

    playlist_id: str
    name: str
    total_tracks: int
    is_public: bool
    is_collaborative: bool
    owner_name: str

    @classmethod
    def from_spotify_api(cls, playlist_data: dict[str, Any]) -> "PlaylistSummary":
        owner = playlist_data.get("owner") or {}
        return cls(
            playlist_id=playlist_data.get("id", ""),
            name=playlist_data.get("name", "Unknown Playlist"),
            total_tracks=(playlist_data.get("tracks") or {}).get("total", 0),
            is_public=bool(playlist_data.get("public")),
            is_collaborative=bool(playlist_data.get("collaborative", False)),
            owner_name=owner.get("display_name") or owner.get("id", "Unknown"),
        )
