"""
Playability Classifier.

Derives a track's playability from its market set and the caller's
reference market:

    markets is None             -> DEAD (no availability data at all)
    markets is empty            -> DEAD (removed globally)
    reference not in markets    -> GEO_LOCKED
    reference in markets        -> LIVE

Tracks without availability data are treated as dead: from the outside
they cannot be told apart from a global removal.

Usage:
    from spot_audit.audit.classifier import PlayabilityState, classify

    state = classify(track, "US")
"""

from dataclasses import dataclass
from enum import Enum

from spot_audit.catalog.models import Track


class PlayabilityState(Enum):
    """Playability of a track relative to one reference market."""

    LIVE = "live"
    GEO_LOCKED = "geo_locked"
    DEAD = "dead"


@dataclass(frozen=True)
class ClassifiedTrack:
    """A track paired with its state for the run's reference market."""

    track: Track
    state: PlayabilityState


@dataclass(frozen=True)
class ProblematicTrack:
    """
    A dead or geo-locked track as listed in an audit report.

    Attributes:
        track: The track.
        state: DEAD or GEO_LOCKED.
        reason: Short technical reason.
        market_count: Number of markets the track is still available in.
    """

    track: Track
    state: PlayabilityState
    reason: str
    market_count: int

    @property
    def removed_globally(self) -> bool:
        return self.market_count == 0


def classify(track: Track, reference_market: str) -> PlayabilityState:
    """
    Classify a track for a reference market.

    Args:
        track: The track to classify.
        reference_market: ISO 3166-1 alpha-2 code. Compared upper-case.

    Returns:
        PlayabilityState for this (track, market) pair.
    """
    if not track.markets:
        return PlayabilityState.DEAD
    if not track.available_in(reference_market):
        return PlayabilityState.GEO_LOCKED
    return PlayabilityState.LIVE


def classify_all(tracks, reference_market: str) -> list[ClassifiedTrack]:
    return [ClassifiedTrack(track, classify(track, reference_market)) for track in tracks]


def describe_problem(
    track: Track,
    state: PlayabilityState,
    reference_market: str
) -> ProblematicTrack | None:
    """
    Build the report entry for a problematic track.

    Returns:
        ProblematicTrack for DEAD and GEO_LOCKED tracks, None for LIVE ones.
    """
    if state is PlayabilityState.LIVE:
        return None

    market_count = len(track.markets) if track.markets else 0

    if state is PlayabilityState.GEO_LOCKED:
        reason = f"Not available in {reference_market.upper()}"
    elif track.markets is None:
        reason = "No availability data returned"
    else:
        reason = "Removed from all markets"

    return ProblematicTrack(
        track=track,
        state=state,
        reason=reason,
        market_count=market_count,
    )
