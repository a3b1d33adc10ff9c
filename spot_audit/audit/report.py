"""
Result types produced by an audit or sync run.

All types are frozen dataclasses. An AuditReport is built once, at the
end of a run, from the outcomes collected while the run progressed.
Presentation is left to the caller: to_dict() returns plain structured
data and nothing here formats text for humans.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from spot_audit.audit.classifier import PlayabilityState, ProblematicTrack
from spot_audit.catalog.models import Track


class SyncAction(Enum):
    """What the sync pipeline did with one source track."""

    ADDED_DIRECTLY = "added_directly"
    ADDED_AS_SUBSTITUTE = "added_as_substitute"
    SKIPPED_DEAD = "skipped_dead"
    SKIPPED_ALREADY_PRESENT = "skipped_already_present"
    FAILED = "failed"


CANCELLED_REASON = "cancelled before submission"


@dataclass(frozen=True)
class SyncOutcome:
    """
    Outcome of syncing one source track into the liked library.

    Attributes:
        track: The source track.
        action: The SyncAction taken.
        substitute_id: Relinked id that was (or would have been) added in
                       place of the source track.
        reason: Failure reason, set only for FAILED.
        state: Playability of the source track in the reference market.
    """

    track: Track
    action: SyncAction
    substitute_id: str | None = None
    reason: str | None = None
    state: PlayabilityState | None = None

    def __post_init__(self) -> None:
        if self.action is SyncAction.ADDED_AS_SUBSTITUTE and not self.substitute_id:
            raise ValueError("ADDED_AS_SUBSTITUTE requires a substitute_id")
        if self.action is SyncAction.FAILED and not self.reason:
            raise ValueError("FAILED requires a reason")

    @classmethod
    def added_directly(cls, track: Track, state: PlayabilityState | None = None) -> "SyncOutcome":
        return cls(track, SyncAction.ADDED_DIRECTLY, state=state)

    @classmethod
    def added_as_substitute(
        cls,
        track: Track,
        substitute_id: str,
        state: PlayabilityState | None = PlayabilityState.DEAD
    ) -> "SyncOutcome":
        return cls(track, SyncAction.ADDED_AS_SUBSTITUTE, substitute_id=substitute_id, state=state)

    @classmethod
    def skipped_dead(cls, track: Track) -> "SyncOutcome":
        return cls(track, SyncAction.SKIPPED_DEAD, state=PlayabilityState.DEAD)

    @classmethod
    def skipped_already_present(
        cls,
        track: Track,
        state: PlayabilityState | None = None,
        substitute_id: str | None = None
    ) -> "SyncOutcome":
        return cls(
            track,
            SyncAction.SKIPPED_ALREADY_PRESENT,
            substitute_id=substitute_id,
            state=state,
        )

    @classmethod
    def failed(
        cls,
        track: Track,
        reason: str,
        substitute_id: str | None = None,
        state: PlayabilityState | None = None
    ) -> "SyncOutcome":
        return cls(track, SyncAction.FAILED, substitute_id=substitute_id, reason=reason, state=state)

    @property
    def target_id(self) -> str:
        """Id written to the liked library for this track."""
        return self.substitute_id or self.track.track_id

    def as_failed(self, reason: str) -> "SyncOutcome":
        """Degrade a provisional outcome to FAILED, keeping its payload."""
        return SyncOutcome.failed(self.track, reason, self.substitute_id, self.state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "track_id": self.track.track_id,
            "name": self.track.name,
            "artist": self.track.artist,
            "action": self.action.value,
            "substitute_id": self.substitute_id,
            "reason": self.reason,
            "state": self.state.value if self.state else None,
        }


@dataclass(frozen=True)
class RemovalCandidate:
    """A dead track whose recording is live elsewhere in the same collection."""

    dead_track: Track
    live_track_id: str
    isrc: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "dead_track_id": self.dead_track.track_id,
            "name": self.dead_track.name,
            "artist": self.dead_track.artist,
            "live_track_id": self.live_track_id,
            "isrc": self.isrc,
        }


@dataclass(frozen=True)
class RemovalResult:
    """Result of removing one candidate from the liked library."""

    candidate: RemovalCandidate
    removed: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {**self.candidate.to_dict(), "removed": self.removed, "reason": self.reason}


BATCH_SUCCESS = "Success"


@dataclass(frozen=True)
class BatchLog:
    """
    One submitted write chunk.

    Attributes:
        index: 1-based position of the chunk in the run.
        operation: "add" or "remove".
        track_ids: Ids submitted in this chunk, in order.
        status: "Success", or a summary of what failed.
    """

    index: int
    operation: str
    track_ids: tuple[str, ...]
    status: str = BATCH_SUCCESS

    @property
    def succeeded(self) -> bool:
        return self.status == BATCH_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "operation": self.operation,
            "tracks_count": len(self.track_ids),
            "track_ids": list(self.track_ids),
            "status": self.status,
        }


@dataclass(frozen=True)
class AuditReport:
    """
    Everything one run found and did.

    Attributes:
        mode: "audit" or "sync".
        collection_id: The audited (or sync source) collection.
        reference_market: Upper-case market the run classified against.
        state_counts: Number of tracks per PlayabilityState.
        total_tracks: Tracks read from the collection.
        problematic_tracks: Dead and geo-locked tracks, in collection order.
        unmatchable_tracks: Tracks without an ISRC (dedup audits only).
        removal_candidates: Dead duplicates with a live sibling.
        removal_results: Per-candidate results when removals were applied.
        sync_outcomes: One outcome per source track (sync only).
        batch_logs: One entry per submitted write chunk.
        skipped_items: Collection entries that were not tracks.
        errors: Run-level errors (e.g. a page that could not be read).
        complete: True when every page was read and nothing was cancelled.
        cancelled: True when the run stopped on a cancellation request.
        initial_liked_count: Liked library size before writing.
        final_liked_count: Liked library size after writing.
    """

    mode: str
    collection_id: str
    reference_market: str
    state_counts: dict[PlayabilityState, int] = field(default_factory=dict)
    total_tracks: int = 0
    problematic_tracks: tuple[ProblematicTrack, ...] = ()
    unmatchable_tracks: tuple[Track, ...] = ()
    removal_candidates: tuple[RemovalCandidate, ...] = ()
    removal_results: tuple[RemovalResult, ...] = ()
    sync_outcomes: tuple[SyncOutcome, ...] = ()
    batch_logs: tuple[BatchLog, ...] = ()
    skipped_items: int = 0
    errors: tuple[str, ...] = ()
    complete: bool = True
    cancelled: bool = False
    initial_liked_count: int | None = None
    final_liked_count: int | None = None

    def count(self, state: PlayabilityState) -> int:
        return self.state_counts.get(state, 0)

    def outcome_counts(self) -> dict[SyncAction, int]:
        """Number of sync outcomes per action, every action present."""
        counts = {action: 0 for action in SyncAction}
        for outcome in self.sync_outcomes:
            counts[outcome.action] += 1
        return counts

    @property
    def added_count(self) -> int:
        counts = self.outcome_counts()
        return counts[SyncAction.ADDED_DIRECTLY] + counts[SyncAction.ADDED_AS_SUBSTITUTE]

    @property
    def estimated_added(self) -> int | None:
        """Liked library growth measured by the before/after counts."""
        if self.initial_liked_count is None or self.final_liked_count is None:
            return None
        return self.final_liked_count - self.initial_liked_count

    @property
    def removed_count(self) -> int:
        return sum(1 for result in self.removal_results if result.removed)

    def to_dict(self) -> dict[str, Any]:
        """Plain structured data (str / int / list / dict / None only)."""
        return {
            "mode": self.mode,
            "collection_id": self.collection_id,
            "reference_market": self.reference_market,
            "total_tracks": self.total_tracks,
            "state_counts": {state.value: self.count(state) for state in PlayabilityState},
            "problematic_tracks": [
                {
                    "track_id": problem.track.track_id,
                    "name": problem.track.name,
                    "artists": list(problem.track.artists),
                    "album": problem.track.album,
                    "state": problem.state.value,
                    "reason": problem.reason,
                    "available_markets_count": problem.market_count,
                    "external_url": problem.track.spotify_url,
                }
                for problem in self.problematic_tracks
            ],
            "unmatchable_tracks": [track.track_id for track in self.unmatchable_tracks],
            "removal_candidates": [c.to_dict() for c in self.removal_candidates],
            "removal_results": [r.to_dict() for r in self.removal_results],
            "sync_outcomes": [o.to_dict() for o in self.sync_outcomes],
            "outcome_counts": {
                action.value: count for action, count in self.outcome_counts().items()
            },
            "batch_logs": [b.to_dict() for b in self.batch_logs],
            "skipped_items": self.skipped_items,
            "errors": list(self.errors),
            "complete": self.complete,
            "cancelled": self.cancelled,
            "initial_liked_count": self.initial_liked_count,
            "final_liked_count": self.final_liked_count,
            "estimated_added": self.estimated_added,
        }
