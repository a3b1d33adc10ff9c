"""
Identity Matcher.

Groups classified tracks by recording identity (ISRC). Tracks with the
same ISRC are different catalog entries of the same recording, e.g. a
single and its album release, or an old upload and its re-release.

Grouping Rules:
    - One pass over the input.
    - Groups appear in the order their ISRC was first seen.
    - Members keep input order inside a group.
    - Tracks without an ISRC never enter a group; they are unmatchable.
"""

from dataclasses import dataclass
from typing import Iterable

from spot_audit.audit.classifier import ClassifiedTrack, PlayabilityState


@dataclass(frozen=True)
class IdentityGroup:
    """All tracks in one collection sharing an ISRC."""

    isrc: str
    members: tuple[ClassifiedTrack, ...]

    def __post_init__(self) -> None:
        if not self.isrc:
            raise ValueError("Identity group key must not be empty")

    def _with_state(self, state: PlayabilityState) -> tuple[ClassifiedTrack, ...]:
        return tuple(member for member in self.members if member.state is state)

    @property
    def live_members(self) -> tuple[ClassifiedTrack, ...]:
        return self._with_state(PlayabilityState.LIVE)

    @property
    def dead_members(self) -> tuple[ClassifiedTrack, ...]:
        return self._with_state(PlayabilityState.DEAD)

    @property
    def geo_locked_members(self) -> tuple[ClassifiedTrack, ...]:
        return self._with_state(PlayabilityState.GEO_LOCKED)

    @property
    def canonical_live(self) -> ClassifiedTrack | None:
        """First live member in input order, if any."""
        live = self.live_members
        return live[0] if live else None


def group_by_identity(classified: Iterable[ClassifiedTrack]) -> dict[str, IdentityGroup]:
    """
    Group classified tracks by ISRC.

    Args:
        classified: Classified tracks in collection order.

    Returns:
        Mapping ISRC -> IdentityGroup, in first-seen order.
    """
    buckets: dict[str, list[ClassifiedTrack]] = {}
    for item in classified:
        isrc = item.track.isrc
        if not isrc:
            continue
        buckets.setdefault(isrc, []).append(item)

    return {
        isrc: IdentityGroup(isrc=isrc, members=tuple(members))
        for isrc, members in buckets.items()
    }


def find_unmatchable(classified: Iterable[ClassifiedTrack]) -> list[ClassifiedTrack]:
    """Tracks without an ISRC, in input order."""
    return [item for item in classified if not item.track.isrc]
