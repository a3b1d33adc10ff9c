"""
Duplicate Resolver.

Turns identity groups into removal candidates: a dead track is only
worth removing when the same recording is still live in the collection.

Rules:
    - A group needs at least one LIVE and one DEAD member.
    - Every DEAD member is paired with the group's first LIVE member.
    - GEO_LOCKED members are never removal candidates. They may become
      playable again when the user travels or the licence changes.
"""

from typing import Iterable

from spot_audit.audit.matcher import IdentityGroup
from spot_audit.audit.report import RemovalCandidate
from spot_audit.core.logger import get_logger

logger = get_logger(__name__)


def resolve_duplicates(groups: dict[str, IdentityGroup] | Iterable[IdentityGroup]) -> list[RemovalCandidate]:
    """
    Compute the removal candidates for a set of identity groups.

    Args:
        groups: Output of group_by_identity(), or any iterable of groups.

    Returns:
        RemovalCandidates in group order, then member order.
    """
    if isinstance(groups, dict):
        groups = groups.values()

    candidates: list[RemovalCandidate] = []
    for group in groups:
        canonical = group.canonical_live
        dead = group.dead_members
        if canonical is None or not dead:
            continue

        for member in dead:
            logger.debug(
                f"{group.isrc}: {member.track.display_name} ({member.track.track_id}) "
                f"is a dead duplicate of {canonical.track.track_id}"
            )
            candidates.append(
                RemovalCandidate(
                    dead_track=member.track,
                    live_track_id=canonical.track.track_id,
                    isrc=group.isrc,
                )
            )

    return candidates
