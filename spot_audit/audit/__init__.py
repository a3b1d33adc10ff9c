"""
Audit engine for spot-audit.

This package contains the audit-and-reconciliation engine:
    - classifier: Playability of a track for a reference market
    - matcher: Grouping of tracks by recording identity (ISRC)
    - resolver: Dead duplicates with a live sibling
    - pages: Prefetching reader over a paginated collection
    - sync: Playlist -> Liked Songs propagation with relinking
    - orchestrator: Entry points for audit and sync runs

Usage:
    from spot_audit.audit import run_audit, run_sync

    report = run_audit(catalog, LIKED_LIBRARY, "US", dedup=True)
"""

from spot_audit.audit.classifier import (
    ClassifiedTrack,
    PlayabilityState,
    ProblematicTrack,
    classify,
    describe_problem,
)
from spot_audit.audit.matcher import IdentityGroup, find_unmatchable, group_by_identity
from spot_audit.audit.report import (
    AuditReport,
    BatchLog,
    RemovalCandidate,
    RemovalResult,
    SyncAction,
    SyncOutcome,
)
from spot_audit.audit.resolver import resolve_duplicates
from spot_audit.audit.sync import SyncPipeline
from spot_audit.audit.orchestrator import AuditOrchestrator, run_audit, run_sync

__all__ = [
    # Classification
    "PlayabilityState",
    "ClassifiedTrack",
    "ProblematicTrack",
    "classify",
    "describe_problem",
    # Identity
    "IdentityGroup",
    "group_by_identity",
    "find_unmatchable",
    "resolve_duplicates",
    # Reports
    "AuditReport",
    "BatchLog",
    "RemovalCandidate",
    "RemovalResult",
    "SyncAction",
    "SyncOutcome",
    # Runs
    "SyncPipeline",
    "AuditOrchestrator",
    "run_audit",
    "run_sync",
]
