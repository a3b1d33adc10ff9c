"""
Audit Orchestrator.

Entry point of the engine. Owns the reference market of a run, validates
it before any catalog call, and drives one of two modes:

Audit Mode:
    1. Read the collection page by page
    2. Classify every track, record dead and geo-locked ones
    3. dedup=True: group by ISRC and compute removal candidates
    4. apply_removals=True (liked library only): remove the candidates
       in batch_size chunks and record a RemovalResult per candidate

Sync Mode:
    Delegates to SyncPipeline.

Usage:
    from spot_audit.audit import AuditOrchestrator

    orchestrator = AuditOrchestrator(catalog, config.audit)
    report = orchestrator.run_audit(LIKED_LIBRARY, "US", dedup=True)
"""

import threading

from spot_audit.audit.classifier import PlayabilityState, classify_all, describe_problem
from spot_audit.audit.matcher import find_unmatchable, group_by_identity
from spot_audit.audit.pages import PageReader
from spot_audit.audit.report import (
    CANCELLED_REASON,
    AuditReport,
    BatchLog,
    RemovalCandidate,
    RemovalResult,
)
from spot_audit.audit.resolver import resolve_duplicates
from spot_audit.audit.sync import SyncPipeline, batch_status, write_chunk
from spot_audit.catalog.base import LIKED_LIBRARY, CatalogService
from spot_audit.core.config import AuditSettings
from spot_audit.core.exceptions import ConfigurationError
from spot_audit.core.logger import get_logger, log_removal_candidate
from spot_audit.core.retry import RetryPolicy
from spot_audit.utils import chunked, normalize_market

logger = get_logger(__name__)


class AuditOrchestrator:
    """
    Runs audits and syncs against one catalog.

    Attributes:
        settings: Engine settings (batch size, workers, retry policy).
    """

    def __init__(
        self,
        catalog: CatalogService,
        settings: AuditSettings | None = None,
        policy: RetryPolicy | None = None,
        cancel_event: threading.Event | None = None
    ) -> None:
        self._catalog = catalog
        self.settings = settings or AuditSettings()
        self.settings.validate()
        self._policy = policy or self.settings.retry_policy()
        self._cancel_event = cancel_event

    def _resolve_market(self, reference_market: str | None) -> str:
        """Pick the run's market: the argument, else the configured default."""
        market = reference_market if reference_market is not None else self.settings.market
        return normalize_market(market)

    def run_audit(
        self,
        collection_id: str,
        reference_market: str | None = None,
        dedup: bool = False,
        apply_removals: bool = False
    ) -> AuditReport:
        """
        Audit a collection.

        Args:
            collection_id: Playlist id, or LIKED_LIBRARY.
            reference_market: Market to classify against. Defaults to
                              settings.market.
            dedup: Group by ISRC and compute removal candidates.
            apply_removals: Remove the candidates from the liked library.
                            Implies dedup.

        Returns:
            AuditReport for the collection.

        Raises:
            ConfigurationError: Invalid market or collection id, or
                                apply_removals on a playlist. Raised before
                                any catalog call.
        """
        market = self._resolve_market(reference_market)
        if not collection_id:
            raise ConfigurationError("Collection id must not be empty")
        if apply_removals and collection_id != LIKED_LIBRARY:
            raise ConfigurationError(
                "Removals can only be applied to the liked library",
                details={"collection_id": collection_id}
            )
        dedup = dedup or apply_removals

        logger.info(f"Auditing {collection_id} (market {market})")

        reader = PageReader(self._catalog, collection_id, self._policy, self._cancel_event)
        classified = []
        problems = []
        state_counts = {state: 0 for state in PlayabilityState}

        for page in reader:
            for item in classify_all(page.tracks, market):
                classified.append(item)
                state_counts[item.state] += 1
                problem = describe_problem(item.track, item.state, market)
                if problem is not None:
                    logger.debug(f"{problem.state.value}: {item.track.display_name} ({problem.reason})")
                    problems.append(problem)

        logger.info(
            f"Scanned {len(classified)} tracks: "
            f"{state_counts[PlayabilityState.LIVE]} live, "
            f"{state_counts[PlayabilityState.GEO_LOCKED]} geo-locked, "
            f"{state_counts[PlayabilityState.DEAD]} dead"
        )

        unmatchable = []
        candidates: list[RemovalCandidate] = []
        if dedup:
            unmatchable = [item.track for item in find_unmatchable(classified)]
            candidates = resolve_duplicates(group_by_identity(classified))
            for candidate in candidates:
                log_removal_candidate(
                    logger,
                    isrc=candidate.isrc,
                    dead_track_id=candidate.dead_track.track_id,
                    dead_track_name=candidate.dead_track.name,
                    dead_track_artist=candidate.dead_track.artist,
                    live_track_id=candidate.live_track_id,
                )
            logger.info(
                f"{len(candidates)} dead duplicates with a live version, "
                f"{len(unmatchable)} tracks without ISRC"
            )

        removal_results: list[RemovalResult] = []
        batch_logs: list[BatchLog] = []
        cancelled = reader.cancelled
        initial_count = final_count = None

        if apply_removals and candidates:
            if not reader.complete:
                # Only a complete scan may drive removals
                logger.warning("Scan incomplete, removals not applied")
            else:
                initial_count = self._liked_count()
                cancelled = self._apply_removals(candidates, removal_results, batch_logs)
                final_count = self._liked_count()

        return AuditReport(
            mode="audit",
            collection_id=collection_id,
            reference_market=market,
            state_counts=state_counts,
            total_tracks=len(classified),
            problematic_tracks=tuple(problems),
            unmatchable_tracks=tuple(unmatchable),
            removal_candidates=tuple(candidates),
            removal_results=tuple(removal_results),
            batch_logs=tuple(batch_logs),
            skipped_items=reader.skipped_items,
            errors=tuple(reader.errors),
            complete=reader.complete and not cancelled,
            cancelled=cancelled,
            initial_liked_count=initial_count,
            final_liked_count=final_count,
        )

    def _apply_removals(
        self,
        candidates: list[RemovalCandidate],
        removal_results: list[RemovalResult],
        batch_logs: list[BatchLog]
    ) -> bool:
        """
        Remove candidates from the liked library, one chunk at a time.

        Returns:
            True if the cancel event stopped the removals.
        """
        chunks = list(chunked(candidates, self.settings.batch_size))

        for position, chunk in enumerate(chunks):
            if self._cancel_event is not None and self._cancel_event.is_set():
                logger.info("Cancellation requested, not submitting further removals")
                for remaining in chunks[position:]:
                    removal_results.extend(
                        RemovalResult(candidate, removed=False, reason=CANCELLED_REASON)
                        for candidate in remaining
                    )
                return True

            track_ids = [candidate.dead_track.track_id for candidate in chunk]
            batch_index = len(batch_logs) + 1
            results = write_chunk(
                self._policy,
                self._catalog.remove_from_liked_library,
                track_ids,
                self.settings.batch_size,
                description=f"remove batch {batch_index}"
            )

            for candidate in chunk:
                reason = results[candidate.dead_track.track_id]
                if reason is not None:
                    logger.error(
                        f"Could not remove {candidate.dead_track.display_name}: {reason}"
                    )
                removal_results.append(
                    RemovalResult(candidate, removed=reason is None, reason=reason)
                )

            status = batch_status(results)
            batch_logs.append(BatchLog(batch_index, "remove", tuple(track_ids), status))
            logger.info(f"Removal batch {batch_index}: {len(track_ids)} tracks -> {status}")

        return False

    def _liked_count(self) -> int | None:
        result = self._policy.call(
            self._catalog.get_liked_library_count,
            description="count liked library"
        )
        return result.value if result.ok else None

    def run_sync(self, source_collection_id: str, reference_market: str | None = None) -> AuditReport:
        """
        Sync a playlist into the liked library.

        See SyncPipeline.run().
        """
        market = self._resolve_market(reference_market)
        pipeline = SyncPipeline(
            self._catalog,
            self.settings,
            policy=self._policy,
            cancel_event=self._cancel_event
        )
        return pipeline.run(source_collection_id, market)


def run_audit(
    catalog: CatalogService,
    collection_id: str,
    reference_market: str | None = None,
    dedup: bool = False,
    apply_removals: bool = False,
    settings: AuditSettings | None = None,
    cancel_event: threading.Event | None = None
) -> AuditReport:
    """Convenience wrapper around AuditOrchestrator.run_audit()."""
    orchestrator = AuditOrchestrator(catalog, settings, cancel_event=cancel_event)
    return orchestrator.run_audit(collection_id, reference_market, dedup, apply_removals)


def run_sync(
    catalog: CatalogService,
    source_collection_id: str,
    reference_market: str | None = None,
    settings: AuditSettings | None = None,
    cancel_event: threading.Event | None = None
) -> AuditReport:
    """Convenience wrapper around AuditOrchestrator.run_sync()."""
    orchestrator = AuditOrchestrator(catalog, settings, cancel_event=cancel_event)
    return orchestrator.run_sync(source_collection_id, reference_market)
