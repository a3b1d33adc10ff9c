"""
Sync/Relink Pipeline.

Propagates the tracks of a source playlist into the user's liked
library, substituting a catalog relink for tracks that are dead.

Per Page:
    1. Classify every track for the reference market.
    2. LIVE / GEO_LOCKED: the track's own id is the candidate.
    3. DEAD: the candidate is the catalog's relink for the reference
       market. Lookups of one page run concurrently. No relink means
       SKIPPED_DEAD.
    4. One batched membership check for the page's candidates. Ids already
       in the library, or already staged earlier in this run, are
       SKIPPED_ALREADY_PRESENT. The rest are staged. A repeat of a staged
       id shares the fate of the first occurrence: if that add fails, the
       repeat fails with the same reason.
    5. Every time the staging buffer holds batch_size ids, one write chunk
       is submitted. Failed ids of a chunk become FAILED, the rest of
       the chunk and of the run are unaffected.

Writes happen on the calling thread, in source order. Membership is
always asked of the catalog: nothing is cached between runs, so a second
run over an unchanged playlist adds nothing.

Usage:
    pipeline = SyncPipeline(catalog, settings)
    report = pipeline.run(playlist_id, "US")
"""

import threading
from typing import Callable, Sequence

from spot_audit.audit.classifier import (
    ClassifiedTrack,
    PlayabilityState,
    classify,
    describe_problem,
)
from spot_audit.audit.pages import PageReader
from spot_audit.audit.report import (
    BATCH_SUCCESS,
    CANCELLED_REASON,
    AuditReport,
    BatchLog,
    SyncAction,
    SyncOutcome,
)
from spot_audit.catalog.base import LIKED_LIBRARY, CatalogService, CollectionPage, WriteResult
from spot_audit.catalog.models import Track
from spot_audit.core.config import AuditSettings
from spot_audit.core.exceptions import ConfigurationError
from spot_audit.core.logger import get_logger, log_sync_failure
from spot_audit.core.retry import CallResult, RetryPolicy
from spot_audit.utils import normalize_market, run_in_parallel

logger = get_logger(__name__)


def write_chunk(
    policy: RetryPolicy,
    write: Callable[[Sequence[str], int], WriteResult],
    track_ids: list[str],
    max_batch_size: int,
    description: str
) -> dict[str, str | None]:
    """
    Submit one write chunk and return a result for every id.

    Args:
        policy: Retry policy for the call.
        write: catalog.add_to_liked_library or remove_from_liked_library.
        track_ids: Ids of the chunk, at most max_batch_size of them.
        max_batch_size: Limit passed through to the catalog.
        description: Label for log messages.

    Returns:
        Mapping id -> None on success, failure reason otherwise. When the
        whole call fails after retries, every id carries that reason.
    """
    result = policy.call(write, track_ids, max_batch_size, description=description)
    if not result.ok:
        return {track_id: result.reason for track_id in track_ids}

    per_id = result.value or {}
    return {
        track_id: per_id[track_id] if track_id in per_id else "no result returned by the catalog"
        for track_id in track_ids
    }


def batch_status(results: dict[str, str | None]) -> str:
    """'Success' for a clean chunk, otherwise a short failure summary."""
    failures = [reason for reason in results.values() if reason is not None]
    if not failures:
        return BATCH_SUCCESS
    if len(failures) == len(results) and len(set(failures)) == 1:
        return failures[0]
    return f"{len(failures)} of {len(results)} failed"


class SyncPipeline:
    """
    Streams a source collection into the liked library.

    A pipeline instance runs one sync at a time; its run state is reset
    at the start of every run().
    """

    def __init__(
        self,
        catalog: CatalogService,
        settings: AuditSettings | None = None,
        policy: RetryPolicy | None = None,
        cancel_event: threading.Event | None = None
    ) -> None:
        self._catalog = catalog
        self._settings = settings or AuditSettings()
        self._settings.validate()
        self._policy = policy or self._settings.retry_policy()
        self._cancel_event = cancel_event
        self._reset()

    def _reset(self) -> None:
        self._market = ""
        self._outcomes: list[SyncOutcome] = []
        self._staging: list[int] = []
        self._staged_by_id: dict[str, int] = {}
        self._duplicates: dict[int, list[int]] = {}
        self._batch_logs: list[BatchLog] = []
        self._problems = []
        self._state_counts = {state: 0 for state in PlayabilityState}
        self._errors: list[str] = []
        self._cancelled = False

    def _cancel_requested(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def run(self, source_collection_id: str, reference_market: str) -> AuditReport:
        """
        Sync a collection into the liked library.

        Args:
            source_collection_id: Playlist id to read from.
            reference_market: ISO 3166-1 alpha-2 code of the caller's market.

        Returns:
            AuditReport with one SyncOutcome per source track.

        Raises:
            ConfigurationError: Invalid market or collection id. Raised
                                before any catalog call.
        """
        market = normalize_market(reference_market)
        if not source_collection_id:
            raise ConfigurationError("Source collection id must not be empty")
        if source_collection_id == LIKED_LIBRARY:
            raise ConfigurationError(
                "Cannot sync the liked library into itself",
                details={"collection_id": source_collection_id}
            )

        self._reset()
        self._market = market

        logger.info(f"Syncing {source_collection_id} into Liked Songs (market {market})")

        initial_count = self._liked_count()

        reader = PageReader(self._catalog, source_collection_id, self._policy, self._cancel_event)
        pages = iter(reader)
        try:
            for page in pages:
                self._process_page(page)
                while len(self._staging) >= self._settings.batch_size and not self._cancelled:
                    self._submit_next_chunk()
                if self._cancelled:
                    break
        finally:
            pages.close()

        self._cancelled = self._cancelled or reader.cancelled
        while self._staging and not self._cancelled:
            self._submit_next_chunk()
        if self._cancelled:
            self._fail_staged(CANCELLED_REASON)

        final_count = self._liked_count() if self._batch_logs else initial_count

        self._log_failures()

        report = AuditReport(
            mode="sync",
            collection_id=source_collection_id,
            reference_market=market,
            state_counts=dict(self._state_counts),
            total_tracks=len(self._outcomes),
            problematic_tracks=tuple(self._problems),
            sync_outcomes=tuple(self._outcomes),
            batch_logs=tuple(self._batch_logs),
            skipped_items=reader.skipped_items,
            errors=tuple(reader.errors + self._errors),
            complete=reader.complete and not self._cancelled,
            cancelled=self._cancelled,
            initial_liked_count=initial_count,
            final_liked_count=final_count,
        )

        logger.info(
            f"Sync finished: {report.added_count} added, "
            f"{len(report.sync_outcomes) - report.added_count} not added "
            f"out of {report.total_tracks} tracks"
        )
        return report

    # =========================================================================
    # Page processing
    # =========================================================================

    def _process_page(self, page: CollectionPage) -> None:
        classified = [ClassifiedTrack(track, classify(track, self._market)) for track in page.tracks]

        for item in classified:
            self._state_counts[item.state] += 1
            problem = describe_problem(item.track, item.state, self._market)
            if problem is not None:
                self._problems.append(problem)

        relinks = self._lookup_relinks(
            [item.track for item in classified
             if item.state is PlayabilityState.DEAD and not item.track.relinked_id]
        )

        # (outcome index, candidate id) pairs awaiting the membership check
        candidates: list[tuple[int, str]] = []

        for item in classified:
            track = item.track

            if item.state is not PlayabilityState.DEAD:
                provisional = SyncOutcome.added_directly(track, item.state)
            else:
                substitute = track.relinked_id
                if substitute is None:
                    lookup = relinks[track.track_id]
                    if not lookup.ok:
                        self._outcomes.append(
                            SyncOutcome.failed(
                                track, f"relink lookup failed: {lookup.reason}", state=item.state
                            )
                        )
                        continue
                    substitute = lookup.value

                if not substitute:
                    logger.debug(f"No relink for dead track {track.display_name}")
                    self._outcomes.append(SyncOutcome.skipped_dead(track))
                    continue

                provisional = SyncOutcome.added_as_substitute(track, substitute, item.state)

            self._outcomes.append(provisional)
            candidates.append((len(self._outcomes) - 1, provisional.target_id))

        self._resolve_membership(candidates)

    def _lookup_relinks(self, dead_tracks: list[Track]) -> dict[str, CallResult[str | None]]:
        """Ask the catalog for relinks of a page's dead tracks, concurrently."""
        if not dead_tracks:
            return {}

        def lookup(track: Track) -> CallResult[str | None]:
            return self._policy.call(
                self._catalog.get_relink,
                track.track_id,
                self._market,
                description=f"relink {track.track_id}"
            )

        relinks: dict[str, CallResult[str | None]] = {}
        for track, result in run_in_parallel(
            lookup,
            dead_tracks,
            num_threads=self._settings.workers,
            description="Relinking"
        ):
            if isinstance(result, Exception):
                raise result
            relinks[track.track_id] = result
        return relinks

    def _resolve_membership(self, candidates: list[tuple[int, str]]) -> None:
        """Check the page's candidates against the library and stage the new ones."""
        to_check = list(dict.fromkeys(
            target_id for _, target_id in candidates if target_id not in self._staged_by_id
        ))

        membership: dict[str, bool] = {}
        if to_check:
            result = self._policy.call(
                self._catalog.is_in_liked_library,
                to_check,
                description="liked library membership check"
            )
            if not result.ok:
                reason = f"membership check failed: {result.reason}"
                self._errors.append(reason)
                for index, _ in candidates:
                    self._outcomes[index] = self._outcomes[index].as_failed(reason)
                return
            membership = result.value or {}

        for index, target_id in candidates:
            outcome = self._outcomes[index]
            first_index = self._staged_by_id.get(target_id)

            if first_index is not None:
                first = self._outcomes[first_index]
                if first.action is SyncAction.FAILED:
                    self._outcomes[index] = outcome.as_failed(first.reason)
                    continue
                # Settled when the first occurrence's chunk is written
                self._duplicates.setdefault(first_index, []).append(index)
            elif not membership.get(target_id, False):
                self._staged_by_id[target_id] = index
                self._staging.append(index)
                continue

            logger.debug(f"Already in Liked Songs: {outcome.track.display_name}")
            self._outcomes[index] = SyncOutcome.skipped_already_present(
                outcome.track, outcome.state, outcome.substitute_id
            )

    # =========================================================================
    # Writes
    # =========================================================================

    def _submit_next_chunk(self) -> None:
        if self._cancel_requested():
            logger.info("Cancellation requested, not submitting further batches")
            self._cancelled = True
            return

        chunk = self._staging[:self._settings.batch_size]
        del self._staging[:self._settings.batch_size]

        track_ids = [self._outcomes[index].target_id for index in chunk]
        batch_index = len(self._batch_logs) + 1

        results = write_chunk(
            self._policy,
            self._catalog.add_to_liked_library,
            track_ids,
            self._settings.batch_size,
            description=f"add batch {batch_index}"
        )

        for index, track_id in zip(chunk, track_ids):
            reason = results[track_id]
            if reason is not None:
                self._mark_failed(index, reason)

        status = batch_status(results)
        self._batch_logs.append(BatchLog(batch_index, "add", tuple(track_ids), status))
        logger.info(f"Batch {batch_index}: {len(track_ids)} tracks -> {status}")

    def _fail_staged(self, reason: str) -> None:
        for index in self._staging:
            self._mark_failed(index, reason)
        self._staging.clear()

    def _mark_failed(self, index: int, reason: str) -> None:
        """Fail a staged outcome and every later repeat of its id."""
        self._outcomes[index] = self._outcomes[index].as_failed(reason)
        for duplicate in self._duplicates.pop(index, []):
            self._outcomes[duplicate] = self._outcomes[duplicate].as_failed(reason)

    def _liked_count(self) -> int | None:
        result = self._policy.call(
            self._catalog.get_liked_library_count,
            description="count liked library"
        )
        if not result.ok:
            logger.warning(f"Could not count Liked Songs: {result.reason}")
            return None
        return result.value

    def _log_failures(self) -> None:
        for outcome in self._outcomes:
            if outcome.reason is None:
                continue
            log_sync_failure(
                logger,
                track_name=outcome.track.name,
                artist=outcome.track.artist,
                spotify_url=outcome.track.spotify_url,
                reason=outcome.reason,
            )
