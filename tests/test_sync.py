"""Test the sync/relink pipeline"""

import threading
from dataclasses import replace

import pytest

from spot_audit.audit.classifier import PlayabilityState
from spot_audit.audit.report import CANCELLED_REASON, SyncAction
from spot_audit.audit.sync import SyncPipeline, batch_status
from spot_audit.catalog.base import LIKED_LIBRARY
from spot_audit.core.exceptions import ConfigurationError
from conftest import FakeCatalog, make_track, permanent, transient


def actions(report):
    return {o.track.track_id: o.action for o in report.sync_outcomes}


@pytest.fixture
def playlist_catalog():
    """Scenario A: T1 live in US, T2 dead with a relink to T3"""
    catalog = FakeCatalog()
    catalog.collections["pl"] = [
        make_track("T1", markets=("US",)),
        make_track("T2", markets=(), isrc="X"),
    ]
    catalog.relinks["T2"] = "T3"
    return catalog


class TestSyncScenarios:
    """End-to-end sync behaviour"""

    def test_scenario_a(self, playlist_catalog, settings):
        """Live track added directly, dead track replaced by its relink"""
        report = SyncPipeline(playlist_catalog, settings).run("pl", "US")

        t1, t2 = report.sync_outcomes
        assert t1.action is SyncAction.ADDED_DIRECTLY
        assert t2.action is SyncAction.ADDED_AS_SUBSTITUTE
        assert t2.substitute_id == "T3"
        assert playlist_catalog.add_calls == [["T1", "T3"]]
        assert playlist_catalog.relink_calls == [("T2", "US")]
        assert report.complete
        assert not report.cancelled

    def test_scenario_c_chunks_in_order(self, catalog, settings):
        """150 staged ids with batch_size 50 -> exactly 3 add calls in source order"""
        tracks = [make_track(f"t{i:03d}") for i in range(150)]
        catalog.collections["pl"] = tracks

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert len(catalog.add_calls) == 3
        expected = [t.track_id for t in tracks]
        assert catalog.add_calls == [expected[0:50], expected[50:100], expected[100:150]]
        assert [b.index for b in report.batch_logs] == [1, 2, 3]
        assert all(b.succeeded for b in report.batch_logs)
        assert report.added_count == 150

    def test_scenario_d_item_failure_is_isolated(self, catalog, settings):
        """One permanently failing id does not affect the others"""
        catalog.collections["pl"] = [make_track("a"), make_track("b"), make_track("c")]
        catalog.add_item_failures["b"] = "Invalid track id"

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert actions(report) == {
            "a": SyncAction.ADDED_DIRECTLY,
            "b": SyncAction.FAILED,
            "c": SyncAction.ADDED_DIRECTLY,
        }
        assert report.sync_outcomes[1].reason == "Invalid track id"
        assert report.batch_logs[0].status == "1 of 3 failed"
        assert report.complete

    def test_scenario_d_failure_does_not_stop_later_batches(self, catalog, settings):
        """A failed id in the first batch leaves the second batch untouched"""
        catalog.collections["pl"] = [make_track(f"t{i}") for i in range(4)]
        catalog.add_item_failures["t0"] = "Invalid track id"

        report = SyncPipeline(catalog, replace(settings, batch_size=2)).run("pl", "US")

        assert catalog.add_calls == [["t0", "t1"], ["t2", "t3"]]
        assert actions(report) == {
            "t0": SyncAction.FAILED,
            "t1": SyncAction.ADDED_DIRECTLY,
            "t2": SyncAction.ADDED_DIRECTLY,
            "t3": SyncAction.ADDED_DIRECTLY,
        }
        assert [b.status for b in report.batch_logs] == ["1 of 2 failed", "Success"]
        assert catalog.liked == ["t1", "t2", "t3"]
        assert report.complete

    def test_second_run_adds_nothing(self, playlist_catalog, settings):
        """Membership is re-checked every run"""
        pipeline = SyncPipeline(playlist_catalog, settings)
        pipeline.run("pl", "US")
        second = pipeline.run("pl", "US")

        assert {o.action for o in second.sync_outcomes} == {SyncAction.SKIPPED_ALREADY_PRESENT}
        assert len(playlist_catalog.add_calls) == 1
        assert second.added_count == 0
        assert second.batch_logs == ()


class TestSyncDecisions:
    """Per-track decisions"""

    def test_dead_without_relink_is_skipped(self, catalog, settings):
        catalog.collections["pl"] = [make_track("dead", markets=())]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert report.sync_outcomes[0].action is SyncAction.SKIPPED_DEAD
        assert catalog.add_calls == []
        assert catalog.membership_calls == []

    def test_relink_from_page_is_used_without_lookup(self, catalog, settings):
        catalog.collections["pl"] = [make_track("old", markets=None, relinked_id="new")]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert report.sync_outcomes[0].action is SyncAction.ADDED_AS_SUBSTITUTE
        assert report.sync_outcomes[0].substitute_id == "new"
        assert catalog.relink_calls == []

    def test_geo_locked_track_is_added(self, catalog, settings):
        catalog.collections["pl"] = [make_track("geo", markets=("JP",))]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        outcome = report.sync_outcomes[0]
        assert outcome.action is SyncAction.ADDED_DIRECTLY
        assert outcome.state is PlayabilityState.GEO_LOCKED

    def test_already_liked_is_skipped(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a"), make_track("b")]
        catalog.liked = ["a"]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert actions(report)["a"] is SyncAction.SKIPPED_ALREADY_PRESENT
        assert catalog.add_calls == [["b"]]

    def test_duplicate_within_run_is_staged_once(self, catalog, settings):
        """A playlist listing a track twice, and a relink pointing at a listed track"""
        catalog.page_size = 2
        catalog.collections["pl"] = [
            make_track("a"),
            make_track("dead", markets=()),
            make_track("a"),
        ]
        catalog.relinks["dead"] = "a"

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert [o.action for o in report.sync_outcomes] == [
            SyncAction.ADDED_DIRECTLY,
            SyncAction.SKIPPED_ALREADY_PRESENT,
            SyncAction.SKIPPED_ALREADY_PRESENT,
        ]
        assert report.sync_outcomes[1].substitute_id == "a"
        assert catalog.add_calls == [["a"]]

    def test_one_membership_check_per_page(self, catalog, settings):
        catalog.page_size = 10
        catalog.collections["pl"] = [make_track(f"t{i}") for i in range(25)]

        SyncPipeline(catalog, settings).run("pl", "US")

        assert [len(ids) for ids in catalog.membership_calls] == [10, 10, 5]

    def test_every_track_gets_exactly_one_outcome(self, catalog, settings):
        catalog.page_size = 3
        catalog.collections["pl"] = [
            make_track("live"),
            make_track("geo", markets=("DE",)),
            make_track("dead", markets=()),
            make_track("relinked", markets=None),
            make_track("liked"),
        ]
        catalog.relinks["relinked"] = "fresh"
        catalog.liked = ["liked"]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert [o.track.track_id for o in report.sync_outcomes] == [
            "live", "geo", "dead", "relinked", "liked"
        ]
        assert report.total_tracks == 5
        assert sum(report.outcome_counts().values()) == 5

    def test_liked_counts_recorded(self, playlist_catalog, settings):
        playlist_catalog.liked = ["x"]

        report = SyncPipeline(playlist_catalog, settings).run("pl", "US")

        assert report.initial_liked_count == 1
        assert report.final_liked_count == 3
        assert report.estimated_added == 2


class TestSyncFailures:
    """Retries and degraded items"""

    def test_transient_add_failure_is_retried(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a")]
        catalog.add_errors = [transient()]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert report.sync_outcomes[0].action is SyncAction.ADDED_DIRECTLY
        assert catalog.add_calls == [["a"], ["a"]]

    def test_exhausted_add_fails_the_chunk(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a"), make_track("b")]
        catalog.add_errors = [transient(), transient(), transient()]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert {o.action for o in report.sync_outcomes} == {SyncAction.FAILED}
        assert report.sync_outcomes[0].reason == "rate limited (after 3 attempts)"
        assert report.batch_logs[0].status == "rate limited (after 3 attempts)"
        assert report.complete

    def test_relink_failure_fails_only_that_track(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a"), make_track("dead", markets=())]
        catalog.relink_errors["dead"] = [permanent("gone")]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert actions(report) == {"a": SyncAction.ADDED_DIRECTLY, "dead": SyncAction.FAILED}
        assert report.sync_outcomes[1].reason == "relink lookup failed: gone"

    def test_membership_failure_fails_page_candidates(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a"), make_track("b")]
        catalog.membership_errors = [transient(), transient(), transient()]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert {o.action for o in report.sync_outcomes} == {SyncAction.FAILED}
        assert catalog.add_calls == []
        assert len(report.errors) == 1

    def test_repeat_of_failed_add_is_not_reported_present(self, catalog, settings):
        """A track listed twice whose add fails is failed twice"""
        catalog.collections["pl"] = [make_track("a"), make_track("a")]
        catalog.add_item_failures["a"] = "Invalid track id"

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert [(o.action, o.reason) for o in report.sync_outcomes] == [
            (SyncAction.FAILED, "Invalid track id"),
            (SyncAction.FAILED, "Invalid track id"),
        ]
        assert catalog.liked == []

    def test_repeat_after_failed_chunk_fails_without_new_calls(self, catalog, settings):
        """The first add already failed when the repeat is read on a later page"""
        catalog.page_size = 1
        catalog.collections["pl"] = [make_track("a"), make_track("a")]
        catalog.add_item_failures["a"] = "Invalid track id"

        report = SyncPipeline(catalog, replace(settings, batch_size=1)).run("pl", "US")

        assert {o.action for o in report.sync_outcomes} == {SyncAction.FAILED}
        assert report.sync_outcomes[1].reason == "Invalid track id"
        assert catalog.add_calls == [["a"]]
        assert catalog.membership_calls == [["a"]]

    def test_relink_to_failed_add_is_failed(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a"), make_track("dead", markets=())]
        catalog.relinks["dead"] = "a"
        catalog.add_errors = [permanent("forbidden")]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        dead = report.sync_outcomes[1]
        assert dead.action is SyncAction.FAILED
        assert dead.reason == report.sync_outcomes[0].reason
        assert dead.substitute_id == "a"

    def test_page_failure_ends_pagination(self, catalog, settings):
        catalog.collections["pl"] = [make_track(f"t{i}") for i in range(150)]
        catalog.page_errors["pl:100"] = [transient(), transient(), transient()]

        report = SyncPipeline(catalog, settings).run("pl", "US")

        assert report.total_tracks == 100
        assert report.added_count == 100
        assert not report.complete
        assert not report.cancelled
        assert "page 2" in report.errors[0]


class TestSyncCancellation:
    """Cancellation between batches"""

    def test_cancel_between_batches(self, catalog, settings):
        catalog.collections["pl"] = [make_track(f"t{i:03d}") for i in range(150)]
        event = threading.Event()
        catalog.on_add = lambda ids: event.set()

        report = SyncPipeline(catalog, settings, cancel_event=event).run("pl", "US")

        assert len(catalog.add_calls) == 1
        counts = report.outcome_counts()
        assert counts[SyncAction.ADDED_DIRECTLY] == 50
        assert counts[SyncAction.FAILED] == 50
        failed = [o for o in report.sync_outcomes if o.action is SyncAction.FAILED]
        assert {o.reason for o in failed} == {CANCELLED_REASON}
        assert report.cancelled
        assert not report.complete

    def test_cancel_before_start(self, catalog, settings):
        catalog.collections["pl"] = [make_track("a")]
        event = threading.Event()
        event.set()

        report = SyncPipeline(catalog, settings, cancel_event=event).run("pl", "US")

        assert report.sync_outcomes == ()
        assert catalog.add_calls == []
        assert report.cancelled

    def test_repeat_of_cancelled_item_is_cancelled(self, catalog, settings):
        """A repeat never reports present when its first occurrence was never sent"""
        catalog.collections["pl"] = [make_track(f"t{i}") for i in (0, 1, 2, 2)]
        event = threading.Event()
        catalog.on_add = lambda ids: event.set()

        report = SyncPipeline(catalog, replace(settings, batch_size=2), cancel_event=event).run("pl", "US")

        assert catalog.add_calls == [["t0", "t1"]]
        assert [(o.action, o.reason) for o in report.sync_outcomes[2:]] == [
            (SyncAction.FAILED, CANCELLED_REASON),
            (SyncAction.FAILED, CANCELLED_REASON),
        ]
        assert report.cancelled


class TestSyncConfiguration:
    """Configuration errors are raised before any catalog call"""

    @pytest.mark.parametrize("market", [None, "", "USA", "1A", "U"])
    def test_invalid_market(self, catalog, settings, market):
        with pytest.raises(ConfigurationError):
            SyncPipeline(catalog, settings).run("pl", market)
        assert catalog.page_calls == []

    def test_liked_library_as_source(self, catalog, settings):
        with pytest.raises(ConfigurationError):
            SyncPipeline(catalog, settings).run(LIKED_LIBRARY, "US")
        assert catalog.page_calls == []

    def test_empty_collection_id(self, catalog, settings):
        with pytest.raises(ConfigurationError):
            SyncPipeline(catalog, settings).run("", "US")

    def test_invalid_batch_size(self, catalog, settings):
        with pytest.raises(ConfigurationError):
            SyncPipeline(catalog, replace(settings, batch_size=0))

    def test_market_normalized(self, playlist_catalog, settings):
        report = SyncPipeline(playlist_catalog, settings).run("pl", " us ")

        assert report.reference_market == "US"
        assert playlist_catalog.relink_calls == [("T2", "US")]


class TestBatchStatus:
    """Test batch_status()"""

    def test_all_success(self):
        assert batch_status({"a": None, "b": None}) == "Success"

    def test_single_shared_reason(self):
        assert batch_status({"a": "boom", "b": "boom"}) == "boom"

    def test_partial_failure(self):
        assert batch_status({"a": None, "b": "boom"}) == "1 of 2 failed"
