"""Test report types"""

import pytest

from spot_audit.audit.classifier import PlayabilityState
from spot_audit.audit.report import AuditReport, SyncAction, SyncOutcome
from conftest import make_track


class TestSyncOutcome:
    """Test SyncOutcome"""

    def test_substitute_requires_id(self):
        with pytest.raises(ValueError):
            SyncOutcome(make_track("a"), SyncAction.ADDED_AS_SUBSTITUTE)

    def test_failed_requires_reason(self):
        with pytest.raises(ValueError):
            SyncOutcome(make_track("a"), SyncAction.FAILED)

    def test_target_id(self):
        track = make_track("old")

        assert SyncOutcome.added_directly(track).target_id == "old"
        assert SyncOutcome.added_as_substitute(track, "new").target_id == "new"

    def test_as_failed_keeps_payload(self):
        outcome = SyncOutcome.added_as_substitute(make_track("old"), "new").as_failed("boom")

        assert outcome.action is SyncAction.FAILED
        assert outcome.substitute_id == "new"
        assert outcome.state is PlayabilityState.DEAD
        assert outcome.reason == "boom"


class TestAuditReport:
    """Test AuditReport"""

    def test_outcome_counts_include_every_action(self):
        report = AuditReport(
            mode="sync",
            collection_id="pl",
            reference_market="US",
            sync_outcomes=(
                SyncOutcome.added_directly(make_track("a")),
                SyncOutcome.skipped_dead(make_track("b")),
                SyncOutcome.skipped_dead(make_track("c")),
            ),
        )

        counts = report.outcome_counts()
        assert set(counts) == set(SyncAction)
        assert counts[SyncAction.SKIPPED_DEAD] == 2
        assert report.added_count == 1

    def test_estimated_added_needs_both_counts(self):
        report = AuditReport(mode="sync", collection_id="pl", reference_market="US",
                             initial_liked_count=10)
        assert report.estimated_added is None

        report = AuditReport(mode="sync", collection_id="pl", reference_market="US",
                             initial_liked_count=10, final_liked_count=14)
        assert report.estimated_added == 4
        assert report.to_dict()["estimated_added"] == 4
