"""
Tests for report aggregation and exit codes.
"""

from gnulinwiz.core.engine.report import (
    EXIT_CANCELLED,
    EXIT_OK,
    EXIT_PARTIAL_FAILURE,
    finalize,
)
from gnulinwiz.core.models.outcome import (
    REASON_CANCELLED,
    REASON_DEPENDENCY,
    REASON_INTERRUPTED,
    ExecutionOutcome,
)

ok = ExecutionOutcome.success
fail = ExecutionOutcome.failure
skip = ExecutionOutcome.skip


class TestFinalize:
    def test_all_succeeded(self):
        report = finalize([ok("a"), ok("b")])
        assert report.success
        assert report.exit_code == EXIT_OK

    def test_empty_run_succeeds(self):
        assert finalize([]).success

    def test_blocking_failure(self):
        report = finalize([ok("a"), fail("b", "exit 1")])
        assert not report.success
        assert report.exit_code == EXIT_PARTIAL_FAILURE

    def test_allowed_failure_does_not_fail_run(self):
        report = finalize([ok("a"), fail("b", "exit 1", allow_failure=True)])
        assert report.success

    def test_skip_by_upstream_failure_fails_run(self):
        # Even if the failed task itself allowed failure the skip counts.
        report = finalize([
            fail("a", "exit 1", allow_failure=True),
            skip("b", REASON_DEPENDENCY),
        ])
        assert not report.success

    def test_dry_run_skips_succeed(self):
        report = finalize([skip("a", "dry run: would install a")], dry_run=True)
        assert report.success
        assert report.dry_run

    def test_cancelled(self):
        report = finalize(
            [ok("a"), fail("b", REASON_INTERRUPTED), skip("c", REASON_CANCELLED)],
            cancelled=True,
        )
        assert not report.success
        assert report.cancelled
        assert report.exit_code == EXIT_CANCELLED

    def test_preserves_order(self):
        report = finalize([ok("b"), ok("a")])
        assert [o.task_id for o in report.outcomes] == ["b", "a"]

    def test_context_fields(self, context):
        report = finalize([ok("a")], context=context, started_at="2025-01-01T00:00:00+00:00")
        assert report.distribution == "debian"
        assert report.package_manager == "apt"
        assert report.started_at == "2025-01-01T00:00:00+00:00"


class TestReportViews:
    def test_counts_and_lookup(self):
        report = finalize([ok("a"), fail("b", "x"), skip("c", REASON_DEPENDENCY)])
        assert report.counts() == {"total": 3, "succeeded": 1, "failed": 1, "skipped": 1}
        assert report.outcome_for("b").reason == "x"
        assert report.outcome_for("zzz") is None

    def test_to_dict(self):
        data = finalize([ok("a"), fail("b", "boom")]).to_dict()
        assert data["success"] is False
        assert data["exit_code"] == EXIT_PARTIAL_FAILURE
        assert data["outcomes"][1]["status"] == "failed"
        assert data["outcomes"][1]["reason"] == "boom"
