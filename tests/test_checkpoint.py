"""Checkpoint controller state machine, driven without a repository."""
import random
from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest

from graph_backfill.checkpoint import CheckpointController, RunCounters
from graph_backfill.config import BatchConfig
from graph_backfill.errors import PushError
from graph_backfill.push import PushOutcome
from graph_backfill.schedule import TimestampSynthesizer

DAY = date(2023, 6, 15)
NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def controller(batch, outcome=PushOutcome.SKIPPED, dry_run=False):
    repo = Mock()
    repo.current_branch.return_value = "main"
    emitter = Mock()
    reconciler = Mock()
    reconciler.push.return_value = outcome
    ctl = CheckpointController(
        repo, emitter, reconciler, TimestampSynthesizer(random.Random(3)), batch,
        dry_run=dry_run, counters=RunCounters(), now=lambda: NOW,
    )
    return ctl, repo, emitter, reconciler


@pytest.mark.unit
class TestCheckpointController:
    def test_fires_on_multiples_of_batch_size(self):
        ctl, _, emitter, reconciler = controller(BatchConfig(size=3))

        ctl.record(DAY)
        ctl.record(DAY)
        assert reconciler.push.call_count == 0
        ctl.record(date(2023, 6, 16))
        assert reconciler.push.call_count == 1
        assert emitter.remove_marker.call_count == 1

        for _ in range(3):
            ctl.record(date(2023, 6, 17))
        assert reconciler.push.call_count == 2
        assert ctl.counters.total_made == 6
        assert ctl.counters.batch_index == 2

    def test_final_checkpoint_covers_partial_batch(self):
        ctl, _, _, reconciler = controller(BatchConfig(size=3))
        for _ in range(4):
            ctl.record(DAY)
        assert reconciler.push.call_count == 1
        assert ctl.counters.pending == 1

        ctl.finish(DAY)

        assert reconciler.push.call_count == 2
        assert ctl.counters.pending == 0

    def test_batch_size_zero_disables_boundaries(self):
        ctl, _, _, reconciler = controller(BatchConfig(size=0))
        ctl.record(DAY, count=50)
        reconciler.push.assert_not_called()
        ctl.finish(DAY)
        assert reconciler.push.call_count == 1

    def test_daily_checkpoint(self):
        ctl, _, _, reconciler = controller(BatchConfig(size=0, daily=True))
        ctl.record(DAY, count=2)
        ctl.end_of_day(DAY)
        ctl.end_of_day(date(2023, 6, 16))
        assert reconciler.push.call_count == 2

    def test_cleanup_commit_lands_on_checkpoint_day(self):
        ctl, _, emitter, _ = controller(BatchConfig(size=1))
        ctl.record(DAY)
        ts = emitter.remove_marker.call_args.args[0]
        assert ts.startswith("2023-06-15T") and ts.endswith("Z")

    def test_pushes_current_branch_to_push_branch(self):
        ctl, _, _, reconciler = controller(BatchConfig(size=1, push_branch="graph"))
        ctl.record(DAY)
        reconciler.push.assert_called_once_with("main", "graph")

    def test_rotates_after_real_push(self):
        ctl, repo, _, _ = controller(BatchConfig(size=2, rotate=True, branch_prefix="daily"),
                                     outcome=PushOutcome.PUSHED)
        ctl.record(DAY, count=4)
        assert [c.args[0] for c in repo.checkout_new_branch.call_args_list] == [
            "daily-20240101-120000-1",
            "daily-20240101-120000-2",
        ]

    def test_no_rotation_when_push_skipped(self):
        ctl, repo, _, _ = controller(BatchConfig(size=1, rotate=True), outcome=PushOutcome.SKIPPED)
        ctl.record(DAY)
        repo.checkout_new_branch.assert_not_called()

    def test_no_rotation_in_dry_run(self):
        ctl, repo, _, _ = controller(BatchConfig(size=1, rotate=True), outcome=PushOutcome.PUSHED,
                                     dry_run=True)
        ctl.record(DAY)
        repo.checkout_new_branch.assert_not_called()

    def test_push_failure_is_not_fatal(self):
        ctl, repo, _, reconciler = controller(BatchConfig(size=1, rotate=True))
        reconciler.push.side_effect = PushError("remote hung up", attempts=3)

        ctl.record(DAY)
        ctl.record(DAY)

        assert reconciler.push.call_count == 2
        repo.checkout_new_branch.assert_not_called()
        assert ctl.counters.total_made == 2
        assert ctl.counters.pending == 2
