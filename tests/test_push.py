"""Unit tests for PushReconciler with the git layer mocked out."""
import subprocess
from unittest.mock import Mock

import pytest

from graph_backfill.errors import PushError
from graph_backfill.push import PushOutcome, PushReconciler


def rejected():
    return subprocess.CalledProcessError(1, ["git", "push"], output="", stderr="! [rejected] (fetch first)")


def make(repo, **kwargs):
    sleeps = []
    kwargs.setdefault("enabled", True)
    kwargs.setdefault("retries", 5)
    kwargs.setdefault("backoff_seconds", 2)
    reconciler = PushReconciler(repo, sleep=sleeps.append, **kwargs)
    return reconciler, sleeps


@pytest.mark.unit
class TestPushReconciler:
    def test_disabled_push_is_skipped(self):
        repo = Mock()
        reconciler, sleeps = make(repo, enabled=False)

        assert reconciler.push("main", "main") is PushOutcome.SKIPPED
        repo.push.assert_not_called()
        assert sleeps == []

    def test_dry_run_never_pushes(self):
        repo = Mock()
        reconciler, _ = make(repo, dry_run=True)

        assert reconciler.push("main", "main") is PushOutcome.SKIPPED
        repo.push.assert_not_called()

    def test_first_try(self):
        repo = Mock()
        reconciler, sleeps = make(repo)

        assert reconciler.push("work", "main") is PushOutcome.PUSHED
        repo.push.assert_called_once_with("origin", "work", "main")
        repo.fetch.assert_not_called()
        assert sleeps == []

    def test_retries_with_fetch_and_merge(self):
        repo = Mock()
        repo.push.side_effect = [rejected(), rejected(), None]
        reconciler, sleeps = make(repo, remote="upstream")

        assert reconciler.push("main", "main") is PushOutcome.PUSHED
        assert repo.push.call_count == 3
        assert sleeps == [2, 4]
        assert repo.fetch.call_count == 2
        repo.fetch.assert_called_with("upstream", "main")
        assert repo.merge_favor_local.call_count == 2

    def test_fetch_failure_still_retries_push(self):
        repo = Mock()
        repo.push.side_effect = [rejected(), None]
        repo.fetch.side_effect = subprocess.CalledProcessError(128, ["git", "fetch"], stderr="no route")
        reconciler, _ = make(repo)

        assert reconciler.push("main", "main") is PushOutcome.PUSHED
        repo.merge_favor_local.assert_not_called()

    def test_merge_failure_is_aborted(self):
        repo = Mock()
        repo.push.side_effect = [rejected(), None]
        repo.merge_favor_local.side_effect = subprocess.CalledProcessError(1, ["git", "merge"], stderr="CONFLICT")
        reconciler, _ = make(repo)

        assert reconciler.push("main", "main") is PushOutcome.PUSHED
        repo.merge_abort.assert_called_once()

    def test_gives_up_after_retries(self):
        repo = Mock()
        repo.push.side_effect = rejected()
        reconciler, sleeps = make(repo, retries=4, backoff_seconds=1)

        with pytest.raises(PushError) as exc:
            reconciler.push("main", "main")

        assert exc.value.attempts == 4
        assert repo.push.call_count == 4
        assert sleeps == [1, 2, 4]
        assert "rejected" in str(exc.value)
