"""
Checkpoint/batch controller.

Watches how many commits the run has made and, at batch boundaries, flushes
the marker, pushes, and optionally rotates to a fresh branch. A push failure
is logged and the run keeps going on the same branch.
"""
import logging
import subprocess
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional

from .errors import PushError
from .push import PushOutcome
from .schedule import format_timestamp

logger = logging.getLogger(__name__)


@dataclass
class RunCounters:
    total_made: int = 0
    batch_index: int = 0
    pending: int = 0


def utc_now():
    return datetime.now(timezone.utc)


class CheckpointController:
    def __init__(self, repo, emitter, reconciler, synthesizer, batch, dry_run=False,
                 counters: Optional[RunCounters] = None, now: Callable[[], datetime] = utc_now):
        self.repo = repo
        self.emitter = emitter
        self.reconciler = reconciler
        self.synthesizer = synthesizer
        self.batch = batch
        self.dry_run = dry_run
        self.counters = counters if counters is not None else RunCounters()
        self.now = now

    def at_boundary(self):
        size = self.batch.size
        return size > 0 and self.counters.total_made > 0 and self.counters.total_made % size == 0

    def record(self, day: date, count=1):
        """Count `count` new commits; checkpoint when the total crosses a boundary."""
        for _ in range(count):
            self.counters.total_made += 1
            self.counters.pending += 1
            if self.at_boundary():
                self.checkpoint(day)

    def end_of_day(self, day: date):
        if self.batch.daily:
            self.checkpoint(day)

    def finish(self, day: date):
        logger.info("Final checkpoint after %d commits", self.counters.total_made)
        self.checkpoint(day)

    def checkpoint(self, day: date):
        """Flush pending work for `day`. Returns the PushOutcome, or None on push failure."""
        stamp = self.now().strftime("%Y%m%d-%H%M%S")
        self.counters.batch_index += 1
        index = self.counters.batch_index

        cleanup_ts = format_timestamp(self.synthesizer.synthesize(day))
        self.emitter.remove_marker(cleanup_ts)

        local_ref = self.current_branch()
        remote_ref = self.batch.push_branch or local_ref
        logger.info("Checkpoint %s #%d: %s -> %s on %s (%d pending)",
                    stamp, index, local_ref, remote_ref, self.batch.remote, self.counters.pending)
        try:
            outcome = self.reconciler.push(local_ref, remote_ref)
        except PushError as e:
            logger.warning("WARN: checkpoint push failed; skipping rotation (%s)", e)
            return None
        self.counters.pending = 0

        if self.batch.rotate:
            branch = f"{self.batch.branch_prefix}-{stamp}-{index}"
            if outcome is PushOutcome.PUSHED and not self.dry_run:
                logger.info("Rotating branch: %s", branch)
                self.repo.checkout_new_branch(branch)
            else:
                logger.info("DRY: would create and switch to new branch: %s", branch)
        return outcome

    def current_branch(self):
        if self.dry_run:
            try:
                return self.repo.current_branch()
            except subprocess.CalledProcessError as e:
                logger.debug("current branch unavailable in dry run: %s", e)
                return "HEAD"
        return self.repo.current_branch()
