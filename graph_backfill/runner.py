"""
The backfill loop: one calendar day at a time, sample how many commits the day
needs, emit them at random moments inside the day, and let the checkpoint
controller decide when to flush and push.
"""
import logging
import random
import time
from typing import Callable, Optional

from .checkpoint import CheckpointController, RunCounters, utc_now
from .config import RunConfig
from .emitter import CommitEmitter, MarkerArtifact
from .git import GitRepo
from .push import PushReconciler
from .schedule import DailyTargetSampler, TimestampSynthesizer, format_timestamp, walk

logger = logging.getLogger(__name__)


def seed_message(day, index, need):
    return f"chore(graph): seed {day.isoformat()} (#{index}/{need})"


class BackfillRunner:
    def __init__(self, config: RunConfig, repo: GitRepo, rng: Optional[random.Random] = None,
                 sleep: Callable[[float], None] = time.sleep, now=utc_now):
        self.config = config
        self.repo = repo
        self.rng = rng if rng is not None else random.Random(config.seed)
        self.counters = RunCounters()

        self.synthesizer = TimestampSynthesizer(self.rng)
        self.sampler = DailyTargetSampler(
            self.rng, config.min_daily, config.max_daily,
            mode=config.mode, repo=repo, author=config.author,
        )
        self.marker = MarkerArtifact(repo, config.marker_path)
        self.emitter = CommitEmitter(
            repo, self.marker, self.rng,
            author=config.author if (config.author.name or config.author.email) else None,
            dry_run=config.dry_run,
        )
        self.reconciler = PushReconciler(
            repo,
            remote=config.batch.remote,
            retries=config.batch.retries,
            backoff_seconds=config.batch.backoff_seconds,
            enabled=config.batch.enable_push,
            dry_run=config.dry_run,
            sleep=sleep,
        )
        self.controller = CheckpointController(
            repo, self.emitter, self.reconciler, self.synthesizer, config.batch,
            dry_run=config.dry_run, counters=self.counters, now=now,
        )

    def run_day(self, day):
        plan = self.sampler.plan(day)
        if plan.skip:
            logger.info("%s: existing=%d >= target=%d - skip", day, plan.existing, plan.target)
            return plan
        logger.info("%s: existing=%d, target=%d, need=%d", day, plan.existing, plan.target, plan.need)
        for i in range(1, plan.need + 1):
            ts = format_timestamp(self.synthesizer.synthesize(day))
            self.emitter.emit(ts, seed_message(day, i, plan.need))
            self.controller.record(day)
        return plan

    def run(self):
        cfg = self.config
        logger.info("Backfilling from %s to %s (min=%d, max=%d, mode=%s)",
                    cfg.start, cfg.end, cfg.min_daily, cfg.max_daily, cfg.mode)
        last_day = None
        for day in walk(cfg.start, cfg.end):
            self.run_day(day)
            self.controller.end_of_day(day)
            last_day = day

        if last_day is None:
            logger.info("Empty date range; nothing to do.")
            return self.counters
        # A daily checkpoint that pushed cleanly already covered the last day.
        if not (cfg.batch.daily and self.counters.pending == 0):
            self.controller.finish(last_day)
        logger.info("Done. %d commits made.", self.counters.total_made)
        return self.counters
