"""
Push a checkpoint to the remote, reconciling with it between retries.

Pushing is opt-in: unless push is enabled and the run is live, the reconciler
only logs what it would do.
"""
import enum
import logging
import subprocess
import time

from .errors import MergeConflictError, PushError
from .git import GitRepo, output_of
from .retry import RetryExhausted, retry_with_backoff

logger = logging.getLogger(__name__)


class PushOutcome(enum.Enum):
    PUSHED = "pushed"
    SKIPPED = "skipped"


class PushReconciler:
    def __init__(self, repo: GitRepo, remote="origin", retries=100, backoff_seconds=2,
                 enabled=False, dry_run=False, sleep=time.sleep):
        self.repo = repo
        self.remote = remote
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self.enabled = enabled
        self.dry_run = dry_run
        self.sleep = sleep

    @property
    def active(self):
        return self.enabled and not self.dry_run

    def push(self, local_ref: str, remote_ref: str):
        if not self.active:
            if not self.enabled:
                logger.info("INFO: push disabled. Use --enable-push to actually push.")
            logger.info("DRY: would push %s -> %s on %s", local_ref, remote_ref, self.remote)
            return PushOutcome.SKIPPED

        def attempt():
            try:
                self.repo.push(self.remote, local_ref, remote_ref)
            except subprocess.CalledProcessError as e:
                raise PushError(output_of(e) or f"git push exited {e.returncode}") from e

        def reconcile(_attempt, _error):
            try:
                self.reconcile(remote_ref)
            except MergeConflictError as e:
                logger.warning("WARN: %s; will retry push anyway", e)

        try:
            _, attempts = retry_with_backoff(
                attempt,
                attempts=self.retries,
                initial_delay=self.backoff_seconds,
                between=reconcile,
                sleep=self.sleep,
                retry_on=(PushError,),
            )
        except RetryExhausted as e:
            logger.warning("WARN: push failed after %d attempts", e.attempts)
            raise PushError(str(e.last_error), attempts=e.attempts) from e
        logger.info("Pushed %s -> %s on %s (attempt %d)", local_ref, remote_ref, self.remote, attempts)
        return PushOutcome.PUSHED

    def reconcile(self, remote_ref: str):
        """Fetch the remote ref and merge it, keeping our side on conflict."""
        try:
            self.repo.fetch(self.remote, remote_ref)
        except subprocess.CalledProcessError as e:
            raise MergeConflictError(f"fetch of {self.remote}/{remote_ref} failed: {output_of(e)}") from e
        try:
            self.repo.merge_favor_local()
        except subprocess.CalledProcessError as e:
            try:
                self.repo.merge_abort()
            except subprocess.CalledProcessError:
                logger.debug("merge --abort had nothing to abort")
            raise MergeConflictError(f"merge of {self.remote}/{remote_ref} failed: {output_of(e)}") from e
