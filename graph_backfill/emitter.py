"""
Turns synthetic timestamps into real commits.

Each live commit appends one line to the marker file so git always has a
content change to record. The marker is disposable and gets removed at every
checkpoint.
"""
import logging
import random
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import CommitError
from .git import GitRepo, Identity, output_of

logger = logging.getLogger(__name__)

MARKER_HEADER = "# seed\n"
CLEANUP_MESSAGE = "chore(cleanup): remove graph seed files"


@dataclass(frozen=True)
class SyntheticCommit:
    timestamp: str
    message: str
    marker_line: str


class MarkerArtifact:
    """The seed file plus its companion `<file>.d` directory."""

    def __init__(self, repo: GitRepo, file: Path):
        self.repo = repo
        file = Path(file)
        self.path = file if file.is_absolute() else repo.path / file
        self.dir_path = self.path.with_name(self.path.name + ".d")

    @property
    def relpath(self):
        return self.path.relative_to(self.repo.path)

    def ensure(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.is_file():
            self.path.write_text(MARKER_HEADER, encoding="utf-8")

    def append(self, line: str):
        self.ensure()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def exists(self):
        return self.path.is_file() or self.dir_has_files()

    def dir_has_files(self):
        return self.dir_path.is_dir() and any(self.dir_path.iterdir())

    def remove(self):
        """Drop the marker from index and working tree. Returns True if anything went."""
        removed = False
        if self.path.is_file():
            logger.info("Removing %s", self.relpath)
            if self.repo.is_tracked(self.relpath):
                self.repo.rm(self.relpath)
            else:
                self.path.unlink()
            removed = True
        if self.dir_has_files():
            rel_dir = self.dir_path.relative_to(self.repo.path)
            if self.repo.is_tracked(rel_dir):
                self.repo.rm(rel_dir, recursive=True)
            shutil.rmtree(self.dir_path, ignore_errors=True)
            removed = True
        return removed


class CommitEmitter:
    def __init__(self, repo: GitRepo, marker: MarkerArtifact, rng: random.Random,
                 author: Optional[Identity] = None, dry_run=False):
        self.repo = repo
        self.marker = marker
        self.rng = rng
        self.author = author
        self.dry_run = dry_run

    def build(self, timestamp: str, message: str):
        # Random token keeps consecutive lines distinct for the same second.
        token = self.rng.randint(0, 32767)
        return SyntheticCommit(timestamp=timestamp, message=message,
                               marker_line=f"{timestamp} {token}")

    def emit(self, timestamp: str, message: str):
        if self.dry_run:
            logger.info("DRY: commit at %s - %s", timestamp, message)
            return None
        commit = self.build(timestamp, message)
        try:
            self.marker.append(commit.marker_line)
            self.repo.add(self.marker.relpath)
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommitError(f"Could not stage {self.marker.relpath}: {e}") from e
        self._commit(timestamp, message)
        return commit

    def remove_marker(self, timestamp: str):
        """Delete the marker and commit the removal. Returns True if a commit was made."""
        if self.dry_run:
            logger.info("DRY: would remove %s and %s/", self.marker.relpath,
                        self.marker.dir_path.name)
            logger.info("DRY: would commit removal")
            return False
        try:
            removed = self.marker.remove()
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning("Could not remove seed files: %s", e)
            return False
        if not removed:
            return False
        try:
            self._commit(timestamp, CLEANUP_MESSAGE)
        except CommitError as e:
            if e.nothing_to_commit:
                logger.debug("Cleanup had nothing to commit")
            else:
                logger.warning("WARN: cleanup commit failed; continuing (%s)", e)
            return False
        logger.info("Successfully removed and committed seed files")
        return True

    def _commit(self, timestamp, message):
        try:
            self.repo.commit(message, timestamp, author=self.author)
        except subprocess.CalledProcessError as e:
            out = output_of(e)
            nothing = "nothing to commit" in out.lower() or "no changes added" in out.lower()
            raise CommitError(f"git commit failed at {timestamp}: {out}", nothing_to_commit=nothing) from e
