"""
Thin wrapper around the git CLI.

Every call goes through `sh`, which raises subprocess.CalledProcessError on a
non-zero exit status. Callers decide which failures are fatal.
"""
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import EnvironmentCheckError

logger = logging.getLogger(__name__)


def _parse_utc(value: str):
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)


def sh(cmd, cwd, env=None):
    """Run a command and return stripped stdout. Raises on non-zero status."""
    logger.debug("$ %s", " ".join(cmd))
    r = subprocess.run(cmd, cwd=cwd, env=env, check=True, capture_output=True, text=True)
    return r.stdout.strip()


def output_of(e: subprocess.CalledProcessError):
    return ((e.stdout or "") + (e.stderr or "")).strip()


@dataclass(frozen=True)
class Identity:
    name: Optional[str] = None
    email: Optional[str] = None

    def author_selector(self):
        """Value for `git log --author`, email preferred over name."""
        return self.email or self.name or None


class GitRepo:
    def __init__(self, path: Path):
        self.path = Path(path).expanduser().resolve()

    def git(self, *args, env=None):
        return sh(["git", *args], cwd=self.path, env=env)

    def check(self):
        if shutil.which("git") is None:
            raise EnvironmentCheckError("git not found")
        try:
            inside = self.git("rev-parse", "--is-inside-work-tree")
        except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
            inside = ""
        if inside != "true":
            raise EnvironmentCheckError(f"Not inside a git repository: {self.path}")

    def config_get(self, key: str, scope=None):
        cmd = ["config"]
        if scope:
            cmd.append(f"--{scope}")
        cmd += ["--get", key]
        try:
            return self.git(*cmd) or None
        except subprocess.CalledProcessError:
            return None

    def current_branch(self):
        return self.git("rev-parse", "--abbrev-ref", "HEAD")

    def add(self, *paths):
        self.git("add", "--", *[str(p) for p in paths])

    def rm(self, path, recursive=False):
        cmd = ["rm", "-f", "--quiet"]
        if recursive:
            cmd.append("-r")
        self.git(*cmd, "--", str(path))

    def is_tracked(self, path):
        try:
            return bool(self.git("ls-files", "--", str(path)))
        except subprocess.CalledProcessError:
            return False

    def commit(self, message: str, timestamp: str, author: Optional[Identity] = None):
        """Commit the index with `timestamp` as both author and committer date."""
        env = os.environ.copy()
        env["GIT_AUTHOR_DATE"] = timestamp
        env["GIT_COMMITTER_DATE"] = timestamp
        if author is not None:
            if author.name:
                env["GIT_AUTHOR_NAME"] = author.name
                env["GIT_COMMITTER_NAME"] = author.name
            if author.email:
                env["GIT_AUTHOR_EMAIL"] = author.email
                env["GIT_COMMITTER_EMAIL"] = author.email
        return self.git("commit", "--quiet", "-m", message, env=env)

    def count_commits(self, since: str, until: str, author: Optional[str] = None):
        """
        Count commits authored between `since` and `until` (inclusive,
        `YYYY-MM-DDTHH:MM:SSZ`).

        `rev-list --since` stops walking at the first older commit, and a
        backfill leaves history out of date order, so the window is applied
        here over every author timestamp instead.
        """
        low = int(_parse_utc(since).timestamp())
        high = int(_parse_utc(until).timestamp())
        cmd = ["log", "--format=%at", "HEAD"]
        if author:
            cmd.append(f"--author={author}")
        return sum(1 for line in self.git(*cmd).splitlines() if low <= int(line) <= high)

    def checkout_new_branch(self, branch: str):
        self.git("checkout", "-b", branch)

    def fetch(self, remote: str, ref: str):
        self.git("fetch", remote, ref)

    def merge_favor_local(self, ref="FETCH_HEAD"):
        # The marker file is append-only, so keeping our side is always safe.
        self.git("merge", "-X", "ours", "--no-edit", ref)

    def merge_abort(self):
        self.git("merge", "--abort")

    def push(self, remote: str, local_ref: str, remote_ref: str):
        self.git("push", remote, f"{local_ref}:{remote_ref}")


class IdentityProvider:
    """Resolves the commit identity from git configuration, local then global."""

    def __init__(self, repo: GitRepo):
        self.repo = repo

    def resolve(self):
        return Identity(
            name=self._lookup("user.name"),
            email=self._lookup("user.email"),
        )

    def _lookup(self, key):
        return self.repo.config_get(key) or self.repo.config_get(key, scope="global")


class FixedIdentityProvider:
    def __init__(self, identity: Identity):
        self.identity = identity

    def resolve(self):
        return self.identity
