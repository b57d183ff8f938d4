"""
Shared fixtures for graph-backfill tests.

Unit tests use mocks in place of the git layer. Integration tests get a real
throwaway repository under tmp_path and are skipped when git is missing.
"""
import logging
import shutil
import subprocess

import pytest

from graph_backfill.git import GitRepo, Identity

AUTHOR = Identity(name="Test Author", email="author@example.com")

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo_path, *args):
    r = subprocess.run(["git", *args], cwd=repo_path, check=True, capture_output=True, text=True)
    return r.stdout.strip()


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI installs a stdout handler; drop it so tests don't share streams."""
    yield
    log = logging.getLogger("graph_backfill")
    log.handlers[:] = []
    log.setLevel(logging.NOTSET)


@pytest.fixture
def git_repo(tmp_path):
    """An initialised repository with one empty commit on `main`."""
    path = tmp_path / "repo"
    path.mkdir()
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    git(path, "config", "user.name", "Repo Owner")
    git(path, "config", "user.email", "owner@example.com")
    git(path, "config", "commit.gpgsign", "false")
    git(path, "commit", "-q", "--allow-empty", "-m", "init")
    return GitRepo(path)


@pytest.fixture
def author():
    return AUTHOR
