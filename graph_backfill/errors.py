"""Exception hierarchy for graph-backfill."""


class BackfillError(Exception):
    """Base class for every error raised by graph-backfill."""

    exit_code = 1


class ConfigError(BackfillError):
    """Bad flag value or combination, detected before the run starts."""

    exit_code = 2


class EnvironmentCheckError(BackfillError):
    """git is missing or the target directory is not a work tree."""

    exit_code = 2


class CommitError(BackfillError):
    """A git step while creating a commit failed."""

    def __init__(self, message, nothing_to_commit=False):
        super().__init__(message)
        self.nothing_to_commit = nothing_to_commit


class PushError(BackfillError):
    """Pushing a checkpoint failed after every retry."""

    def __init__(self, message, attempts=0):
        super().__init__(message)
        self.attempts = attempts


class MergeConflictError(BackfillError):
    """Fetching or merging the remote ref failed between push attempts."""
