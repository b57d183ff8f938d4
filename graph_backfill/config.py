"""Run configuration, built once from parsed CLI arguments."""
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .git import Identity
from .schedule import MODE_EXISTING, MODES, parse_date

DEFAULT_START = "2023-01-01"
DEFAULT_MARKER = ".graph-seed"


@dataclass(frozen=True)
class BatchConfig:
    size: int = 0
    remote: str = "origin"
    push_branch: Optional[str] = None
    rotate: bool = False
    branch_prefix: str = "daily"
    enable_push: bool = False
    retries: int = 100
    backoff_seconds: int = 2
    daily: bool = False


@dataclass(frozen=True)
class RunConfig:
    start: date
    end: date
    min_daily: int = 15
    max_daily: int = 100
    author: Identity = field(default_factory=Identity)
    marker_path: Path = Path(DEFAULT_MARKER)
    dry_run: bool = False
    quiet: bool = False
    mode: str = MODE_EXISTING
    batch: BatchConfig = field(default_factory=BatchConfig)
    seed: Optional[int] = None

    def __post_init__(self):
        if self.min_daily < 1 or self.max_daily < 1:
            raise ConfigError("--min and --max must be positive")
        if self.min_daily > self.max_daily:
            raise ConfigError("--min must be <= --max")
        if self.mode not in MODES:
            raise ConfigError(f"Unknown mode: {self.mode}")
        if self.batch.size < 0:
            raise ConfigError("--batch-size must be >= 0")
        if self.batch.retries < 1:
            raise ConfigError("--push-retries must be >= 1")
        if self.batch.backoff_seconds < 1:
            raise ConfigError("--push-backoff must be >= 1")


def _date_arg(value, flag):
    try:
        return parse_date(value)
    except ValueError:
        raise ConfigError(f"{flag} must be YYYY-MM-DD, got {value!r}") from None


def _marker_arg(value, repo_root):
    """The marker path relative to the work tree; it must live inside it."""
    marker = Path(value).expanduser()
    if repo_root is None:
        return marker
    root = Path(repo_root).resolve()
    full = (root / marker).resolve()
    try:
        rel = full.relative_to(root)
    except ValueError:
        rel = None
    if rel is None or rel == Path(".") or rel.parts[0] == ".git":
        raise ConfigError(f"--file must be a path inside the repository {root}, got {value!r}")
    return rel


def build_config(args, identity_provider, today: date, repo_root=None):
    """Validate argparse output and fill identity gaps from git configuration."""
    marker = _marker_arg(args.file, repo_root)
    start = _date_arg(args.start, "--start")
    end = _date_arg(args.end, "--end") if args.end else today

    name, email = args.author_name, args.author_email
    if not (name and email):
        detected = identity_provider.resolve()
        name = name or detected.name
        email = email or detected.email

    batch = BatchConfig(
        size=args.batch_size,
        remote=args.remote,
        push_branch=args.push_branch,
        rotate=args.rotate,
        branch_prefix=args.branch_prefix,
        enable_push=args.enable_push,
        retries=args.push_retries,
        backoff_seconds=args.push_backoff,
        daily=args.checkpoint_daily,
    )
    return RunConfig(
        start=start,
        end=end,
        min_daily=args.min,
        max_daily=args.max,
        author=Identity(name=name, email=email),
        marker_path=marker,
        dry_run=args.dry_run,
        quiet=args.quiet,
        mode=args.mode,
        batch=batch,
        seed=args.seed,
    )
