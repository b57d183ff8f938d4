"""
Graph backfill: create N random commits per day within a date range.

Examples:
  graph-backfill --start 2023-01-01 --end 2024-12-31 \
    --author-name "Jane" --author-email jane@example.com

  # See what would happen without touching the repository:
  graph-backfill --start 2024-05-01 --end 2024-05-07 --dry-run

  # Push every 500 commits, rotating to a new branch after each push:
  graph-backfill --start 2023-01-01 --batch-size 500 --enable-push --rotate

  # One day only (MM/DD/YYYY or YYYY-MM-DD), extra args forwarded:
  backfill-day 06/15/2023 --min 15 --max 100

Requirements:
  - git CLI installed and in PATH
  - run inside (or point --repo at) an existing work tree
  - for --enable-push, you are authenticated for push (SSH key or credential manager)
"""
import argparse
import logging
import random
import subprocess
import sys
from datetime import datetime, timezone

from .config import DEFAULT_MARKER, DEFAULT_START, build_config
from .errors import BackfillError
from .git import GitRepo, IdentityProvider
from .runner import BackfillRunner
from .schedule import MODES, MODE_EXISTING

logger = logging.getLogger("graph_backfill")


def build_parser():
    ap = argparse.ArgumentParser(
        prog="graph-backfill",
        description="Create a random number of commits per day within a date range.",
    )
    ap.add_argument("--repo", default=".", help="Path to local git repository (default: .)")
    ap.add_argument("--start", default=DEFAULT_START, help=f"Start date YYYY-MM-DD (default: {DEFAULT_START})")
    ap.add_argument("--end", default=None, help="End date inclusive YYYY-MM-DD (default: today, UTC)")
    ap.add_argument("--min", type=int, default=15, help="Minimum commits per day (default: 15)")
    ap.add_argument("--max", type=int, default=100, help="Maximum commits per day (default: 100)")
    ap.add_argument("--author-name", default=None, help="Author name to attribute commits (default: git config)")
    ap.add_argument("--author-email", default=None, help="Author email to attribute commits (default: git config)")
    ap.add_argument("--file", default=DEFAULT_MARKER, help=f"File to modify for commits (default: {DEFAULT_MARKER})")
    ap.add_argument("--mode", choices=MODES, default=MODE_EXISTING,
                    help="existing: subtract commits already on the day; fresh: always add the full target "
                         f"(default: {MODE_EXISTING})")
    ap.add_argument("--seed", type=int, default=None, help="Seed the random source for a reproducible run")
    ap.add_argument("--dry-run", action="store_true", help="Show actions without committing")
    ap.add_argument("--quiet", action="store_true", help="Reduce output")

    batch = ap.add_argument_group("checkpoints")
    batch.add_argument("--batch-size", type=int, default=0,
                       help="Checkpoint every N commits; 0 disables batching (default: 0)")
    batch.add_argument("--checkpoint-daily", action="store_true",
                       help="Checkpoint once at the end of every day instead of by count")
    batch.add_argument("--remote", default="origin", help="Remote name to push to (default: origin)")
    batch.add_argument("--push-branch", default=None, help="Remote branch to update (default: current branch)")
    batch.add_argument("--rotate", action="store_true",
                       help="After pushing at a checkpoint, create and switch to a new branch")
    batch.add_argument("--branch-prefix", default="daily", help="Prefix for rotated branch names (default: daily)")
    batch.add_argument("--enable-push", action="store_true",
                       help="Actually run git push at checkpoints (default: print only)")
    batch.add_argument("--push-retries", type=int, default=100,
                       help="Number of times to try a failed push (default: 100)")
    batch.add_argument("--push-backoff", type=int, default=2,
                       help="Initial backoff delay in seconds, doubles each retry (default: 2)")
    return ap


def setup_logging(quiet=False):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.ERROR if quiet else logging.INFO)


def fail(message, code=1):
    print(f"Error: {message}", file=sys.stderr)
    return code


def main(argv=None, rng=None, sleep=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.quiet)

    repo = GitRepo(args.repo)
    try:
        repo.check()
        today = datetime.now(timezone.utc).date()
        config = build_config(args, IdentityProvider(repo), today, repo_root=repo.path)
    except BackfillError as e:
        return fail(e, e.exit_code)

    try:
        status = repo.git("status", "--porcelain")
        if status and not config.dry_run:
            logger.warning("NOTE: Working tree has changes; they may end up in checkpoint merges.")
    except subprocess.CalledProcessError as e:
        return fail(e.stderr, 3)

    kwargs = {"rng": rng if rng is not None else random.Random(config.seed)}
    if sleep is not None:
        kwargs["sleep"] = sleep
    runner = BackfillRunner(config, repo, **kwargs)
    try:
        runner.run()
    except BackfillError as e:
        return fail(e, e.exit_code)
    except KeyboardInterrupt:
        print("\nStopped by user.", file=sys.stderr)
        return 130
    return 0


def normalize_day(value: str):
    """Accept MM/DD/YYYY or YYYY-MM-DD and return YYYY-MM-DD."""
    for fmt in ("%m/%d/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValueError(f"unrecognized date {value!r}; use MM/DD/YYYY or YYYY-MM-DD")


def day_main(argv=None):
    """Run a one-day backfill, forwarding extra args to graph-backfill."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ("-h", "--help"):
        print("Usage: backfill-day MM/DD/YYYY [extra-args]\n\n"
              "Runs a one-day backfill. Extra args are forwarded (e.g., --min 15 --max 100).")
        return 0 if argv else 1
    try:
        day = normalize_day(argv[0])
    except ValueError as e:
        return fail(e)
    return main(["--start", day, "--end", day, *argv[1:]])


def run():
    sys.exit(main())


def run_day():
    sys.exit(day_main())


if __name__ == "__main__":
    run()
