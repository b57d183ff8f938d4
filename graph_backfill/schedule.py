"""
Day-level scheduling: which dates to visit, how many commits each one needs,
and when inside the day each commit lands.

Nothing here writes to the repository. `DailyTargetSampler.count_existing`
reads history through an injected GitRepo.
"""
import logging
import random
import subprocess
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
SECONDS_PER_DAY = 86400

MODE_EXISTING = "existing"
MODE_FRESH = "fresh"
MODES = (MODE_EXISTING, MODE_FRESH)


def walk(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive. Empty when start > end."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def utc_midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def format_timestamp(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class TimestampSynthesizer:
    def __init__(self, rng: random.Random):
        self.rng = rng

    def synthesize(self, day: date) -> datetime:
        """A uniformly random whole second inside the UTC day."""
        offset = self.rng.randint(0, SECONDS_PER_DAY - 1)
        return utc_midnight(day) + timedelta(seconds=offset)


@dataclass(frozen=True)
class DayPlan:
    date: date
    existing: int
    target: int
    need: int

    @property
    def skip(self):
        return self.need <= 0


class DailyTargetSampler:
    """
    Picks a per-day commit target in [min_daily, max_daily].

    In existing-aware mode the target is reduced by the commits the author
    already has on that day; in fresh mode it is used as-is.
    """

    def __init__(self, rng: random.Random, min_daily: int, max_daily: int,
                 mode=MODE_EXISTING, repo=None, author=None):
        self.rng = rng
        self.min_daily = min_daily
        self.max_daily = max_daily
        self.mode = mode
        self.repo = repo
        self.author = author

    def sample(self, low: Optional[int] = None, high: Optional[int] = None):
        low = self.min_daily if low is None else low
        high = self.max_daily if high is None else high
        return self.rng.randint(low, high)

    def count_existing(self, day: date, author: Optional[str] = None):
        if self.repo is None:
            return 0
        iso = day.isoformat()
        try:
            return self.repo.count_commits(f"{iso}T00:00:00Z", f"{iso}T23:59:59Z", author=author)
        except (subprocess.CalledProcessError, ValueError) as e:
            # Fresh repositories have no HEAD yet.
            logger.debug("Could not count commits for %s: %s", iso, e)
            return 0

    def plan(self, day: date) -> DayPlan:
        target = self.sample()
        if self.mode == MODE_EXISTING:
            selector = self.author.author_selector() if self.author is not None else None
            existing = self.count_existing(day, selector)
            need = max(0, target - existing)
        else:
            existing = 0
            need = target
        return DayPlan(date=day, existing=existing, target=target, need=need)
