"""Issue statistics: open issue ages and daily opened/closed counts."""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from dateutil.relativedelta import relativedelta

from shared.logger import get_logger

from .fetcher import GitHubIssueFetcher, Issue

logger = get_logger(__name__)

DATE_FORMAT = "%d/%m/%Y"
WINDOW_MONTHS = 3
SECONDS_PER_DAY = 86400


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def age_in_days(created_at: datetime, now: datetime) -> int:
    """Whole days between created_at and now, truncated toward zero."""
    return int((now - created_at).total_seconds() / SECONDS_PER_DAY)


def window_cutoff(now: datetime, months: int = WINDOW_MONTHS) -> datetime:
    """Start of the trailing window, in calendar months."""
    return now - relativedelta(months=months)


def format_since(value: datetime) -> str:
    """Format a datetime for the issues endpoint's since parameter."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class OpenedIssueStats:
    """
    Age statistics for a repository's open issues.

    mean and stddev are None when the repository has no open issues.
    """

    repository: str
    count: int
    mean: Optional[float]
    stddev: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository,
            "count": self.count,
            "mean": self.mean,
            "stddev": self.stddev,
        }


def compute_opened_issue_stats(
    full_name: str,
    issues: Iterable[Issue],
    now: Optional[datetime] = None,
) -> OpenedIssueStats:
    """
    Reduce open issues to count, mean age and population std deviation.

    Args:
        full_name: Repository in format "owner/repo"
        issues: Open issues, pull requests included or not
        now: Reference time (defaults to the current UTC time, naive values are UTC)

    Returns:
        OpenedIssueStats
    """
    now = ensure_aware(now or _utcnow())
    ages = [age_in_days(issue.created_at, now) for issue in issues if not issue.is_pull_request]

    count = len(ages)
    if count == 0:
        return OpenedIssueStats(repository=full_name, count=0, mean=None, stddev=None)

    mean = sum(ages) / count
    stddev = math.sqrt(sum((age - mean) ** 2 for age in ages) / count)

    return OpenedIssueStats(repository=full_name, count=count, mean=mean, stddev=stddev)


async def get_repository_opened_issues_stats(
    fetcher: GitHubIssueFetcher,
    full_name: str,
    now: Optional[datetime] = None,
) -> OpenedIssueStats:
    """Fetch all open issues of a repository and compute their age stats."""
    issues = await fetcher.fetch_all_issue_pages(full_name, {"state": "open"})
    stats = compute_opened_issue_stats(full_name, issues, now)

    logger.info(f"{full_name}: {stats.count} open issues")
    return stats


@dataclass
class RepositoryIssueCounts:
    """Issues opened and closed per day for one repository."""

    opened: Dict[str, int] = field(default_factory=dict)
    closed: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {"opened": dict(self.opened), "closed": dict(self.closed)}


@dataclass
class IssuesByDate:
    """
    Daily opened/closed counts for several repositories.

    Every date key appears in every repository's opened and closed maps.
    """

    repositories: Dict[str, RepositoryIssueCounts] = field(default_factory=dict)

    def __getitem__(self, full_name: str) -> RepositoryIssueCounts:
        return self.repositories[full_name]

    def dates(self) -> List[str]:
        if not self.repositories:
            return []
        return list(next(iter(self.repositories.values())).opened)

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        return {name: counts.to_dict() for name, counts in self.repositories.items()}


class IssueDateBuckets:
    """
    Accumulates opened/closed issue counts per day for several repositories.

    Only issues created or closed strictly after the cutoff are counted.
    Date keys are UTC calendar days, formatted dd/mm/YYYY.
    Missing dates are filled with zero once, when the result is built.
    """

    def __init__(self, repositories: Sequence[str], cutoff: datetime):
        self.cutoff = ensure_aware(cutoff)
        self.repositories = list(dict.fromkeys(repositories))
        self._opened: Dict[str, Dict[date, int]] = {name: {} for name in self.repositories}
        self._closed: Dict[str, Dict[date, int]] = {name: {} for name in self.repositories}
        self._dates: Set[date] = set()

    def _bucket(self, counts: Dict[date, int], moment: datetime) -> None:
        day = moment.astimezone(timezone.utc).date()
        counts[day] = counts.get(day, 0) + 1
        self._dates.add(day)

    def add(self, full_name: str, issues: Iterable[Issue]) -> None:
        """Count a batch of issues for one tracked repository."""
        if full_name not in self._opened:
            raise KeyError(f"Repository is not tracked: {full_name}")

        for issue in issues:
            if issue.is_pull_request:
                continue

            if issue.created_at > self.cutoff:
                self._bucket(self._opened[full_name], issue.created_at)

            if issue.closed_at is not None and issue.closed_at > self.cutoff:
                self._bucket(self._closed[full_name], issue.closed_at)

    def result(self) -> IssuesByDate:
        """Build the zero-filled, chronologically ordered result."""
        days = sorted(self._dates)

        result = IssuesByDate()
        for name in self.repositories:
            opened = self._opened[name]
            closed = self._closed[name]
            result.repositories[name] = RepositoryIssueCounts(
                opened={day.strftime(DATE_FORMAT): opened.get(day, 0) for day in days},
                closed={day.strftime(DATE_FORMAT): closed.get(day, 0) for day in days},
            )

        return result


async def get_repository_issues_stats(
    fetcher: GitHubIssueFetcher,
    repositories: Sequence[str],
    now: Optional[datetime] = None,
    months: int = WINDOW_MONTHS,
) -> IssuesByDate:
    """
    Count issues opened and closed per day over the trailing window.

    First pages of all repositories are fetched together; the remaining
    pages of every repository are then fetched together in a second batch,
    which is skipped when nothing has more than one page.

    Args:
        fetcher: Issue fetcher
        repositories: Repositories in format "owner/repo"
        now: Reference time (defaults to the current UTC time, naive values are UTC)
        months: Window length in calendar months

    Returns:
        IssuesByDate
    """
    now = ensure_aware(now or _utcnow())
    cutoff = window_cutoff(now, months)
    params = {"state": "all", "since": format_since(cutoff)}

    buckets = IssueDateBuckets(repositories, cutoff)
    names = buckets.repositories

    first_pages = await asyncio.gather(
        *(fetcher.fetch_issues_page(name, params) for name in names)
    )

    remaining = []
    for name, page in zip(names, first_pages):
        buckets.add(name, page.issues)
        if page.has_more:
            remaining.extend((name, number) for number in range(2, page.last_page + 1))

    if remaining:
        logger.info(f"Fetching {len(remaining)} more issue pages for {len(names)} repositories")
        pages = await asyncio.gather(
            *(fetcher.fetch_issues_page(name, params, page=number) for name, number in remaining)
        )
        for (name, _), page in zip(remaining, pages):
            buckets.add(name, page.issues)

    result = buckets.result()
    logger.debug(f"Bucketed issues into {len(result.dates())} days")
    return result
