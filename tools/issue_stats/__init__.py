"""Issue Stats - GitHub issue age and activity statistics."""

from .aggregator import (
    IssueDateBuckets,
    IssuesByDate,
    OpenedIssueStats,
    compute_opened_issue_stats,
    get_repository_issues_stats,
    get_repository_opened_issues_stats,
)
from .fetcher import (
    GitHubIssueFetcher,
    Issue,
    IssuePage,
    IssueStatsError,
    MalformedCursorError,
    RepositorySummary,
)

__all__ = [
    "GitHubIssueFetcher",
    "Issue",
    "IssueDateBuckets",
    "IssuePage",
    "IssueStatsError",
    "IssuesByDate",
    "MalformedCursorError",
    "OpenedIssueStats",
    "RepositorySummary",
    "compute_opened_issue_stats",
    "get_repository_issues_stats",
    "get_repository_opened_issues_stats",
]
