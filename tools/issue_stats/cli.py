"""CLI interface for Issue Stats."""

import asyncio
import json
import sys
from typing import List, Optional

import click
import httpx
from rich.console import Console
from rich.panel import Panel

from shared.cli import create_table, error, handle_errors, info, print_table, success, warning
from shared.logger import setup_logger

from .aggregator import (
    IssuesByDate,
    OpenedIssueStats,
    get_repository_issues_stats,
    get_repository_opened_issues_stats,
)
from .fetcher import DEFAULT_BASE_URL, GitHubIssueFetcher, RepositorySummary

console = Console()


def display_repositories(repos: List[RepositorySummary], title: str) -> None:
    """Display repository summaries as a table."""
    table = create_table(title=title)
    table.add_column("#", justify="right", style="cyan", width=4)
    table.add_column("Repository", style="bold", no_wrap=True)
    table.add_column("Stars", justify="right", style="yellow")
    table.add_column("Open Issues", justify="right")
    table.add_column("Language", style="dim")
    table.add_column("Description", style="dim", no_wrap=False)

    for idx, repo in enumerate(repos, 1):
        table.add_row(
            str(idx),
            repo.full_name,
            f"{repo.stars:,}",
            f"{repo.open_issues:,}",
            repo.language or "N/A",
            (repo.description or "")[:60],
        )

    print_table(table)


def display_opened_stats(stats_list: List[OpenedIssueStats]) -> None:
    """Display open issue age statistics."""
    table = create_table(title="Open Issue Age (days)")
    table.add_column("Repository", style="bold cyan", no_wrap=True)
    table.add_column("Open", justify="right", style="yellow")
    table.add_column("Mean", justify="right")
    table.add_column("Std Dev", justify="right")

    for stats in stats_list:
        table.add_row(
            stats.repository,
            str(stats.count),
            f"{stats.mean:.2f}" if stats.mean is not None else "N/A",
            f"{stats.stddev:.2f}" if stats.stddev is not None else "N/A",
        )

    print_table(table)


def display_issues_by_date(result: IssuesByDate) -> None:
    """Display daily opened/closed counts, one column pair per repository."""
    dates = result.dates()
    if not dates:
        info("No issues opened or closed in the last 3 months")
        return

    console.print(Panel("[bold cyan]Issues Opened / Closed per Day[/bold cyan]"))

    table = create_table(title=None)
    table.add_column("Date", style="bold yellow", no_wrap=True)
    for name in result.repositories:
        table.add_column(f"{name}\nopened", justify="right", style="green")
        table.add_column(f"{name}\nclosed", justify="right", style="red")

    for day in dates:
        row = [day]
        for counts in result.repositories.values():
            row.append(str(counts.opened[day]))
            row.append(str(counts.closed[day]))
        table.add_row(*row)

    print_table(table)


async def _run(
    fetcher: GitHubIssueFetcher,
    repos: List[str],
    search: Optional[str],
    opened: bool,
    by_date: bool,
) -> dict:
    results: dict = {}
    async with fetcher:
        if search:
            results["search"] = await fetcher.search_repositories(search)
            return results

        if opened:
            results["opened"] = list(
                await asyncio.gather(
                    *(get_repository_opened_issues_stats(fetcher, repo) for repo in repos)
                )
            )
        if by_date:
            results["by_date"] = await get_repository_issues_stats(fetcher, repos)
        if not opened and not by_date:
            results["repositories"] = await fetcher.get_repositories(repos)

    return results


@click.command()
@click.option("--repo", "-r", help="Repository in format 'owner/repo'", multiple=True)
@click.option("--search", "-s", help="Search repositories")
@click.option("--opened", is_flag=True, help="Show age statistics of open issues")
@click.option("--by-date", is_flag=True, help="Show issues opened/closed per day over 3 months")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["rich", "json"], case_sensitive=False),
    default="rich",
    help="Output format",
)
@click.option("--base-url", default=DEFAULT_BASE_URL, show_default=True, help="GitHub API root URL")
@click.option("--timeout", type=float, default=30.0, show_default=True, help="Request timeout in seconds")
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Limit concurrent requests (unbounded by default)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@handle_errors
def main(
    repo: tuple,
    search: Optional[str],
    opened: bool,
    by_date: bool,
    output: str,
    base_url: str,
    timeout: float,
    max_concurrency: Optional[int],
    verbose: bool,
):
    """
    Issue Stats - GitHub issue age and activity statistics.

    Examples:

        \b
        # Repository summaries
        issue-stats --repo facebook/react --repo vuejs/vue

        \b
        # Open issue age
        issue-stats --repo octocat/Hello-World --opened

        \b
        # Issues opened/closed per day
        issue-stats --repo facebook/react --repo vuejs/vue --by-date

        \b
        # Search repos
        issue-stats --search "machine learning"

        \b
        # JSON output
        issue-stats --repo nodejs/node --opened --output json
    """
    # Setup logging
    log_level = "DEBUG" if verbose else "INFO"
    setup_logger("tools.issue_stats", level=log_level)

    repos_list = list(dict.fromkeys(repo))

    if not search and not repos_list:
        error("Please specify at least one --repo or use --search")
        sys.exit(1)

    fetcher = GitHubIssueFetcher(base_url=base_url, timeout=timeout, max_concurrency=max_concurrency)

    try:
        results = asyncio.run(_run(fetcher, repos_list, search, opened, by_date))
    except httpx.HTTPStatusError as e:
        error(f"GitHub API error {e.response.status_code} for {e.request.url}")
        sys.exit(1)
    except httpx.RequestError as e:
        error(f"Network error: {e}")
        sys.exit(1)

    if output == "json":
        data = {}
        if "search" in results:
            data["results"] = [r.to_dict() for r in results["search"]]
            data["count"] = len(data["results"])
        if "repositories" in results:
            data["repositories"] = [r.to_dict() for r in results["repositories"]]
        if "opened" in results:
            data["opened"] = [s.to_dict() for s in results["opened"]]
        if "by_date" in results:
            data["by_date"] = results["by_date"].to_dict()
        print(json.dumps(data, indent=2))
        sys.exit(0)

    if "search" in results:
        if not results["search"]:
            warning("No results found")
            sys.exit(0)
        display_repositories(results["search"], title=f"Search Results ({len(results['search'])})")
    if "repositories" in results:
        display_repositories(results["repositories"], title="Repositories")
    if "opened" in results:
        display_opened_stats(results["opened"])
    if "by_date" in results:
        display_issues_by_date(results["by_date"])

    success("Fetch completed!")
    sys.exit(0)


if __name__ == "__main__":
    main()
