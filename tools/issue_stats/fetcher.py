"""Issue and repository fetching from the GitHub REST API."""

import asyncio
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from shared.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_HEADERS = {"Accept": "application/vnd.github.v3+json"}
DEFAULT_ISSUE_PARAMS = {"direction": "asc", "per_page": 100}
SEARCH_RESULT_LIMIT = 10

# Matches the page query parameter only, never per_page
_PAGE_PATTERN = re.compile(r"[?&]page=(\d+)", re.IGNORECASE)


class IssueStatsError(Exception):
    """Base class for issue statistics errors."""


class MalformedCursorError(IssueStatsError):
    """Raised when a Link header carries no readable page number."""


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_last_page(link_header: str) -> int:
    """
    Extract the last page number from a Link header.

    Uses the rel="last" link when present, otherwise the final link.

    Args:
        link_header: Raw Link header value

    Returns:
        Last page number

    Raises:
        MalformedCursorError: If no page number can be found
    """
    links = [part.strip() for part in link_header.split(",") if part.strip()]
    if not links:
        raise MalformedCursorError(f"Empty pagination header: {link_header!r}")

    last = next((link for link in links if 'rel="last"' in link), links[-1])
    match = _PAGE_PATTERN.search(last)
    if not match:
        raise MalformedCursorError(f"No page number in pagination link: {last!r}")

    return int(match.group(1))


def validate_full_name(full_name: str) -> str:
    """Check a repository name has the 'owner/repo' form."""
    owner, _, name = full_name.partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"Invalid repo format. Use 'owner/repo', got: {full_name}")
    return full_name


@dataclass(frozen=True)
class Issue:
    """A single issue record as returned by the issues endpoint."""

    created_at: datetime
    closed_at: Optional[datetime]
    is_pull_request: bool
    number: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Issue":
        return cls(
            created_at=parse_timestamp(data["created_at"]),
            closed_at=parse_timestamp(data.get("closed_at")),
            is_pull_request=data.get("pull_request") is not None,
            number=data.get("number"),
        )


@dataclass(frozen=True)
class RepositorySummary:
    """Repository metadata passed through from the API."""

    full_name: str
    name: str
    owner: str
    description: Optional[str]
    stars: int
    forks: int
    watchers: int
    open_issues: int
    language: Optional[str]
    html_url: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RepositorySummary":
        owner = (data.get("owner") or {}).get("login") or data["full_name"].split("/")[0]
        return cls(
            full_name=data["full_name"],
            name=data.get("name") or data["full_name"].split("/")[-1],
            owner=owner,
            description=data.get("description"),
            stars=data.get("stargazers_count", 0),
            forks=data.get("forks_count", 0),
            watchers=data.get("watchers_count", 0),
            open_issues=data.get("open_issues_count", 0),
            language=data.get("language"),
            html_url=data.get("html_url"),
            raw=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("raw")
        return data


@dataclass
class IssuePage:
    """One page of issues and the last page number from its Link header."""

    issues: List[Issue]
    last_page: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return self.last_page is not None and self.last_page > 1


class GitHubIssueFetcher:
    """
    Async GitHub REST client for repositories and paginated issue lists.

    Every batch of requests is joined with asyncio.gather; a failing request
    fails the whole batch. HTTP and network errors are not retried.

    Usage:
        async with GitHubIssueFetcher() as fetcher:
            issues = await fetcher.fetch_all_issue_pages("octocat/Hello-World", {"state": "open"})
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_concurrency: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            base_url: API root URL
            timeout: Request timeout in seconds
            max_concurrency: Upper bound on in-flight requests (None for unbounded)
            transport: Optional httpx transport, mainly for tests
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got: {max_concurrency}")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.headers = dict(DEFAULT_HEADERS)

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def __aenter__(self) -> "GitHubIssueFetcher":
        self._get_client()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        client = self._get_client()

        if self._semaphore is None:
            response = await client.get(path, params=params)
        else:
            async with self._semaphore:
                response = await client.get(path, params=params)

        logger.debug(f"GET {response.request.url} -> {response.status_code}")
        response.raise_for_status()
        return response

    async def fetch_issues_page(
        self,
        full_name: str,
        params: Optional[Dict[str, Any]] = None,
        page: Optional[int] = None,
    ) -> IssuePage:
        """
        Fetch one page of a repository's issues.

        Args:
            full_name: Repository in format "owner/repo"
            params: Extra query parameters (state, since)
            page: Page number, omitted for the first page

        Returns:
            IssuePage with the parsed issues and the last page number, if any

        Raises:
            MalformedCursorError: If the Link header has no page number
            httpx.HTTPStatusError: On non-success responses
        """
        validate_full_name(full_name)

        query = {**DEFAULT_ISSUE_PARAMS, **(params or {})}
        if page is not None:
            query["page"] = page

        response = await self._get(f"/repos/{full_name}/issues", params=query)
        issues = [Issue.from_api(item) for item in response.json()]

        link = response.headers.get("link")
        last_page = parse_last_page(link) if link else None

        return IssuePage(issues=issues, last_page=last_page)

    async def fetch_pages(
        self,
        full_name: str,
        params: Optional[Dict[str, Any]],
        pages: Sequence[int],
    ) -> List[IssuePage]:
        """Fetch the given pages concurrently, results in page order."""
        return list(
            await asyncio.gather(
                *(self.fetch_issues_page(full_name, params, page=page) for page in pages)
            )
        )

    async def fetch_all_issue_pages(
        self,
        full_name: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Issue]:
        """
        Fetch every page of a repository's issues.

        Page 1 is fetched first; pages 2..N from its Link header are then
        requested all at once.

        Args:
            full_name: Repository in format "owner/repo"
            params: Extra query parameters (state, since)

        Returns:
            Issues from all pages
        """
        first = await self.fetch_issues_page(full_name, params)
        issues = list(first.issues)

        if first.has_more:
            logger.info(f"Fetching pages 2-{first.last_page} of {full_name} issues")
            for page in await self.fetch_pages(full_name, params, range(2, first.last_page + 1)):
                issues.extend(page.issues)

        logger.debug(f"Fetched {len(issues)} issues from {full_name}")
        return issues

    async def get_repository(self, full_name: str) -> RepositorySummary:
        """
        Get a single repository by its full name.

        Args:
            full_name: Repository in format "owner/repo"

        Returns:
            RepositorySummary
        """
        validate_full_name(full_name)
        logger.info(f"Fetching repository {full_name}")

        response = await self._get(f"/repos/{full_name}")
        return RepositorySummary.from_api(response.json())

    async def get_repositories(self, full_names: Sequence[str]) -> List[RepositorySummary]:
        """Look up several repositories concurrently, keeping input order."""
        for full_name in full_names:
            validate_full_name(full_name)

        return list(await asyncio.gather(*(self.get_repository(name) for name in full_names)))

    async def search_repositories(self, query: str) -> List[RepositorySummary]:
        """
        Search repositories by name or keyword.

        Args:
            query: Search query

        Returns:
            Up to the first 10 matching repositories
        """
        logger.info(f"Searching repos: {query}")

        response = await self._get("/search/repositories", params={"q": query, "order": "desc"})
        items = response.json().get("items", [])

        return [RepositorySummary.from_api(item) for item in items[:SEARCH_RESULT_LIMIT]]
