"""Fake GitHub API for the issue stats tests."""

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

API = "https://api.github.com"


def make_issue(
    created_at: str,
    closed_at: Optional[str] = None,
    pull_request: bool = False,
    number: int = 1,
) -> Dict[str, Any]:
    """Build an issue record shaped like the issues endpoint returns."""
    issue: Dict[str, Any] = {
        "number": number,
        "created_at": created_at,
        "closed_at": closed_at,
        "state": "closed" if closed_at else "open",
    }
    if pull_request:
        issue["pull_request"] = {"url": f"{API}/repos/octocat/Hello-World/pulls/{number}"}
    return issue


def make_repo(full_name: str, **overrides: Any) -> Dict[str, Any]:
    """Build a repository record shaped like /repos/{full_name} returns."""
    owner, name = full_name.split("/")
    repo = {
        "name": name,
        "full_name": full_name,
        "owner": {"login": owner},
        "description": f"{name} description",
        "stargazers_count": 10,
        "forks_count": 2,
        "watchers_count": 10,
        "open_issues_count": 3,
        "language": "Python",
        "html_url": f"https://github.com/{full_name}",
    }
    repo.update(overrides)
    return repo


def link_header(full_name: str, last_page: int, current: int = 1) -> str:
    """Build a Link header the way GitHub paginates issue lists."""
    base = f"{API}/repositories/1296269/issues?direction=asc&per_page=100"
    links = []
    if current < last_page:
        links.append(f'<{base}&page={current + 1}>; rel="next"')
    links.append(f'<{base}&page={last_page}>; rel="last"')
    return ", ".join(links)


class FakeGitHub:
    """
    In-memory GitHub API served through httpx.MockTransport.

    Issue pages are registered per repository; every request is recorded.
    """

    def __init__(self):
        self.issue_pages: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.repos: Dict[str, Dict[str, Any]] = {}
        self.search_items: List[Dict[str, Any]] = []
        self.raw_links: Dict[str, str] = {}
        self.failures: Dict[Tuple[str, int], int] = {}
        self.requests: List[httpx.Request] = []

    def add_issues(self, full_name: str, *pages: List[Dict[str, Any]]) -> None:
        self.issue_pages[full_name] = list(pages)

    def issue_requests(self, full_name: Optional[str] = None) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path.endswith("/issues")
            and (full_name is None or r.url.path == f"/repos/{full_name}/issues")
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        query = {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}

        if path == "/search/repositories":
            return httpx.Response(200, json={"total_count": len(self.search_items), "items": self.search_items})

        if path.endswith("/issues"):
            full_name = path[len("/repos/"):-len("/issues")]
            page = int(query.get("page", 1))
            if (full_name, page) in self.failures:
                return httpx.Response(self.failures[(full_name, page)], json={"message": "boom"})
            pages = self.issue_pages.get(full_name)
            if pages is None:
                return httpx.Response(404, json={"message": "Not Found"})

            headers = {}
            if full_name in self.raw_links:
                headers["Link"] = self.raw_links[full_name]
            elif len(pages) > 1:
                headers["Link"] = link_header(full_name, len(pages), page)
            return httpx.Response(200, json=pages[page - 1], headers=headers)

        if path.startswith("/repos/"):
            full_name = path[len("/repos/"):]
            if full_name not in self.repos:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=self.repos[full_name])

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def github():
    """Fresh fake GitHub API."""
    return FakeGitHub()
