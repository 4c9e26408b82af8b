"""GitHub API client for the tracker parser.

Two endpoints are used:
- GET /repos/{owner}/{repo}/issues/{number}/comments - tracker comments,
  requested in the text media type so each comment carries ``body_text``
- GET /repos/{org}/{repo}/commits/{ref} - the commit a branch or tag points at

The parser codes against GitHubClientProtocol, so tests (and dry runs) can
swap in MockGitHubClient without touching real GitHub.

GitHub API docs: https://docs.github.com/en/rest
"""

from __future__ import annotations

import os
from typing import Protocol
from urllib.parse import quote

import httpx

from release_sync.schemas import IssueRef

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class GitHubClientProtocol(Protocol):
    """Interface the tracker parser needs from GitHub."""

    async def get_issue_comments(self, issue: IssueRef) -> list[str]:
        """Return the text bodies of all comments on an issue, oldest first.

        Raises:
            httpx.HTTPError: If the comments cannot be retrieved
        """
        ...

    async def get_commit_sha(self, org: str, repo: str, ref: str) -> str:
        """Return the SHA of the commit ``ref`` points at.

        Raises:
            httpx.HTTPError: If the lookup fails
            KeyError: If the response has no ``sha``
        """
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class GitHubClient:
    """Real GitHub API client using httpx.

    Usage:
        client = GitHubClient(token="ghp_...")
        comments = await client.get_issue_comments(IssueRef(owner="o", repo="r", number=1))
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub token. Falls back to the GITHUB_TOKEN environment
                   variable if not provided.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self._token = token or os.environ.get("GITHUB_TOKEN", "")
        self._transport = transport
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            self._headers["Authorization"] = f"Bearer {self._token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers=self._headers,
            timeout=30.0,
            transport=self._transport,
        )

    async def get_issue_comments(self, issue: IssueRef) -> list[str]:
        """Fetch every comment on the tracker issue as plain text.

        Args:
            issue: The tracker issue

        Returns:
            Comment bodies in API order; comments without text become ""

        Raises:
            httpx.HTTPStatusError: If any page request fails
        """
        async with self._client() as client:
            comments = await self._handle_pagination(
                client,
                f"/repos/{issue.owner}/{issue.repo}/issues/{issue.number}/comments",
                headers={"Accept": "application/vnd.github.text+json"},
            )
        return [c.get("body_text") or "" for c in comments]

    async def get_commit_sha(self, org: str, repo: str, ref: str) -> str:
        """Fetch the commit a branch or tag currently points at.

        Refs are sent URL-encoded so that refs containing slashes
        (``release/v2``) stay a single path segment.
        """
        async with self._client() as client:
            resp = await client.get(f"/repos/{org}/{repo}/commits/{quote(ref, safe='')}")
            resp.raise_for_status()
            return resp.json()["sha"]

    async def _handle_pagination(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str] | None = None,
    ) -> list[dict]:
        """Follow GitHub's Link header until the last page.

        Args:
            client: The httpx client to use
            url: The initial URL to fetch
            headers: Extra headers for every page request

        Returns:
            All items across all pages
        """
        all_items: list[dict] = []
        next_url: str | None = url
        params: dict[str, int] | None = {"per_page": 100}

        while next_url:
            resp = await client.get(next_url, params=params, headers=headers)
            resp.raise_for_status()
            all_items.extend(resp.json())
            next_url = self._parse_next_link(resp.headers.get("link", ""))
            # the next link already carries the query string
            params = None

        return all_items

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the 'next' URL from a GitHub Link header."""
        if not link_header:
            return None
        for part in link_header.split(","):
            if 'rel="next"' in part:
                return part.split(";")[0].strip().strip("<>")
        return None


# ---------------------------------------------------------------------------
# Mock Implementation (for testing)
# ---------------------------------------------------------------------------


class MockGitHubClient:
    """Mock GitHub client that returns predefined data.

    Usage:
        client = MockGitHubClient(
            comments=["#Release#\\ndashboard | https://github.com/org/dashboard/tree/main"],
            shas={("org", "dashboard", "main"): "4f1c2a9e..."},
        )
    """

    def __init__(
        self,
        comments: list[str] | None = None,
        shas: dict[tuple[str, str, str], str] | None = None,
        comments_error: Exception | None = None,
    ) -> None:
        """Initialize with optional predefined data.

        Args:
            comments: Comment bodies returned for any issue
            shas: (org, repo, ref) -> commit SHA; missing keys fail the lookup
            comments_error: Raised by get_issue_comments when set
        """
        self._comments = comments or []
        self._shas = shas or {}
        self._comments_error = comments_error
        self.commit_lookups: list[tuple[str, str, str]] = []

    async def get_issue_comments(self, issue: IssueRef) -> list[str]:
        if self._comments_error is not None:
            raise self._comments_error
        return list(self._comments)

    async def get_commit_sha(self, org: str, repo: str, ref: str) -> str:
        self.commit_lookups.append((org, repo, ref))
        try:
            return self._shas[(org, repo, ref)]
        except KeyError:
            raise httpx.HTTPError(f"No commit found for ref {ref}") from None
