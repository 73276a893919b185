"""Thin async client for the GitHub REST endpoints used by repo_scan."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from repo_scan.config import EntryKind, TreeEntry
from repo_scan.exceptions import IssueCreationError, MissingCredentialError, TreeFetchError
from repo_scan.file_manipulation import truncate_bytes
from repo_scan.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

JSON_ACCEPT = "application/vnd.github.v3+json"
RAW_ACCEPT = "application/vnd.github.v3.raw"
ISSUE_FOOTER = "\n\n---\n*Created from a repo_scan recommendation*"
UPSTREAM_FAILURE_STATUS = 502


def _is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300  # noqa: PLR2004


class GitHubClient:
    """GitHub REST calls made on behalf of a user holding a bearer token.

    The client does not own `http`; the caller opens and closes it. Every call
    inherits the timeout configured on the `httpx.AsyncClient`.
    """

    def __init__(self, http: httpx.AsyncClient, token: str, *, api_url: str = "https://api.github.com") -> None:
        if not token:
            raise MissingCredentialError(name="accessToken")
        self.http = http
        self.api_url = api_url.rstrip("/")
        self._token = token

    def _headers(self, accept: str = JSON_ACCEPT) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": accept,
        }

    def _repo_url(self, owner: str, repo: str, suffix: str) -> str:
        return f"{self.api_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/{suffix}"

    async def fetch_tree(self, owner: str, repo: str) -> list[TreeEntry]:
        """Fetch the recursive tree listing at the default branch head.

        Args:
            owner (str): repository owner
            repo (str): repository name

        Raises:
            TreeFetchError: when GitHub answers with a non-2xx status or the call fails,
                or when the listing is not a JSON object.

        Returns:
            list[TreeEntry]: blobs and trees in the order GitHub lists them
        """
        url = self._repo_url(owner, repo, "git/trees/HEAD")
        try:
            response = await self.http.get(url, params={"recursive": "1"}, headers=self._headers())
        except httpx.HTTPError as e:
            raise TreeFetchError(owner=owner, repo=repo, detail=str(e)) from e
        if not _is_success(response):
            logger.warning("tree_fetch_failed", owner=owner, repo=repo, status_code=response.status_code)
            raise TreeFetchError(owner=owner, repo=repo, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise TreeFetchError(owner=owner, repo=repo, detail="invalid tree listing") from e
        if not isinstance(data, dict):
            raise TreeFetchError(owner=owner, repo=repo, detail="invalid tree listing")
        if data.get("truncated"):
            logger.warning("tree_listing_truncated", owner=owner, repo=repo)
        entries: list[TreeEntry] = []
        for item in data.get("tree") or []:
            kind = item.get("type")
            if kind not in {EntryKind.BLOB, EntryKind.TREE}:
                continue
            entries.append(
                TreeEntry(
                    path=item["path"],
                    kind=kind,
                    size=item.get("size"),
                    sha=item.get("sha", ""),
                ),
            )
        logger.info("tree_fetched", owner=owner, repo=repo, entries=len(entries))
        return entries

    async def fetch_file(self, owner: str, repo: str, path: str, *, max_bytes: int) -> str | None:
        """Fetch the raw content of one file, reading at most `max_bytes` bytes.

        Failures are not raised: a transport error or a non-2xx answer is logged
        and reported as None so that callers can skip the file.

        Args:
            owner (str): repository owner
            repo (str): repository name
            path (str): repository-relative file path
            max_bytes (int): maximum number of bytes read

        Returns:
            str | None: the decoded content, or None when the file could not be fetched
        """
        url = self._repo_url(owner, repo, f"contents/{quote(path, safe='/')}")
        chunks: list[bytes] = []
        size = 0
        try:
            async with self.http.stream("GET", url, headers=self._headers(RAW_ACCEPT)) as response:
                if not _is_success(response):
                    logger.warning("file_fetch_failed", path=path, status_code=response.status_code)
                    return None
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    size += len(chunk)
                    if size > max_bytes:
                        break
        except httpx.HTTPError as e:
            logger.warning("file_fetch_failed", path=path, error=str(e))
            return None
        return truncate_bytes(b"".join(chunks), max_bytes)

    async def create_issue(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        description: str,
        labels: Sequence[str] = (),
    ) -> dict[str, Any]:
        """Open an issue in the repository.

        Args:
            owner (str): repository owner
            repo (str): repository name
            title (str): issue title
            description (str): issue body; a short footer is appended
            labels (Sequence[str]): labels to apply

        Raises:
            IssueCreationError: when GitHub answers with a non-2xx status, carrying
                GitHub's own error message when it sent one. A transport error or an
                unreadable answer is reported with status 502.

        Returns:
            dict[str, Any]: ``{"issueUrl": ..., "issueNumber": ...}``
        """
        try:
            response = await self.http.post(
                self._repo_url(owner, repo, "issues"),
                headers={**self._headers("application/vnd.github+json"), "Content-Type": "application/json"},
                json={
                    "title": title,
                    "body": f"{description}{ISSUE_FOOTER}",
                    "labels": list(labels),
                },
            )
        except httpx.HTTPError as e:
            logger.warning("issue_create_failed", owner=owner, repo=repo, error=str(e))
            raise IssueCreationError(status_code=UPSTREAM_FAILURE_STATUS) from e
        if not _is_success(response):
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("message", "") if isinstance(payload, dict) else ""
            logger.warning("issue_create_failed", owner=owner, repo=repo, status_code=response.status_code)
            raise IssueCreationError(status_code=response.status_code, upstream_message=message)

        try:
            issue = response.json()
        except ValueError as e:
            raise IssueCreationError(status_code=UPSTREAM_FAILURE_STATUS) from e
        if not isinstance(issue, dict):
            raise IssueCreationError(status_code=UPSTREAM_FAILURE_STATUS)
        logger.info("issue_created", owner=owner, repo=repo, number=issue.get("number"))
        return {"issueUrl": issue.get("html_url"), "issueNumber": issue.get("number")}
