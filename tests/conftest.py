from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

import httpx
import pytest

from repo_scan.settings import Settings

if TYPE_CHECKING:
    from pathlib import Path


class FakeUpstream:
    """Stand-in for the GitHub and completion APIs, served through `httpx.MockTransport`."""

    def __init__(
        self,
        *,
        tree: list[dict[str, Any]] | None = None,
        files: dict[str, str | bytes] | None = None,
        tree_status: int = 200,
        file_status: dict[str, int] | None = None,
        broken_files: set[str] | None = None,
        broken: set[str] | None = None,
        garbled: set[str] | None = None,
        completion_text: str = "",
        completion_status: int = 200,
        issue_status: int = 201,
        issue_payload: dict[str, Any] | None = None,
    ) -> None:
        self.tree = tree if tree is not None else [{"path": p, "type": "blob", "sha": "x"} for p in files or {}]
        self.files = files or {}
        self.tree_status = tree_status
        self.file_status = file_status or {}
        self.broken_files = broken_files or set()
        self.broken = broken or set()
        self.garbled = garbled or set()
        self.completion_text = completion_text
        self.completion_status = completion_status
        self.issue_status = issue_status
        self.issue_payload = issue_payload or {"html_url": "https://github.com/octo/demo/issues/7", "number": 7}
        self.requests: list[httpx.Request] = []
        self.prompts: list[str] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    @staticmethod
    def _endpoint(request: httpx.Request) -> str:
        """Name of the upstream call: tree, contents, issues or completion."""
        path = request.url.path
        if path.endswith("/git/trees/HEAD"):
            return "tree"
        if "/contents/" in path:
            return "contents"
        if path.endswith("/issues"):
            return "issues"
        if path == "/v1/responses":
            return "completion"
        return ""

    def paths_fetched(self) -> list[str]:
        return [
            unquote(r.url.path.split("/contents/", 1)[1])
            for r in self.requests
            if "/contents/" in r.url.path
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        endpoint = self._endpoint(request)
        if endpoint in self.broken:
            raise httpx.ConnectError("connection reset", request=request)
        if endpoint in self.garbled:
            return httpx.Response(200, text="<html>upstream proxy error</html>")
        if path.endswith("/git/trees/HEAD"):
            if self.tree_status != 200:  # noqa: PLR2004
                return httpx.Response(self.tree_status, json={"message": "Not Found"})
            return httpx.Response(200, json={"sha": "abc", "tree": self.tree, "truncated": False})
        if "/contents/" in path:
            rel = unquote(path.split("/contents/", 1)[1])
            if rel in self.broken_files:
                raise httpx.ConnectError("connection reset", request=request)
            status = self.file_status.get(rel, 200 if rel in self.files else 404)
            if status != 200:  # noqa: PLR2004
                return httpx.Response(status, json={"message": "Not Found"})
            content = self.files[rel]
            return httpx.Response(200, content=content.encode("utf-8") if isinstance(content, str) else content)
        if path.endswith("/issues") and request.method == "POST":
            return httpx.Response(self.issue_status, json=self.issue_payload)
        if path == "/v1/responses":
            self.prompts.append(json.loads(request.content)["input"])
            if self.completion_status != 200:  # noqa: PLR2004
                return httpx.Response(self.completion_status, json={"error": {"message": "boom"}})
            return httpx.Response(
                200,
                json={
                    "output": [
                        {"type": "reasoning", "summary": []},
                        {"type": "message", "content": [{"type": "output_text", "text": self.completion_text}]},
                    ],
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="sk-test",
        github_token="ghp_test",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def make_upstream() -> type[FakeUpstream]:
    return FakeUpstream


def tree_of(*paths: str) -> list[dict[str, Any]]:
    return [{"path": p, "type": "blob", "sha": "x"} for p in paths]


@pytest.fixture
def blob_tree() -> Any:  # noqa: ANN401
    return tree_of
