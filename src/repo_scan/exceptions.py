from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False)
class RepoScanError(Exception):
    """Base exception for errors in the repo_scan package."""

    @property
    def message(self) -> str:
        return "repo_scan operation failed"

    def __str__(self) -> str:
        return self.message


@dataclass(eq=False)
class MissingCredentialError(RepoScanError):
    """Raised when a required credential or API key is not available."""

    name: str
    client_error: bool = True

    @property
    def message(self) -> str:
        if self.client_error:
            return f"Missing {self.name}"
        return f"{self.name} not configured"


@dataclass(eq=False)
class TreeFetchError(RepoScanError):
    """Raised when the recursive tree listing of a repository cannot be fetched."""

    owner: str
    repo: str
    status_code: int | None = None
    detail: str = ""

    @property
    def message(self) -> str:
        if self.status_code is None:
            return f"Failed to fetch file tree: {self.detail or 'network error'}"
        return f"Failed to fetch file tree: {self.status_code}"


@dataclass(eq=False)
class CompletionError(RepoScanError):
    """Raised when the completion endpoint does not answer with a 2xx."""

    status_code: int | None = None
    detail: str = ""

    @property
    def message(self) -> str:
        if self.status_code is None:
            return f"Completion API error: {self.detail or 'network error'}"
        return f"Completion API error: {self.status_code}"


@dataclass(eq=False)
class StructuredExtractionError(RepoScanError):
    """Raised when no JSON object can be extracted from a model response.

    `reason` is ``no_object`` or ``invalid_json``.
    """

    reason: str
    detail: str = ""

    @property
    def message(self) -> str:
        if self.detail:
            return f"Structured extraction failed ({self.reason}): {self.detail}"
        return f"Structured extraction failed ({self.reason})"


@dataclass(eq=False)
class AnalysisParseError(RepoScanError):
    """Raised when a model response cannot be turned into the expected result."""

    operation: str = "analysis"

    @property
    def message(self) -> str:
        return f"Failed to parse {self.operation} result"


@dataclass(eq=False)
class IssueCreationError(RepoScanError):
    """Raised when GitHub refuses to create an issue."""

    status_code: int
    upstream_message: str = ""

    @property
    def message(self) -> str:
        return self.upstream_message or "Failed to create issue"


@dataclass(eq=False)
class MissingFieldsError(RepoScanError):
    """Raised when a request lacks fields required by the operation."""

    fields: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return "Missing required fields"
