from __future__ import annotations

from enum import StrEnum, auto
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class EntryKind(StrEnum):
    """Kind of an entry in a GitHub git tree listing."""

    BLOB = auto()
    TREE = auto()


class PackStyle(StrEnum):
    """Serialization styles for packed documents."""

    MARKDOWN = auto()
    XML = auto()
    PLAIN = auto()


class Stage(StrEnum):
    """Coarse lifecycle classification of a repository."""

    IDEA = auto()
    PROTOTYPE = auto()
    MVP = auto()
    GROWTH = auto()
    MATURE = auto()


class Impact(StrEnum):
    HIGH = auto()
    MEDIUM = auto()
    LOW = auto()


# Directory names skipped wherever they appear as a path segment.
SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".vercel",
    "__pycache__",
    ".pytest_cache",
    "target",
    "vendor",
    ".gradle",
    "coverage",
    ".nyc_output",
    ".turbo",
    ".cache",
})

LOCKFILES: frozenset[str] = frozenset({
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
    "Cargo.lock",
    "Gemfile.lock",
    "poetry.lock",
    "composer.lock",
})

BINARY_EXTENSIONS: frozenset[str] = frozenset({
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".mp3",
    ".mp4",
    ".webm",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
})

SOURCE_EXTENSIONS: frozenset[str] = frozenset({
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".go",
    ".rs",
    ".rb",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".cs",
    ".swift",
    ".kt",
    ".scala",
    ".vue",
    ".svelte",
    ".astro",
    ".md",
    ".mdx",
    ".json",
    ".yaml",
    ".yml",
    ".toml",
    ".sql",
    ".graphql",
    ".prisma",
    ".sh",
    ".bash",
    ".zsh",
})

EXT2LANG: dict[str, str] = {
    ".astro": "astro",
    ".bash": "bash",
    ".c": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".graphql": "graphql",
    ".h": "c",
    ".hpp": "cpp",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".jsx": "jsx",
    ".kt": "kotlin",
    ".md": "markdown",
    ".mdx": "mdx",
    ".prisma": "prisma",
    ".py": "python",
    ".rb": "ruby",
    ".rs": "rust",
    ".scala": "scala",
    ".sh": "bash",
    ".sql": "sql",
    ".svelte": "svelte",
    ".swift": "swift",
    ".toml": "toml",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".vue": "vue",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".zsh": "bash",
}

README_PATH = "README.md"
MANIFEST_PATH = "package.json"
TRUNCATION_MARKER = "\n\n[TRUNCATED]"


class TreeEntry(BaseModel):
    """One entry of a recursive git tree listing.

    Attributes:
        path: Repository-relative path with forward slashes.
        kind: Blob (file) or tree (directory).
        size: Blob size in bytes when GitHub reports it.
        sha: Git object id.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository-relative path")
    kind: EntryKind = Field(..., description="blob or tree")
    size: int | None = Field(default=None, ge=0, description="Blob size in bytes")
    sha: str = Field(default="", description="Git object id")


class IncludedFile(BaseModel):
    """A retrieved file, decoded best effort and possibly truncated."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str

    @computed_field
    @property
    def language(self) -> str:
        """Code fence language derived from the extension, empty when unknown."""
        return EXT2LANG.get(PurePosixPath(self.path).suffix.lower(), "")

    @computed_field
    @property
    def line_count(self) -> int:
        return self.content.count("\n") + 1


class PackStats(BaseModel):
    """Aggregate statistics of a packed document, serialized in camelCase."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    files_included: int = Field(..., ge=0, alias="filesIncluded")
    total_files: int = Field(..., ge=0, alias="totalFiles")
    lines: int = Field(..., ge=0)
    chars: int = Field(..., ge=0)
    words: int = Field(..., ge=0)
    size_kb: int = Field(..., ge=0, alias="sizeKB")
    estimated_tokens: int = Field(..., ge=0, alias="estimatedTokens")


class PackDocument(BaseModel):
    """The serialized pack and its statistics."""

    model_config = ConfigDict(frozen=True)

    body: str
    stats: PackStats


class Recommendation(BaseModel):
    """A structured improvement suggestion returned by a scan or a chat mode."""

    title: str
    description: str
    impact: Impact = Impact.MEDIUM
    effort: str = ""
    relevant_files: list[str] = Field(default_factory=list)

    @field_validator("impact", mode="before")
    @classmethod
    def _normalize_impact(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("effort", mode="before")
    @classmethod
    def _stringify_effort(cls, value: object) -> object:
        return str(value) if isinstance(value, int | float) else value


class ScanResult(BaseModel):
    """Stage classification and ranked recommendations for a repository."""

    stage: Stage
    stage_reasoning: str = ""
    optimization_goal: str = ""
    top_recommendation: Recommendation
    secondary_recommendations: list[Recommendation] = Field(default_factory=list)

    @field_validator("stage", mode="before")
    @classmethod
    def _normalize_stage(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value
