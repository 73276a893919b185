from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "REPO_SCAN_"


class Settings(BaseModel):
    """Configuration settings for the repo_scan package."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    github_api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL.")
    github_token: str = Field(default="", description="Fallback GitHub token for the CLI.")
    openai_api_url: str = Field(default="https://api.openai.com", description="Completion endpoint base URL.")
    openai_api_key: str = Field(default="", description="Completion endpoint API key.")
    openai_model: str = Field(default="gpt-5.2-codex", description="Model used for scans and chat.")

    max_files: int = Field(default=100, ge=1, description="Max files fetched for a pack.")
    scan_max_files: int = Field(default=50, ge=1, description="Max files fetched for a scan.")
    chat_max_files: int = Field(default=10, ge=0, description="Max relevant files fetched for chat.")
    batch_size: int = Field(default=10, ge=1, description="Concurrent content fetches per batch.")
    max_file_bytes: int = Field(default=256 * 1024, ge=1, description="Per-file content cap in bytes.")
    pack_max_chars: int | None = Field(default=None, description="Ceiling for packed documents; None disables it.")
    scan_max_chars: int = Field(default=200_000, ge=1, description="Ceiling for the analysis prompt context.")
    scan_tree_limit: int = Field(default=200, ge=0, description="Blob paths listed in the analysis context.")

    request_timeout: float = Field(default=30.0, gt=0, description="Timeout for GitHub calls (seconds).")
    completion_timeout: float = Field(default=120.0, gt=0, description="Timeout for completion calls (seconds).")

    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "repo_scan",
        description="Directory for the CLI's analysis cache and feedback records.",
    )
    cache_ttl_seconds: int = Field(default=3600, ge=0, description="Analysis cache expiry.")
    log_file: str = Field(default="", description="Log file path.")

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:  # noqa: ANN401
        """Build settings from the environment (and a `.env` file when one is found).

        Every field can be set with a ``REPO_SCAN_<FIELD>`` variable. The usual
        ``OPENAI_API_KEY`` and ``GITHUB_TOKEN`` variables are honoured as well.
        Explicit keyword overrides win over the environment.

        Returns:
            Settings: the resolved settings.
        """
        if ENV_FILE:
            load_dotenv(ENV_FILE, override=False)
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        if "openai_api_key" not in values and os.environ.get("OPENAI_API_KEY"):
            values["openai_api_key"] = os.environ["OPENAI_API_KEY"]
        if "github_token" not in values and os.environ.get("GITHUB_TOKEN"):
            values["github_token"] = os.environ["GITHUB_TOKEN"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
