"""Request and response bodies of the HTTP surface (camelCase on the wire)."""

from __future__ import annotations

from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field

from repo_scan.config import PackStats, PackStyle, Recommendation, ScanResult


class ChatMode(StrEnum):
    CHAT = auto()
    EXPLAIN = auto()
    OVERRIDE = auto()
    REOPTIMIZE = auto()


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PackRequest(WireModel):
    access_token: str = Field(default="", alias="accessToken")
    format: PackStyle = Field(default=PackStyle.MARKDOWN, description="markdown, xml or plain")


class ScanRequest(WireModel):
    access_token: str = Field(default="", alias="accessToken")
    include_pack: bool = Field(default=False, alias="includePack")


class IssueRequest(WireModel):
    access_token: str = Field(default="", alias="accessToken")
    owner: str = ""
    repo: str = ""
    title: str = ""
    description: str = ""
    labels: list[str] = Field(default_factory=list)


class RepoContext(WireModel):
    owner: str = ""
    repo: str = ""
    stage: str = ""
    stage_reasoning: str = Field(default="", alias="stageReasoning")
    access_token: str = Field(default="", alias="accessToken")


class ChatRequest(WireModel):
    """Body of ``POST /api/chat``; which fields are required depends on `mode`."""

    mode: ChatMode = ChatMode.CHAT
    recommendation: Recommendation | None = None
    user_message: str = Field(default="", alias="userMessage")
    relevant_files: list[str] | None = Field(default=None, alias="relevantFiles")
    follow_up: str = Field(default="", alias="followUp")
    goal: str = Field(default="", description="Goal for the reoptimize mode.")
    user_goal: str = Field(default="", alias="userGoal", description="Goal for the override mode.")
    existing_recommendations: list[Recommendation] = Field(default_factory=list, alias="existingRecommendations")
    repo_context: RepoContext = Field(default_factory=RepoContext, alias="repoContext")


class ScanMeta(WireModel):
    files_scanned: int = Field(..., alias="filesScanned")
    total_files: int = Field(..., alias="totalFiles")


class ScanReport(WireModel):
    """Scan response: the analysis plus, on request, the packed repository."""

    success: bool = True
    analysis: ScanResult
    meta: ScanMeta
    pack_content: str | None = Field(default=None, alias="packContent")
    pack_meta: PackStats | None = Field(default=None, alias="packMeta")


class ExplainResult(WireModel):
    simplified: str = ""
    code_references: list[str] = Field(default_factory=list, alias="codeReferences")
    why_it_matters: str = Field(default="", alias="whyItMatters")


class OverrideResult(WireModel):
    new_recommendations: list[Recommendation] = Field(default_factory=list, alias="newRecommendations")
    reordered_existing: bool = Field(default=False, alias="reorderedExisting")


class ReoptimizeResult(WireModel):
    recommendations: list[Recommendation] = Field(default_factory=list)
    optimization_goal: str = ""
