"""End-to-end operations: pack, scan, chat and issue filing."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from repo_scan.completion import CompletionClient
from repo_scan.config import MANIFEST_PATH, README_PATH, PackDocument, PackStyle, ScanResult
from repo_scan.exceptions import AnalysisParseError, MissingFieldsError, StructuredExtractionError
from repo_scan.extraction import extract_json_object
from repo_scan.file_manipulation import count_blobs, select_candidates
from repo_scan.github import GitHubClient
from repo_scan.logging import logger
from repo_scan.output_construction import assemble_document, build_scan_context
from repo_scan.prompts import (
    chat_prompt,
    explain_prompt,
    override_prompt,
    reoptimize_prompt,
    repo_header,
    scan_prompt,
)
from repo_scan.retrieval import retrieve_files
from repo_scan.schemas import (
    ChatMode,
    ChatRequest,
    ExplainResult,
    OverrideResult,
    ReoptimizeResult,
    ScanMeta,
    ScanReport,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx

    from repo_scan.config import IncludedFile
    from repo_scan.settings import Settings

NO_REPLY = "No response generated."

ModelT = TypeVar("ModelT", bound=BaseModel)


def _completion_client(http: httpx.AsyncClient, settings: Settings) -> CompletionClient:
    return CompletionClient(
        http,
        settings.openai_api_key,
        model=settings.openai_model,
        api_url=settings.openai_api_url,
        timeout=settings.completion_timeout,
    )


def _github_client(http: httpx.AsyncClient, settings: Settings, token: str) -> GitHubClient:
    return GitHubClient(http, token, api_url=settings.github_api_url)


def parse_structured(text: str, model: type[ModelT], operation: str) -> ModelT:
    """Extract the JSON object from a model reply and validate it against `model`.

    Args:
        text (str): raw model reply
        model (type[ModelT]): the pydantic model the object must satisfy
        operation (str): operation name used in the error message

    Raises:
        AnalysisParseError: when no object can be extracted or it does not validate.
            The raw reply is logged, never attached to the error.

    Returns:
        ModelT: the validated result
    """
    try:
        return model.model_validate(extract_json_object(text))
    except (StructuredExtractionError, ValidationError) as e:
        logger.error("response_parse_failed", operation=operation, error=str(e), raw=text)
        raise AnalysisParseError(operation=operation) from e


async def pack_repository(
    http: httpx.AsyncClient,
    settings: Settings,
    owner: str,
    repo: str,
    token: str,
    *,
    style: PackStyle = PackStyle.MARKDOWN,
) -> PackDocument:
    """Fetch, filter, retrieve and assemble a repository into one document.

    Raises:
        MissingCredentialError: when `token` is empty.
        TreeFetchError: when the tree listing cannot be fetched.

    Returns:
        PackDocument: the packed repository; at most `settings.max_files` files
    """
    github = _github_client(http, settings, token)
    tree = await github.fetch_tree(owner, repo)
    candidates = select_candidates(tree, settings.max_files)
    files = await retrieve_files(
        github,
        owner,
        repo,
        candidates,
        batch_size=settings.batch_size,
        max_file_bytes=settings.max_file_bytes,
    )
    doc = assemble_document(
        owner,
        repo,
        files,
        candidates=candidates,
        total_files=count_blobs(tree),
        style=style,
        max_chars=settings.pack_max_chars,
    )
    logger.info(
        "repository_packed",
        owner=owner,
        repo=repo,
        files_included=doc.stats.files_included,
        total_files=doc.stats.total_files,
        chars=len(doc.body),
    )
    return doc


async def scan_repository(
    http: httpx.AsyncClient,
    settings: Settings,
    owner: str,
    repo: str,
    token: str,
    *,
    include_pack: bool = False,
) -> ScanReport:
    """Pack a slice of the repository and ask the model for a stage and recommendations.

    The completion key is checked before any GitHub call so that a configuration
    error never starts partial work.

    Raises:
        MissingCredentialError: when the GitHub token or the completion key is missing.
        TreeFetchError: when the tree listing cannot be fetched.
        CompletionError: when the completion endpoint fails.
        AnalysisParseError: when the reply holds no valid analysis object.

    Returns:
        ScanReport: the analysis, scan counters and optionally the packed document
    """
    completion = _completion_client(http, settings)
    github = _github_client(http, settings, token)

    tree = await github.fetch_tree(owner, repo)
    candidates = select_candidates(tree, settings.scan_max_files)
    readme, manifest = await asyncio.gather(
        github.fetch_file(owner, repo, README_PATH, max_bytes=settings.max_file_bytes),
        github.fetch_file(owner, repo, MANIFEST_PATH, max_bytes=settings.max_file_bytes),
    )
    files = await retrieve_files(
        github,
        owner,
        repo,
        candidates,
        batch_size=settings.batch_size,
        max_file_bytes=settings.max_file_bytes,
    )
    context = build_scan_context(
        files,
        tree,
        readme=readme,
        manifest=manifest,
        max_chars=settings.scan_max_chars,
        tree_limit=settings.scan_tree_limit,
    )
    text = await completion.complete(scan_prompt(context))
    analysis = parse_structured(text, ScanResult, "analysis")
    total_files = count_blobs(tree)

    report = ScanReport(
        analysis=analysis,
        meta=ScanMeta(files_scanned=len(files), total_files=total_files),
    )
    if include_pack:
        doc = assemble_document(
            owner,
            repo,
            files,
            candidates=candidates,
            total_files=total_files,
            max_chars=settings.pack_max_chars,
        )
        report = report.model_copy(update={"pack_content": doc.body, "pack_meta": doc.stats})
    logger.info("repository_scanned", owner=owner, repo=repo, stage=str(analysis.stage), files=len(files))
    return report


def _render_files(files: Sequence[IncludedFile]) -> str:
    return "\n\n".join(f"=== {f.path} ===\n{f.content}" for f in files)


async def chat_about_recommendation(
    http: httpx.AsyncClient,
    settings: Settings,
    request: ChatRequest,
) -> dict[str, Any]:
    """Answer a follow-up about a recommendation in one of the chat modes.

    - ``chat``: free-text reply, ``{"reply"}``
    - ``explain``: ``{"simplified", "codeReferences", "whyItMatters"}``
    - ``override``: ``{"newRecommendations", "reorderedExisting"}``
    - ``reoptimize``: ``{"recommendations", "optimization_goal"}``

    The completion key is checked before the request fields.

    Raises:
        MissingFieldsError: when the fields the mode needs are absent.
        MissingCredentialError: when the GitHub token or the completion key is missing.
        CompletionError: when the completion endpoint fails.
        AnalysisParseError: when a structured mode gets an unusable reply.

    Returns:
        dict[str, Any]: the mode's response body
    """
    completion = _completion_client(http, settings)
    ctx = request.repo_context
    mode = request.mode
    goal = request.user_goal or request.goal
    missing: list[str] = []
    if mode in {ChatMode.CHAT, ChatMode.EXPLAIN} and request.recommendation is None:
        missing.append("recommendation")
    if mode == ChatMode.CHAT and not request.user_message:
        missing.append("userMessage")
    if mode in {ChatMode.OVERRIDE, ChatMode.REOPTIMIZE} and not goal:
        missing.append("goal")
    if not ctx.access_token:
        missing.append("repoContext.accessToken")
    if missing:
        raise MissingFieldsError(fields=tuple(missing))

    header = repo_header(ctx.owner, ctx.repo, ctx.stage, ctx.stage_reasoning)

    if mode == ChatMode.OVERRIDE:
        text = await completion.complete(override_prompt(header, goal, request.existing_recommendations))
        return parse_structured(text, OverrideResult, "override").model_dump(mode="json", by_alias=True)
    if mode == ChatMode.REOPTIMIZE:
        text = await completion.complete(reoptimize_prompt(header, goal, request.existing_recommendations))
        return parse_structured(text, ReoptimizeResult, "reoptimize").model_dump(mode="json", by_alias=True)

    rec = request.recommendation
    wanted = request.relevant_files if request.relevant_files is not None else rec.relevant_files
    paths = list(dict.fromkeys(p for p in wanted if p))[: settings.chat_max_files]
    github = _github_client(http, settings, ctx.access_token)
    files = await retrieve_files(
        github,
        ctx.owner,
        ctx.repo,
        paths,
        batch_size=settings.batch_size,
        max_file_bytes=settings.max_file_bytes,
    )

    if mode == ChatMode.EXPLAIN:
        text = await completion.complete(explain_prompt(header, rec, _render_files(files), request.follow_up))
        return parse_structured(text, ExplainResult, "explain").model_dump(mode="json", by_alias=True)

    reply = await completion.complete(chat_prompt(header, rec, _render_files(files), request.user_message))
    return {"reply": reply or NO_REPLY}


async def create_issue(
    http: httpx.AsyncClient,
    settings: Settings,
    owner: str,
    repo: str,
    token: str,
    *,
    title: str,
    description: str,
    labels: Sequence[str] = (),
) -> dict[str, Any]:
    """File a recommendation as a GitHub issue.

    Raises:
        MissingFieldsError: when owner, repo or title is empty.
        MissingCredentialError: when `token` is empty.
        IssueCreationError: when GitHub refuses the issue.

    Returns:
        dict[str, Any]: ``{"success": True, "issueUrl": ..., "issueNumber": ...}``
    """
    missing = [name for name, value in (("owner", owner), ("repo", repo), ("title", title)) if not value]
    if missing:
        raise MissingFieldsError(fields=tuple(missing))
    github = _github_client(http, settings, token)
    issue = await github.create_issue(owner, repo, title=title, description=description, labels=labels)
    return {"success": True, **issue}
