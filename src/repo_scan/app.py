"""HTTP surface: JSON endpoints wrapping the pack, scan, chat and issue operations."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from repo_scan import __version__, operations
from repo_scan.exceptions import (
    AnalysisParseError,
    IssueCreationError,
    MissingCredentialError,
    MissingFieldsError,
    RepoScanError,
)
from repo_scan.logging import logger
from repo_scan.schemas import ChatRequest, IssueRequest, PackRequest, ScanRequest
from repo_scan.settings import Settings

router = APIRouter(prefix="/api")
INTERNAL_ERROR = "Internal server error"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_http(request: Request) -> AsyncIterator[httpx.AsyncClient]:
    """One outbound client per request, carrying the configured timeout."""
    settings: Settings = request.app.state.settings
    async with httpx.AsyncClient(
        timeout=settings.request_timeout,
        transport=request.app.state.transport,
        follow_redirects=True,
    ) as http:
        yield http


SettingsDep = Annotated[Settings, Depends(get_settings)]
HttpDep = Annotated[httpx.AsyncClient, Depends(get_http)]


@router.post("/pack/{owner}/{repo}")
async def pack(owner: str, repo: str, body: PackRequest, http: HttpDep, settings: SettingsDep) -> dict[str, Any]:
    doc = await operations.pack_repository(http, settings, owner, repo, body.access_token, style=body.format)
    return {
        "success": True,
        "content": doc.body,
        "meta": doc.stats.model_dump(by_alias=True),
    }


@router.post("/scan/{owner}/{repo}")
async def scan(owner: str, repo: str, body: ScanRequest, http: HttpDep, settings: SettingsDep) -> dict[str, Any]:
    report = await operations.scan_repository(
        http,
        settings,
        owner,
        repo,
        body.access_token,
        include_pack=body.include_pack,
    )
    return report.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/chat")
async def chat(body: ChatRequest, http: HttpDep, settings: SettingsDep) -> dict[str, Any]:
    return await operations.chat_about_recommendation(http, settings, body)


@router.post("/issues/{owner}/{repo}")
async def issues(owner: str, repo: str, body: IssueRequest, http: HttpDep, settings: SettingsDep) -> dict[str, Any]:
    return await operations.create_issue(
        http,
        settings,
        owner,
        repo,
        body.access_token,
        title=body.title,
        description=body.description,
        labels=body.labels,
    )


@router.post("/create-issue")
async def create_issue(body: IssueRequest, http: HttpDep, settings: SettingsDep) -> dict[str, Any]:
    return await operations.create_issue(
        http,
        settings,
        body.owner,
        body.repo,
        body.access_token,
        title=body.title,
        description=body.description,
        labels=body.labels,
    )


@router.get("/ping")
async def ping() -> dict[str, Any]:
    return {"pong": True, "method": "GET", "timestamp": int(time.time() * 1000)}


@router.post("/ping")
async def ping_echo(request: Request) -> dict[str, Any]:
    try:
        echo = await request.json()
    except ValueError:
        echo = {}
    return {"pong": True, "method": "POST", "echo": echo, "timestamp": int(time.time() * 1000)}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("invalid_request_body", path=request.url.path, errors=len(exc.errors()))
    return _error(400, "Invalid request body")


async def _repo_scan_error(request: Request, exc: RepoScanError) -> JSONResponse:
    if isinstance(exc, MissingCredentialError):
        status_code = 400 if exc.client_error else 500
    elif isinstance(exc, MissingFieldsError):
        status_code = 400
    elif isinstance(exc, IssueCreationError):
        status_code = exc.status_code
    else:
        status_code = 500
    if isinstance(exc, AnalysisParseError) or status_code >= 500:  # noqa: PLR2004
        logger.error("request_failed", path=request.url.path, error=exc.message, kind=type(exc).__name__)
    return _error(status_code, exc.message)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc), kind=type(exc).__name__)
    return _error(500, INTERNAL_ERROR)


def create_app(settings: Settings | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: resolved settings; read from the environment when None.
        transport: optional httpx transport for outbound calls (tests use `httpx.MockTransport`).

    Returns:
        FastAPI: the application
    """
    app = FastAPI(title="repo_scan", version=__version__)
    app.state.settings = settings or Settings.from_env()
    app.state.transport = transport
    app.include_router(router)
    app.add_exception_handler(RequestValidationError, _invalid_body)
    app.add_exception_handler(RepoScanError, _repo_scan_error)
    app.add_exception_handler(Exception, _unexpected_error)
    return app
