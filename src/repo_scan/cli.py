"""
repo_scan: Pack GitHub repositories for LLMs and scan them for recommendations.

Overview
--------
1) **pack**: fetch a repository's tree through the GitHub API, keep source-like
   files, download them in bounded batches and write one document
   (markdown/repomix-style, xml or plain) with stats and a file tree.

2) **scan**: pack a smaller slice, send it to an OpenAI-compatible completion
   endpoint and print the stage classification and recommendations as JSON.
   Results are cached for an hour per repository.

3) **feedback** / **prefs**: record feedback on a recommendation, pin or
   archive repositories.

4) **serve**: run the JSON HTTP API (pack, scan, chat, issues).

Usage
-----
    repo-scan pack octo/demo --output demo.md
    repo-scan pack octo/demo --format xml --output demo.xml
    repo-scan scan octo/demo --include-pack
    repo-scan feedback octo/demo "Add CI" helpful
    repo-scan serve --port 8000

The GitHub token is read from `--token`, `REPO_SCAN_GITHUB_TOKEN` or `GITHUB_TOKEN`;
the completion key from `OPENAI_API_KEY`.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from repo_scan import __version__
from repo_scan.config import PackStyle
from repo_scan.exceptions import RepoScanError
from repo_scan.logging import logger, setup_logging
from repo_scan.operations import pack_repository, scan_repository
from repo_scan.settings import Settings
from repo_scan.store import AnalysisCache, FeedbackStore, FeedbackType, JsonFileStore, PreferencesStore

if TYPE_CHECKING:
    from collections.abc import Sequence

STORE_FILE = "state.json"
CLEAR_FEEDBACK = "clear"


def split_full_name(value: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts.

    Raises:
        argparse.ArgumentTypeError: when `value` is not of the form ``owner/repo``.
    """
    owner, sep, repo = value.strip().strip("/").partition("/")
    if not sep or not owner or not repo or "/" in repo:
        msg = f"expected OWNER/REPO, got {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return owner, repo


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="repo-scan",
        description="Pack GitHub repositories for LLMs and scan them for recommendations.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--cache-dir", type=str, default=None, help="Directory for cache and feedback state.")
    sub = p.add_subparsers(dest="command", required=True)

    pack = sub.add_parser("pack", help="Pack a repository into one document.")
    pack.add_argument("repository", type=split_full_name, help="OWNER/REPO")
    pack.add_argument("--token", type=str, default="", help="GitHub token.")
    pack.add_argument("--output", type=str, default="", help="Output file (stdout when omitted).")
    pack.add_argument(
        "--format",
        type=str,
        choices=[s.value for s in PackStyle],
        default=PackStyle.MARKDOWN.value,
        help="Document style.",
    )
    pack.add_argument("--max-files", type=int, default=None, help="Max files included.")
    pack.add_argument("--max-chars", type=int, default=None, help="Size ceiling of the document.")

    scan = sub.add_parser("scan", help="Scan a repository for a stage and recommendations.")
    scan.add_argument("repository", type=split_full_name, help="OWNER/REPO")
    scan.add_argument("--token", type=str, default="", help="GitHub token.")
    scan.add_argument("--include-pack", action="store_true", help="Also return the packed document.")
    scan.add_argument("--no-cache", action="store_true", help="Ignore and refresh the cached analysis.")

    feedback = sub.add_parser("feedback", help="Record feedback on a recommendation.")
    feedback.add_argument("repository", type=split_full_name, help="OWNER/REPO")
    feedback.add_argument("title", type=str, help="Recommendation title.")
    feedback.add_argument("value", choices=[f.value for f in FeedbackType] + [CLEAR_FEEDBACK])

    prefs = sub.add_parser("prefs", help="Pin or archive a repository.")
    prefs.add_argument("user", type=str, help="User id.")
    prefs.add_argument("action", choices=["pin", "archive", "show"])
    prefs.add_argument("repo_id", type=int, nargs="?", default=None, help="Repository id.")

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return p.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        log_file=args.log_file or None,
        cache_dir=args.cache_dir,
        github_token=getattr(args, "token", "") or None,
        max_files=getattr(args, "max_files", None),
        pack_max_chars=getattr(args, "max_chars", None),
    )


def open_http(settings: Settings) -> httpx.AsyncClient:
    """Outbound HTTP client used by the CLI commands."""
    return httpx.AsyncClient(timeout=settings.request_timeout, follow_redirects=True)


def state_store(settings: Settings) -> JsonFileStore:
    return JsonFileStore(Path(settings.cache_dir) / STORE_FILE)


async def run_pack(args: argparse.Namespace, settings: Settings) -> int:
    owner, repo = args.repository
    async with open_http(settings) as http:
        doc = await pack_repository(http, settings, owner, repo, settings.github_token, style=PackStyle(args.format))
    if args.output:
        Path(args.output).write_text(doc.body, encoding="utf-8")
        stats = doc.stats
        print(f"Wrote {args.output} files={stats.files_included}/{stats.total_files} tokens~{stats.estimated_tokens}")
    else:
        sys.stdout.write(doc.body)
    return 0


async def run_scan(args: argparse.Namespace, settings: Settings) -> int:
    owner, repo = args.repository
    full_name = f"{owner}/{repo}"
    cache = AnalysisCache(state_store(settings), ttl_seconds=settings.cache_ttl_seconds)
    cached = None if args.no_cache else cache.get(full_name)
    if cached is not None and (cached.get("packContent") or not args.include_pack):
        logger.info("analysis_cache_hit", repository=full_name)
        print(json.dumps(cached, indent=2, ensure_ascii=False))
        return 0

    async with open_http(settings) as http:
        report = await scan_repository(
            http,
            settings,
            owner,
            repo,
            settings.github_token,
            include_pack=args.include_pack,
        )
    payload = report.model_dump(mode="json", by_alias=True, exclude_none=True)
    cache.set(full_name, payload)
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def run_feedback(args: argparse.Namespace, settings: Settings) -> int:
    owner, repo = args.repository
    value = None if args.value == CLEAR_FEEDBACK else FeedbackType(args.value)
    FeedbackStore(state_store(settings)).set(f"{owner}/{repo}", args.title, value)
    print(f"{owner}/{repo} :: {args.title} -> {value or 'cleared'}")
    return 0


def run_prefs(args: argparse.Namespace, settings: Settings) -> int:
    store = PreferencesStore(state_store(settings))
    if args.action != "show" and args.repo_id is None:
        print(f"prefs {args.action} needs a repository id", file=sys.stderr)
        return 2
    if args.action == "pin":
        prefs = store.toggle_pin(args.user, args.repo_id)
    elif args.action == "archive":
        prefs = store.toggle_archive(args.user, args.repo_id)
    else:
        prefs = store.load(args.user)
    print(json.dumps(prefs.model_dump()))
    return 0


def run_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn  # noqa: PLC0415

    from repo_scan.app import create_app  # noqa: PLC0415

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = build_settings(args)
    if settings.log_file:
        setup_logging(settings.log_file, force=True)

    try:
        if args.command == "pack":
            return asyncio.run(run_pack(args, settings))
        if args.command == "scan":
            return asyncio.run(run_scan(args, settings))
        if args.command == "feedback":
            return run_feedback(args, settings)
        if args.command == "prefs":
            return run_prefs(args, settings)
        return run_serve(args, settings)
    except RepoScanError as e:
        logger.error("command_failed", command=args.command, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
