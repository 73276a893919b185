from __future__ import annotations

import io
from html import escape
from typing import TYPE_CHECKING

from repo_scan.config import (
    MANIFEST_PATH,
    README_PATH,
    TRUNCATION_MARKER,
    IncludedFile,
    PackDocument,
    PackStats,
    PackStyle,
)
from repo_scan.file_manipulation import blob_paths, build_tree_lines

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_scan.config import TreeEntry

RULE = "=" * 64

USAGE_NOTE = (
    "This file contains the source code of the repository in a format optimized for AI consumption.\n"
    "You can paste it into an LLM and ask questions about the codebase, request code reviews,\n"
    "ask for refactoring suggestions, or generate documentation.\n"
)


def _utf8_size(files: Sequence[IncludedFile]) -> int:
    return sum(len(f.content.encode("utf-8")) for f in files)


def _round_div(numerator: int, denominator: int) -> int:
    """Integer division rounding halves up (non-negative inputs)."""
    return (2 * numerator + denominator) // (2 * denominator)


def compute_stats(files: Sequence[IncludedFile], total_files: int) -> PackStats:
    """Compute aggregate statistics for a set of retrieved files.

    Args:
        files (Sequence[IncludedFile]): the retrieved files
        total_files (int): number of blobs in the repository tree

    Returns:
        PackStats: lines (newlines + 1 per file), characters, whitespace-delimited
            words, UTF-8 size in KB and the chars / 4 token estimate
    """
    chars = sum(len(f.content) for f in files)
    return PackStats(
        files_included=len(files),
        total_files=max(total_files, len(files)),
        lines=sum(f.line_count for f in files),
        chars=chars,
        words=sum(len(f.content.split()) for f in files),
        size_kb=_round_div(_utf8_size(files), 1024),
        estimated_tokens=_round_div(chars, 4),
    )


def apply_ceiling(text: str, max_chars: int | None) -> str:
    """Cut `text` to `max_chars` characters and append the truncation marker.

    Args:
        text (str): the assembled document
        max_chars (int | None): the ceiling; None or 0 disables it

    Returns:
        str: `text` unchanged when within the ceiling, otherwise its head
            followed by `TRUNCATION_MARKER`
    """
    if not max_chars or len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def _write_markdown(
    out: io.StringIO,
    full_name: str,
    files: Sequence[IncludedFile],
    tree_lines: Sequence[str],
    stats: PackStats,
    size_bytes: int,
) -> None:
    out.write(
        "This file is a merged representation of the codebase, combined into a single document by repo_scan.\n\n",
    )
    out.write(f"{RULE}\nRepository: {full_name}\n{RULE}\n\n")
    out.write("## How to Use This File\n\n")
    out.write(USAGE_NOTE + "\n")
    out.write("## Repository Stats\n\n")
    out.write(f"- **Files included:** {stats.files_included} / {stats.total_files} total\n")
    out.write(f"- **Lines of code:** {stats.lines:,}\n")
    out.write(f"- **Characters:** {stats.chars:,}\n")
    out.write(f"- **Words:** {stats.words:,}\n")
    out.write(f"- **Size:** {size_bytes / 1024:.1f} KB\n")
    out.write(f"- **Estimated tokens:** ~{stats.estimated_tokens:,}\n\n")
    out.write("## File Tree\n\n```\n")
    out.write("\n".join(tree_lines))
    out.write("\n```\n\n")
    out.write("## Source Files\n\n")
    for f in files:
        out.write(f"### {f.path} ({f.line_count} lines)\n\n")
        out.write(f"```{f.language}\n{f.content}\n```\n\n")


def _write_xml(
    out: io.StringIO,
    full_name: str,
    files: Sequence[IncludedFile],
    tree_lines: Sequence[str],
    stats: PackStats,
    size_bytes: int,
) -> None:
    out.write(f'<repository name="{escape(full_name)}">\n')
    out.write("<file_summary>\n")
    out.write(
        "This file is a merged representation of the codebase, combined into a single document by repo_scan.\n",
    )
    out.write(USAGE_NOTE)
    out.write("</file_summary>\n")
    out.write(
        f'<stats files_included="{stats.files_included}" total_files="{stats.total_files}"'
        f' lines="{stats.lines}" chars="{stats.chars}" words="{stats.words}"'
        f' size_bytes="{size_bytes}" estimated_tokens="{stats.estimated_tokens}"/>\n',
    )
    out.write("<directory_structure>\n")
    out.write("\n".join(tree_lines))
    out.write("\n</directory_structure>\n")
    out.write("<files>\n")
    for f in files:
        lang = f' language="{f.language}"' if f.language else ""
        out.write(f'<file path="{escape(f.path)}"{lang} lines="{f.line_count}">\n')
        out.write(f"{f.content}\n</file>\n")
    out.write("</files>\n</repository>\n")


def _write_plain(
    out: io.StringIO,
    full_name: str,
    files: Sequence[IncludedFile],
    tree_lines: Sequence[str],
    stats: PackStats,
    size_bytes: int,
) -> None:
    out.write(f"Repository: {full_name}\n")
    out.write(f"Files included: {stats.files_included} / {stats.total_files}\n")
    out.write(f"Lines: {stats.lines}\nCharacters: {stats.chars}\nWords: {stats.words}\n")
    out.write(f"Size: {size_bytes / 1024:.1f} KB\nEstimated tokens: {stats.estimated_tokens}\n\n")
    out.write("=== File Tree ===\n")
    out.write("\n".join(tree_lines))
    out.write("\n\n")
    for f in files:
        out.write(f"=== {f.path} ===\n{f.content}\n\n")


_WRITERS = {
    PackStyle.MARKDOWN: _write_markdown,
    PackStyle.XML: _write_xml,
    PackStyle.PLAIN: _write_plain,
}


def assemble_document(
    owner: str,
    repo: str,
    files: Sequence[IncludedFile],
    *,
    candidates: Sequence[str],
    total_files: int,
    style: PackStyle = PackStyle.MARKDOWN,
    max_chars: int | None = None,
) -> PackDocument:
    """Assemble retrieved files into one document for an LLM context window.

    The document starts with a manifest (repository identity, stats and a tree
    of the candidate paths) followed by one section per file, in the order of
    `files`. Same input, same bytes out.

    Args:
        owner (str): repository owner
        repo (str): repository name
        files (Sequence[IncludedFile]): retrieved files, in filtered tree order
        candidates (Sequence[str]): the paths selected for retrieval, listed in the file tree
        total_files (int): number of blobs in the repository tree
        style (PackStyle): markdown (repomix-style), xml or plain
        max_chars (int | None): size ceiling; when exceeded the body is cut and
            `TRUNCATION_MARKER` is appended

    Returns:
        PackDocument: the body and its statistics
    """
    unique: list[IncludedFile] = []
    seen: set[str] = set()
    for f in files:
        if f.path not in seen:
            unique.append(f)
            seen.add(f.path)

    stats = compute_stats(unique, total_files)
    tree_lines = build_tree_lines(repo, candidates or [f.path for f in unique])
    out = io.StringIO()
    _WRITERS[PackStyle(style)](out, f"{owner}/{repo}", unique, tree_lines, stats, _utf8_size(unique))
    return PackDocument(body=apply_ceiling(out.getvalue(), max_chars), stats=stats)


def build_scan_context(
    files: Sequence[IncludedFile],
    tree: Sequence[TreeEntry],
    *,
    readme: str | None = None,
    manifest: str | None = None,
    max_chars: int = 200_000,
    tree_limit: int = 200,
) -> str:
    """Concatenate README, manifest, tree listing and files for the analysis prompt.

    Args:
        files (Sequence[IncludedFile]): retrieved source files
        tree (Sequence[TreeEntry]): the recursive tree listing
        readme (str | None): README content, if the repository has one
        manifest (str | None): package manifest content, if any
        max_chars (int): size ceiling of the context
        tree_limit (int): number of blob paths listed

    Returns:
        str: the context, ending with `TRUNCATION_MARKER` if it hit the ceiling
    """
    out = io.StringIO()
    if readme:
        out.write(f"=== {README_PATH} ===\n{readme}\n\n")
    if manifest:
        out.write(f"=== {MANIFEST_PATH} ===\n{manifest}\n\n")
    out.write(f"=== File Tree ({len(tree)} items) ===\n")
    out.write("\n".join(blob_paths(tree)[:tree_limit]))
    out.write("\n\n")
    already = {README_PATH if readme else "", MANIFEST_PATH if manifest else ""}
    for f in files:
        if f.path in already:
            continue
        out.write(f"=== {f.path} ===\n{f.content}\n\n")
    return apply_ceiling(out.getvalue(), max_chars)
