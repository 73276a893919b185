from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from repo_scan.config import (
    BINARY_EXTENSIONS,
    EXT2LANG,
    LOCKFILES,
    SKIP_DIRS,
    SOURCE_EXTENSIONS,
    EntryKind,
    TreeEntry,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def file_extension(path: str) -> str:
    """Return the lower-cased extension of the final path segment.

    Args:
        path (str): a repository-relative path using POSIX separators

    Returns:
        str: the extension including the dot (e.g. ".ts"), or "" when there is none
    """
    return PurePosixPath(path).suffix.lower()


def file_language(path: str) -> str:
    """Code fence language for a path, or "" when the extension is unknown."""
    return EXT2LANG.get(file_extension(path), "")


def in_skipped_dir(path: str) -> bool:
    """Check whether any directory segment of `path` is a skipped directory.

    Segments are compared exactly, so `node_modules_backup/` or a file named
    `target-audience.md` are not affected by the `node_modules` and `target` rules.

    Args:
        path (str): a repository-relative path using POSIX separators

    Returns:
        bool: True if one of the directory segments is in `SKIP_DIRS`
    """
    parts = path.strip("/").split("/")
    return any(part in SKIP_DIRS for part in parts[:-1])


def should_include(path: str) -> bool:
    """Decide whether a repository path is worth packing.

    The checks form an ordered chain:

    1) reject paths under a skipped directory (dependency, build or VCS folders),
    2) reject lockfiles,
    3) reject binary and media extensions,
    4) accept only allow-listed source/text extensions.

    A path without an extension is always rejected.

    Args:
        path (str): a repository-relative path using POSIX separators

    Returns:
        bool: True if the file should be retrieved and packed
    """
    if not path or in_skipped_dir(path):
        return False
    if PurePosixPath(path).name in LOCKFILES:
        return False
    ext = file_extension(path)
    if not ext or ext in BINARY_EXTENSIONS:
        return False
    return ext in SOURCE_EXTENSIONS


def count_blobs(tree: Iterable[TreeEntry]) -> int:
    """Number of files (blobs) in a tree listing."""
    return sum(1 for entry in tree if entry.kind == EntryKind.BLOB)


def blob_paths(tree: Iterable[TreeEntry]) -> list[str]:
    return [entry.path for entry in tree if entry.kind == EntryKind.BLOB]


def select_candidates(tree: Sequence[TreeEntry], max_files: int) -> list[str]:
    """Pick the paths to retrieve from a tree listing.

    Keeps blobs accepted by `should_include`, in tree order, without duplicates,
    and stops once `max_files` paths have been selected.

    Args:
        tree (Sequence[TreeEntry]): the recursive tree listing
        max_files (int): the maximum number of paths to return

    Returns:
        list[str]: the candidate paths, in tree order
    """
    selected: list[str] = []
    seen: set[str] = set()
    for entry in tree:
        if len(selected) >= max_files:
            break
        if entry.kind != EntryKind.BLOB or entry.path in seen:
            continue
        if should_include(entry.path):
            selected.append(entry.path)
            seen.add(entry.path)
    return selected


def build_tree_lines(root_name: str, rel_paths: Sequence[str]) -> list[str]:
    """Build a visual tree representation of file paths.

    Args:
        root_name (str): the name to use for the root of the tree
        rel_paths (Sequence[str]): the file paths relative to the root, using POSIX separators (e.g. "src/main.py")

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    rels = sorted(
        {p.strip("/") for p in rel_paths if p.strip("/")},
        key=str.lower,
    )
    tree: dict[str, Any] = {}
    for rp in rels:
        cur = tree
        parts = rp.split("/")
        for i, part in enumerate(parts):
            if i == len(parts) - 1:
                cur.setdefault("__files__", set()).add(part)
            else:
                cur = cur.setdefault(part, {})

    lines: list[str] = [root_name]

    def walk(node: dict[str, Any], prefix: str) -> None:
        dirs = sorted([k for k in node if k != "__files__"], key=str.lower)
        files = sorted(node.get("__files__", set()), key=str.lower)
        entries: list[tuple[str, str, Any]] = []
        entries.extend(("dir", d, node[d]) for d in dirs)
        entries.extend(("file", f, None) for f in files)
        for idx, (kind, name, child) in enumerate(entries):
            last = idx == len(entries) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + name + ("/" if kind == "dir" else ""))
            if kind == "dir":
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(tree, "")
    return lines


def truncate_bytes(data: bytes, max_bytes: int) -> str:
    """Decode at most `max_bytes` bytes as UTF-8, replacing undecodable sequences.

    A multi-byte character cut at the boundary is dropped rather than replaced.

    Args:
        data (bytes): raw file content
        max_bytes (int): maximum number of bytes kept

    Returns:
        str: the decoded, possibly truncated text
    """
    if len(data) <= max_bytes:
        return data.decode("utf-8", errors="replace")
    head = data[:max_bytes]
    # back off over a trailing partial UTF-8 sequence (at most 3 continuation bytes)
    for cut in range(len(head), max(len(head) - 4, 0), -1):
        try:
            return head[:cut].decode("utf-8")
        except UnicodeDecodeError:
            continue
    return head.decode("utf-8", errors="replace")
