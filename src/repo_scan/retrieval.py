from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from repo_scan.config import IncludedFile
from repo_scan.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repo_scan.github import GitHubClient


def batched(paths: Sequence[str], size: int) -> list[Sequence[str]]:
    """Split `paths` into consecutive batches of at most `size` items."""
    return [paths[i : i + size] for i in range(0, len(paths), size)]


async def retrieve_files(
    client: GitHubClient,
    owner: str,
    repo: str,
    paths: Sequence[str],
    *,
    batch_size: int = 10,
    max_file_bytes: int = 256 * 1024,
) -> list[IncludedFile]:
    """Fetch the content of `paths` in fixed-size concurrent batches.

    Each batch is awaited completely before the next one starts, which bounds the
    number of outstanding requests. Retrieval is best effort: a file that fails
    to download (or is empty) is left out of the result. The result keeps the
    order of `paths`, whatever order the downloads complete in.

    Args:
        client (GitHubClient): the authenticated GitHub client
        owner (str): repository owner
        repo (str): repository name
        paths (Sequence[str]): candidate paths, already filtered and capped
        batch_size (int): number of concurrent downloads per batch
        max_file_bytes (int): per-file content cap in bytes

    Returns:
        list[IncludedFile]: the retrieved files, in input order
    """
    files: list[IncludedFile] = []
    for batch in batched(paths, max(1, batch_size)):
        contents = await asyncio.gather(
            *(client.fetch_file(owner, repo, path, max_bytes=max_file_bytes) for path in batch),
        )
        files.extend(
            IncludedFile(path=path, content=content)
            for path, content in zip(batch, contents, strict=True)
            if content
        )
    skipped = len(paths) - len(files)
    logger.info("files_retrieved", owner=owner, repo=repo, retrieved=len(files), skipped=skipped)
    return files
