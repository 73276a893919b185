"""Key-value state kept on the client side: analysis cache, feedback and repository preferences.

The stores wrap an injected `KeyValueStore` backend so the same policies work in
memory (tests, long-running processes) or on disk (the CLI). Expiry is enforced
by `TTLStore` itself; callers never compare timestamps.
"""

from __future__ import annotations

import json
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from repo_scan.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

ANALYSIS_CACHE_KEY = "analysis_cache"
FEEDBACK_KEY = "feedback"
PREFERENCES_KEY_PREFIX = "repo-prefs:"


class FeedbackType(StrEnum):
    HELPFUL = "helpful"
    NOT_RELEVANT = "not_relevant"
    DONT_UNDERSTAND = "dont_understand"
    LATER = "later"
    ALREADY_DONE = "already_done"


class KeyValueStore(Protocol):
    """Minimal string-keyed store of JSON-compatible values."""

    def get(self, key: str) -> Any | None: ...  # noqa: ANN401

    def set(self, key: str, value: Any) -> None: ...  # noqa: ANN401

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process backend."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:  # noqa: ANN401
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Backend persisting every key to one JSON document on disk.

    An unreadable or corrupt file is treated as empty.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("store_unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, key: str) -> Any | None:  # noqa: ANN401
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class CacheEntry(BaseModel):
    data: Any
    timestamp: float


class TTLStore:
    """A namespace of entries that expire `ttl_seconds` after they were written.

    Args:
        backend: where the namespace is stored.
        namespace: key of the namespace inside `backend`.
        ttl_seconds: lifetime of an entry.
        clock: returns the current time in seconds.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        namespace: str,
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def _entries(self) -> dict[str, Any]:
        raw = self.backend.get(self.namespace)
        return raw if isinstance(raw, dict) else {}

    def get(self, key: str) -> Any | None:  # noqa: ANN401
        """Return the value stored under `key`, or None when absent or expired."""
        raw = self._entries().get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate(raw)
        except ValidationError:
            return None
        if self.clock() - entry.timestamp > self.ttl_seconds:
            return None
        return entry.data

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        entries = self._entries()
        entries[key] = CacheEntry(data=value, timestamp=self.clock()).model_dump(mode="json")
        self.backend.set(self.namespace, entries)

    def delete(self, key: str) -> None:
        entries = self._entries()
        if entries.pop(key, None) is not None:
            self.backend.set(self.namespace, entries)

    def purge_expired(self) -> int:
        """Drop expired or unreadable entries; returns how many were removed."""
        entries = self._entries()
        now = self.clock()
        fresh: dict[str, Any] = {}
        for k, v in entries.items():
            try:
                entry = CacheEntry.model_validate(v)
            except ValidationError:
                continue
            if now - entry.timestamp <= self.ttl_seconds:
                fresh[k] = v
        removed = len(entries) - len(fresh)
        if removed:
            self.backend.set(self.namespace, fresh)
        return removed


class AnalysisCache:
    """Scan results keyed by repository full name (``owner/repo``), one hour by default."""

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = TTLStore(backend, ANALYSIS_CACHE_KEY, ttl_seconds=ttl_seconds, clock=clock)

    def get(self, repo_full_name: str) -> dict[str, Any] | None:
        return self._store.get(repo_full_name)

    def set(self, repo_full_name: str, report: dict[str, Any]) -> None:
        self._store.set(repo_full_name, report)

    def invalidate(self, repo_full_name: str) -> None:
        self._store.delete(repo_full_name)


class FeedbackStore:
    """User feedback per recommendation, keyed ``"{repo_full_name}::{title}"``."""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend

    @staticmethod
    def key(repo_full_name: str, title: str) -> str:
        return f"{repo_full_name}::{title}"

    def _all(self) -> dict[str, str]:
        raw = self.backend.get(FEEDBACK_KEY)
        return raw if isinstance(raw, dict) else {}

    def get(self, repo_full_name: str, title: str) -> FeedbackType | None:
        value = self._all().get(self.key(repo_full_name, title))
        try:
            return FeedbackType(value) if value else None
        except ValueError:
            return None

    def set(self, repo_full_name: str, title: str, feedback: FeedbackType | None) -> None:
        """Record feedback; None clears it."""
        records = self._all()
        k = self.key(repo_full_name, title)
        if feedback is None:
            records.pop(k, None)
        else:
            records[k] = str(FeedbackType(feedback))
        self.backend.set(FEEDBACK_KEY, records)


class RepoPreferences(BaseModel):
    pinned: list[int] = Field(default_factory=list)
    archived: list[int] = Field(default_factory=list)


class PreferencesStore:
    """Pinned and archived repository ids per user."""

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend

    @staticmethod
    def key(user_id: str) -> str:
        return f"{PREFERENCES_KEY_PREFIX}{user_id}"

    def load(self, user_id: str) -> RepoPreferences:
        raw = self.backend.get(self.key(user_id))
        if not isinstance(raw, dict):
            return RepoPreferences()
        return RepoPreferences(
            pinned=[i for i in raw.get("pinned") or [] if isinstance(i, int)],
            archived=[i for i in raw.get("archived") or [] if isinstance(i, int)],
        )

    def save(self, user_id: str, prefs: RepoPreferences) -> None:
        self.backend.set(self.key(user_id), prefs.model_dump())

    def toggle_pin(self, user_id: str, repo_id: int) -> RepoPreferences:
        prefs = self.load(user_id)
        if repo_id in prefs.pinned:
            prefs.pinned.remove(repo_id)
        else:
            prefs.pinned.append(repo_id)
        self.save(user_id, prefs)
        return prefs

    def toggle_archive(self, user_id: str, repo_id: int) -> RepoPreferences:
        """Archive or unarchive a repository; archiving also unpins it."""
        prefs = self.load(user_id)
        if repo_id in prefs.archived:
            prefs.archived.remove(repo_id)
        else:
            prefs.archived.append(repo_id)
            if repo_id in prefs.pinned:
                prefs.pinned.remove(repo_id)
        self.save(user_id, prefs)
        return prefs
