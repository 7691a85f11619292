# ============================================================================
# ACTION CACHE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Persistent tag -> SHA map
# PURPOSE: Load, query and atomically persist .github/aw/actions-lock.json
# CREATED: 15 OCT 2026
# ============================================================================
"""
Action Cache

Persistent map from "owner/repo@version" to commit SHA, stored per
target repository:

    {
      "entries": {
        "actions/checkout@v5": {
          "repo": "actions/checkout",
          "sha": "93cb6efe18208431cddfb8368fd83d5badbf9bfd",
          "version": "v5"
        }
      }
    }

Read in full when constructed, written in full by save().

Write discipline:
    save() writes a temp file in the same directory and renames it over
    the cache file with os.replace() (core.fileio). Readers never see a partial file;
    with concurrent writers the last complete write wins.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from pydantic import ValidationError

from core.config import get_defaults
from core.fileio import atomic_write_text
from core.models.action import ActionCacheEntry, cache_key, root_repository

logger = logging.getLogger(__name__)


class ActionCache:
    """On-disk tag -> SHA cache, loaded once and saved on demand."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize and load the cache.

        Args:
            path: Lock file location. None gives an in-memory cache that
                  is never persisted.
        """
        self.path = Path(path) if path else None
        self._entries: Dict[str, ActionCacheEntry] = {}
        self._dirty = False
        self._lock = threading.Lock()
        self.load()

    @classmethod
    def for_repository(cls, repo_root: Union[str, Path]) -> "ActionCache":
        """Cache stored under a target repository's root."""
        relative = get_defaults().resolver.cache_relative_path
        return cls(Path(repo_root) / relative)

    # ------------------------------------------------------------------
    # LOAD / SAVE
    # ------------------------------------------------------------------

    def load(self) -> int:
        """
        Read the lock file.

        A missing file is an empty cache. A malformed file is logged and
        treated as empty; it is replaced on the next save.

        Returns:
            Number of entries loaded
        """
        self._entries = {}
        self._dirty = False
        if self.path is None or not self.path.exists():
            return 0

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable action cache {self.path}: {e}")
            return 0

        raw_entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(raw_entries, dict):
            logger.warning(f"Ignoring malformed action cache {self.path}: no 'entries' mapping")
            return 0

        for key, raw in raw_entries.items():
            try:
                entry = ActionCacheEntry.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping invalid action cache entry {key}: {e.error_count()} errors")
                continue
            self._entries[cache_key(entry.repo, entry.version)] = entry

        logger.debug(f"Loaded {len(self._entries)} action pins from {self.path}")
        return len(self._entries)

    def save(self) -> bool:
        """
        Persist the cache atomically.

        Returns:
            True if the file was written, False if nothing changed or the
            cache is in-memory only.
        """
        if self.path is None:
            return False

        with self._lock:
            if not self._dirty:
                return False

            payload = {"entries": {key: self._entries[key].model_dump() for key in self.keys()}}
            text = json.dumps(payload, indent=2, sort_keys=True) + "\n"

            atomic_write_text(self.path, text)
            self._dirty = False

        logger.info(f"Saved {len(self._entries)} action pins to {self.path}")
        return True

    # ------------------------------------------------------------------
    # ACCESS
    # ------------------------------------------------------------------

    def get(self, repo: str, version: str) -> Optional[str]:
        """SHA for (repo, version), keyed on the root repository."""
        entry = self._entries.get(cache_key(repo, version))
        return entry.sha if entry else None

    def set(self, repo: str, version: str, sha: str) -> bool:
        """
        Record a SHA.

        Returns:
            True if the cache changed
        """
        root = root_repository(repo)
        key = cache_key(root, version)
        entry = ActionCacheEntry(repo=root, version=version, sha=sha)
        with self._lock:
            current = self._entries.get(key)
            if current is not None and current.sha == sha:
                return False
            self._entries[key] = entry
            self._dirty = True
        return True

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def keys(self) -> Iterator[str]:
        return iter(sorted(self._entries))

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ActionCache"]
