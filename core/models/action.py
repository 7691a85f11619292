# ============================================================================
# ACTION REFERENCE MODELS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core model - Pinned action references
# PURPOSE: Parse, normalize and format owner/repo[/path]@ref references
# LAST_REVIEWED: 15 OCT 2026
# EXPORTS: ActionReference, ActionCacheEntry
# DEPENDENCIES: pydantic
# ============================================================================
"""
Action Reference Models

An action reference names an external step implementation:

    actions/checkout@v5
    github/codeql-action/upload-sarif@v3

After pinning it carries the commit SHA and keeps the tag as a comment:

    actions/checkout@93cb6efe18208431cddfb8368fd83d5badbf9bfd # v5

Only the 40-hex SHA is authoritative; the comment is advisory.
Subpath references share tags with their root repository, so the cache
key always uses the root (first two path segments).
"""

import re
from typing import Optional
from pydantic import BaseModel, Field, field_validator


SHA_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def root_repository(repo: str) -> str:
    """Reduce owner/repo/sub/path to owner/repo."""
    parts = repo.split("/")
    if len(parts) <= 2:
        return repo
    return "/".join(parts[:2])


def cache_key(repo: str, version: str) -> str:
    """Cache key for a (repository, version) pair, keyed on the root."""
    return f"{root_repository(repo)}@{version}"


def is_sha(value: str) -> bool:
    return bool(SHA_PATTERN.match(value))


class ActionReference(BaseModel):
    """An action reference, pinned once `sha` is set."""

    repo: str = Field(..., min_length=3)
    version: str = Field(..., min_length=1)
    sha: Optional[str] = None

    @field_validator("sha")
    @classmethod
    def validate_sha(cls, v):
        if v is not None and not SHA_PATTERN.match(v):
            raise ValueError(f"not a 40-character hex SHA: {v}")
        return v

    @classmethod
    def parse(cls, uses: str) -> "ActionReference":
        """
        Parse a `uses:` value.

        Raises:
            ValueError: if the value has no @ref part
        """
        uses = uses.strip()
        comment = None
        if "#" in uses:
            uses, comment = (part.strip() for part in uses.split("#", 1))
        if "@" not in uses:
            raise ValueError(f"Action reference has no version: {uses}")
        repo, ref = uses.rsplit("@", 1)
        if is_sha(ref):
            return cls(repo=repo, version=comment or ref, sha=ref)
        return cls(repo=repo, version=ref)

    @property
    def root(self) -> str:
        return root_repository(self.repo)

    @property
    def cache_key(self) -> str:
        return cache_key(self.repo, self.version)

    @property
    def is_pinned(self) -> bool:
        return self.sha is not None

    def pinned(self) -> str:
        """Wire format: repo@sha # version."""
        if self.sha is None:
            raise ValueError(f"Action reference is not pinned: {self.repo}@{self.version}")
        return f"{self.repo}@{self.sha} # {self.version}"

    def __str__(self) -> str:
        if self.sha is None:
            return f"{self.repo}@{self.version}"
        return self.pinned()


class ActionCacheEntry(BaseModel):
    """One entry of the persistent actions lock file."""

    repo: str
    version: str
    sha: str

    @field_validator("sha")
    @classmethod
    def validate_sha(cls, v):
        if not SHA_PATTERN.match(v):
            raise ValueError(f"not a 40-character hex SHA: {v}")
        return v


__all__ = [
    "ActionReference",
    "ActionCacheEntry",
    "SHA_PATTERN",
    "root_repository",
    "cache_key",
    "is_sha",
]
