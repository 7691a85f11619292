# ============================================================================
# ACTION RESOLVER
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Tag -> SHA resolution with memoization
# PURPOSE: Pin action references, at most one lookup per (repo, tag) per run
# CREATED: 15 OCT 2026
# ============================================================================
"""
Action Resolver

resolve_sha(repo, version):
    1. Normalize repo to its root (owner/repo)
    2. Cache hit on "root@version" -> return, no lookup
    3. Key failed earlier this run -> ResolutionError, no lookup
    4. Lookup: success is cached, failure is remembered for the run

The failed set lives only on the resolver instance. Successes persist
through the ActionCache; failures are retried by the next invocation.

The lookup is any object with `lookup(repo, version) -> sha` raising
ResolutionError (GitHubTagLookup in production, a mock in tests).
"""

from typing import Optional, Protocol, Set

from core.errors import ResolutionError
from core.logging import get_logger, log_context, ComponentType
from core.models.action import cache_key, root_repository
from services.action_cache import ActionCache

logger = get_logger(__name__, ComponentType.RESOLVER)


class TagLookup(Protocol):
    def lookup(self, repo: str, version: str) -> str:
        ...


class ActionResolver:
    """Resolves (repository, version) pairs to commit SHAs."""

    def __init__(
        self,
        cache: Optional[ActionCache] = None,
        lookup: Optional[TagLookup] = None,
        force_refresh: bool = False,
    ):
        """
        Args:
            cache: Persistent cache (in-memory cache when None)
            lookup: External tag lookup; when None every cache miss fails
            force_refresh: Ignore cached entries until looked up this run
        """
        self.cache = cache if cache is not None else ActionCache()
        self._lookup = lookup
        self.force_refresh = force_refresh
        self._failed: Set[str] = set()
        self._refreshed: Set[str] = set()

    @property
    def failed(self) -> frozenset:
        """Keys that failed to resolve during this run."""
        return frozenset(self._failed)

    def resolve_sha(self, repo: str, version: str) -> str:
        """
        Resolve a version tag to a commit SHA.

        Args:
            repo: owner/repo or owner/repo/sub/path
            version: tag name

        Returns:
            40-character commit SHA

        Raises:
            ResolutionError: lookup failed now or earlier this run
        """
        root = root_repository(repo)
        key = cache_key(root, version)

        if not self.force_refresh or key in self._refreshed:
            sha = self.cache.get(root, version)
            if sha is not None:
                logger.debug(f"Cache hit for {key}")
                return sha

        if key in self._failed:
            raise ResolutionError(root, version, "resolution previously failed this run")

        if self._lookup is None:
            self._failed.add(key)
            raise ResolutionError(root, version, "not in action cache and no lookup configured")

        with log_context(action=key):
            try:
                sha = self._lookup.lookup(root, version)
            except ResolutionError as e:
                self._failed.add(key)
                logger.warning(f"Could not resolve {key}: {e.reason}")
                raise

            self.cache.set(root, version, sha)
            self._refreshed.add(key)
            logger.info(f"Resolved {key} -> {sha}")
        return sha

    def lookup_fresh(self, repo: str, version: str) -> str:
        """
        Resolve bypassing the cache.

        Used by the staleness validator. Still honours the failed set and
        records the fresh SHA in the cache.
        """
        root = root_repository(repo)
        key = cache_key(root, version)
        if key in self._refreshed:
            return self.resolve_sha(root, version)
        if key in self._failed:
            raise ResolutionError(root, version, "resolution previously failed this run")
        if self._lookup is None:
            raise ResolutionError(root, version, "no lookup configured")
        try:
            sha = self._lookup.lookup(root, version)
        except ResolutionError:
            self._failed.add(key)
            raise
        self.cache.set(root, version, sha)
        self._refreshed.add(key)
        return sha


__all__ = ["ActionResolver", "TagLookup"]
