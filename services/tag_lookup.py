# ============================================================================
# GITHUB TAG LOOKUP
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Sync HTTP client for the GitHub git refs API
# PURPOSE: Resolve an action's version tag to a commit SHA
# CREATED: 15 OCT 2026
# ============================================================================
"""
GitHub Tag Lookup

Sync httpx client for the one external call the compiler makes:

    GET /repos/{owner}/{repo}/git/ref/tags/{tag}

Lightweight tags point straight at a commit. Annotated tags point at a
tag object, which is dereferenced with one more request:

    GET /repos/{owner}/{repo}/git/tags/{sha}

Every failure (HTTP status, connection error, timeout, malformed
payload) is raised as ResolutionError. No retries: the resolver records
the failure and never asks again during the run.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.config import get_defaults
from core.errors import ResolutionError
from core.models.action import is_sha

logger = logging.getLogger(__name__)


class GitHubTagLookup:
    """Looks up tag SHAs through the GitHub REST API."""

    def __init__(
        self,
        api_base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            api_base_url: REST API root (default from ResolverDefaults)
            token: Bearer token; anonymous when None
            timeout: Seconds per request
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        defaults = get_defaults().resolver
        self._base_url = (api_base_url or defaults.api_base_url).rstrip("/")
        self._token = token if token is not None else defaults.token
        self._timeout = httpx.Timeout(timeout or defaults.timeout_seconds)
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get(self, client: httpx.Client, repo: str, version: str, path: str) -> Dict[str, Any]:
        try:
            resp = client.get(path)
        except httpx.TimeoutException as e:
            raise ResolutionError(repo, version, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ResolutionError(repo, version, f"request failed: {e}") from e

        if resp.status_code == 404:
            raise ResolutionError(repo, version, "tag not found")
        if resp.status_code >= 400:
            raise ResolutionError(repo, version, f"GitHub API returned HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise ResolutionError(repo, version, "response is not JSON") from e
        if not isinstance(body, dict):
            raise ResolutionError(repo, version, "unexpected response payload")
        return body

    @staticmethod
    def _object(body: Dict[str, Any], repo: str, version: str) -> Dict[str, Any]:
        target = body.get("object")
        if not isinstance(target, dict):
            raise ResolutionError(repo, version, "response has no tag object")
        return target

    def lookup(self, repo: str, version: str) -> str:
        """
        Resolve a tag of a root repository to its commit SHA.

        Args:
            repo: owner/repo
            version: tag name

        Returns:
            40-character commit SHA

        Raises:
            ResolutionError: on any failure
        """
        logger.debug(f"Looking up {repo}@{version}")
        with httpx.Client(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            body = self._get(client, repo, version, f"/repos/{repo}/git/ref/tags/{version}")
            target = self._object(body, repo, version)

            if target.get("type") == "tag":
                body = self._get(client, repo, version, f"/repos/{repo}/git/tags/{target.get('sha')}")
                target = self._object(body, repo, version)

        sha = target.get("sha")
        if not isinstance(sha, str) or not is_sha(sha):
            raise ResolutionError(repo, version, "response has no commit SHA")
        return sha


__all__ = ["GitHubTagLookup"]
