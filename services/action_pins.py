# ============================================================================
# ACTION PINNING
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Rewrite `uses:` references to pinned SHAs
# PURPOSE: Primary pinning pass used while building step bodies
# CREATED: 15 OCT 2026
# ============================================================================
"""
Action Pinning

Every remote `uses:` reference the compiler emits goes through
ActionPinner, so nothing reaches the lock file on a mutable tag:

    actions/checkout@v5
        -> actions/checkout@93cb6efe18208431cddfb8368fd83d5badbf9bfd # v5

Left untouched:
    ./local/action        local actions
    docker://image:tag    container actions
    owner/repo@<sha>      already pinned

Resolution failure here is fatal (ResolutionError propagates). A malformed
reference is an authoring error (ConfigurationError).
"""

import copy
from typing import Any, Dict, List, Optional

from core.config import ActionDefaults, get_defaults
from core.errors import ConfigurationError
from core.logging import get_logger, ComponentType
from core.models.action import ActionReference
from services.action_resolver import ActionResolver

logger = get_logger(__name__, ComponentType.RESOLVER)


def is_remote_action(uses: str) -> bool:
    """Remote references are owner/repo[/path]@ref."""
    uses = uses.strip()
    if uses.startswith("./") or uses.startswith("../") or uses.startswith("docker://"):
        return False
    return "@" in uses and "/" in uses.split("@", 1)[0]


class ActionPinner:
    """Pins standard and user action references through a resolver."""

    def __init__(self, resolver: ActionResolver, actions: Optional[ActionDefaults] = None):
        self.resolver = resolver
        self.actions = actions or get_defaults().actions

    def pin(self, repo: str, version: Optional[str] = None) -> str:
        """
        Pinned reference for an action.

        Args:
            repo: owner/repo[/path]
            version: tag; the standard version from ActionDefaults if None

        Raises:
            ResolutionError: tag cannot be resolved
            KeyError: no version given and no standard version known
        """
        version = version or self.actions.version_for(repo)
        sha = self.resolver.resolve_sha(repo, version)
        return ActionReference(repo=repo, version=version, sha=sha).pinned()

    def pin_uses(self, uses: str) -> str:
        """
        Pin a raw `uses:` value, leaving local/docker/SHA references alone.

        Raises:
            ValueError: the value is not owner/repo[/path]@ref
        """
        if not is_remote_action(uses):
            return uses
        reference = ActionReference.parse(uses)
        if reference.is_pinned:
            return uses.strip()
        pinned = self.pin(reference.repo, reference.version)
        logger.debug(f"Pinned {uses} -> {pinned}")
        return pinned

    def pin_steps(self, steps: List[Dict[str, Any]], job_name: str = "") -> List[Dict[str, Any]]:
        """
        Copy of the steps with every remote `uses:` pinned.

        Raises:
            ConfigurationError: a `uses:` value is not a valid action reference
            ResolutionError: tag cannot be resolved
        """
        pinned_steps = []
        for index, step in enumerate(steps):
            step = copy.deepcopy(step)
            uses = step.get("uses")
            if isinstance(uses, str):
                try:
                    step["uses"] = self.pin_uses(uses)
                except ValueError as e:
                    label = step.get("name") or step.get("id") or f"#{index + 1}"
                    where = f"jobs.{job_name} step {label}" if job_name else f"step {label}"
                    raise ConfigurationError(f"{where}: invalid uses '{uses}': {e}") from e
            pinned_steps.append(step)
        return pinned_steps


__all__ = ["ActionPinner", "is_remote_action"]
