# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for limits, action versions, resolver
# CREATED: 12 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for compilation limits, the standard action versions
the compiler emits, and the action resolver.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class CompilerDefaults:
    """
    Defaults for job construction and emitted values.
    """
    # Platform ceiling for any single expression / env value (bytes)
    max_expression_size: int = 21 * 1024

    # Safe outputs
    default_max_patch_size_kb: int = 1024
    safe_outputs_timeout_minutes: int = 15
    detection_timeout_minutes: int = 10
    default_base_branch: str = "${{ github.ref_name }}"
    default_token_expression: str = "${{ secrets.GH_AW_GITHUB_TOKEN || secrets.GITHUB_TOKEN }}"
    app_token_expression: str = "${{ steps.safe-outputs-app-token.outputs.token }}"
    project_token_expression: str = "${{ secrets.GH_AW_PROJECT_GITHUB_TOKEN }}"

    # Pre-activation
    default_rate_limit_max: int = 5
    default_rate_limit_window: int = 60  # minutes
    default_roles: Tuple[str, ...] = ("admin", "maintainer", "write")
    safe_events: Tuple[str, ...] = ("workflow_dispatch", "schedule")

    # Runner
    runs_on: str = "ubuntu-latest"
    setup_action_destination: str = "/opt/gh-aw/actions"

    # Setup action: "dev" uses the local ./actions/setup, "release" pins
    # the remote setup action at action_tag
    action_mode: str = "dev"
    action_tag: str = ""
    local_setup_action: str = "./actions/setup"
    remote_setup_action: str = "github/gh-aw/actions/setup"

    @property
    def is_release_mode(self) -> bool:
        return self.action_mode == "release"

    @classmethod
    def from_env(cls) -> "CompilerDefaults":
        """Create from environment variables."""
        return cls(
            max_expression_size=int(os.getenv("AW_MAX_EXPRESSION_SIZE", 21 * 1024)),
            default_max_patch_size_kb=int(os.getenv("AW_DEFAULT_MAX_PATCH_SIZE_KB", 1024)),
            runs_on=os.getenv("AW_RUNS_ON", "ubuntu-latest"),
            action_mode=os.getenv("AW_ACTION_MODE", "dev"),
            action_tag=os.getenv("AW_ACTION_TAG", ""),
        )


@dataclass(frozen=True)
class ResolverDefaults:
    """
    Defaults for action tag resolution.

    One lookup per unique (repo, version) per run; the timeout bounds it.
    """
    api_base_url: str = "https://api.github.com"
    timeout_seconds: float = 10.0
    cache_relative_path: str = ".github/aw/actions-lock.json"
    token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ResolverDefaults":
        """Create from environment variables."""
        return cls(
            api_base_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
            timeout_seconds=float(os.getenv("AW_RESOLVER_TIMEOUT", 10.0)),
            cache_relative_path=os.getenv("AW_ACTIONS_LOCK_PATH", ".github/aw/actions-lock.json"),
            token=os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN"),
        )


@dataclass(frozen=True)
class ActionDefaults:
    """
    Version tags of the standard actions emitted by the compiler.

    Every entry is pinned to a SHA through the resolver before emission.
    """
    versions: Dict[str, str] = field(default_factory=lambda: {
        "actions/checkout": "v5",
        "actions/github-script": "v8",
        "actions/upload-artifact": "v5",
        "actions/download-artifact": "v6",
        "actions/cache": "v4",
        "actions/cache/save": "v4",
        "actions/cache/restore": "v4",
        "actions/create-github-app-token": "v2",
    })

    def version_for(self, repo: str) -> str:
        """Get the version tag for a standard action."""
        if repo not in self.versions:
            raise KeyError(f"No default version for action: {repo}")
        return self.versions[repo]

    @classmethod
    def from_env(cls) -> "ActionDefaults":
        """Create from environment variables."""
        versions = dict(cls().versions)
        checkout = os.getenv("AW_CHECKOUT_VERSION")
        if checkout:
            versions["actions/checkout"] = checkout
        github_script = os.getenv("AW_GITHUB_SCRIPT_VERSION")
        if github_script:
            versions["actions/github-script"] = github_script
        return cls(versions=versions)


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    compiler: CompilerDefaults = field(default_factory=CompilerDefaults)
    resolver: ResolverDefaults = field(default_factory=ResolverDefaults)
    actions: ActionDefaults = field(default_factory=ActionDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            compiler=CompilerDefaults.from_env(),
            resolver=ResolverDefaults.from_env(),
            actions=ActionDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


__all__ = [
    "CompilerDefaults",
    "ResolverDefaults",
    "ActionDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
