# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 15 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the workflow compiler:
    - WorkflowSpec and its parts (input, read-only)
    - SafeOutputsConfig and the per-kind option blocks
    - JobNode (one job of the compiled graph)
    - ActionReference (pinned action references)
"""

from core.models.workflow import (
    WorkflowSpec,
    CustomJobSpec,
    RepoMemoryEntry,
    CacheMemoryEntry,
    SkipQuery,
    RateLimitConfig,
    EngineConfig,
    validate_branch_prefix,
    sanitize_id,
)
from core.models.safe_outputs import SafeOutputsConfig, SafeOutputKindConfig, ThreatDetectionConfig
from core.models.job import JobNode
from core.models.action import ActionReference, ActionCacheEntry, root_repository, cache_key

__all__ = [
    # Workflow
    "WorkflowSpec",
    "CustomJobSpec",
    "RepoMemoryEntry",
    "CacheMemoryEntry",
    "SkipQuery",
    "RateLimitConfig",
    "EngineConfig",
    "validate_branch_prefix",
    "sanitize_id",
    # Safe outputs
    "SafeOutputsConfig",
    "SafeOutputKindConfig",
    "ThreatDetectionConfig",
    # Jobs
    "JobNode",
    # Actions
    "ActionReference",
    "ActionCacheEntry",
    "root_repository",
    "cache_key",
]
