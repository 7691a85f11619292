# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Service layer
# PURPOSE: Loading, graph management, dispatch config, action pinning, emission
# CREATED: 16 OCT 2026
# ============================================================================
"""
Services Module

Services used by the compiler driver:
- WorkflowService: markdown + frontmatter -> WorkflowSpec
- JobManager: insertion-ordered job graph with validation
- SafeOutputConfigBuilder: dispatch configuration for the safe_outputs job
- ActionCache / ActionResolver / ActionPinner: tag -> SHA pinning
- ActionValidator: advisory staleness check of compiled lock files
- LockFileWriter: YAML emission

Usage:
    from services import ActionCache, ActionResolver, GitHubTagLookup

    cache = ActionCache.for_repository(".")
    resolver = ActionResolver(cache, GitHubTagLookup())
    sha = resolver.resolve_sha("actions/checkout", "v5")
"""

from .workflow_service import WorkflowService, split_frontmatter
from .job_manager import JobManager
from .safe_output_config import SafeOutputConfigBuilder, HANDLER_CONFIG_ENV
from .action_cache import ActionCache
from .tag_lookup import GitHubTagLookup
from .action_resolver import ActionResolver
from .action_pins import ActionPinner
from .action_validator import ActionValidator, StalenessReport, StalenessWarning
from .lock_writer import LockFileWriter

__all__ = [
    "WorkflowService",
    "split_frontmatter",
    "JobManager",
    "SafeOutputConfigBuilder",
    "HANDLER_CONFIG_ENV",
    "ActionCache",
    "GitHubTagLookup",
    "ActionResolver",
    "ActionPinner",
    "ActionValidator",
    "StalenessReport",
    "StalenessWarning",
    "LockFileWriter",
]
