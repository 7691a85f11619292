# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# LAST_REVIEWED: 15 OCT 2026
# ============================================================================

from core.contracts import JobName, StepID, StepOutput, PermissionLevel, SafeOutputKind
from core.errors import (
    CompilerError,
    ConfigurationError,
    DuplicateJobError,
    UnknownDependencyError,
    CircularDependencyError,
    ResolutionError,
    SizeLimitError,
)
from core.models import (
    WorkflowSpec,
    CustomJobSpec,
    SafeOutputsConfig,
    JobNode,
    ActionReference,
)

__all__ = [
    # Enums
    "JobName",
    "StepID",
    "StepOutput",
    "PermissionLevel",
    "SafeOutputKind",
    # Errors
    "CompilerError",
    "ConfigurationError",
    "DuplicateJobError",
    "UnknownDependencyError",
    "CircularDependencyError",
    "ResolutionError",
    "SizeLimitError",
    # Models
    "WorkflowSpec",
    "CustomJobSpec",
    "SafeOutputsConfig",
    "JobNode",
    "ActionReference",
]
