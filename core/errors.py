# ============================================================================
# COMPILER EXCEPTIONS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Foundation - Error taxonomy
# PURPOSE: Typed, context-carrying errors raised during compilation
# CREATED: 12 OCT 2026
# ============================================================================
"""
Compiler Exceptions

Three families, all fatal in the primary compile path:
- ConfigurationError: authoring mistakes in the workflow (duplicate job,
  dangling dependency, malformed secret, bad branch prefix)
- ResolutionError: an action tag could not be pinned to a commit SHA
- SizeLimitError: an emitted value exceeds the platform ceiling

Each error keeps its context fields as attributes so callers and tests
can inspect them without parsing the message.
"""

from typing import List, Optional


class CompilerError(Exception):
    """Base exception for all compilation errors."""
    pass


# ============================================================================
# CONFIGURATION
# ============================================================================

class ConfigurationError(CompilerError):
    """Raised when the workflow declaration is invalid."""
    pass


class DuplicateJobError(ConfigurationError):
    """Raised when a job name is added twice to the same graph."""
    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job already exists: {job_name}")


class UnknownDependencyError(ConfigurationError):
    """Raised when a job needs a job that is not in the graph."""
    def __init__(self, job_name: str, dependency: str):
        self.job_name = job_name
        self.dependency = dependency
        super().__init__(
            f"Job '{job_name}' depends on non-existent job '{dependency}'"
        )


class CircularDependencyError(ConfigurationError):
    """Raised when job dependencies form a cycle."""
    def __init__(self, jobs: List[str]):
        self.jobs = list(jobs)
        super().__init__(f"Circular dependency detected involving jobs: {self.jobs}")


class InvalidSecretExpressionError(ConfigurationError):
    """
    Raised when a reusable-workflow secret is not a secrets expression.

    The offending value is not included in the message.
    """
    def __init__(self, job_name: str, secret_name: Optional[str] = None):
        self.job_name = job_name
        self.secret_name = secret_name
        target = f"secret '{secret_name}'" if secret_name else "a secret"
        super().__init__(
            f"Job '{job_name}': {target} must be a GitHub Actions secrets expression "
            f"like '${{{{ secrets.NAME }}}}'"
        )


class InvalidBranchPrefixError(ConfigurationError):
    """Raised when a repo-memory branch prefix is malformed."""
    def __init__(self, prefix: str, reason: str):
        self.prefix = prefix
        self.reason = reason
        super().__init__(f"Invalid branch-prefix '{prefix}': {reason}")


# ============================================================================
# RESOLUTION
# ============================================================================

class ResolutionError(CompilerError):
    """Raised when an action reference cannot be resolved to a SHA."""
    def __init__(self, repo: str, version: str, reason: str):
        self.repo = repo
        self.version = version
        self.reason = reason
        super().__init__(f"Failed to resolve {repo}@{version}: {reason}")


# ============================================================================
# SIZE LIMITS
# ============================================================================

class SizeLimitError(CompilerError):
    """Raised when a serialized value exceeds the expression size ceiling."""
    def __init__(self, name: str, size: int, limit: int):
        self.name = name
        self.size = size
        self.limit = limit
        super().__init__(
            f"{name} is {size} bytes, exceeds the maximum of {limit} bytes"
        )


__all__ = [
    "CompilerError",
    "ConfigurationError",
    "DuplicateJobError",
    "UnknownDependencyError",
    "CircularDependencyError",
    "InvalidSecretExpressionError",
    "InvalidBranchPrefixError",
    "ResolutionError",
    "SizeLimitError",
]
