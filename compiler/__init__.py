# ============================================================================
# COMPILER MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Workflow compiler
# PURPOSE: Build the job graph of a workflow and emit it
# CREATED: 18 OCT 2026
# ============================================================================
"""
Compiler Module

Usage:
    from compiler import Compiler
    from services import ActionCache, ActionResolver, GitHubTagLookup

    resolver = ActionResolver(ActionCache.for_repository("."), GitHubTagLookup())
    result = Compiler(resolver).compile_file(".github/workflows/triage.md")
"""

from compiler.context import BuildContext
from compiler.driver import Compiler, CompileResult
from compiler.job_builder import JobGraphBuilder

__all__ = [
    "BuildContext",
    "Compiler",
    "CompileResult",
    "JobGraphBuilder",
]
