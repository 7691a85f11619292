# ============================================================================
# COMPILER ENGINE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Engine components
# PURPOSE: Expressions, dependency graph validation, step construction
# CREATED: 15 OCT 2026
# ============================================================================
"""
Compiler Engine Components

- expressions: run-condition and output expression builders
- graph: dependency graph and cycle detection
- scripts: Jinja2-rendered github-script bodies and step constructors
"""

from compiler.engine.expressions import (
    and_,
    or_,
    equals,
    not_equals,
    wrap,
    unwrap,
    references_job,
)
from compiler.engine.graph import DependencyGraph, TopologicalSorter
from compiler.engine.scripts import Step, StepFactory, render_script, render_memory_validation, run_step

__all__ = [
    # Expressions
    "and_",
    "or_",
    "equals",
    "not_equals",
    "wrap",
    "unwrap",
    "references_job",
    # Graph
    "DependencyGraph",
    "TopologicalSorter",
    # Steps
    "Step",
    "StepFactory",
    "render_script",
    "render_memory_validation",
    "run_step",
]
