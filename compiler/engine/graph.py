# ============================================================================
# JOB DEPENDENCY GRAPH
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Engine - Dependency graph and cycle detection
# PURPOSE: Check that job `needs` edges form a DAG
# CREATED: 15 OCT 2026
# ============================================================================
"""
Job Dependency Graph

Built from the jobs held by the JobManager after every dependency has
been checked to exist. Used only for validation: emission order is the
insertion order of the jobs, never the topological order.

Features:
- Dependency graph construction from job `needs`
- Topological sort validation (cycle detection, Kahn's algorithm)
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from core.models import JobNode

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph for a set of jobs.

    A -> B means "B depends on A" (A must complete before B).
    """
    # Job name -> jobs that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Job name -> jobs it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # All job names, in insertion order
    nodes: List[str] = field(default_factory=list)

    def add_node(self, name: str) -> None:
        if name not in self.nodes:
            self.nodes.append(name)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """Add a dependency edge: to_node depends on from_node."""
        self.forward_edges[from_node].append(to_node)
        self.backward_edges[to_node].append(from_node)
        self.add_node(from_node)
        self.add_node(to_node)

    def get_dependencies(self, name: str) -> List[str]:
        """Get jobs that this job depends on."""
        return self.backward_edges.get(name, [])

    def get_dependents(self, name: str) -> List[str]:
        """Get jobs that depend on this job."""
        return self.forward_edges.get(name, [])

    @classmethod
    def from_jobs(cls, jobs: Iterable[JobNode]) -> "DependencyGraph":
        """Build the graph from job `needs` lists."""
        graph = cls()
        for job in jobs:
            graph.add_node(job.name)
            for dep in job.needs:
                graph.add_edge(dep, job.name)
        return graph


# ============================================================================
# TOPOLOGICAL SORT / CYCLE DETECTION
# ============================================================================

class TopologicalSorter:
    """Validates DAG structure and provides topological ordering."""

    def validate(self, graph: DependencyGraph) -> Tuple[bool, List[str], Optional[List[str]]]:
        """
        Validate that graph is a DAG (no cycles).

        Args:
            graph: Dependency graph

        Returns:
            Tuple of (is_valid, sorted_nodes, jobs_in_or_behind_cycle)
        """
        in_degree = {node: 0 for node in graph.nodes}

        for node in graph.nodes:
            for dep in graph.get_dependencies(node):
                if dep in in_degree:
                    in_degree[node] += 1

        # Start with jobs that have no dependencies
        queue = deque([node for node in graph.nodes if in_degree[node] == 0])
        sorted_nodes = []

        while queue:
            node = queue.popleft()
            sorted_nodes.append(node)

            for dependent in graph.get_dependents(node):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(sorted_nodes) != len(graph.nodes):
            remaining = [n for n in graph.nodes if n not in sorted_nodes]
            logger.debug(f"Cycle detected involving jobs: {remaining}")
            return False, sorted_nodes, remaining

        return True, sorted_nodes, None


__all__ = [
    "DependencyGraph",
    "TopologicalSorter",
]
