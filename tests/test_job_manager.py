# ============================================================================
# JOB MANAGER TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - Job graph container and validation
# PURPOSE: Verify add/get/validate semantics of JobManager
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Manager Tests

Pure unit tests: no resolver, no I/O.

Run with:
    pytest tests/test_job_manager.py -v
"""

import pytest

from compiler.engine.graph import DependencyGraph, TopologicalSorter
from core.errors import (
    CircularDependencyError,
    ConfigurationError,
    DuplicateJobError,
    UnknownDependencyError,
)
from core.models import JobNode
from services.job_manager import JobManager


def _job(name, needs=None):
    return JobNode(name=name, needs=list(needs or []))


# ============================================================================
# ADD / GET
# ============================================================================

class TestAddJob:
    """Insertion, lookup and duplicate detection."""

    def test_add_and_get(self):
        manager = JobManager()
        manager.add_job(_job("A"))

        job, found = manager.get_job("A")
        assert found is True
        assert job.name == "A"

    def test_get_missing_job(self):
        job, found = JobManager().get_job("missing")
        assert job is None
        assert found is False

    def test_duplicate_name_rejected(self):
        manager = JobManager()
        manager.add_job(_job("A"))

        with pytest.raises(DuplicateJobError, match="Job already exists: A") as exc_info:
            manager.add_job(_job("A"))
        assert exc_info.value.job_name == "A"
        assert len(manager) == 1

    def test_duplicate_is_a_configuration_error(self):
        manager = JobManager()
        manager.add_job(_job("A"))
        with pytest.raises(ConfigurationError):
            manager.add_job(_job("A", needs=["B"]))

    def test_insertion_order_preserved(self):
        manager = JobManager()
        for name in ("zeta", "alpha", "mid"):
            manager.add_job(_job(name))

        assert manager.job_names() == ["zeta", "alpha", "mid"]
        assert [job.name for job in manager] == ["zeta", "alpha", "mid"]
        assert "alpha" in manager
        assert manager.has_job("mid")
        assert not manager.has_job("other")

    def test_late_need_append_visible(self):
        manager = JobManager()
        manager.add_job(_job("conclusion", needs=["agent"]))
        job, _ = manager.get_job("conclusion")

        assert job.add_need("push_repo_memory") is True
        assert job.add_need("push_repo_memory") is False
        assert manager.get_job("conclusion")[0].needs == ["agent", "push_repo_memory"]


# ============================================================================
# VALIDATE
# ============================================================================

class TestValidate:
    """Dependency existence and cycle detection."""

    def test_valid_chain(self):
        manager = JobManager()
        manager.add_job(_job("A"))
        manager.add_job(_job("B", needs=["A"]))
        manager.add_job(_job("C", needs=["A", "B"]))
        manager.validate()

    def test_unknown_dependency(self):
        manager = JobManager()
        manager.add_job(_job("A", needs=["B"]))

        with pytest.raises(UnknownDependencyError, match="depends on non-existent job 'B'") as exc_info:
            manager.validate()
        assert exc_info.value.job_name == "A"
        assert exc_info.value.dependency == "B"

    def test_first_dangling_edge_in_insertion_order(self):
        manager = JobManager()
        manager.add_job(_job("A", needs=["X"]))
        manager.add_job(_job("B", needs=["Y"]))

        with pytest.raises(UnknownDependencyError) as exc_info:
            manager.validate()
        assert exc_info.value.dependency == "X"

    def test_two_job_cycle(self):
        manager = JobManager()
        manager.add_job(_job("A", needs=["B"]))
        manager.add_job(_job("B", needs=["A"]))

        with pytest.raises(CircularDependencyError, match="Circular dependency") as exc_info:
            manager.validate()
        assert set(exc_info.value.jobs) == {"A", "B"}

    def test_self_dependency_is_a_cycle(self):
        manager = JobManager()
        manager.add_job(_job("A", needs=["A"]))

        with pytest.raises(CircularDependencyError):
            manager.validate()

    def test_empty_graph_is_valid(self):
        JobManager().validate()


# ============================================================================
# GRAPH
# ============================================================================

class TestDependencyGraph:
    """DependencyGraph construction and topological validation."""

    def test_from_jobs_edges(self):
        graph = DependencyGraph.from_jobs([_job("A"), _job("B", needs=["A"])])

        assert graph.nodes == ["A", "B"]
        assert graph.get_dependencies("B") == ["A"]
        assert graph.get_dependents("A") == ["B"]
        assert graph.get_dependencies("A") == []

    def test_sorted_order(self):
        graph = DependencyGraph.from_jobs([
            _job("C", needs=["B"]),
            _job("B", needs=["A"]),
            _job("A"),
        ])
        is_valid, order, remaining = TopologicalSorter().validate(graph)

        assert is_valid is True
        assert order == ["A", "B", "C"]
        assert remaining is None

    def test_jobs_behind_cycle_reported(self):
        graph = DependencyGraph.from_jobs([
            _job("A"),
            _job("B", needs=["C"]),
            _job("C", needs=["B"]),
            _job("D", needs=["C"]),
        ])
        is_valid, order, remaining = TopologicalSorter().validate(graph)

        assert is_valid is False
        assert order == ["A"]
        assert remaining == ["B", "C", "D"]
