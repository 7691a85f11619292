# ============================================================================
# JOB MANAGER
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Insertion-ordered job graph
# PURPOSE: Hold the jobs of one compilation and validate their edges
# CREATED: 16 OCT 2026
# ============================================================================
"""
Job Manager

Owns the JobGraph of one compilation: an insertion-ordered mapping of
job name to JobNode.

Contract:
    add_job(job)   DuplicateJobError if the name exists, else append
    get_job(name)  (job, found) with no side effects
    validate()     UnknownDependencyError for a dangling `needs` entry,
                   CircularDependencyError for a cycle (a job needing
                   itself included)

Insertion order is emission order. It is never reordered by topology.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from core.errors import CircularDependencyError, DuplicateJobError, UnknownDependencyError
from core.logging import get_logger, ComponentType
from core.models import JobNode

logger = get_logger(__name__, ComponentType.JOB_BUILDER)


class JobManager:
    """Insertion-ordered collection of jobs for one compilation."""

    def __init__(self):
        self._jobs: Dict[str, JobNode] = {}

    def add_job(self, job: JobNode) -> None:
        """
        Add a job.

        Raises:
            DuplicateJobError: a job with this name already exists
        """
        if job.name in self._jobs:
            raise DuplicateJobError(job.name)
        self._jobs[job.name] = job
        logger.debug(f"Added job {job.name} (needs: {job.needs})")

    def get_job(self, name: str) -> Tuple[Optional[JobNode], bool]:
        """Look up a job. Returns (job, found)."""
        job = self._jobs.get(name)
        return job, job is not None

    def has_job(self, name: str) -> bool:
        return name in self._jobs

    def job_names(self) -> List[str]:
        return list(self._jobs)

    def jobs(self) -> List[JobNode]:
        """All jobs in insertion order."""
        return list(self._jobs.values())

    def validate(self) -> None:
        """
        Check every dependency exists and the graph is acyclic.

        Raises:
            UnknownDependencyError: first dangling edge, in insertion order
            CircularDependencyError: dependencies form a cycle
        """
        # Local import: compiler.engine depends on services
        from compiler.engine.graph import DependencyGraph, TopologicalSorter

        for job in self._jobs.values():
            for dep in job.needs:
                if dep not in self._jobs:
                    raise UnknownDependencyError(job.name, dep)

        graph = DependencyGraph.from_jobs(self._jobs.values())
        is_valid, _, remaining = TopologicalSorter().validate(graph)
        if not is_valid:
            raise CircularDependencyError(remaining)

        logger.debug(f"Validated {len(self._jobs)} jobs")

    def __iter__(self) -> Iterator[JobNode]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, name: str) -> bool:
        return name in self._jobs


__all__ = ["JobManager"]
