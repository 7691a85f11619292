# ============================================================================
# JOB GRAPH BUILDER
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - Fixed-order construction of the job graph
# PURPOSE: Build every standard and custom job into one JobManager
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Graph Builder

Construction order (fixed, and the emission order):

    1. pre_activation       when a gate is configured
    2. activation           always
    3. agent                always
    4. safe_outputs         when the dispatch config is non-empty
    5. detection            when threat detection is enabled
    6. conclusion           always
    7. push_repo_memory     when repo-memory is configured
       update_cache_memory  when cache-memory needs saving after detection
    8. custom jobs          declaration order

After the memory jobs exist the conclusion job gains a dependency on
each of them. The graph is validated before it is returned.
"""

from typing import List

from compiler.activation import build_activation, build_agent, build_pre_activation
from compiler.context import BuildContext
from compiler.custom_jobs import build_custom_jobs
from compiler.memory import build_push_repo_memory, build_update_cache_memory
from compiler.safe_outputs import build_conclusion, build_detection, build_safe_outputs
from core.contracts import JobName
from core.logging import get_logger, ComponentType, log_context
from core.models import JobNode
from services.job_manager import JobManager

logger = get_logger(__name__, ComponentType.JOB_BUILDER)


class JobGraphBuilder:
    """Builds and validates the job graph for one workflow."""

    def __init__(self, ctx: BuildContext):
        self.ctx = ctx
        self.manager = JobManager()

    def _add(self, job: JobNode) -> None:
        with log_context(job_name=job.name):
            self.manager.add_job(job)

    def build(self) -> JobManager:
        """
        Build every job and validate the graph.

        Raises:
            ConfigurationError: any authoring error (duplicate job,
                unknown dependency, cycle, bad secret, bad branch prefix)
            ResolutionError: an action could not be pinned
            SizeLimitError: the dispatch config is too large
        """
        ctx = self.ctx

        if ctx.needs_pre_activation():
            self._add(build_pre_activation(ctx))
            ctx.pre_activation_created = True
        elif ctx.pre_activation_block() is not None:
            message = "jobs.pre-activation is ignored: no pre-activation check is configured"
            logger.warning(message)
            ctx.warnings.append(message)

        self._add(build_activation(ctx))
        ctx.activation_created = True

        self._add(build_agent(ctx))

        safe_outputs = build_safe_outputs(ctx)
        if safe_outputs is not None:
            self._add(safe_outputs)

        detection = build_detection(ctx)
        if detection is not None:
            self._add(detection)

        conclusion = build_conclusion(
            ctx,
            safe_outputs_created=safe_outputs is not None,
            detection_created=detection is not None,
        )
        self._add(conclusion)

        memory_jobs: List[JobNode] = []
        for builder in (build_push_repo_memory, build_update_cache_memory):
            job = builder(ctx)
            if job is not None:
                self._add(job)
                memory_jobs.append(job)
        for job in memory_jobs:
            conclusion.add_need(job.name)

        for job in build_custom_jobs(ctx):
            self._add(job)

        self.manager.validate()
        logger.info(
            f"Built {len(self.manager)} jobs for {ctx.workflow.workflow_id}: {self.manager.job_names()}"
        )
        return self.manager

    @property
    def standard_jobs(self) -> List[str]:
        """Standard jobs present in the graph, in construction order."""
        reserved = JobName.reserved()
        return [name for name in self.manager.job_names() if name in reserved]


__all__ = ["JobGraphBuilder"]
