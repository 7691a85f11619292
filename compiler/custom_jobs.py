# ============================================================================
# CUSTOM JOBS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - User-declared jobs from `jobs:`
# PURPOSE: Convert CustomJobSpec declarations into JobNodes
# CREATED: 18 OCT 2026
# ============================================================================
"""
Custom Jobs

Declared jobs are built in declaration order, after every standard job.

Dependency inference:
    explicit `needs:`   used as declared
    no `needs:`         activation is added, unless the job's outputs or
                        result are referenced (`needs.<job>.`) by the
                        workflow `if`, another custom job's `if`, or the
                        markdown. Those readers can only see the job if
                        it finishes first, so it must not wait on
                        activation.

The pre_activation customisation block is skipped here; its steps and
outputs are merged into the pre_activation job.
"""

from typing import List

from compiler.context import BuildContext
from compiler.engine.expressions import references_job
from core.contracts import JobName
from core.errors import ConfigurationError
from core.logging import get_logger, ComponentType
from core.models import CustomJobSpec, JobNode

logger = get_logger(__name__, ComponentType.JOB_BUILDER)


def is_referenced(ctx: BuildContext, name: str) -> bool:
    """True if the workflow `if`, another custom job's `if` or the markdown reads this job."""
    if references_job(ctx.workflow.if_condition, name):
        return True
    if references_job(ctx.workflow.markdown, name):
        return True
    return any(
        references_job(other.if_condition, name)
        for other_name, other in ctx.custom_jobs.items()
        if other_name != name
    )


def _needs(ctx: BuildContext, name: str, job: CustomJobSpec) -> List[str]:
    if job.has_explicit_needs:
        needs: List[str] = []
        for dep in job.needs:
            if dep not in needs:
                needs.append(dep)
        return needs
    if ctx.activation_created and not is_referenced(ctx, name):
        return [JobName.ACTIVATION.value]
    return []


def build_custom_job(ctx: BuildContext, name: str, job: CustomJobSpec) -> JobNode:
    """
    Build one declared job.

    Raises:
        ConfigurationError: the name is reserved for a standard job
        InvalidSecretExpressionError: a reusable-workflow secret is not a
            secrets expression
    """
    if name in JobName.reserved():
        raise ConfigurationError(f"Job name '{name}' is reserved for a standard job")

    node = JobNode(
        name=name,
        needs=_needs(ctx, name, job),
        if_condition=job.if_condition,
        permissions=dict(job.permissions or {}),
        timeout_minutes=job.timeout_minutes,
        env=dict(job.env),
        outputs=dict(job.outputs),
    )

    if job.uses is not None:
        job.validate_secrets(name)
        node.uses = job.uses
        node.with_ = dict(job.with_)
        node.secrets = dict(job.secrets)
    else:
        node.runs_on = job.runs_on or ctx.defaults.runs_on
        node.steps = ctx.steps.pinner.pin_steps(job.steps, name)

    return node


def build_custom_jobs(ctx: BuildContext) -> List[JobNode]:
    """All declared jobs, in declaration order."""
    nodes = [build_custom_job(ctx, name, job) for name, job in ctx.custom_jobs.items()]
    if nodes:
        logger.debug(f"Built {len(nodes)} custom jobs: {[node.name for node in nodes]}")
    return nodes


__all__ = ["build_custom_job", "build_custom_jobs", "is_referenced"]
