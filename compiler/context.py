# ============================================================================
# BUILD CONTEXT
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - Per-compilation state shared by the job builders
# PURPOSE: Derived facts about one workflow (custom jobs, gates, dispatch)
# CREATED: 17 OCT 2026
# ============================================================================
"""
Build Context

One BuildContext is created per compile() call and threaded through the
job builders. It holds the parsed workflow, the step factory and the
dispatch configuration, and answers the questions several builders ask:

- which custom jobs exist (the pre-activation customisation block is
  not one of them)
- which custom jobs run before activation
- whether a condition or text references a custom job
- whether the pre-activation role check is needed

Nothing here mutates the workflow.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from compiler.engine.expressions import references_job
from compiler.engine.scripts import StepFactory
from core.config import CompilerDefaults
from core.contracts import JobName, PRE_ACTIVATION_ALIASES
from core.models import CustomJobSpec, WorkflowSpec

POST_AGENT_JOBS = frozenset({
    JobName.AGENT.value,
    JobName.SAFE_OUTPUTS.value,
    JobName.DETECTION.value,
    JobName.CONCLUSION.value,
    JobName.PUSH_REPO_MEMORY.value,
    JobName.UPDATE_CACHE_MEMORY.value,
})


@dataclass
class BuildContext:
    """State for building the jobs of one workflow."""
    workflow: WorkflowSpec
    steps: StepFactory
    defaults: CompilerDefaults
    dispatch: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    dispatch_json: str = ""
    pre_activation_created: bool = False
    activation_created: bool = False
    warnings: List[str] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Custom jobs
    # ------------------------------------------------------------------

    @property
    def custom_jobs(self) -> Dict[str, CustomJobSpec]:
        """Declared jobs, in declaration order, minus the pre-activation block."""
        return {
            name: job for name, job in self.workflow.jobs.items()
            if name not in PRE_ACTIVATION_ALIASES
        }

    def before_activation_jobs(self) -> List[str]:
        """Custom jobs that explicitly need pre_activation and not activation."""
        return [
            name for name, job in self.custom_jobs.items()
            if job.depends_on(JobName.PRE_ACTIVATION.value)
            and not job.depends_on(JobName.ACTIVATION.value)
        ]

    def pre_activation_block(self) -> Optional[CustomJobSpec]:
        """The `jobs.pre_activation` customisation block, if declared."""
        for alias in PRE_ACTIVATION_ALIASES:
            if alias in self.workflow.jobs:
                return self.workflow.jobs[alias]
        return None

    def runs_after_agent(self, name: str) -> bool:
        """
        True if a custom job needs, directly or through other custom jobs,
        the agent job or a job that runs after it.
        """
        seen: Set[str] = set()
        pending = [name]
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            job = self.custom_jobs.get(current)
            if job is None or not job.needs:
                continue
            for dep in job.needs:
                if dep in POST_AGENT_JOBS:
                    return True
                pending.append(dep)
        return False

    def references_custom_job(self, text: str) -> bool:
        return any(references_job(text, name) for name in self.custom_jobs)

    def referenced_custom_jobs(self, text: str) -> List[str]:
        return [name for name in self.custom_jobs if references_job(text, name)]

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def needs_role_check(self) -> bool:
        """
        Membership check for the triggering actor.

        Skipped for `roles: all`. Always run for command workflows.
        Otherwise skipped only when every trigger is a safe event;
        workflow_dispatch counts as safe only when `write` is an
        allowed role.
        """
        workflow = self.workflow
        if workflow.roles_all:
            return False
        if workflow.command:
            return True

        events = workflow.trigger_events()
        if not events:
            return True
        if any(event not in self.defaults.safe_events for event in events):
            return True
        if "workflow_dispatch" in events and "write" not in workflow.roles:
            return True
        return False

    def needs_pre_activation(self) -> bool:
        workflow = self.workflow
        return (
            self.needs_role_check()
            or bool(workflow.stop_time)
            or workflow.skip_if_match is not None
            or workflow.skip_if_no_match is not None
            or bool(workflow.skip_roles)
            or bool(workflow.command)
            or workflow.rate_limit is not None
        )

    def engine_env(self) -> Dict[str, str]:
        """GH_AW_ENGINE_* values for the configured engine."""
        engine = self.workflow.engine
        env: Dict[str, str] = {}
        if engine is None:
            return env
        if engine.id:
            env["GH_AW_ENGINE_ID"] = engine.id
        if engine.version:
            env["GH_AW_ENGINE_VERSION"] = engine.version
        if engine.model:
            env["GH_AW_ENGINE_MODEL"] = engine.model
        return env

    # ------------------------------------------------------------------
    # Safe outputs
    # ------------------------------------------------------------------

    @property
    def has_safe_outputs(self) -> bool:
        return self.workflow.safe_outputs is not None

    @property
    def threat_detection_enabled(self) -> bool:
        safe_outputs = self.workflow.safe_outputs
        return safe_outputs is not None and safe_outputs.threat_detection_enabled


__all__ = ["BuildContext", "POST_AGENT_JOBS"]
