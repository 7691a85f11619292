# ============================================================================
# COMPILER DRIVER
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - Top-level compile entry point
# PURPOSE: Workflow -> dispatch config -> validated job graph -> lock file
# CREATED: 18 OCT 2026
# ============================================================================
"""
Compiler Driver

One compile() call:
    1. build the safe-output dispatch config and serialize it once
    2. build every job through JobGraphBuilder (pinning actions as the
       steps are built)
    3. validate the graph

compile_file() loads the markdown source first and writes the lock file
afterwards. The first fatal error aborts the compilation; nothing is
written for a workflow that failed.

Checkpoints:
    compile_started -> jobs_built -> graph_validated -> compile_completed
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from compiler.context import BuildContext
from compiler.engine.scripts import StepFactory
from compiler.job_builder import JobGraphBuilder
from core.config import Defaults, get_defaults
from core.errors import CompilerError
from core.fileio import atomic_write_text
from core.logging import get_logger, ComponentType, log_checkpoint, log_context
from core.models import WorkflowSpec
from services.action_pins import ActionPinner
from services.action_resolver import ActionResolver
from services.job_manager import JobManager
from services.lock_writer import LockFileWriter
from services.safe_output_config import SafeOutputConfigBuilder
from services.workflow_service import WorkflowService

logger = get_logger(__name__, ComponentType.COMPILER)


@dataclass
class CompileResult:
    """Outcome of one successful compilation."""
    workflow_id: str
    jobs: JobManager
    dispatch_config: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    lock_file: Optional[Path] = None
    lock_text: str = ""

    @property
    def job_names(self) -> List[str]:
        return self.jobs.job_names()


class Compiler:
    """Compiles workflow specifications into job graphs."""

    def __init__(
        self,
        resolver: ActionResolver,
        defaults: Optional[Defaults] = None,
        workflow_service: Optional[WorkflowService] = None,
    ):
        """
        Args:
            resolver: Action resolver used to pin every emitted `uses:`
            defaults: Configuration (global defaults when None)
            workflow_service: Loader for markdown sources
        """
        self.resolver = resolver
        self.defaults = defaults or get_defaults()
        self.pinner = ActionPinner(resolver, self.defaults.actions)
        self.safe_outputs = SafeOutputConfigBuilder(self.defaults.compiler)
        self.writer = LockFileWriter(self.defaults.compiler)
        self.workflow_service = workflow_service or WorkflowService()

    def compile(self, workflow: WorkflowSpec) -> CompileResult:
        """
        Compile one workflow into a validated job graph.

        Raises:
            ConfigurationError: authoring error in the workflow
            ResolutionError: an action reference could not be pinned
            SizeLimitError: the dispatch config exceeds the ceiling
        """
        with log_context(workflow_id=workflow.workflow_id, operation="compile"):
            log_checkpoint("compile_started", {"source": workflow.source_path})
            try:
                dispatch = self.safe_outputs.build(workflow.safe_outputs)
                dispatch_json = self.safe_outputs.serialize(dispatch) if dispatch else ""

                ctx = BuildContext(
                    workflow=workflow,
                    steps=StepFactory(self.pinner, self.defaults.compiler),
                    defaults=self.defaults.compiler,
                    dispatch=dispatch,
                    dispatch_json=dispatch_json,
                )
                builder = JobGraphBuilder(ctx)
                jobs = builder.build()
                log_checkpoint("jobs_built", {"jobs": jobs.job_names()})
                log_checkpoint("graph_validated", {"job_count": len(jobs)})
            except CompilerError as e:
                logger.error(f"Compilation failed: {e}")
                raise

            result = CompileResult(
                workflow_id=workflow.workflow_id,
                jobs=jobs,
                dispatch_config=dispatch,
                warnings=list(ctx.warnings),
            )
            log_checkpoint("compile_completed", {"warnings": len(result.warnings)})
            return result

    def compile_file(
        self,
        path: Union[str, Path],
        write: bool = True,
        output_dir: Optional[Union[str, Path]] = None,
    ) -> CompileResult:
        """
        Load, compile and (optionally) write the lock file.

        The lock file is rendered even when write=False so size limits
        are always enforced.
        """
        with log_context(source_path=str(path)):
            workflow = self.workflow_service.load(path)
            result = self.compile(workflow)

            with log_context(workflow_id=workflow.workflow_id, operation="emit"):
                result.lock_text = self.writer.render(workflow, result.jobs)
                if write:
                    target = self.writer.lock_path(workflow, output_dir)
                    atomic_write_text(target, result.lock_text)
                    result.lock_file = target
                    logger.info(f"Wrote {target}")
            return result


__all__ = ["Compiler", "CompileResult"]
