# ============================================================================
# JOB NODE MODEL
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core model - One job of the compiled graph
# PURPOSE: Identity, dependency edges and body of an emitted job
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: JobNode
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Node Model

A JobNode is one execution unit of the compiled workflow.

Lifecycle:
- Built by the job builder and handed to JobManager.add_job()
- After insertion, only late appends happen (e.g. the conclusion job
  gaining memory-job dependencies)
- Discarded at the end of the compilation

The run condition, permissions and step bodies are opaque to the
graph: they are carried through to emission untouched.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class JobNode(BaseModel):
    """
    A job in the compiled workflow.

    `steps` and `uses` are mutually exclusive: a job either runs steps
    or calls a reusable workflow.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    needs: List[str] = Field(default_factory=list, description="Jobs that must complete first")
    if_condition: str = Field(default="", alias="if")
    runs_on: Optional[str] = Field(default=None, alias="runs-on")
    permissions: Dict[str, str] = Field(default_factory=dict)
    timeout_minutes: Optional[int] = Field(default=None, alias="timeout-minutes")
    environment: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)
    outputs: Dict[str, str] = Field(default_factory=dict)
    steps: List[Dict[str, Any]] = Field(default_factory=list)

    # Reusable workflow call
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    secrets: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_reusable(self) -> bool:
        return self.uses is not None

    def add_need(self, job_name: str) -> bool:
        """
        Append a dependency if not already present.

        Returns True if the edge was added.
        """
        if job_name in self.needs:
            return False
        self.needs.append(job_name)
        return True

    def depends_on(self, job_name: str) -> bool:
        return job_name in self.needs


__all__ = ["JobNode"]
