# ============================================================================
# LOCK FILE WRITER
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - YAML emission of a validated job graph
# PURPOSE: Render and write <workflow_id>.lock.yml
# CREATED: 18 OCT 2026
# ============================================================================
"""
Lock File Writer

Serializes a validated JobManager into workflow YAML with PyYAML:

    name: Issue Triage
    'on':
      issues:
        types:
          - opened
    permissions: {}
    jobs:
      activation:
        ...

Emission rules:
- jobs appear in insertion order, keys in a fixed order per job
- multi-line strings use literal block style (`|`)
- pinned `uses:` values keep their version tag as a trailing YAML comment
  (`uses: actions/checkout@<sha> # v5`)
- every line is checked against the expression size ceiling; the
  offending job and key are named in the SizeLimitError

Identical input renders byte-identical output.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from core.config import CompilerDefaults, get_defaults
from core.contracts import JobName
from core.errors import SizeLimitError
from core.logging import get_logger, ComponentType
from core.models import JobNode, WorkflowSpec
from core.models.action import SHA_PATTERN
from services.job_manager import JobManager

logger = get_logger(__name__, ComponentType.SERVICE)

# Keys of `on:` consumed by the compiler rather than the platform
GATE_KEYS = (
    "command", "slash_command", "stop-after", "reaction", "skip-if-match",
    "skip-if-no-match", "skip-roles", "lock-for-agent", "manual-approval",
)

# Events a command trigger listens on
COMMAND_EVENTS: Dict[str, Dict[str, List[str]]] = {
    "issues": {"types": ["opened", "edited", "reopened"]},
    "issue_comment": {"types": ["created", "edited"]},
    "pull_request": {"types": ["opened", "edited", "reopened"]},
    "pull_request_review_comment": {"types": ["created", "edited"]},
    "discussion": {"types": ["created", "edited"]},
    "discussion_comment": {"types": ["created", "edited"]},
}

_PINNED_LINE = re.compile(r"^(\s*(?:- )?uses: )(\S+@[0-9a-f]{40})$")
_JOB_LINE = re.compile(r"^  ([A-Za-z0-9_-]+):")
_JOB_KEY_LINE = re.compile(r"^    ([A-Za-z0-9_-]+):")


# ============================================================================
# YAML DUMPER
# ============================================================================

class LockFileDumper(yaml.SafeDumper):
    """SafeDumper with block-style lists indented under their key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, value: str):
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


LockFileDumper.add_representer(str, _represent_str)


def split_pinned(uses: str) -> Tuple[str, Optional[str]]:
    """
    Split `repo@sha # tag` into ("repo@sha", "tag").

    Unpinned references come back unchanged with no tag.
    """
    reference, _, comment = uses.partition("#")
    reference = reference.strip()
    _, _, ref = reference.rpartition("@")
    if not SHA_PATTERN.match(ref):
        return uses, None
    return reference, comment.strip() or None


# ============================================================================
# WRITER
# ============================================================================

class LockFileWriter:
    """Renders compiled job graphs as workflow YAML."""

    def __init__(self, defaults: Optional[CompilerDefaults] = None):
        self.defaults = defaults or get_defaults().compiler

    # ------------------------------------------------------------------
    # DOCUMENT
    # ------------------------------------------------------------------

    def render_on(self, workflow: WorkflowSpec) -> Any:
        """Trigger section without compiler-only keys; command triggers expand to events."""
        on = workflow.on
        if on is None:
            return {"workflow_dispatch": None}
        if not isinstance(on, dict):
            return on

        rendered = {key: value for key, value in on.items() if key not in GATE_KEYS}
        if workflow.command:
            for event, config in COMMAND_EVENTS.items():
                rendered.setdefault(event, {"types": list(config["types"])})
        return rendered

    def _job_document(self, job: JobNode, comments: Dict[str, str]) -> Dict[str, Any]:
        doc: Dict[str, Any] = {}
        if job.needs:
            doc["needs"] = job.needs[0] if len(job.needs) == 1 else list(job.needs)
        if job.if_condition:
            doc["if"] = job.if_condition
        if not job.is_reusable:
            doc["runs-on"] = job.runs_on or self.defaults.runs_on
        if job.environment:
            doc["environment"] = job.environment
        if job.permissions or job.name in JobName.reserved():
            doc["permissions"] = dict(job.permissions)
        if job.timeout_minutes is not None:
            doc["timeout-minutes"] = job.timeout_minutes
        if job.env:
            doc["env"] = dict(job.env)
        if job.outputs:
            doc["outputs"] = dict(job.outputs)

        if job.is_reusable:
            doc["uses"] = job.uses
            if job.with_:
                doc["with"] = dict(job.with_)
            if job.secrets:
                doc["secrets"] = dict(job.secrets)
            return doc

        steps = []
        for step in job.steps:
            step = dict(step)
            uses = step.get("uses")
            if isinstance(uses, str):
                reference, tag = split_pinned(uses)
                if tag:
                    comments[reference] = tag
                step["uses"] = reference
            steps.append(step)
        doc["steps"] = steps
        return doc

    def render(self, workflow: WorkflowSpec, jobs: JobManager) -> str:
        """
        Render the lock file text.

        Raises:
            SizeLimitError: an emitted line exceeds max_expression_size
        """
        comments: Dict[str, str] = {}
        document = {
            "name": workflow.name,
            "on": self.render_on(workflow),
            "permissions": {},
            "jobs": {job.name: self._job_document(job, comments) for job in jobs},
        }

        body = yaml.dump(
            document,
            Dumper=LockFileDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )

        lines = []
        for line in body.splitlines():
            match = _PINNED_LINE.match(line)
            if match and match.group(2) in comments:
                line = f"{line} # {comments[match.group(2)]}"
            lines.append(line)

        self._check_lines(lines)
        return self._header(workflow) + "\n".join(lines) + "\n"

    def _header(self, workflow: WorkflowSpec) -> str:
        source = workflow.source_path or f"{workflow.workflow_id}.md"
        return (
            "# This file was automatically generated by the agentic workflow compiler. DO NOT EDIT.\n"
            f"# To update this file, edit {Path(source).name} and recompile.\n"
            "#\n"
        )

    def _check_lines(self, lines: List[str]) -> None:
        limit = self.defaults.max_expression_size
        in_jobs = False
        job_name = ""
        key = ""
        for line in lines:
            if line == "jobs:":
                in_jobs = True
                continue
            if in_jobs:
                job_match = _JOB_LINE.match(line)
                if job_match:
                    job_name, key = job_match.group(1), ""
                key_match = _JOB_KEY_LINE.match(line)
                if key_match:
                    key = key_match.group(1)

            size = len(line.encode("utf-8"))
            if size > limit:
                name = ".".join(part for part in (job_name, key) if part) or "workflow"
                logger.error(f"Line in {name} is {size} bytes (limit {limit})")
                raise SizeLimitError(f"jobs.{name}" if job_name else name, size, limit)

    # ------------------------------------------------------------------
    # FILES
    # ------------------------------------------------------------------

    def lock_path(self, workflow: WorkflowSpec, directory: Optional[Union[str, Path]] = None) -> Path:
        """<workflow_id>.lock.yml beside the source, or in `directory`."""
        if directory is not None:
            return Path(directory) / workflow.lock_file_name
        if workflow.source_path:
            return Path(workflow.source_path).with_name(workflow.lock_file_name)
        return Path.cwd() / workflow.lock_file_name


__all__ = ["LockFileWriter", "LockFileDumper", "split_pinned", "GATE_KEYS", "COMMAND_EVENTS"]
