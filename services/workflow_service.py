# ============================================================================
# WORKFLOW SERVICE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Workflow source loading
# PURPOSE: Parse markdown workflows (YAML frontmatter + body) into WorkflowSpec
# CREATED: 16 OCT 2026
# ============================================================================
"""
Workflow Service

Loads workflow sources from markdown files:

    ---
    on:
      issues:
        types: [opened]
    safe-outputs:
      add-comment:
        max: 3
    ---
    # Triage

    Read the issue and comment with a summary.

The frontmatter sits between leading `---` fences and is parsed with
PyYAML; the rest of the file is the markdown body. The workflow id is
the file stem.

Malformed YAML and schema violations are raised as ConfigurationError.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from core.errors import ConfigurationError
from core.logging import get_logger, ComponentType
from core.models import WorkflowSpec

logger = get_logger(__name__, ComponentType.SERVICE)

_FRONTMATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split markdown into (frontmatter mapping, body).

    Raises:
        ConfigurationError: frontmatter is not a YAML mapping
    """
    match = _FRONTMATTER.match(text)
    if not match:
        return {}, text

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid frontmatter YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Frontmatter must be a YAML mapping")

    # YAML 1.1 reads a bare `on:` key as boolean True
    if True in data and "on" not in data:
        data["on"] = data.pop(True)

    return data, text[match.end():]


class WorkflowService:
    """Service for loading workflow sources."""

    def __init__(self, workflows_dir: Optional[Union[str, Path]] = None):
        """
        Initialize workflow service.

        Args:
            workflows_dir: Directory containing workflow markdown files.
                           Defaults to .github/workflows under the cwd.
        """
        if workflows_dir:
            self.workflows_dir = Path(workflows_dir)
        else:
            self.workflows_dir = Path.cwd() / ".github" / "workflows"

    def discover(self) -> List[Path]:
        """Markdown workflow files in the workflows directory, sorted."""
        if not self.workflows_dir.exists():
            logger.warning(f"Workflows directory not found: {self.workflows_dir}")
            return []
        return sorted(self.workflows_dir.glob("*.md"))

    def parse(
        self,
        text: str,
        workflow_id: str,
        source_path: Optional[str] = None,
    ) -> WorkflowSpec:
        """
        Parse workflow source text.

        Args:
            text: Markdown with optional frontmatter
            workflow_id: Workflow identifier
            source_path: Where the text came from (for messages)

        Raises:
            ConfigurationError: invalid frontmatter or schema violation
        """
        frontmatter, body = split_frontmatter(text)
        data = dict(frontmatter)
        data["workflow_id"] = workflow_id
        data["markdown"] = body
        if source_path:
            data["source_path"] = source_path

        try:
            workflow = WorkflowSpec.model_validate(data)
        except ValidationError as e:
            where = source_path or workflow_id
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid workflow {where}: {details}") from e

        logger.debug(f"Parsed workflow {workflow.workflow_id} ({len(workflow.jobs)} custom jobs)")
        return workflow

    def load(self, path: Union[str, Path]) -> WorkflowSpec:
        """
        Load a workflow file.

        Raises:
            ConfigurationError: file unreadable or invalid
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ConfigurationError(f"{path}: not valid UTF-8 ({e.reason} at byte {e.start})") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read workflow {path}: {e}") from e

        workflow = self.parse(text, workflow_id=path.stem, source_path=str(path))
        logger.info(f"Loaded workflow: {workflow.workflow_id}")
        return workflow


__all__ = ["WorkflowService", "split_frontmatter"]
