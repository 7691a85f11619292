# ============================================================================
# WORKFLOW SPECIFICATION MODEL
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core model - Parsed workflow declaration
# PURPOSE: Typed input to the compiler, built from markdown frontmatter
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: WorkflowSpec, CustomJobSpec, RepoMemoryEntry, CacheMemoryEntry
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Specification Models

A WorkflowSpec is everything the compiler reads:
- Trigger configuration (`on:`), including the gate settings that
  produce the pre-activation job (command, stop-after, skip-if-*)
- Workflow-level run condition and permissions
- Custom job declarations
- Safe-output configuration
- Memory persistence configuration (`tools.repo-memory`,
  `tools.cache-memory`)
- The free-form markdown body

A WorkflowSpec is read-only to the compiler. Gate settings are lifted out of
`on:` once, at validation time, so the job builder never has to dig
through the raw trigger mapping.
"""

import re
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.errors import InvalidBranchPrefixError, InvalidSecretExpressionError
from core.models.safe_outputs import SafeOutputsConfig


# ${{ secrets.A }} or ${{ secrets.A || secrets.B }}
SECRETS_EXPRESSION_PATTERN = re.compile(
    r"^\$\{\{\s*secrets\.[A-Za-z_][A-Za-z0-9_]*"
    r"(?:\s*\|\|\s*secrets\.[A-Za-z_][A-Za-z0-9_]*)*\s*\}\}$"
)

BRANCH_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

DEFAULT_ROLES = ["admin", "maintainer", "write"]


def _hyphenate(name: str) -> str:
    return name.replace("_", "-")


def validate_branch_prefix(prefix: str) -> None:
    """
    Validate a repo-memory branch prefix.

    Empty means "use the default". Raises InvalidBranchPrefixError.
    """
    if prefix == "":
        return
    if len(prefix) < 4:
        raise InvalidBranchPrefixError(prefix, f"must be at least 4 characters long, got {len(prefix)}")
    if len(prefix) > 32:
        raise InvalidBranchPrefixError(prefix, f"must be at most 32 characters long, got {len(prefix)}")
    if not BRANCH_PREFIX_PATTERN.match(prefix):
        raise InvalidBranchPrefixError(
            prefix, "must contain only alphanumeric characters, hyphens, and underscores"
        )
    if prefix.lower() == "copilot":
        raise InvalidBranchPrefixError(prefix, "'copilot' is reserved")


# ============================================================================
# CUSTOM JOBS
# ============================================================================

class CustomJobSpec(BaseModel):
    """
    A user-declared job from the `jobs:` section.

    `needs` is None when the job declares no dependencies at all; an
    explicit empty list is kept as an explicit declaration.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    needs: Optional[List[str]] = None
    if_condition: str = Field(default="", alias="if")
    runs_on: Optional[str] = Field(default=None, alias="runs-on")
    permissions: Optional[Dict[str, str]] = None
    timeout_minutes: Optional[int] = Field(default=None, alias="timeout-minutes")
    env: Dict[str, str] = Field(default_factory=dict)
    outputs: Dict[str, str] = Field(default_factory=dict)
    steps: List[Dict[str, Any]] = Field(default_factory=list)

    # Reusable workflow call
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    secrets: Dict[str, str] = Field(default_factory=dict)

    @field_validator("needs", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if isinstance(v, str):
            return [v]
        if isinstance(v, list):
            return [item for item in v if isinstance(item, str)]
        return v

    @field_validator("outputs", mode="before")
    @classmethod
    def keep_string_outputs(cls, v):
        """Outputs are expressions; non-string values are dropped."""
        if isinstance(v, dict):
            return {key: value for key, value in v.items() if isinstance(value, str)}
        return v

    @model_validator(mode="after")
    def check_steps_or_uses(self):
        if self.uses is not None and self.steps:
            raise ValueError("a job cannot declare both 'uses' and 'steps'")
        return self

    @property
    def has_explicit_needs(self) -> bool:
        return self.needs is not None

    def depends_on(self, job_name: str) -> bool:
        return bool(self.needs) and job_name in self.needs

    def validate_secrets(self, job_name: str) -> None:
        """Every reusable-workflow secret must be a secrets expression."""
        for secret_name, value in self.secrets.items():
            if not isinstance(value, str) or not SECRETS_EXPRESSION_PATTERN.match(value.strip()):
                raise InvalidSecretExpressionError(job_name, secret_name)


# ============================================================================
# MEMORY
# ============================================================================

def sanitize_id(value: str) -> str:
    """Lowercase with hyphens removed (cache keys, artifact names)."""
    return value.lower().replace("-", "")


class RepoMemoryEntry(BaseModel):
    """A git-branch backed memory store pushed after the agent runs."""
    model_config = ConfigDict(alias_generator=_hyphenate, populate_by_name=True, extra="ignore")

    id: str = "default"
    branch_prefix: str = ""
    branch_name: str = ""
    target_repo: str = ""
    file_glob: List[str] = Field(default_factory=list)
    max_file_size: int = Field(default=10240, ge=1)
    max_file_count: int = Field(default=100, ge=1)
    allowed_extensions: List[str] = Field(default_factory=list)
    create_orphan: bool = True

    @field_validator("file_glob", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    def effective_branch(self) -> str:
        """Branch the memory is pushed to."""
        if self.branch_name:
            return self.branch_name
        prefix = self.branch_prefix or "memory"
        return f"{prefix}/{self.id}"

    @property
    def directory(self) -> str:
        return f"/tmp/gh-aw/repo-memory/{self.id}"

    @property
    def artifact_name(self) -> str:
        return f"repo-memory-{sanitize_id(self.id)}"


RUN_ID_SUFFIX = "-${{ github.run_id }}"


class CacheMemoryEntry(BaseModel):
    """An actions-cache backed memory store."""
    model_config = ConfigDict(alias_generator=_hyphenate, populate_by_name=True, extra="ignore")

    id: str = "default"
    key: str = ""
    restore_only: bool = False
    allowed_extensions: List[str] = Field(default_factory=list)

    @property
    def artifact_name(self) -> str:
        return "cache-memory" if self.id == "default" else f"cache-memory-{self.id}"

    @property
    def directory(self) -> str:
        return "/tmp/gh-aw/cache-memory" if self.id == "default" else f"/tmp/gh-aw/cache-memory-{self.id}"

    def cache_key(self) -> str:
        """Save key; always ends with the run id so every run writes a new entry."""
        key = self.key
        if not key:
            scope = "memory" if self.id == "default" else f"memory-{self.id}"
            key = f"{scope}-${{{{ env.GH_AW_WORKFLOW_ID_SANITIZED }}}}{RUN_ID_SUFFIX}"
        if not key.endswith(RUN_ID_SUFFIX):
            key += RUN_ID_SUFFIX
        return key

    def restore_key(self) -> str:
        """Prefix matching the entries of earlier runs."""
        return self.cache_key()[: -len("${{ github.run_id }}")]


def _memory_entries(value: Any) -> List[Dict[str, Any]]:
    """Normalize `true`, a mapping, or a list of mappings to a list."""
    if value is None or value is False:
        return []
    if value is True:
        return [{}]
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [item if isinstance(item, dict) else {} for item in value]
    return []


# ============================================================================
# TRIGGER GATES
# ============================================================================

class SkipQuery(BaseModel):
    """skip-if-match / skip-if-no-match search query."""
    query: str
    max: int = Field(default=1, ge=1)
    min: int = Field(default=1, ge=1)


class RateLimitConfig(BaseModel):
    """Per-user run rate limit. Zero means the handler default."""
    model_config = ConfigDict(alias_generator=_hyphenate, populate_by_name=True, extra="ignore")

    max: int = Field(default=0, ge=0)
    window: int = Field(default=0, ge=0)
    events: List[str] = Field(default_factory=list)
    ignored_roles: List[str] = Field(default_factory=list)


class EngineConfig(BaseModel):
    id: str = ""
    version: str = ""
    model: str = ""


# ============================================================================
# WORKFLOW
# ============================================================================

class WorkflowSpec(BaseModel):
    """
    Complete parsed workflow.

    Built by WorkflowService from a markdown file; may also be built
    directly from a dict in tests.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    workflow_id: str = Field(..., min_length=1, max_length=128)
    name: str = ""
    markdown: str = ""
    source_path: Optional[str] = None

    on: Any = None
    if_condition: str = Field(default="", alias="if")
    permissions: Optional[Union[str, Dict[str, str]]] = None
    roles: List[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    bots: List[str] = Field(default_factory=list)
    rate_limit: Optional[RateLimitConfig] = Field(default=None, alias="rate-limit")
    tracker_id: str = Field(default="", alias="tracker-id")
    engine: Optional[EngineConfig] = None
    runs_on: Optional[str] = Field(default=None, alias="runs-on")
    manual_approval: str = Field(default="", alias="manual-approval")

    jobs: Dict[str, CustomJobSpec] = Field(default_factory=dict)
    safe_outputs: Optional[SafeOutputsConfig] = Field(default=None, alias="safe-outputs")

    repo_memory: List[RepoMemoryEntry] = Field(default_factory=list)
    cache_memory: List[CacheMemoryEntry] = Field(default_factory=list)

    # Lifted from `on:`
    command: List[str] = Field(default_factory=list)
    stop_time: str = ""
    skip_if_match: Optional[SkipQuery] = None
    skip_if_no_match: Optional[SkipQuery] = None
    skip_roles: List[str] = Field(default_factory=list)
    reaction: str = ""
    lock_for_agent: bool = False

    @field_validator("roles", "bots", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("engine", mode="before")
    @classmethod
    def engine_shorthand(cls, v):
        """`engine: copilot` is shorthand for `engine: {id: copilot}`."""
        if isinstance(v, str):
            return {"id": v}
        return v

    @field_validator("safe_outputs", mode="before")
    @classmethod
    def empty_safe_outputs(cls, v):
        if v is True:
            return {}
        return v

    @model_validator(mode="before")
    @classmethod
    def lift_sections(cls, data):
        """Lift gate settings out of `on:` and memory out of `tools:`."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        tools = data.get("tools")
        if isinstance(tools, dict):
            data.setdefault("repo_memory", _memory_entries(tools.get("repo-memory")))
            data.setdefault("cache_memory", _memory_entries(tools.get("cache-memory")))

        on = data.get("on")
        if not isinstance(on, dict):
            return data

        command = on.get("command", on.get("slash_command"))
        if "command" in on or "slash_command" in on:
            data.setdefault("command", _command_names(command, data.get("workflow_id", "")))
        if on.get("stop-after"):
            data.setdefault("stop_time", str(on["stop-after"]))
        for key, field_name in (("skip-if-match", "skip_if_match"), ("skip-if-no-match", "skip_if_no_match")):
            value = on.get(key)
            if isinstance(value, str):
                data.setdefault(field_name, {"query": value})
            elif isinstance(value, dict):
                data.setdefault(field_name, value)
        skip_roles = on.get("skip-roles")
        if isinstance(skip_roles, str):
            data.setdefault("skip_roles", [skip_roles])
        elif isinstance(skip_roles, list):
            data.setdefault("skip_roles", [str(role) for role in skip_roles])
        if on.get("reaction"):
            data.setdefault("reaction", str(on["reaction"]))
        if on.get("lock-for-agent"):
            data.setdefault("lock_for_agent", bool(on["lock-for-agent"]))
        return data

    @model_validator(mode="after")
    def default_name(self):
        if not self.name:
            heading = re.search(r"^#\s+(.+)$", self.markdown, re.MULTILINE)
            self.name = heading.group(1).strip() if heading else self.workflow_id
        return self

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def has_reaction(self) -> bool:
        return self.reaction not in ("", "none")

    @property
    def needs_text_output(self) -> bool:
        """Markdown reads the triggering text computed by activation."""
        return "needs.activation.outputs.text" in self.markdown

    @property
    def sanitized_id(self) -> str:
        return sanitize_id(self.workflow_id)

    @property
    def lock_file_name(self) -> str:
        return f"{self.workflow_id}.lock.yml"

    @property
    def roles_all(self) -> bool:
        return len(self.roles) == 1 and self.roles[0] == "all"

    def trigger_events(self) -> List[str]:
        """Event names from `on:`, excluding the gate settings."""
        gate_keys = {
            "command", "slash_command", "stop-after", "reaction", "skip-if-match",
            "skip-if-no-match", "skip-roles", "lock-for-agent", "manual-approval",
        }
        if isinstance(self.on, str):
            return [self.on]
        if isinstance(self.on, list):
            return [str(event) for event in self.on]
        if isinstance(self.on, dict):
            return [event for event in self.on if event not in gate_keys]
        return []


def _command_names(value: Any, workflow_id: str) -> List[str]:
    """`command:` accepts null (workflow id), a name, a list, or {name: ...}."""
    if isinstance(value, dict):
        value = value.get("name")
    if value is None:
        return [workflow_id] if workflow_id else []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


__all__ = [
    "WorkflowSpec",
    "CustomJobSpec",
    "RepoMemoryEntry",
    "CacheMemoryEntry",
    "SkipQuery",
    "RateLimitConfig",
    "EngineConfig",
    "SECRETS_EXPRESSION_PATTERN",
    "validate_branch_prefix",
    "sanitize_id",
]
