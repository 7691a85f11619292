# ============================================================================
# SAFE OUTPUT CONFIGURATION MODELS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core model - Per-kind safe-output options
# PURPOSE: Typed view of the `safe-outputs:` frontmatter section
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: SafeOutputsConfig, SafeOutputKindConfig and one model per kind
# DEPENDENCIES: pydantic
# ============================================================================
"""
Safe Output Configuration Models

A safe output is an external mutation (create an issue, push to a PR
branch, ...) that the agent requests and a separate dispatcher job
performs. Each kind has its own options block.

Presence semantics:
- A kind block that is absent leaves the field None (kind disabled).
- A kind block given as `null` or `{}` is present with defaults.
- Tri-state options (footer, draft, ...) are Optional: None means
  "not supplied", which is different from an explicit False.
- Capability flags (update-issue `status`, `title`, ...) are decided by
  whether the key was supplied at all. `supplied()` answers that from
  pydantic's `model_fields_set`, so even `status: null` counts.

YAML keys are hyphenated; models accept both `title-prefix` and
`title_prefix`.
"""

from typing import Any, ClassVar, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _hyphenate(name: str) -> str:
    return name.replace("_", "-")


class SafeOutputKindConfig(BaseModel):
    """Options shared by every safe-output kind."""
    model_config = ConfigDict(
        alias_generator=_hyphenate,
        populate_by_name=True,
        extra="ignore",
    )

    max: int = Field(default=0, ge=0, description="Maximum operations per run (0 = handler default)")
    github_token: str = ""

    def supplied(self, field_name: str) -> bool:
        """True if the option was present in the input, whatever its value."""
        return field_name in self.model_fields_set


class TargetedKindConfig(SafeOutputKindConfig):
    """Kinds that can act on another repository."""
    target_repo: str = ""
    allowed_repos: List[str] = Field(default_factory=list)


# ============================================================================
# ISSUES AND DISCUSSIONS
# ============================================================================

class CreateIssueConfig(TargetedKindConfig):
    allowed_labels: List[str] = Field(default_factory=list)
    expires: int = Field(default=0, ge=0)
    labels: List[str] = Field(default_factory=list)
    title_prefix: str = ""
    assignees: List[str] = Field(default_factory=list)
    group: bool = False
    close_older_issues: bool = False
    footer: Optional[bool] = None

    @field_validator("assignees", "labels", "allowed_labels", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if isinstance(v, str):
            return [v]
        return v


class AddCommentConfig(TargetedKindConfig):
    target: str = ""
    hide_older_comments: bool = False


class CreateDiscussionConfig(TargetedKindConfig):
    category: str = ""
    title_prefix: str = ""
    labels: List[str] = Field(default_factory=list)
    allowed_labels: List[str] = Field(default_factory=list)
    close_older_discussions: bool = False
    required_category: str = ""
    expires: int = Field(default=0, ge=0)
    fallback_to_issue: Optional[bool] = None
    footer: Optional[bool] = None


class CloseEntityConfig(TargetedKindConfig):
    """close-issue, close-discussion and close-pull-request share options."""
    target: str = ""
    required_labels: List[str] = Field(default_factory=list)
    required_title_prefix: str = ""


class LabelsConfig(TargetedKindConfig):
    """add-labels and remove-labels."""
    allowed: List[str] = Field(default_factory=list)
    target: str = ""


class UpdateIssueConfig(TargetedKindConfig):
    target: str = ""
    # Presence flags: any supplied value (even null/false) enables the field
    status: Optional[Any] = None
    title: Optional[Any] = None
    # Value flag: supplied bool is used as-is, default true
    body: Optional[bool] = None
    footer: Optional[bool] = None


class UpdateDiscussionConfig(TargetedKindConfig):
    target: str = ""
    # Presence flags
    title: Optional[Any] = None
    body: Optional[Any] = None
    labels: Optional[Any] = None
    allowed_labels: List[str] = Field(default_factory=list)
    footer: Optional[bool] = None


class LinkSubIssueConfig(TargetedKindConfig):
    parent_required_labels: List[str] = Field(default_factory=list)
    parent_title_prefix: str = ""
    sub_required_labels: List[str] = Field(default_factory=list)
    sub_title_prefix: str = ""


class HideCommentConfig(TargetedKindConfig):
    allowed_reasons: List[str] = Field(default_factory=list)


# ============================================================================
# RELEASES AND REVIEWS
# ============================================================================

class UpdateReleaseConfig(SafeOutputKindConfig):
    footer: Optional[bool] = None


class CreatePRReviewCommentConfig(TargetedKindConfig):
    side: str = ""
    target: str = ""
    # Footer mode string ("always", "none", "if-body"); not inherited
    footer: Optional[str] = None

    @field_validator("footer", mode="before")
    @classmethod
    def bool_footer_to_mode(cls, v):
        if isinstance(v, bool):
            return "always" if v else "none"
        return v


class SubmitPRReviewConfig(SafeOutputKindConfig):
    footer: Optional[bool] = None


class MaxOnlyConfig(SafeOutputKindConfig):
    """resolve-pull-request-review-thread, missing-tool, missing-data."""
    pass


# ============================================================================
# PULL REQUESTS
# ============================================================================

class CreatePullRequestConfig(TargetedKindConfig):
    title_prefix: str = ""
    labels: List[str] = Field(default_factory=list)
    draft: Optional[bool] = None
    if_no_changes: str = ""
    allow_empty: bool = False
    auto_merge: bool = False
    expires: int = Field(default=0, ge=0)
    footer: Optional[bool] = None
    fallback_as_issue: Optional[bool] = None
    base_branch: str = ""


class PushToPRBranchConfig(SafeOutputKindConfig):
    target: str = ""
    title_prefix: str = ""
    labels: List[str] = Field(default_factory=list)
    if_no_changes: str = ""
    commit_title_suffix: str = ""


class UpdatePullRequestConfig(TargetedKindConfig):
    target: str = ""
    title: Optional[bool] = None
    body: Optional[bool] = None
    operation: Optional[str] = None


# ============================================================================
# WORKFLOWS, CODE SCANNING, PROJECTS
# ============================================================================

class DispatchWorkflowConfig(SafeOutputKindConfig):
    workflows: List[str] = Field(default_factory=list)
    workflow_files: Dict[str, str] = Field(default_factory=dict)


class AutofixCodeScanningConfig(SafeOutputKindConfig):
    pass


class CreateProjectConfig(SafeOutputKindConfig):
    target_owner: str = ""
    title_prefix: str = ""
    views: List[Dict[str, Any]] = Field(default_factory=list)
    field_definitions: List[Dict[str, Any]] = Field(default_factory=list)


class UpdateProjectConfig(SafeOutputKindConfig):
    project: str = ""
    views: List[Dict[str, Any]] = Field(default_factory=list)
    field_definitions: List[Dict[str, Any]] = Field(default_factory=list)


class ProjectStatusUpdateConfig(SafeOutputKindConfig):
    project: str = ""


# ============================================================================
# WORKFLOW-WIDE SETTINGS
# ============================================================================

class ThreatDetectionConfig(BaseModel):
    """Threat detection run between the agent and the dispatcher."""
    model_config = ConfigDict(alias_generator=_hyphenate, populate_by_name=True, extra="ignore")

    prompt: str = ""
    steps: List[Dict[str, Any]] = Field(default_factory=list)


class NoOpConfig(SafeOutputKindConfig):
    pass


class SafeOutputsConfig(BaseModel):
    """
    The `safe-outputs:` section.

    One optional block per kind plus settings shared by all kinds.
    Threat detection is on unless `threat-detection: false`.
    """
    model_config = ConfigDict(
        alias_generator=_hyphenate,
        populate_by_name=True,
        extra="ignore",
    )

    # Shared settings
    github_token: str = ""
    app: Optional[Dict[str, Any]] = None
    footer: Optional[bool] = None
    maximum_patch_size: int = Field(default=0, ge=0, alias="max-patch-size")
    staged: bool = False
    threat_detection: Optional[ThreatDetectionConfig] = Field(default_factory=ThreatDetectionConfig)
    noop: Optional[NoOpConfig] = None
    messages: Optional[Dict[str, str]] = None

    # Kinds
    create_issue: Optional[CreateIssueConfig] = None
    add_comment: Optional[AddCommentConfig] = None
    create_discussion: Optional[CreateDiscussionConfig] = None
    close_issue: Optional[CloseEntityConfig] = None
    close_discussion: Optional[CloseEntityConfig] = None
    add_labels: Optional[LabelsConfig] = None
    remove_labels: Optional[LabelsConfig] = None
    update_issue: Optional[UpdateIssueConfig] = None
    update_discussion: Optional[UpdateDiscussionConfig] = None
    link_sub_issue: Optional[LinkSubIssueConfig] = None
    update_release: Optional[UpdateReleaseConfig] = None
    create_pull_request_review_comment: Optional[CreatePRReviewCommentConfig] = None
    submit_pull_request_review: Optional[SubmitPRReviewConfig] = None
    resolve_pull_request_review_thread: Optional[MaxOnlyConfig] = None
    create_pull_request: Optional[CreatePullRequestConfig] = None
    push_to_pull_request_branch: Optional[PushToPRBranchConfig] = None
    update_pull_request: Optional[UpdatePullRequestConfig] = None
    close_pull_request: Optional[CloseEntityConfig] = None
    hide_comment: Optional[HideCommentConfig] = None
    dispatch_workflow: Optional[DispatchWorkflowConfig] = None
    missing_tool: Optional[MaxOnlyConfig] = None
    missing_data: Optional[MaxOnlyConfig] = None
    autofix_code_scanning_alert: Optional[AutofixCodeScanningConfig] = None
    create_project: Optional[CreateProjectConfig] = None
    update_project: Optional[UpdateProjectConfig] = None
    create_project_status_update: Optional[ProjectStatusUpdateConfig] = None

    # Blocks where `key:` with no value means "enabled with defaults"
    NULLABLE_BLOCKS: ClassVar[Tuple[str, ...]] = (
        "create_issue", "add_comment", "create_discussion", "close_issue",
        "close_discussion", "add_labels", "remove_labels", "update_issue",
        "update_discussion", "link_sub_issue", "update_release",
        "create_pull_request_review_comment", "submit_pull_request_review",
        "resolve_pull_request_review_thread", "create_pull_request",
        "push_to_pull_request_branch", "update_pull_request", "close_pull_request",
        "hide_comment", "dispatch_workflow", "missing_tool", "missing_data",
        "autofix_code_scanning_alert", "create_project", "update_project",
        "create_project_status_update", "noop",
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_blocks(cls, data):
        """Turn `kind:` (null) into an empty block and parse threat-detection."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name in cls.NULLABLE_BLOCKS:
            for key in (_hyphenate(name), name):
                if key in data and data[key] in (None, True):
                    data[key] = {}

        for key in ("threat-detection", "threat_detection"):
            if key in data:
                value = data[key]
                if value is False:
                    data[key] = None
                elif value is None or value is True:
                    data[key] = {}
        return data

    @property
    def threat_detection_enabled(self) -> bool:
        return self.threat_detection is not None

    def has_pull_request_mutations(self) -> bool:
        """create-pull-request or push-to-pull-request-branch configured."""
        return self.create_pull_request is not None or self.push_to_pull_request_branch is not None


__all__ = [
    "SafeOutputKindConfig",
    "TargetedKindConfig",
    "CreateIssueConfig",
    "AddCommentConfig",
    "CreateDiscussionConfig",
    "CloseEntityConfig",
    "LabelsConfig",
    "UpdateIssueConfig",
    "UpdateDiscussionConfig",
    "LinkSubIssueConfig",
    "HideCommentConfig",
    "UpdateReleaseConfig",
    "CreatePRReviewCommentConfig",
    "SubmitPRReviewConfig",
    "MaxOnlyConfig",
    "CreatePullRequestConfig",
    "PushToPRBranchConfig",
    "UpdatePullRequestConfig",
    "DispatchWorkflowConfig",
    "AutofixCodeScanningConfig",
    "CreateProjectConfig",
    "UpdateProjectConfig",
    "ProjectStatusUpdateConfig",
    "ThreatDetectionConfig",
    "NoOpConfig",
    "SafeOutputsConfig",
]
