# ============================================================================
# SAFE OUTPUT DISPATCH CONFIGURATION
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Dispatch config builder
# PURPOSE: Collapse per-kind safe-output options into one handler config
# CREATED: 16 OCT 2026
# ============================================================================
"""
Safe Output Dispatch Configuration

The dispatcher job runs one generic step that reads a JSON map

    {"add_comment": {"max": 3}, "create_issue": {}}

from the GH_AW_SAFE_OUTPUTS_HANDLER_CONFIG environment variable and
invokes the matching runtime handler per kind.

Building:
    A registry of (kind, builder) pairs, constructed once per
    SafeOutputConfigBuilder. A builder returns None when its kind is not
    configured, otherwise an options dict holding only fields that
    differ from the handler defaults:
        numbers   only when positive
        strings   only when non-empty
        lists     only when non-empty
        tri-state only when supplied (footer falls back to the
                  workflow-wide value)

Serializing:
    Compact JSON, keys sorted at every level, checked against the
    platform expression ceiling. Exactly max_expression_size bytes is
    accepted; one byte more raises SizeLimitError.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.config import CompilerDefaults, get_defaults
from core.contracts import SafeOutputKind
from core.errors import SizeLimitError
from core.logging import get_logger, ComponentType
from core.models.safe_outputs import SafeOutputsConfig

logger = get_logger(__name__, ComponentType.SAFE_OUTPUTS)

HANDLER_CONFIG_ENV = "GH_AW_SAFE_OUTPUTS_HANDLER_CONFIG"

KindOptions = Dict[str, Any]
KindBuilder = Callable[[SafeOutputsConfig], Optional[KindOptions]]


def effective_footer(local: Optional[bool], workflow_wide: Optional[bool]) -> Optional[bool]:
    """Per-kind footer, else the workflow-wide footer, else None (handler default)."""
    if local is not None:
        return local
    return workflow_wide


# ============================================================================
# OPTIONS BUILDER
# ============================================================================

class KindOptionsBuilder:
    """Chained helpers that add a field only when it is not the default."""

    def __init__(self):
        self._options: KindOptions = {}

    def positive(self, key: str, value: int) -> "KindOptionsBuilder":
        if value > 0:
            self._options[key] = value
        return self

    def non_empty(self, key: str, value: str) -> "KindOptionsBuilder":
        if value:
            self._options[key] = value
        return self

    def if_true(self, key: str, value: bool) -> "KindOptionsBuilder":
        if value:
            self._options[key] = True
        return self

    def items(self, key: str, value: List[Any]) -> "KindOptionsBuilder":
        if value:
            self._options[key] = list(value)
        return self

    def mapping(self, key: str, value: Dict[str, Any]) -> "KindOptionsBuilder":
        if value:
            self._options[key] = dict(value)
        return self

    def supplied(self, key: str, value: Optional[Any]) -> "KindOptionsBuilder":
        """Tri-state: added only when the option was given."""
        if value is not None:
            self._options[key] = value
        return self

    def with_default(self, key: str, value: Optional[bool], default: bool) -> "KindOptionsBuilder":
        self._options[key] = default if value is None else value
        return self

    def always(self, key: str, value: Any) -> "KindOptionsBuilder":
        self._options[key] = value
        return self

    def build(self) -> KindOptions:
        return self._options


# ============================================================================
# DISPATCH CONFIG BUILDER
# ============================================================================

class SafeOutputConfigBuilder:
    """
    Builds the dispatch configuration for one workflow.

    The registry is an ordered tuple owned by the instance; build()
    walks it in order.
    """

    def __init__(self, defaults: Optional[CompilerDefaults] = None):
        self.defaults = defaults or get_defaults().compiler
        self.registry: Tuple[Tuple[SafeOutputKind, KindBuilder], ...] = (
            (SafeOutputKind.CREATE_ISSUE, self._create_issue),
            (SafeOutputKind.ADD_COMMENT, self._add_comment),
            (SafeOutputKind.CREATE_DISCUSSION, self._create_discussion),
            (SafeOutputKind.CLOSE_ISSUE, lambda cfg: self._close_entity(cfg.close_issue)),
            (SafeOutputKind.CLOSE_DISCUSSION, lambda cfg: self._close_entity(cfg.close_discussion)),
            (SafeOutputKind.ADD_LABELS, self._add_labels),
            (SafeOutputKind.REMOVE_LABELS, lambda cfg: self._labels(cfg.remove_labels)),
            (SafeOutputKind.UPDATE_ISSUE, self._update_issue),
            (SafeOutputKind.UPDATE_DISCUSSION, self._update_discussion),
            (SafeOutputKind.LINK_SUB_ISSUE, self._link_sub_issue),
            (SafeOutputKind.UPDATE_RELEASE, self._update_release),
            (SafeOutputKind.CREATE_PR_REVIEW_COMMENT, self._create_pr_review_comment),
            (SafeOutputKind.SUBMIT_PR_REVIEW, self._submit_pr_review),
            (SafeOutputKind.RESOLVE_PR_REVIEW_THREAD, lambda cfg: self._max_only(cfg.resolve_pull_request_review_thread)),
            (SafeOutputKind.CREATE_PULL_REQUEST, self._create_pull_request),
            (SafeOutputKind.PUSH_TO_PR_BRANCH, self._push_to_pr_branch),
            (SafeOutputKind.UPDATE_PULL_REQUEST, self._update_pull_request),
            (SafeOutputKind.CLOSE_PULL_REQUEST, lambda cfg: self._close_entity(cfg.close_pull_request)),
            (SafeOutputKind.HIDE_COMMENT, self._hide_comment),
            (SafeOutputKind.DISPATCH_WORKFLOW, self._dispatch_workflow),
            (SafeOutputKind.MISSING_TOOL, lambda cfg: self._max_only(cfg.missing_tool)),
            (SafeOutputKind.MISSING_DATA, lambda cfg: self._max_only(cfg.missing_data)),
            (SafeOutputKind.AUTOFIX_CODE_SCANNING_ALERT, self._autofix_code_scanning_alert),
            (SafeOutputKind.CREATE_PROJECT, self._create_project),
            (SafeOutputKind.UPDATE_PROJECT, self._update_project),
            (SafeOutputKind.CREATE_PROJECT_STATUS_UPDATE, self._create_project_status_update),
        )

    # ------------------------------------------------------------------
    # PUBLIC
    # ------------------------------------------------------------------

    def build(self, config: Optional[SafeOutputsConfig]) -> Dict[str, KindOptions]:
        """
        Options per configured kind, in registry order.

        Unconfigured kinds are absent. Returns {} when config is None.
        """
        if config is None:
            return {}

        dispatch: Dict[str, KindOptions] = {}
        for kind, builder in self.registry:
            options = builder(config)
            if options is not None:
                dispatch[kind.value] = options
        logger.debug(f"Dispatch config has {len(dispatch)} kinds: {list(dispatch)}")
        return dispatch

    def serialize(self, dispatch: Dict[str, KindOptions]) -> str:
        """
        Compact, key-sorted JSON for the handler config env var.

        Raises:
            SizeLimitError: serialized value exceeds max_expression_size
        """
        value = json.dumps(dispatch, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        check_size(HANDLER_CONFIG_ENV, value, self.defaults.max_expression_size)
        return value

    def enabled_kinds(self, config: Optional[SafeOutputsConfig]) -> List[SafeOutputKind]:
        """Kinds present in the dispatch config, in registry order."""
        if config is None:
            return []
        return [kind for kind, builder in self.registry if builder(config) is not None]

    # ------------------------------------------------------------------
    # ISSUES AND DISCUSSIONS
    # ------------------------------------------------------------------

    def _create_issue(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_issue
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .items("allowed_labels", c.allowed_labels)
            .items("allowed_repos", c.allowed_repos)
            .positive("expires", c.expires)
            .items("labels", c.labels)
            .non_empty("title_prefix", c.title_prefix)
            .items("assignees", c.assignees)
            .non_empty("target-repo", c.target_repo)
            .if_true("group", c.group)
            .if_true("close_older_issues", c.close_older_issues)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _add_comment(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.add_comment
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("target", c.target)
            .if_true("hide_older_comments", c.hide_older_comments)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    def _create_discussion(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_discussion
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("category", c.category)
            .non_empty("title_prefix", c.title_prefix)
            .items("labels", c.labels)
            .items("allowed_labels", c.allowed_labels)
            .items("allowed_repos", c.allowed_repos)
            .if_true("close_older_discussions", c.close_older_discussions)
            .non_empty("required_category", c.required_category)
            .positive("expires", c.expires)
            .supplied("fallback_to_issue", c.fallback_to_issue)
            .non_empty("target-repo", c.target_repo)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _close_entity(self, c) -> Optional[KindOptions]:
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("target", c.target)
            .items("required_labels", c.required_labels)
            .non_empty("required_title_prefix", c.required_title_prefix)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    def _labels(self, c) -> Optional[KindOptions]:
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .items("allowed", c.allowed)
            .non_empty("target", c.target)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    def _add_labels(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        # Configured with no options means "any label": still present, as {}
        options = self._labels(cfg.add_labels)
        if options is None:
            return None
        return options or {}

    def _update_issue(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.update_issue
        if c is None:
            return None
        builder = KindOptionsBuilder().positive("max", c.max).non_empty("target", c.target)
        # Capability flags come from presence, not value
        if c.supplied("status"):
            builder.always("allow_status", True)
        if c.supplied("title"):
            builder.always("allow_title", True)
        builder.with_default("allow_body", c.body, True)
        return (
            builder
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _update_discussion(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.update_discussion
        if c is None:
            return None
        builder = KindOptionsBuilder().positive("max", c.max).non_empty("target", c.target)
        if c.supplied("title"):
            builder.always("allow_title", True)
        if c.supplied("body"):
            builder.always("allow_body", True)
        if c.supplied("labels"):
            builder.always("allow_labels", True)
        return (
            builder
            .items("allowed_labels", c.allowed_labels)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _link_sub_issue(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.link_sub_issue
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .items("parent_required_labels", c.parent_required_labels)
            .non_empty("parent_title_prefix", c.parent_title_prefix)
            .items("sub_required_labels", c.sub_required_labels)
            .non_empty("sub_title_prefix", c.sub_title_prefix)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    def _hide_comment(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.hide_comment
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .items("allowed_reasons", c.allowed_reasons)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    # ------------------------------------------------------------------
    # RELEASES AND REVIEWS
    # ------------------------------------------------------------------

    def _update_release(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.update_release
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _create_pr_review_comment(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_pull_request_review_comment
        if c is None:
            return None
        # Footer here is a mode string and does not inherit the workflow-wide flag
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("side", c.side)
            .non_empty("target", c.target)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .supplied("footer", c.footer)
            .build()
        )

    def _submit_pr_review(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.submit_pull_request_review
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .build()
        )

    def _max_only(self, c) -> Optional[KindOptions]:
        if c is None:
            return None
        return KindOptionsBuilder().positive("max", c.max).build()

    # ------------------------------------------------------------------
    # PULL REQUESTS
    # ------------------------------------------------------------------

    def _max_patch_size(self, cfg: SafeOutputsConfig) -> int:
        if cfg.maximum_patch_size > 0:
            return cfg.maximum_patch_size
        return self.defaults.default_max_patch_size_kb

    def _create_pull_request(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_pull_request
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("title_prefix", c.title_prefix)
            .items("labels", c.labels)
            .supplied("draft", c.draft)
            .non_empty("if_no_changes", c.if_no_changes)
            .if_true("allow_empty", c.allow_empty)
            .if_true("auto_merge", c.auto_merge)
            .positive("expires", c.expires)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .always("max_patch_size", self._max_patch_size(cfg))
            .supplied("footer", effective_footer(c.footer, cfg.footer))
            .supplied("fallback_as_issue", c.fallback_as_issue)
            .always("base_branch", c.base_branch or self.defaults.default_base_branch)
            .build()
        )

    def _push_to_pr_branch(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.push_to_pull_request_branch
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("target", c.target)
            .non_empty("title_prefix", c.title_prefix)
            .items("labels", c.labels)
            .non_empty("if_no_changes", c.if_no_changes)
            .non_empty("commit_title_suffix", c.commit_title_suffix)
            .always("base_branch", self.defaults.default_base_branch)
            .always("max_patch_size", self._max_patch_size(cfg))
            .build()
        )

    def _update_pull_request(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.update_pull_request
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("target", c.target)
            .with_default("allow_title", c.title, True)
            .with_default("allow_body", c.body, True)
            .supplied("default_operation", c.operation)
            .non_empty("target-repo", c.target_repo)
            .items("allowed_repos", c.allowed_repos)
            .build()
        )

    # ------------------------------------------------------------------
    # WORKFLOWS, CODE SCANNING, PROJECTS
    # ------------------------------------------------------------------

    def _dispatch_workflow(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.dispatch_workflow
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .items("workflows", c.workflows)
            .mapping("workflow_files", c.workflow_files)
            .build()
        )

    def _autofix_code_scanning_alert(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.autofix_code_scanning_alert
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("github-token", c.github_token)
            .build()
        )

    def _create_project(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_project
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("target_owner", c.target_owner)
            .non_empty("title_prefix", c.title_prefix)
            .non_empty("github-token", c.github_token)
            .items("views", c.views)
            .items("field_definitions", c.field_definitions)
            .build()
        )

    def _update_project(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.update_project
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("github-token", c.github_token)
            .non_empty("project", c.project)
            .items("views", c.views)
            .items("field_definitions", c.field_definitions)
            .build()
        )

    def _create_project_status_update(self, cfg: SafeOutputsConfig) -> Optional[KindOptions]:
        c = cfg.create_project_status_update
        if c is None:
            return None
        return (
            KindOptionsBuilder()
            .positive("max", c.max)
            .non_empty("github-token", c.github_token)
            .non_empty("project", c.project)
            .build()
        )


def check_size(name: str, value: str, limit: int) -> None:
    """
    Enforce the expression size ceiling on one emitted value.

    Raises:
        SizeLimitError: UTF-8 length of value is greater than limit
    """
    size = len(value.encode("utf-8"))
    if size > limit:
        logger.error(f"{name} is {size} bytes (limit {limit})")
        raise SizeLimitError(name, size, limit)


__all__ = [
    "HANDLER_CONFIG_ENV",
    "KindOptionsBuilder",
    "SafeOutputConfigBuilder",
    "effective_footer",
    "check_size",
]
