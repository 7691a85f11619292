# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Foundation - Job, step and output identifiers
# PURPOSE: Names shared by the job builder, dispatcher and emitter
# LAST_REVIEWED: 12 OCT 2026
# EXPORTS: JobName, StepID, StepOutput, PermissionLevel, SafeOutputKind
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the workflow compiler.

These identifiers cross three boundaries:
- Job graph (job names used in `needs` edges)
- Emitted workflow (step ids referenced in `steps.<id>.outputs.*`)
- Runtime scripts (output names the scripts set)

Keeping them in one place means an edge or expression can never
reference a misspelled job or output.
"""

from enum import Enum


# ============================================================================
# JOB NAMES
# ============================================================================

class JobName(str, Enum):
    """
    Standard jobs synthesized by the compiler.

    Construction order:
        PRE_ACTIVATION -> ACTIVATION -> AGENT -> SAFE_OUTPUTS
            -> DETECTION -> CONCLUSION -> PUSH_REPO_MEMORY / UPDATE_CACHE_MEMORY
    """
    PRE_ACTIVATION = "pre_activation"
    ACTIVATION = "activation"
    AGENT = "agent"
    SAFE_OUTPUTS = "safe_outputs"
    DETECTION = "detection"
    CONCLUSION = "conclusion"
    PUSH_REPO_MEMORY = "push_repo_memory"
    UPDATE_CACHE_MEMORY = "update_cache_memory"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def reserved(cls) -> frozenset:
        """Names a custom job may not take."""
        return frozenset(member.value for member in cls)


# Alternate spelling accepted for the pre-activation customisation block
PRE_ACTIVATION_ALIASES = (JobName.PRE_ACTIVATION.value, "pre-activation")


# ============================================================================
# STEP IDS AND OUTPUTS
# ============================================================================

class StepID(str, Enum):
    """Step ids of the pre-activation checks."""
    CHECK_MEMBERSHIP = "check_membership"
    CHECK_STOP_TIME = "check_stop_time"
    CHECK_SKIP_IF_MATCH = "check_skip_if_match"
    CHECK_SKIP_IF_NO_MATCH = "check_skip_if_no_match"
    CHECK_SKIP_ROLES = "check_skip_roles"
    CHECK_COMMAND_POSITION = "check_command_position"
    CHECK_RATE_LIMIT = "check_rate_limit"
    PROCESS_SAFE_OUTPUTS = "process_safe_outputs"

    def __str__(self) -> str:
        return self.value


class StepOutput(str, Enum):
    """Outputs set by the check scripts."""
    IS_TEAM_MEMBER = "is_team_member"
    STOP_TIME_OK = "stop_time_ok"
    SKIP_CHECK_OK = "skip_check_ok"
    SKIP_NO_MATCH_CHECK_OK = "skip_no_match_check_ok"
    SKIP_ROLES_OK = "skip_roles_ok"
    COMMAND_POSITION_OK = "command_position_ok"
    MATCHED_COMMAND = "matched_command"
    RATE_LIMIT_OK = "rate_limit_ok"
    ACTIVATED = "activated"

    def __str__(self) -> str:
        return self.value


# ============================================================================
# PERMISSIONS
# ============================================================================

class PermissionLevel(str, Enum):
    """Token permission levels, ordered read < write."""
    NONE = "none"
    READ = "read"
    WRITE = "write"

    def rank(self) -> int:
        return {"none": 0, "read": 1, "write": 2}[self.value]


# ============================================================================
# SAFE OUTPUT KINDS
# ============================================================================

class SafeOutputKind(str, Enum):
    """
    External mutations a compiled workflow may perform.

    Values are the keys of the dispatch configuration.
    """
    CREATE_ISSUE = "create_issue"
    ADD_COMMENT = "add_comment"
    CREATE_DISCUSSION = "create_discussion"
    CLOSE_ISSUE = "close_issue"
    CLOSE_DISCUSSION = "close_discussion"
    ADD_LABELS = "add_labels"
    REMOVE_LABELS = "remove_labels"
    UPDATE_ISSUE = "update_issue"
    UPDATE_DISCUSSION = "update_discussion"
    LINK_SUB_ISSUE = "link_sub_issue"
    UPDATE_RELEASE = "update_release"
    CREATE_PR_REVIEW_COMMENT = "create_pull_request_review_comment"
    SUBMIT_PR_REVIEW = "submit_pull_request_review"
    RESOLVE_PR_REVIEW_THREAD = "resolve_pull_request_review_thread"
    CREATE_PULL_REQUEST = "create_pull_request"
    PUSH_TO_PR_BRANCH = "push_to_pull_request_branch"
    UPDATE_PULL_REQUEST = "update_pull_request"
    CLOSE_PULL_REQUEST = "close_pull_request"
    HIDE_COMMENT = "hide_comment"
    DISPATCH_WORKFLOW = "dispatch_workflow"
    MISSING_TOOL = "missing_tool"
    MISSING_DATA = "missing_data"
    AUTOFIX_CODE_SCANNING_ALERT = "autofix_code_scanning_alert"
    CREATE_PROJECT = "create_project"
    UPDATE_PROJECT = "update_project"
    CREATE_PROJECT_STATUS_UPDATE = "create_project_status_update"

    def __str__(self) -> str:
        return self.value

    def is_pull_request_mutation(self) -> bool:
        """Kinds that need the shared checkout and git credential steps."""
        return self in (SafeOutputKind.CREATE_PULL_REQUEST, SafeOutputKind.PUSH_TO_PR_BRANCH)


__all__ = [
    "JobName",
    "PRE_ACTIVATION_ALIASES",
    "StepID",
    "StepOutput",
    "PermissionLevel",
    "SafeOutputKind",
]
