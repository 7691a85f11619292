# ============================================================================
# SAFE OUTPUT JOBS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - Dispatcher, threat detection and conclusion jobs
# PURPOSE: Apply the agent's safe outputs after it finishes
# CREATED: 17 OCT 2026
# ============================================================================
"""
Safe Output Jobs

After the agent job:

    detection     (optional) scans the agent output and patch for threats
    safe_outputs  one dispatcher job running every enabled kind through a
                  single "Process Safe Outputs" step
    conclusion    always runs; no-op messages, missing tools, failure
                  reporting, reaction comment update

The dispatcher step reads the dispatch configuration from
GH_AW_SAFE_OUTPUTS_HANDLER_CONFIG (serialized once per compilation).

Pull request kinds (create_pull_request, push_to_pull_request_branch)
share one checkout and one git credential step. Both use the same
token so the checkout and the git remote never disagree.
"""

import json
from typing import Dict, List, Optional

from compiler.activation import AGENT_OUTPUT_ARTIFACT, PATCH_ARTIFACT
from compiler.context import BuildContext
from compiler.engine.expressions import (
    and_,
    contains,
    equals,
    needs_output,
    needs_result,
    not_equals,
    or_,
    step_output,
    wrap,
)
from compiler.engine.scripts import Step, StepFactory, run_step
from core.config import CompilerDefaults
from core.contracts import JobName, PermissionLevel, SafeOutputKind, StepID
from core.logging import get_logger, ComponentType
from core.models import JobNode, SafeOutputsConfig
from services.safe_output_config import HANDLER_CONFIG_ENV

logger = get_logger(__name__, ComponentType.SAFE_OUTPUTS)

AGENT_OUTPUT_DIR = "/tmp/gh-aw/safeoutputs/"
APP_TOKEN_STEP_ID = "safe-outputs-app-token"

GIT_CREDENTIALS_SCRIPT = (
    'git config --global user.email "github-actions[bot]@users.noreply.github.com"\n'
    'git config --global user.name "github-actions[bot]"\n'
    'SERVER_URL_STRIPPED="${SERVER_URL#https://}"\n'
    'git remote set-url origin "https://x-access-token:${GIT_TOKEN}@${SERVER_URL_STRIPPED}/${REPO_NAME}.git"\n'
    'echo "Git configured with standard GitHub Actions identity"\n'
)


# ============================================================================
# PERMISSIONS
# ============================================================================

_ISSUES = {"issues": "write"}
_PULL_REQUESTS = {"pull-requests": "write"}
_DISCUSSIONS = {"discussions": "write"}
_COMMENTS = {"issues": "write", "pull-requests": "write", "discussions": "write"}
_PROJECTS = {"organization-projects": "write"}

# Token scopes each kind writes with
KIND_PERMISSIONS: Dict[SafeOutputKind, Dict[str, str]] = {
    SafeOutputKind.CREATE_ISSUE: _ISSUES,
    SafeOutputKind.ADD_COMMENT: _COMMENTS,
    SafeOutputKind.CREATE_DISCUSSION: _DISCUSSIONS,
    SafeOutputKind.CLOSE_ISSUE: _ISSUES,
    SafeOutputKind.CLOSE_DISCUSSION: _DISCUSSIONS,
    SafeOutputKind.ADD_LABELS: {"issues": "write", "pull-requests": "write"},
    SafeOutputKind.REMOVE_LABELS: {"issues": "write", "pull-requests": "write"},
    SafeOutputKind.UPDATE_ISSUE: _ISSUES,
    SafeOutputKind.UPDATE_DISCUSSION: _DISCUSSIONS,
    SafeOutputKind.LINK_SUB_ISSUE: _ISSUES,
    SafeOutputKind.UPDATE_RELEASE: {"contents": "write"},
    SafeOutputKind.CREATE_PR_REVIEW_COMMENT: _PULL_REQUESTS,
    SafeOutputKind.SUBMIT_PR_REVIEW: _PULL_REQUESTS,
    SafeOutputKind.RESOLVE_PR_REVIEW_THREAD: _PULL_REQUESTS,
    SafeOutputKind.CREATE_PULL_REQUEST: {"contents": "write", "pull-requests": "write"},
    SafeOutputKind.PUSH_TO_PR_BRANCH: {"contents": "write", "pull-requests": "write"},
    SafeOutputKind.UPDATE_PULL_REQUEST: _PULL_REQUESTS,
    SafeOutputKind.CLOSE_PULL_REQUEST: _PULL_REQUESTS,
    SafeOutputKind.HIDE_COMMENT: _COMMENTS,
    SafeOutputKind.DISPATCH_WORKFLOW: {"actions": "write"},
    SafeOutputKind.MISSING_TOOL: {},
    SafeOutputKind.MISSING_DATA: {},
    SafeOutputKind.AUTOFIX_CODE_SCANNING_ALERT: {"security-events": "write", "actions": "read"},
    SafeOutputKind.CREATE_PROJECT: _PROJECTS,
    SafeOutputKind.UPDATE_PROJECT: _PROJECTS,
    SafeOutputKind.CREATE_PROJECT_STATUS_UPDATE: _PROJECTS,
}

_PROJECT_KINDS = (
    SafeOutputKind.CREATE_PROJECT,
    SafeOutputKind.UPDATE_PROJECT,
    SafeOutputKind.CREATE_PROJECT_STATUS_UPDATE,
)


def _grant(permissions: Dict[str, str], scope: str, level: str) -> None:
    """Raise a scope to `level`, never lowering it."""
    current = permissions.get(scope)
    if current is None or PermissionLevel(level).rank() > PermissionLevel(current).rank():
        permissions[scope] = level


def safe_outputs_permissions(config: SafeOutputsConfig, kinds: List[SafeOutputKind]) -> Dict[str, str]:
    """
    Union of the scopes the enabled kinds need, plus contents: read.

    Discussions and pull requests fall back to issues unless the
    fallback is turned off.
    """
    permissions: Dict[str, str] = {"contents": PermissionLevel.READ.value}
    for kind in kinds:
        for scope, level in KIND_PERMISSIONS[kind].items():
            _grant(permissions, scope, level)

    if SafeOutputKind.CREATE_DISCUSSION in kinds and config.create_discussion.fallback_to_issue is not False:
        _grant(permissions, "issues", "write")
    if SafeOutputKind.CREATE_PULL_REQUEST in kinds and config.create_pull_request.fallback_as_issue is not False:
        _grant(permissions, "issues", "write")

    return {scope: permissions[scope] for scope in sorted(permissions)}


# ============================================================================
# SHARED STEPS
# ============================================================================

def agent_output_steps(factory: StepFactory) -> List[Step]:
    """Download the agent-output artifact and export GH_AW_AGENT_OUTPUT."""
    return [
        factory.download_artifact("Download agent output artifact", AGENT_OUTPUT_ARTIFACT, AGENT_OUTPUT_DIR),
        run_step(
            "Setup agent output environment variable",
            f"mkdir -p {AGENT_OUTPUT_DIR}\n"
            f'find "{AGENT_OUTPUT_DIR}" -type f -print\n'
            f'echo "GH_AW_AGENT_OUTPUT={AGENT_OUTPUT_DIR}agent_output.json" >> "$GITHUB_ENV"\n',
        ),
    ]


def pull_request_token(config: SafeOutputsConfig, defaults: CompilerDefaults) -> str:
    """
    Token for the shared pull request checkout and git remote.

    app -> create-pull-request token -> push-to-pull-request-branch token
        -> safe-outputs token -> default chain
    """
    if config.app:
        return defaults.app_token_expression
    for token in (
        config.create_pull_request.github_token if config.create_pull_request else "",
        config.push_to_pull_request_branch.github_token if config.push_to_pull_request_branch else "",
        config.github_token,
    ):
        if token:
            return token
    return defaults.default_token_expression


def project_env(config: SafeOutputsConfig, defaults: CompilerDefaults) -> Dict[str, str]:
    """
    GH_AW_PROJECT_URL / GH_AW_PROJECT_GITHUB_TOKEN for the project kinds.

    The first of update_project, create_project_status_update that names
    a project supplies both; create_project only supplies the token. Each
    token falls back to the safe-outputs token, then to the project secret.
    """
    env: Dict[str, str] = {}
    for kind_config in (config.update_project, config.create_project_status_update):
        if kind_config is not None and kind_config.project:
            env["GH_AW_PROJECT_URL"] = kind_config.project
            env["GH_AW_PROJECT_GITHUB_TOKEN"] = (
                kind_config.github_token or config.github_token or defaults.project_token_expression
            )
            return env
    if config.create_project is not None:
        env["GH_AW_PROJECT_GITHUB_TOKEN"] = (
            config.create_project.github_token or config.github_token or defaults.project_token_expression
        )
    return env


def pull_request_checkout_steps(ctx: BuildContext) -> List[Step]:
    """
    Checkout and git credential steps shared by the pull request kinds.

    Emitted once; the condition ORs the enabled kinds.
    """
    config = ctx.workflow.safe_outputs
    kinds = [
        kind for kind in (SafeOutputKind.CREATE_PULL_REQUEST, SafeOutputKind.PUSH_TO_PR_BRANCH)
        if kind.value in ctx.dispatch
    ]
    if not kinds:
        return []

    condition = or_(*(
        contains(needs_output(JobName.AGENT.value, "output_types"), kind.value) for kind in kinds
    ))
    token = pull_request_token(config, ctx.defaults)

    create_pr = config.create_pull_request
    target_repo = create_pr.target_repo if create_pr else ""
    base_branch = (create_pr.base_branch if create_pr else "") or ctx.defaults.default_base_branch

    repository = {"repository": target_repo} if target_repo else {}
    checkout = ctx.steps.checkout(
        condition=condition,
        **repository,
        ref=base_branch,
        token=token,
        persist_credentials=False,
        fetch_depth=1,
    )

    credentials = run_step(
        "Configure Git credentials",
        GIT_CREDENTIALS_SCRIPT,
        env={
            "REPO_NAME": target_repo or "${{ github.repository }}",
            "SERVER_URL": "${{ github.server_url }}",
            "GIT_TOKEN": token,
        },
        condition=condition,
    )
    return [checkout, credentials]


def app_token_steps(ctx: BuildContext, permissions: Dict[str, str]) -> List[Step]:
    """Mint a GitHub App installation token scoped to the job permissions."""
    app = ctx.workflow.safe_outputs.app or {}
    with_: Dict[str, object] = {
        "app-id": app.get("app-id", ""),
        "private-key": app.get("private-key", ""),
        "owner": app.get("owner") or "${{ github.repository_owner }}",
    }
    repositories = app.get("repositories")
    if isinstance(repositories, list) and repositories:
        with_["repositories"] = ",".join(str(repo) for repo in repositories)
    else:
        with_["repositories"] = "${{ github.event.repository.name }}"
    for scope, level in permissions.items():
        with_[f"permission-{scope}"] = level

    mint = {
        "name": "Generate GitHub App token",
        "id": APP_TOKEN_STEP_ID,
        "uses": ctx.steps.pinner.pin("actions/create-github-app-token"),
        "with": with_,
    }
    return [mint]


def revoke_app_token_step() -> Step:
    token = wrap(step_output(APP_TOKEN_STEP_ID, "token"))
    return run_step(
        "Invalidate GitHub App token",
        'echo "Revoking GitHub App installation token..."\n'
        'curl -sS -X DELETE -H "Authorization: token $TOKEN" -H "Accept: application/vnd.github+json" '
        '"${{ github.api_url }}/installation/token" || true\n',
        env={"TOKEN": token},
        condition=and_("always()", not_equals(step_output(APP_TOKEN_STEP_ID, "token"), "")),
    )


# ============================================================================
# DISPATCHER
# ============================================================================

def _job_env(ctx: BuildContext) -> Dict[str, str]:
    workflow = ctx.workflow
    config = workflow.safe_outputs
    env = {
        "GH_AW_WORKFLOW_ID": workflow.workflow_id,
        "GH_AW_WORKFLOW_NAME": workflow.name,
    }
    if workflow.tracker_id:
        env["GH_AW_TRACKER_ID"] = workflow.tracker_id
    env.update(ctx.engine_env())
    if config.staged:
        env["GH_AW_SAFE_OUTPUTS_STAGED"] = "true"
    if config.messages:
        env["GH_AW_SAFE_OUTPUT_MESSAGES"] = json.dumps(config.messages, sort_keys=True, separators=(",", ":"))
    return env


def build_safe_outputs(ctx: BuildContext) -> Optional[JobNode]:
    """
    Build the dispatcher job.

    Returns None when no dispatch kind is configured.
    """
    if not ctx.dispatch:
        return None

    workflow = ctx.workflow
    config = workflow.safe_outputs
    factory = ctx.steps
    kinds = [SafeOutputKind(name) for name in ctx.dispatch]
    has_pr_kinds = any(kind.is_pull_request_mutation() for kind in kinds)

    needs = [JobName.AGENT.value]
    if ctx.threat_detection_enabled:
        needs.append(JobName.DETECTION.value)
    if has_pr_kinds or workflow.lock_for_agent:
        needs.append(JobName.ACTIVATION.value)

    condition = and_("!cancelled()", not_equals(needs_result(JobName.AGENT.value), "skipped"))
    if ctx.threat_detection_enabled:
        condition = and_(condition, equals(needs_output(JobName.DETECTION.value, "success"), "true"))

    permissions = safe_outputs_permissions(config, kinds)

    steps: List[Step] = list(factory.setup_steps(
        safe_output_projects=any(kind in _PROJECT_KINDS for kind in kinds)
    ))
    steps.extend(agent_output_steps(factory))
    if has_pr_kinds:
        steps.append(factory.download_artifact("Download patch artifact", PATCH_ARTIFACT, "/tmp/gh-aw/"))
    if config.app:
        steps.extend(app_token_steps(ctx, permissions))
    steps.extend(pull_request_checkout_steps(ctx))

    projects = project_env(config, ctx.defaults)
    if config.app:
        token = ctx.defaults.app_token_expression
    else:
        token = (
            projects.get("GH_AW_PROJECT_GITHUB_TOKEN")
            or config.github_token
            or ctx.defaults.default_token_expression
        )
    steps.append(factory.github_script(
        "Process Safe Outputs",
        "safe_output_handler_manager",
        step_id=StepID.PROCESS_SAFE_OUTPUTS.value,
        env={
            "GH_AW_AGENT_OUTPUT": "${{ env.GH_AW_AGENT_OUTPUT }}",
            HANDLER_CONFIG_ENV: ctx.dispatch_json,
            **projects,
        },
        github_token=token,
    ))
    if config.app:
        steps.append(revoke_app_token_step())

    process = StepID.PROCESS_SAFE_OUTPUTS.value
    outputs = {
        f"{process}_temporary_id_map": wrap(step_output(process, "temporary_id_map")),
        f"{process}_processed_count": wrap(step_output(process, "processed_count")),
    }

    logger.info(f"Dispatcher job handles {len(kinds)} kinds")
    return JobNode(
        name=JobName.SAFE_OUTPUTS.value,
        needs=needs,
        if_condition=condition,
        runs_on=ctx.defaults.runs_on,
        permissions=permissions,
        timeout_minutes=ctx.defaults.safe_outputs_timeout_minutes,
        env=_job_env(ctx),
        outputs=outputs,
        steps=steps,
    )


# ============================================================================
# THREAT DETECTION
# ============================================================================

def build_detection(ctx: BuildContext) -> Optional[JobNode]:
    """Threat detection job; None unless safe outputs enable it."""
    if not ctx.threat_detection_enabled:
        return None

    workflow = ctx.workflow
    detection = workflow.safe_outputs.threat_detection
    factory = ctx.steps

    steps: List[Step] = list(factory.setup_steps())
    steps.extend(agent_output_steps(factory))
    if workflow.safe_outputs.has_pull_request_mutations():
        steps.append(factory.download_artifact("Download patch artifact", PATCH_ARTIFACT, "/tmp/gh-aw/"))

    env = {
        "WORKFLOW_NAME": workflow.name,
        "AGENT_OUTPUT": "${{ needs.agent.outputs.output }}",
    }
    if detection.prompt:
        env["CUSTOM_PROMPT"] = detection.prompt
    steps.append(factory.github_script(
        "Setup threat detection",
        "setup_threat_detection",
        env=env,
    ))
    steps.append(run_step(
        "Execute threat detection",
        "bash /opt/gh-aw/actions/run_engine.sh",
        step_id="detection_execution",
        env={"GH_AW_PROMPT": "/tmp/gh-aw/threat-detection/prompt.txt", **ctx.engine_env()},
    ))
    steps.extend(factory.pinner.pin_steps(detection.steps, JobName.DETECTION.value))
    steps.append(factory.github_script(
        "Parse threat detection results",
        "parse_threat_detection_results",
        step_id="parse_results",
    ))
    steps.append(factory.upload_artifact(
        "Upload threat detection log",
        "threat-detection.log",
        "/tmp/gh-aw/threat-detection/detection.log",
    ))

    agent_outputs = JobName.AGENT.value
    condition = or_(
        not_equals(needs_output(agent_outputs, "output_types"), ""),
        equals(needs_output(agent_outputs, "has_patch"), "true"),
    )

    permissions: Dict[str, str] = {}
    if factory.checks_out_actions:
        permissions["contents"] = "read"

    return JobNode(
        name=JobName.DETECTION.value,
        needs=[JobName.AGENT.value],
        if_condition=condition,
        runs_on=ctx.defaults.runs_on,
        permissions=permissions,
        timeout_minutes=ctx.defaults.detection_timeout_minutes,
        outputs={"success": wrap(step_output("parse_results", "success"))},
        steps=steps,
    )


# ============================================================================
# CONCLUSION
# ============================================================================

def build_conclusion(ctx: BuildContext, safe_outputs_created: bool, detection_created: bool) -> JobNode:
    """
    Conclusion job (always present).

    Memory jobs are appended to its needs after they are built.
    """
    workflow = ctx.workflow
    config: Optional[SafeOutputsConfig] = workflow.safe_outputs
    factory = ctx.steps

    needs = [JobName.AGENT.value, JobName.ACTIVATION.value]
    if safe_outputs_created:
        needs.append(JobName.SAFE_OUTPUTS.value)
    if detection_created:
        needs.append(JobName.DETECTION.value)

    steps: List[Step] = list(factory.setup_steps())
    outputs: Dict[str, str] = {}
    token = (config.github_token if config else "") or ctx.defaults.default_token_expression

    if config is not None:
        steps.extend(agent_output_steps(factory))

    if config is not None and config.noop is not None:
        env = {"GH_AW_AGENT_OUTPUT": "${{ env.GH_AW_AGENT_OUTPUT }}"}
        if config.noop.max:
            env["GH_AW_NOOP_MAX"] = str(config.noop.max)
        steps.append(factory.github_script(
            "Process No-Op Messages",
            "noop",
            step_id="noop",
            env=env,
            github_token=token,
        ))
        outputs["noop_message"] = wrap(step_output("noop", "noop_message"))

    if config is not None and config.missing_tool is not None:
        env = {"GH_AW_AGENT_OUTPUT": "${{ env.GH_AW_AGENT_OUTPUT }}"}
        if config.missing_tool.max:
            env["GH_AW_MISSING_TOOL_MAX"] = str(config.missing_tool.max)
        steps.append(factory.github_script(
            "Record Missing Tool",
            "missing_tool",
            step_id="missing_tool",
            env=env,
            github_token=token,
        ))
        outputs["tools_reported"] = wrap(step_output("missing_tool", "tools_reported"))
        outputs["total_count"] = wrap(step_output("missing_tool", "total_count"))

    failure_env = {
        "GH_AW_WORKFLOW_NAME": workflow.name,
        "GH_AW_RUN_URL": "${{ github.server_url }}/${{ github.repository }}/actions/runs/${{ github.run_id }}",
        "GH_AW_AGENT_CONCLUSION": wrap(needs_result(JobName.AGENT.value)),
    }
    steps.append(factory.github_script(
        "Handle agent failure",
        "handle_agent_failure",
        step_id="handle_agent_failure",
        env=failure_env,
        github_token=token,
    ))

    if workflow.has_reaction:
        env = {
            "GH_AW_COMMENT_ID": wrap(needs_output(JobName.ACTIVATION.value, "comment_id")),
            "GH_AW_COMMENT_REPO": wrap(needs_output(JobName.ACTIVATION.value, "comment_repo")),
            "GH_AW_RUN_URL": failure_env["GH_AW_RUN_URL"],
            "GH_AW_WORKFLOW_NAME": workflow.name,
            "GH_AW_AGENT_CONCLUSION": wrap(needs_result(JobName.AGENT.value)),
        }
        if detection_created:
            env["GH_AW_DETECTION_CONCLUSION"] = wrap(needs_result(JobName.DETECTION.value))
        steps.append(factory.github_script(
            "Update reaction comment with completion status",
            "notify_comment_error",
            step_id="conclusion",
            env=env,
            github_token=token,
        ))

    if workflow.lock_for_agent:
        steps.append(factory.github_script(
            "Unlock issue after agent workflow",
            "unlock-issue",
            step_id="unlock-issue",
            github_token=token,
            condition=and_(
                "always()",
                equals(needs_output(JobName.ACTIVATION.value, "issue_locked"), "true"),
            ),
        ))

    permissions: Dict[str, str] = {"contents": "read"} if factory.checks_out_actions else {}
    if config is not None or workflow.has_reaction:
        permissions.update({"discussions": "write", "issues": "write", "pull-requests": "write"})
    elif workflow.lock_for_agent:
        permissions["issues"] = "write"

    return JobNode(
        name=JobName.CONCLUSION.value,
        needs=needs,
        if_condition=and_("always()", not_equals(needs_result(JobName.AGENT.value), "skipped")),
        runs_on=ctx.defaults.runs_on,
        permissions={scope: permissions[scope] for scope in sorted(permissions)},
        outputs=outputs,
        steps=steps,
    )

__all__ = [
    "KIND_PERMISSIONS",
    "safe_outputs_permissions",
    "pull_request_token",
    "project_env",
    "pull_request_checkout_steps",
    "agent_output_steps",
    "build_safe_outputs",
    "build_detection",
    "build_conclusion",
]
