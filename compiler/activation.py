# ============================================================================
# ACTIVATION JOBS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - pre_activation, activation and agent job builders
# PURPOSE: Gate, acknowledge and run the agent for one workflow
# CREATED: 17 OCT 2026
# ============================================================================
"""
Activation Jobs

The first three standard jobs of every compiled workflow:

    pre_activation  (optional) membership, rate limit, stop time,
                    skip-if-*, skip-roles and command position checks;
                    publishes `activated`
    activation      timestamp check, optional reaction comment, optional
                    issue lock; gated on `activated`
    agent           runs the engine and collects its safe outputs

Run-condition placement:
    The workflow `if:` normally lands on pre_activation and activation.
    When it reads outputs of a custom job, it can only be evaluated by a
    job that needs that custom job:
        - custom jobs run before activation -> activation evaluates it
        - otherwise                        -> agent evaluates it
"""

import json
from typing import Dict, List

from compiler.context import BuildContext
from compiler.engine.expressions import and_, equals, needs_output, or_, step_output, unwrap, wrap
from compiler.engine.scripts import Step, render_memory_validation, run_step
from core.contracts import JobName, StepID, StepOutput
from core.errors import ConfigurationError
from core.logging import get_logger, ComponentType
from core.models import JobNode

logger = get_logger(__name__, ComponentType.JOB_BUILDER)

REACTION_EVENTS = (
    "issues",
    "issue_comment",
    "pull_request",
    "pull_request_review_comment",
    "discussion",
    "discussion_comment",
)

SAFE_OUTPUTS_DIR = "/opt/gh-aw/safeoutputs"
AGENT_OUTPUT_ARTIFACT = "agent-output"
AGENT_OUTPUT_FILE = "/tmp/gh-aw/agent_output.json"
PATCH_ARTIFACT = "agent-artifacts"
PATCH_FILE = "/tmp/gh-aw/aw.patch"
PROMPT_FILE = "/tmp/gh-aw/aw-prompts/prompt.txt"

DEFAULT_TOKEN = "${{ secrets.GITHUB_TOKEN }}"

# (step id, output flag) in the order they are ANDed into `activated`
_ACTIVATION_CHECKS = (
    (StepID.CHECK_MEMBERSHIP, StepOutput.IS_TEAM_MEMBER),
    (StepID.CHECK_STOP_TIME, StepOutput.STOP_TIME_OK),
    (StepID.CHECK_SKIP_IF_MATCH, StepOutput.SKIP_CHECK_OK),
    (StepID.CHECK_SKIP_IF_NO_MATCH, StepOutput.SKIP_NO_MATCH_CHECK_OK),
    (StepID.CHECK_SKIP_ROLES, StepOutput.SKIP_ROLES_OK),
    (StepID.CHECK_RATE_LIMIT, StepOutput.RATE_LIMIT_OK),
    (StepID.CHECK_COMMAND_POSITION, StepOutput.COMMAND_POSITION_OK),
)


def reaction_condition() -> str:
    """True for the events a reaction or status comment can be attached to."""
    return or_(*(equals("github.event_name", event) for event in REACTION_EVENTS))


def _sorted_permissions(permissions: Dict[str, str]) -> Dict[str, str]:
    return {scope: permissions[scope] for scope in sorted(permissions)}


# ============================================================================
# PRE-ACTIVATION
# ============================================================================

def build_pre_activation(ctx: BuildContext) -> JobNode:
    """
    Build the pre_activation job.

    Only called when ctx.needs_pre_activation() is true.

    Raises:
        ConfigurationError: jobs.pre_activation declares anything other
            than steps and outputs
    """
    workflow = ctx.workflow
    factory = ctx.steps
    defaults = ctx.defaults

    steps: List[Step] = list(factory.setup_steps())
    performed: List[StepID] = []

    if workflow.has_reaction:
        steps.append(factory.github_script(
            f"Add {workflow.reaction} reaction for immediate feedback",
            "add_reaction",
            step_id="react",
            env={"GH_AW_REACTION": workflow.reaction},
            github_token=DEFAULT_TOKEN,
            condition=reaction_condition(),
        ))

    if ctx.needs_role_check():
        env = {"GH_AW_REQUIRED_ROLES": ",".join(workflow.roles)}
        if workflow.bots:
            env["GH_AW_ALLOWED_BOTS"] = ",".join(workflow.bots)
        name = (
            "Check team membership for command workflow"
            if workflow.command else "Check team membership for workflow"
        )
        steps.append(factory.github_script(
            name,
            "check_membership",
            step_id=StepID.CHECK_MEMBERSHIP.value,
            env=env,
            github_token=DEFAULT_TOKEN,
        ))
        performed.append(StepID.CHECK_MEMBERSHIP)

    if workflow.rate_limit is not None:
        limit = workflow.rate_limit
        env = {
            "GH_AW_RATE_LIMIT_MAX": str(limit.max or defaults.default_rate_limit_max),
            "GH_AW_RATE_LIMIT_WINDOW": str(limit.window or defaults.default_rate_limit_window),
        }
        if limit.events:
            env["GH_AW_RATE_LIMIT_EVENTS"] = ",".join(sorted(limit.events))
        if limit.ignored_roles:
            env["GH_AW_RATE_LIMIT_IGNORED_ROLES"] = ",".join(sorted(limit.ignored_roles))
        steps.append(factory.github_script(
            "Check user rate limit",
            "check_rate_limit",
            step_id=StepID.CHECK_RATE_LIMIT.value,
            env=env,
            github_token=DEFAULT_TOKEN,
        ))
        performed.append(StepID.CHECK_RATE_LIMIT)

    if workflow.stop_time:
        steps.append(factory.github_script(
            "Check stop-time limit",
            "check_stop_time",
            step_id=StepID.CHECK_STOP_TIME.value,
            env={"GH_AW_STOP_TIME": workflow.stop_time, "GH_AW_WORKFLOW_NAME": workflow.name},
        ))
        performed.append(StepID.CHECK_STOP_TIME)

    if workflow.skip_if_match is not None:
        steps.append(factory.github_script(
            "Check skip-if-match query",
            "check_skip_if_match",
            step_id=StepID.CHECK_SKIP_IF_MATCH.value,
            env={
                "GH_AW_SKIP_QUERY": workflow.skip_if_match.query,
                "GH_AW_WORKFLOW_NAME": workflow.name,
                "GH_AW_SKIP_MAX_MATCHES": str(workflow.skip_if_match.max),
            },
        ))
        performed.append(StepID.CHECK_SKIP_IF_MATCH)

    if workflow.skip_if_no_match is not None:
        steps.append(factory.github_script(
            "Check skip-if-no-match query",
            "check_skip_if_no_match",
            step_id=StepID.CHECK_SKIP_IF_NO_MATCH.value,
            env={
                "GH_AW_SKIP_QUERY": workflow.skip_if_no_match.query,
                "GH_AW_WORKFLOW_NAME": workflow.name,
                "GH_AW_SKIP_MIN_MATCHES": str(workflow.skip_if_no_match.min),
            },
        ))
        performed.append(StepID.CHECK_SKIP_IF_NO_MATCH)

    if workflow.skip_roles:
        steps.append(factory.github_script(
            "Check skip-roles",
            "check_skip_roles",
            step_id=StepID.CHECK_SKIP_ROLES.value,
            env={"GH_AW_SKIP_ROLES": ",".join(workflow.skip_roles)},
        ))
        performed.append(StepID.CHECK_SKIP_ROLES)

    if workflow.command:
        steps.append(factory.github_script(
            "Check command position",
            "check_command_position",
            step_id=StepID.CHECK_COMMAND_POSITION.value,
            env={"GH_AW_COMMANDS": json.dumps(workflow.command)},
        ))
        performed.append(StepID.CHECK_COMMAND_POSITION)

    checks = [
        equals(step_output(step_id.value, flag.value), "true")
        for step_id, flag in _ACTIVATION_CHECKS
        if step_id in performed
    ]
    outputs: Dict[str, str] = {}
    if checks:
        outputs[StepOutput.ACTIVATED.value] = wrap(and_(*checks))
    else:
        outputs[StepOutput.ACTIVATED.value] = "true"
    if workflow.command:
        outputs[StepOutput.MATCHED_COMMAND.value] = wrap(
            step_output(StepID.CHECK_COMMAND_POSITION.value, StepOutput.MATCHED_COMMAND.value)
        )

    block = ctx.pre_activation_block()
    if block is not None:
        unsupported = block.model_fields_set - {"steps", "outputs"}
        if unsupported:
            raise ConfigurationError(
                f"jobs.pre-activation only supports 'steps' and 'outputs', got: {sorted(unsupported)}"
            )
        steps.extend(factory.pinner.pin_steps(block.steps, JobName.PRE_ACTIVATION.value))
        outputs.update(block.outputs)

    permissions: Dict[str, str] = {}
    if factory.checks_out_actions:
        permissions["contents"] = "read"
    if workflow.has_reaction:
        permissions.update({"discussions": "write", "issues": "write", "pull-requests": "write"})
    if workflow.rate_limit is not None:
        permissions["actions"] = "read"

    condition = workflow.if_condition
    if ctx.references_custom_job(condition):
        condition = ""

    job = JobNode(
        name=JobName.PRE_ACTIVATION.value,
        if_condition=condition,
        runs_on=defaults.runs_on,
        permissions=_sorted_permissions(permissions),
        outputs=outputs,
        steps=steps,
    )
    logger.debug(f"pre_activation checks: {[s.value for s in performed]}")
    return job


# ============================================================================
# ACTIVATION
# ============================================================================

def _activation_condition(ctx: BuildContext) -> str:
    workflow_if = ctx.workflow.if_condition
    references_custom = ctx.references_custom_job(workflow_if)
    keep_workflow_if = bool(workflow_if) and (
        not references_custom or bool(ctx.before_activation_jobs())
    )

    if ctx.pre_activation_created:
        activated = equals(
            needs_output(JobName.PRE_ACTIVATION.value, StepOutput.ACTIVATED.value), "true"
        )
        if keep_workflow_if:
            return and_(activated, unwrap(workflow_if))
        return activated

    return workflow_if if keep_workflow_if else ""


def build_activation(ctx: BuildContext) -> JobNode:
    """Build the activation job (always present)."""
    workflow = ctx.workflow
    factory = ctx.steps

    steps: List[Step] = list(factory.setup_steps())
    steps.append(factory.github_script(
        "Check workflow file timestamps",
        "check_workflow_timestamp_api",
        env={"GH_AW_WORKFLOW_FILE": workflow.lock_file_name},
    ))

    outputs: Dict[str, str] = {"comment_id": '""', "comment_repo": '""'}

    if workflow.needs_text_output:
        steps.append(factory.github_script(
            "Compute current body text",
            "compute_text",
            step_id="compute-text",
        ))
        for name in ("text", "title", "body"):
            outputs[name] = wrap(step_output("compute-text", name))

    if workflow.has_reaction:
        env = {"GH_AW_WORKFLOW_NAME": workflow.name}
        if workflow.tracker_id:
            env["GH_AW_TRACKER_ID"] = workflow.tracker_id
        if workflow.lock_for_agent:
            env["GH_AW_LOCK_FOR_AGENT"] = "true"
        if workflow.safe_outputs is not None and workflow.safe_outputs.messages:
            env["GH_AW_SAFE_OUTPUT_MESSAGES"] = json.dumps(
                workflow.safe_outputs.messages, sort_keys=True, separators=(",", ":")
            )
        steps.append(factory.github_script(
            "Add comment with workflow run link",
            "add_workflow_run_comment",
            step_id="add-comment",
            env=env,
            condition=reaction_condition(),
        ))
        outputs["comment_id"] = wrap(step_output("add-comment", "comment-id"))
        outputs["comment_url"] = wrap(step_output("add-comment", "comment-url"))
        outputs["comment_repo"] = wrap(step_output("add-comment", "comment-repo"))

    if workflow.lock_for_agent:
        steps.append(factory.github_script(
            "Lock issue for agent workflow",
            "lock-issue",
            step_id="lock-issue",
            condition=or_(equals("github.event_name", "issues"), equals("github.event_name", "issue_comment")),
        ))
        outputs["issue_locked"] = wrap(step_output("lock-issue", "locked"))

    if workflow.command and ctx.pre_activation_created:
        outputs["slash_command"] = wrap(
            needs_output(JobName.PRE_ACTIVATION.value, StepOutput.MATCHED_COMMAND.value)
        )

    needs: List[str] = []
    if ctx.pre_activation_created:
        needs.append(JobName.PRE_ACTIVATION.value)
    needs.extend(ctx.before_activation_jobs())

    permissions = {"contents": "read"}
    if workflow.has_reaction:
        permissions.update({"discussions": "write", "issues": "write", "pull-requests": "write"})
    if workflow.lock_for_agent:
        permissions["issues"] = "write"

    return JobNode(
        name=JobName.ACTIVATION.value,
        needs=needs,
        if_condition=_activation_condition(ctx),
        runs_on=ctx.defaults.runs_on,
        permissions=_sorted_permissions(permissions),
        environment=workflow.manual_approval or None,
        outputs=outputs,
        steps=steps,
    )


# ============================================================================
# AGENT
# ============================================================================

def _agent_permissions(ctx: BuildContext) -> Dict[str, str]:
    declared = ctx.workflow.permissions
    if isinstance(declared, dict):
        permissions = dict(declared)
    else:
        # Shorthand strings (read-all, write-all) are not expanded
        if declared:
            logger.warning(f"Permissions shorthand '{declared}' replaced with contents: read on the agent job")
        permissions = {}
    permissions.setdefault("contents", "read")
    return _sorted_permissions(permissions)


def _agent_needs(ctx: BuildContext) -> List[str]:
    needs: List[str] = []
    if ctx.activation_created:
        needs.append(JobName.ACTIVATION.value)
    for name, job in ctx.custom_jobs.items():
        if job.depends_on(JobName.PRE_ACTIVATION.value) or ctx.runs_after_agent(name):
            continue
        needs.append(name)
    for name in ctx.referenced_custom_jobs(ctx.workflow.markdown):
        if name not in needs:
            needs.append(name)
    return needs


def _agent_condition(ctx: BuildContext) -> str:
    workflow_if = ctx.workflow.if_condition
    if not ctx.activation_created:
        return workflow_if
    if ctx.references_custom_job(workflow_if) and not ctx.before_activation_jobs():
        return workflow_if
    return ""


def _memory_steps(ctx: BuildContext) -> List[Step]:
    """Clone repo-memory branches and restore cache-memory before the agent runs."""
    workflow = ctx.workflow
    factory = ctx.steps
    steps: List[Step] = []

    for memory in workflow.repo_memory:
        steps.append(run_step(
            f"Clone repo-memory branch ({memory.id})",
            "bash /opt/gh-aw/actions/clone_repo_memory_branch.sh",
            env={
                "GH_TOKEN": "${{ github.token }}",
                "BRANCH_NAME": memory.effective_branch(),
                "TARGET_REPO": memory.target_repo or "${{ github.repository }}",
                "MEMORY_DIR": memory.directory,
                "CREATE_ORPHAN": "true" if memory.create_orphan else "false",
            },
        ))

    restore_only = ctx.threat_detection_enabled
    for cache in workflow.cache_memory:
        steps.append(run_step(
            f"Create cache-memory directory ({cache.id})",
            f"mkdir -p {cache.directory}",
        ))
        steps.append(factory.cache_restore(
            f"Restore cache-memory file share data ({cache.id})",
            key=cache.cache_key(),
            path=cache.directory,
            restore_keys=[cache.restore_key()],
            restore_only=cache.restore_only or restore_only,
        ))
    return steps


def _agent_upload_steps(ctx: BuildContext) -> List[Step]:
    """Persist memory directories for the jobs that run after the agent."""
    workflow = ctx.workflow
    factory = ctx.steps
    steps: List[Step] = []

    for memory in workflow.repo_memory:
        step = factory.upload_artifact(
            f"Upload repo-memory artifact ({memory.id})",
            memory.artifact_name,
            memory.directory,
        )
        step["with"]["retention-days"] = 1
        steps.append(step)

    for cache in workflow.cache_memory:
        if cache.allowed_extensions:
            steps.append(factory.inline_script(
                f"Validate cache-memory file types ({cache.id})",
                render_memory_validation(
                    cache.directory,
                    cache.allowed_extensions,
                    destination=ctx.defaults.setup_action_destination,
                ),
                condition="always()",
            ))
        if ctx.threat_detection_enabled and not cache.restore_only:
            steps.append(factory.upload_artifact(
                f"Upload cache-memory data as artifact ({cache.id})",
                cache.artifact_name,
                cache.directory,
            ))
    return steps


def build_agent(ctx: BuildContext) -> JobNode:
    """Build the agent job."""
    workflow = ctx.workflow
    factory = ctx.steps

    steps: List[Step] = list(factory.setup_steps())
    steps.append(factory.checkout(persist_credentials=False))

    engine_env = ctx.engine_env()
    steps.append(factory.github_script(
        "Generate agentic run info",
        "generate_aw_info",
        step_id="generate_aw_info",
        env=engine_env or None,
    ))
    steps.extend(_memory_steps(ctx))

    steps.append(run_step(
        "Create prompt",
        f'mkdir -p "$(dirname "{PROMPT_FILE}")"\n'
        f'cat > "{PROMPT_FILE}" << \'GH_AW_PROMPT_EOF\'\n'
        f"{workflow.markdown.strip()}\n"
        "GH_AW_PROMPT_EOF\n",
    ))
    steps.append(run_step(
        "Execute agentic workflow",
        "bash /opt/gh-aw/actions/run_engine.sh",
        step_id="agentic_execution",
        env={"GH_AW_PROMPT": PROMPT_FILE, **engine_env},
    ))

    outputs = {"model": wrap(step_output("generate_aw_info", "model"))}
    env: Dict[str, str] = {}

    if ctx.has_safe_outputs:
        env.update({
            "GH_AW_SAFE_OUTPUTS": f"{SAFE_OUTPUTS_DIR}/outputs.jsonl",
            "GH_AW_SAFE_OUTPUTS_CONFIG_PATH": f"{SAFE_OUTPUTS_DIR}/config.json",
            "GH_AW_SAFE_OUTPUTS_TOOLS_PATH": f"{SAFE_OUTPUTS_DIR}/tools.json",
            "GH_AW_MCP_LOG_DIR": "/tmp/gh-aw/mcp-logs/safeoutputs",
        })
        steps.append(factory.github_script(
            "Ingest agent output",
            "collect_ndjson_output",
            step_id="collect_output",
            env={"GH_AW_SAFE_OUTPUTS": "${{ env.GH_AW_SAFE_OUTPUTS }}"},
        ))
        steps.append(factory.upload_artifact("Upload Safe Outputs", AGENT_OUTPUT_ARTIFACT, AGENT_OUTPUT_FILE))
        if workflow.safe_outputs.has_pull_request_mutations():
            steps.append(factory.upload_artifact("Upload git patch", PATCH_ARTIFACT, PATCH_FILE))
        for name in ("output", "output_types", "has_patch"):
            outputs[name] = wrap(step_output("collect_output", name))

    if workflow.cache_memory or ctx.has_safe_outputs:
        env["GH_AW_WORKFLOW_ID_SANITIZED"] = workflow.sanitized_id

    steps.extend(_agent_upload_steps(ctx))

    return JobNode(
        name=JobName.AGENT.value,
        needs=_agent_needs(ctx),
        if_condition=_agent_condition(ctx),
        runs_on=workflow.runs_on or ctx.defaults.runs_on,
        permissions=_agent_permissions(ctx),
        env=env,
        outputs=outputs,
        steps=steps,
    )


__all__ = [
    "build_pre_activation",
    "build_activation",
    "build_agent",
    "reaction_condition",
    "REACTION_EVENTS",
    "AGENT_OUTPUT_ARTIFACT",
    "AGENT_OUTPUT_FILE",
    "PATCH_ARTIFACT",
    "PATCH_FILE",
]
