# ============================================================================
# MEMORY PERSISTENCE JOBS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Compiler - push_repo_memory and update_cache_memory builders
# PURPOSE: Persist agent memory after the agent (and detection) finish
# CREATED: 18 OCT 2026
# ============================================================================
"""
Memory Persistence Jobs

The agent job uploads each memory directory as an artifact. These jobs
download the artifacts and persist them:

    push_repo_memory     commits each repo-memory directory to its branch
    update_cache_memory  saves each cache-memory directory to the actions
                         cache (only under threat detection; otherwise the
                         agent job saves the cache itself)

Both depend on the agent job. Under threat detection they also depend
on the detection job and run only when it reported success.
"""

import json
from typing import Dict, List, Optional, Set

from compiler.context import BuildContext
from compiler.engine.expressions import and_, equals, needs_output, step_output, wrap
from compiler.engine.scripts import Step, render_memory_validation, run_step
from core.contracts import JobName
from core.errors import ConfigurationError
from core.logging import get_logger, ComponentType
from core.models import JobNode, validate_branch_prefix

logger = get_logger(__name__, ComponentType.JOB_BUILDER)

GIT_IDENTITY_SCRIPT = (
    'git config --global user.email "github-actions[bot]@users.noreply.github.com"\n'
    'git config --global user.name "github-actions[bot]"\n'
)


def _detection_gate(ctx: BuildContext) -> str:
    if ctx.threat_detection_enabled:
        return and_("always()", equals(needs_output(JobName.DETECTION.value, "success"), "true"))
    return "always()"


def _check_unique_ids(ids: List[str], kind: str) -> None:
    seen: Set[str] = set()
    for memory_id in ids:
        if memory_id in seen:
            raise ConfigurationError(f"Duplicate {kind} id '{memory_id}'")
        seen.add(memory_id)


# ============================================================================
# REPO MEMORY
# ============================================================================

def build_push_repo_memory(ctx: BuildContext) -> Optional[JobNode]:
    """
    Push each repo-memory directory to its branch.

    Returns None when no repo-memory is configured.

    Raises:
        InvalidBranchPrefixError: a branch prefix is malformed
        ConfigurationError: two entries share an id
    """
    memories = ctx.workflow.repo_memory
    if not memories:
        return None

    for memory in memories:
        validate_branch_prefix(memory.branch_prefix)
    _check_unique_ids([memory.id for memory in memories], "repo-memory")

    factory = ctx.steps
    steps: List[Step] = list(factory.setup_steps())
    steps.append(factory.checkout(persist_credentials=False, sparse_checkout="."))
    steps.append(run_step("Configure Git credentials", GIT_IDENTITY_SCRIPT))

    for memory in memories:
        steps.append(factory.download_artifact(
            f"Download repo-memory artifact ({memory.id})",
            memory.artifact_name,
            memory.directory,
        ))

    outputs: Dict[str, str] = {}
    for memory in memories:
        step_id = f"push_repo_memory_{memory.id}"
        steps.append(factory.github_script(
            f"Push repo-memory changes ({memory.id})",
            "push_repo_memory",
            step_id=step_id,
            env={
                "GH_TOKEN": "${{ github.token }}",
                "GITHUB_RUN_ID": "${{ github.run_id }}",
                "ARTIFACT_DIR": memory.directory,
                "MEMORY_ID": memory.id,
                "TARGET_REPO": memory.target_repo or "${{ github.repository }}",
                "BRANCH_NAME": memory.effective_branch(),
                "MAX_FILE_SIZE": str(memory.max_file_size),
                "MAX_FILE_COUNT": str(memory.max_file_count),
                "ALLOWED_EXTENSIONS": json.dumps(memory.allowed_extensions),
                "FILE_GLOB_FILTER": " ".join(memory.file_glob),
            },
            condition="always()",
        ))
        outputs[f"validation_failed_{memory.id}"] = wrap(step_output(step_id, "validation_failed"))
        outputs[f"validation_error_{memory.id}"] = wrap(step_output(step_id, "validation_error"))

    needs = [JobName.AGENT.value]
    if ctx.threat_detection_enabled:
        needs.append(JobName.DETECTION.value)

    logger.debug(f"push_repo_memory persists {len(memories)} memories")
    return JobNode(
        name=JobName.PUSH_REPO_MEMORY.value,
        needs=needs,
        if_condition=_detection_gate(ctx),
        runs_on=ctx.defaults.runs_on,
        permissions={"contents": "write"},
        outputs=outputs,
        steps=steps,
    )


# ============================================================================
# CACHE MEMORY
# ============================================================================

def build_update_cache_memory(ctx: BuildContext) -> Optional[JobNode]:
    """
    Save cache-memory directories once detection has passed.

    Returns None without threat detection, or when every cache is
    restore-only.
    """
    caches = ctx.workflow.cache_memory
    if not caches or not ctx.threat_detection_enabled:
        return None
    _check_unique_ids([cache.id for cache in caches], "cache-memory")

    writable = [cache for cache in caches if not cache.restore_only]
    if not writable:
        logger.debug("All cache-memory entries are restore-only; update_cache_memory not created")
        return None

    factory = ctx.steps
    steps: List[Step] = list(factory.setup_steps())
    for cache in writable:
        steps.append(factory.download_artifact(
            f"Download cache-memory artifact ({cache.id})",
            cache.artifact_name,
            cache.directory,
        ))
        if cache.allowed_extensions:
            steps.append(factory.inline_script(
                f"Validate cache-memory file types ({cache.id})",
                render_memory_validation(
                    cache.directory,
                    cache.allowed_extensions,
                    destination=ctx.defaults.setup_action_destination,
                ),
            ))
        steps.append(factory.cache_save(
            f"Save cache-memory to cache ({cache.id})",
            key=cache.cache_key(),
            path=cache.directory,
        ))

    permissions = {"contents": "read"} if factory.checks_out_actions else {}
    return JobNode(
        name=JobName.UPDATE_CACHE_MEMORY.value,
        needs=[JobName.AGENT.value, JobName.DETECTION.value],
        if_condition=_detection_gate(ctx),
        runs_on=ctx.defaults.runs_on,
        permissions=permissions,
        env={"GH_AW_WORKFLOW_ID_SANITIZED": ctx.workflow.sanitized_id},
        steps=steps,
    )


__all__ = ["build_push_repo_memory", "build_update_cache_memory", "GIT_IDENTITY_SCRIPT"]
