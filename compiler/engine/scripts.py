# ============================================================================
# STEP AND SCRIPT CONSTRUCTION
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Engine - Step bodies with Jinja2-rendered scripts
# PURPOSE: Build the step mappings used by the standard jobs
# CREATED: 16 OCT 2026
# ============================================================================
"""
Step and Script Construction

Standard jobs are made of a handful of step shapes:
- Setup Scripts (copies the runtime handlers to /opt/gh-aw/actions)
- actions/github-script steps whose body loads one handler module
- checkout, artifact upload/download and cache save steps
- plain `run:` steps

github-script bodies are rendered from a Jinja2 template:

    const { setupGlobals } = require('/opt/gh-aw/actions/setup_globals.cjs');
    setupGlobals(core, github, context, exec, io);
    const { main } = require('/opt/gh-aw/actions/check_membership.cjs');
    await main();

Every remote `uses:` is pinned through the ActionPinner as the step is
built. Step mappings keep a fixed key order (name, id, if, uses, env,
with, run) so emission is deterministic.
"""

import logging
from typing import Any, Dict, List, Optional

from jinja2 import Environment, BaseLoader, StrictUndefined

from core.config import CompilerDefaults, get_defaults
from core.errors import ConfigurationError
from services.action_pins import ActionPinner

logger = logging.getLogger(__name__)

Step = Dict[str, Any]

_env = Environment(
    loader=BaseLoader(),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)

_HANDLER_TEMPLATE = _env.from_string(
    "const { setupGlobals } = require('{{ destination }}/setup_globals.cjs');\n"
    "setupGlobals(core, github, context, exec, io);\n"
    "const { main } = require('{{ destination }}/{{ script }}.cjs');\n"
    "await main();"
)

_MEMORY_VALIDATION_TEMPLATE = _env.from_string(
    "const { setupGlobals } = require('{{ destination }}/setup_globals.cjs');\n"
    "setupGlobals(core, github, context, exec, io);\n"
    "const { validateMemoryFiles } = require('{{ destination }}/validate_memory_files.cjs');\n"
    "const allowedExtensions = {{ extensions | tojson }};\n"
    "const result = validateMemoryFiles('{{ directory }}', '{{ kind }}', allowedExtensions);\n"
    "if (!result.valid) {\n"
    "  core.setFailed(`File type validation failed: Found ${result.invalidFiles.length} file(s)"
    " with invalid extensions. Only {{ extensions | join(', ') }} are allowed.`);\n"
    "}"
)


def render_script(script: str, destination: Optional[str] = None) -> str:
    """
    Render a github-script body that runs one handler module.

    Args:
        script: Handler module name without extension (e.g. "check_membership")
        destination: Directory the setup step copied the handlers to
    """
    destination = destination or get_defaults().compiler.setup_action_destination
    return _HANDLER_TEMPLATE.render(destination=destination, script=script)


def render_memory_validation(
    directory: str,
    extensions: List[str],
    kind: str = "cache",
    destination: Optional[str] = None,
) -> str:
    """github-script body failing the step when a memory file has a disallowed extension."""
    destination = destination or get_defaults().compiler.setup_action_destination
    return _MEMORY_VALIDATION_TEMPLATE.render(
        destination=destination,
        directory=directory,
        extensions=list(extensions),
        kind=kind,
    )


def _step(
    name: str,
    step_id: Optional[str] = None,
    condition: Optional[str] = None,
    uses: Optional[str] = None,
    with_: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
    run: Optional[str] = None,
) -> Step:
    step: Step = {"name": name}
    if step_id:
        step["id"] = step_id
    if condition:
        step["if"] = condition
    if uses:
        step["uses"] = uses
    if env:
        step["env"] = dict(env)
    if with_:
        step["with"] = dict(with_)
    if run:
        step["run"] = run
    return step


def run_step(
    name: str,
    run: str,
    step_id: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    condition: Optional[str] = None,
) -> Step:
    """A plain shell step."""
    return _step(name, step_id=step_id, condition=condition, env=env, run=run)


class StepFactory:
    """Builds pinned step mappings for the standard jobs."""

    def __init__(self, pinner: ActionPinner, defaults: Optional[CompilerDefaults] = None):
        self.pinner = pinner
        self.defaults = defaults or get_defaults().compiler

    # ------------------------------------------------------------------
    # SETUP / CHECKOUT
    # ------------------------------------------------------------------

    def setup_action_ref(self) -> str:
        """./actions/setup in dev mode, the pinned remote action in release mode."""
        if not self.defaults.is_release_mode:
            return self.defaults.local_setup_action
        if not self.defaults.action_tag:
            raise ConfigurationError("release action mode requires an action tag (AW_ACTION_TAG)")
        return self.pinner.pin(self.defaults.remote_setup_action, self.defaults.action_tag)

    def setup(self, safe_output_projects: bool = False) -> Step:
        with_ = {"destination": self.defaults.setup_action_destination}
        if safe_output_projects:
            with_["safe-output-projects"] = "true"
        return _step("Setup Scripts", uses=self.setup_action_ref(), with_=with_)

    @property
    def checks_out_actions(self) -> bool:
        """Dev mode reads ./actions/setup from the repository (needs contents: read)."""
        return not self.defaults.is_release_mode

    def setup_steps(self, safe_output_projects: bool = False) -> List[Step]:
        """Setup Scripts, preceded by a sparse checkout of actions/ in dev mode."""
        steps: List[Step] = []
        if self.checks_out_actions:
            steps.append(self.checkout(
                "Checkout actions folder",
                sparse_checkout="actions\n",
                persist_credentials=False,
            ))
        steps.append(self.setup(safe_output_projects))
        return steps

    def checkout(self, name: str = "Checkout repository", condition: Optional[str] = None, **with_: Any) -> Step:
        options = {key.replace("_", "-"): value for key, value in with_.items()}
        return _step(name, condition=condition, uses=self.pinner.pin("actions/checkout"), with_=options or None)

    # ------------------------------------------------------------------
    # SCRIPTS
    # ------------------------------------------------------------------

    def github_script(
        self,
        name: str,
        script: str,
        step_id: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        github_token: Optional[str] = None,
        condition: Optional[str] = None,
    ) -> Step:
        """actions/github-script step running one handler module."""
        with_: Dict[str, Any] = {}
        if github_token:
            with_["github-token"] = github_token
        with_["script"] = render_script(script, self.defaults.setup_action_destination)
        return _step(
            name,
            step_id=step_id,
            condition=condition,
            uses=self.pinner.pin("actions/github-script"),
            with_=with_,
            env=env,
        )

    def inline_script(self, name: str, script: str, condition: Optional[str] = None) -> Step:
        """actions/github-script step with a pre-rendered body."""
        return _step(
            name,
            condition=condition,
            uses=self.pinner.pin("actions/github-script"),
            with_={"script": script},
        )

    # ------------------------------------------------------------------
    # ARTIFACTS / CACHE
    # ------------------------------------------------------------------

    def upload_artifact(self, name: str, artifact: str, path: str, condition: str = "always()") -> Step:
        return _step(
            name,
            condition=condition,
            uses=self.pinner.pin("actions/upload-artifact"),
            with_={"name": artifact, "path": path, "if-no-files-found": "ignore"},
        )

    def download_artifact(
        self,
        name: str,
        artifact: str,
        path: str,
        step_id: Optional[str] = None,
    ) -> Step:
        step = _step(
            name,
            step_id=step_id,
            uses=self.pinner.pin("actions/download-artifact"),
            with_={"name": artifact, "path": path},
        )
        step["continue-on-error"] = True
        return step

    def cache_save(self, name: str, key: str, path: str) -> Step:
        return _step(
            name,
            uses=self.pinner.pin("actions/cache/save"),
            with_={"key": key, "path": path},
        )

    def cache_restore(
        self,
        name: str,
        key: str,
        path: str,
        restore_keys: List[str],
        restore_only: bool = True,
    ) -> Step:
        """actions/cache/restore, or actions/cache (restore now, save at job end)."""
        action = "actions/cache/restore" if restore_only else "actions/cache"
        return _step(
            name,
            uses=self.pinner.pin(action),
            with_={"key": key, "path": path, "restore-keys": "\n".join(restore_keys) + "\n"},
        )


__all__ = [
    "Step",
    "StepFactory",
    "render_memory_validation",
    "render_script",
    "run_step",
]
