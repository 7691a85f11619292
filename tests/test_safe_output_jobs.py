# ============================================================================
# SAFE OUTPUT JOB TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - Dispatcher, detection and conclusion jobs
# PURPOSE: Verify permissions, token precedence and shared PR checkout
# CREATED: 18 OCT 2026
# ============================================================================
"""
Safe Output Job Tests

Run with:
    pytest tests/test_safe_output_jobs.py -v
"""

import json

from compiler.job_builder import JobGraphBuilder
from compiler.safe_outputs import project_env, pull_request_token, safe_outputs_permissions
from core.config import CompilerDefaults
from core.contracts import SafeOutputKind
from core.models import SafeOutputsConfig

from conftest import make_context, make_workflow

DEFAULT_TOKEN = "${{ secrets.GH_AW_GITHUB_TOKEN || secrets.GITHUB_TOKEN }}"


def _build(safe_outputs, **data):
    ctx = make_context(make_workflow(**{"safe-outputs": safe_outputs}, **data))
    return JobGraphBuilder(ctx).build()


def _job(manager, name):
    job, found = manager.get_job(name)
    assert found
    return job


def _step(job, name):
    return next(step for step in job.steps if step["name"] == name)


# ============================================================================
# PERMISSIONS
# ============================================================================

class TestPermissions:
    """Union of per-kind scopes."""

    def _permissions(self, data):
        config = SafeOutputsConfig.model_validate(data)
        kinds = [SafeOutputKind(key.replace("-", "_")) for key in data if key != "threat-detection"]
        return safe_outputs_permissions(config, kinds)

    def test_contents_read_always(self):
        assert self._permissions({"missing-tool": None}) == {"contents": "read"}

    def test_create_issue(self):
        assert self._permissions({"create-issue": None}) == {"contents": "read", "issues": "write"}

    def test_discussion_falls_back_to_issues(self):
        assert self._permissions({"create-discussion": None}) == {
            "contents": "read", "discussions": "write", "issues": "write",
        }

    def test_discussion_fallback_disabled(self):
        assert self._permissions({"create-discussion": {"fallback-to-issue": False}}) == {
            "contents": "read", "discussions": "write",
        }

    def test_pull_request_raises_contents(self):
        assert self._permissions({"create-pull-request": {"fallback-as-issue": False}}) == {
            "contents": "write", "pull-requests": "write",
        }

    def test_union_keeps_highest_level(self):
        permissions = self._permissions({
            "autofix-code-scanning-alert": None,
            "dispatch-workflow": None,
        })
        assert permissions == {"actions": "write", "contents": "read", "security-events": "write"}

    def test_sorted_scopes(self):
        permissions = self._permissions({"add-comment": None, "update-release": None})
        assert list(permissions) == sorted(permissions)
        assert permissions["contents"] == "write"


# ============================================================================
# DISPATCHER JOB
# ============================================================================

class TestDispatcherJob:
    """The safe_outputs job."""

    def test_handler_config_env(self):
        manager = _build({"add-comment": {"max": 3}, "create-issue": {"labels": ["bot"]}})
        step = _step(_job(manager, "safe_outputs"), "Process Safe Outputs")

        config = json.loads(step["env"]["GH_AW_SAFE_OUTPUTS_HANDLER_CONFIG"])
        assert config == {"add_comment": {"max": 3}, "create_issue": {"labels": ["bot"]}}
        assert step["id"] == "process_safe_outputs"
        assert step["with"]["github-token"] == DEFAULT_TOKEN

    def test_condition_with_detection(self):
        job = _job(_build({"create-issue": None}), "safe_outputs")
        assert job.if_condition == (
            "((!cancelled()) && (needs.agent.result != 'skipped')) "
            "&& (needs.detection.outputs.success == 'true')"
        )
        assert job.timeout_minutes == 15

    def test_staged_and_tracker_env(self):
        job = _job(_build({"create-issue": None, "staged": True}, **{"tracker-id": "abc"}), "safe_outputs")
        assert job.env["GH_AW_SAFE_OUTPUTS_STAGED"] == "true"
        assert job.env["GH_AW_TRACKER_ID"] == "abc"
        assert job.env["GH_AW_WORKFLOW_ID"] == "triage"

    def test_project_kinds_flag_setup(self):
        job = _job(_build({"update-project": None}), "safe_outputs")
        assert _step(job, "Setup Scripts")["with"]["safe-output-projects"] == "true"

    def test_project_url_and_token(self):
        job = _job(_build({"update-project": {"project": "https://github.com/orgs/acme/projects/7"}}), "safe_outputs")
        step = _step(job, "Process Safe Outputs")

        assert step["env"]["GH_AW_PROJECT_URL"] == "https://github.com/orgs/acme/projects/7"
        assert step["env"]["GH_AW_PROJECT_GITHUB_TOKEN"] == "${{ secrets.GH_AW_PROJECT_GITHUB_TOKEN }}"
        assert step["with"]["github-token"] == "${{ secrets.GH_AW_PROJECT_GITHUB_TOKEN }}"

    def test_no_project_env_without_project_kinds(self):
        step = _step(_job(_build({"create-issue": None}), "safe_outputs"), "Process Safe Outputs")
        assert not any(name.startswith("GH_AW_PROJECT_") for name in step["env"])


class TestProjectEnv:
    """Project URL and token selection."""

    def _env(self, data):
        return project_env(SafeOutputsConfig.model_validate(data), CompilerDefaults())

    def test_update_project_preferred(self):
        env = self._env({
            "create-project-status-update": {"project": "https://p/2", "github-token": "${{ secrets.STATUS }}"},
            "update-project": {"project": "https://p/1", "github-token": "${{ secrets.UPDATE }}"},
        })
        assert env == {"GH_AW_PROJECT_URL": "https://p/1", "GH_AW_PROJECT_GITHUB_TOKEN": "${{ secrets.UPDATE }}"}

    def test_status_update_falls_back_to_workflow_token(self):
        env = self._env({
            "github-token": "${{ secrets.SO }}",
            "create-project-status-update": {"project": "https://p/2"},
        })
        assert env == {"GH_AW_PROJECT_URL": "https://p/2", "GH_AW_PROJECT_GITHUB_TOKEN": "${{ secrets.SO }}"}

    def test_create_project_token_only(self):
        env = self._env({"create-project": {"target-owner": "acme"}})
        assert env == {"GH_AW_PROJECT_GITHUB_TOKEN": "${{ secrets.GH_AW_PROJECT_GITHUB_TOKEN }}"}

    def test_none_configured(self):
        assert self._env({"create-issue": None}) == {}


# ============================================================================
# PULL REQUEST KINDS
# ============================================================================

class TestPullRequestCheckout:
    """Shared checkout for create-pull-request and push-to-pull-request-branch."""

    def test_single_shared_checkout(self):
        manager = _build({"create-pull-request": None, "push-to-pull-request-branch": None})
        job = _job(manager, "safe_outputs")

        checkouts = [step for step in job.steps if step["name"] == "Checkout repository"]
        credentials = [step for step in job.steps if step["name"] == "Configure Git credentials"]
        assert len(checkouts) == 1
        assert len(credentials) == 1
        assert checkouts[0]["if"] == (
            "(contains(needs.agent.outputs.output_types, 'create_pull_request')) "
            "|| (contains(needs.agent.outputs.output_types, 'push_to_pull_request_branch'))"
        )
        assert credentials[0]["if"] == checkouts[0]["if"]
        assert "activation" in job.needs

    def test_checkout_and_git_use_same_token(self):
        manager = _build({"create-pull-request": {"github-token": "${{ secrets.PR_TOKEN }}"}})
        job = _job(manager, "safe_outputs")

        checkout = _step(job, "Checkout repository")
        credentials = _step(job, "Configure Git credentials")
        assert checkout["with"]["token"] == "${{ secrets.PR_TOKEN }}"
        assert credentials["env"]["GIT_TOKEN"] == "${{ secrets.PR_TOKEN }}"
        assert checkout["with"]["persist-credentials"] is False

    def test_patch_uploaded_and_downloaded(self):
        manager = _build({"create-pull-request": None})
        assert any(step["name"] == "Upload git patch" for step in _job(manager, "agent").steps)
        assert any(step["name"] == "Download patch artifact" for step in _job(manager, "safe_outputs").steps)

    def test_no_checkout_without_pr_kinds(self):
        job = _job(_build({"add-comment": None}), "safe_outputs")
        assert not any(step["name"] == "Checkout repository" for step in job.steps)


class TestTokenPrecedence:
    """pull_request_token resolution order."""

    def _token(self, data):
        return pull_request_token(SafeOutputsConfig.model_validate(data), CompilerDefaults())

    def test_default_chain(self):
        assert self._token({"create-pull-request": None}) == DEFAULT_TOKEN

    def test_safe_outputs_token(self):
        assert self._token({"github-token": "${{ secrets.A }}", "create-pull-request": None}) == "${{ secrets.A }}"

    def test_create_pull_request_token_wins(self):
        data = {
            "github-token": "${{ secrets.A }}",
            "create-pull-request": {"github-token": "${{ secrets.B }}"},
            "push-to-pull-request-branch": {"github-token": "${{ secrets.C }}"},
        }
        assert self._token(data) == "${{ secrets.B }}"

    def test_push_token_before_workflow_token(self):
        data = {
            "github-token": "${{ secrets.A }}",
            "push-to-pull-request-branch": {"github-token": "${{ secrets.C }}"},
        }
        assert self._token(data) == "${{ secrets.C }}"

    def test_app_token_wins(self):
        data = {
            "app": {"app-id": "${{ vars.APP_ID }}", "private-key": "${{ secrets.APP_KEY }}"},
            "create-pull-request": {"github-token": "${{ secrets.B }}"},
        }
        assert self._token(data) == "${{ steps.safe-outputs-app-token.outputs.token }}"


class TestAppToken:
    """GitHub App token mint and revoke steps."""

    def test_mint_and_revoke(self):
        manager = _build({
            "app": {"app-id": "${{ vars.APP_ID }}", "private-key": "${{ secrets.APP_KEY }}"},
            "create-issue": None,
        })
        job = _job(manager, "safe_outputs")

        mint = _step(job, "Generate GitHub App token")
        assert mint["id"] == "safe-outputs-app-token"
        assert mint["uses"].startswith("actions/create-github-app-token@")
        assert mint["with"]["permission-issues"] == "write"
        assert mint["with"]["repositories"] == "${{ github.event.repository.name }}"

        process = _step(job, "Process Safe Outputs")
        assert process["with"]["github-token"] == "${{ steps.safe-outputs-app-token.outputs.token }}"
        assert job.steps[-1]["name"] == "Invalidate GitHub App token"


# ============================================================================
# DETECTION AND CONCLUSION
# ============================================================================

class TestDetectionJob:
    """Threat detection job."""

    def test_custom_prompt_and_steps(self):
        manager = _build({
            "create-issue": None,
            "threat-detection": {"prompt": "Look for secrets", "steps": [{"uses": "org/scanner@v1"}]},
        })
        job = _job(manager, "detection")

        assert _step(job, "Setup threat detection")["env"]["CUSTOM_PROMPT"] == "Look for secrets"
        scanner = next(step for step in job.steps if step.get("uses", "").startswith("org/scanner@"))
        assert scanner["uses"].endswith(" # v1")
        assert job.outputs == {"success": "${{ steps.parse_results.outputs.success }}"}
        assert job.if_condition == (
            "(needs.agent.outputs.output_types != '') || (needs.agent.outputs.has_patch == 'true')"
        )


class TestConclusionJob:
    """Conclusion job steps."""

    def test_always_runs_after_agent(self):
        job = _job(_build({"create-issue": None}), "conclusion")
        assert job.if_condition == "(always()) && (needs.agent.result != 'skipped')"
        assert any(step.get("id") == "handle_agent_failure" for step in job.steps)

    def test_noop_and_missing_tool(self):
        job = _job(_build({"noop": {"max": 2}, "missing-tool": {"max": 5}}), "conclusion")

        assert _step(job, "Process No-Op Messages")["env"]["GH_AW_NOOP_MAX"] == "2"
        assert _step(job, "Record Missing Tool")["env"]["GH_AW_MISSING_TOOL_MAX"] == "5"
        assert "noop_message" in job.outputs
        assert "tools_reported" in job.outputs

    def test_lock_for_agent_unlocks(self):
        manager = _build({"add-comment": None}, on={"issues": {"types": ["opened"]}, "lock-for-agent": True})

        assert "activation" in _job(manager, "safe_outputs").needs
        unlock = _step(_job(manager, "conclusion"), "Unlock issue after agent workflow")
        assert unlock["if"] == "(always()) && (needs.activation.outputs.issue_locked == 'true')"
