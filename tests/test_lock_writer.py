# ============================================================================
# LOCK FILE WRITER TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - YAML emission
# PURPOSE: Verify lock file layout, pinned comments and size checks
# CREATED: 18 OCT 2026
# ============================================================================
"""
Lock File Writer Tests

Run with:
    pytest tests/test_lock_writer.py -v
"""

import pytest
import yaml

from core.config import CompilerDefaults
from core.errors import SizeLimitError
from core.models import JobNode
from services.job_manager import JobManager
from services.lock_writer import LockFileWriter, split_pinned

from conftest import make_workflow

SHA = "c" * 40


def _manager(*jobs):
    manager = JobManager()
    for job in jobs:
        manager.add_job(job)
    return manager


# ============================================================================
# HELPERS
# ============================================================================

class TestSplitPinned:
    """Pinned reference splitting."""

    def test_pinned_with_tag(self):
        assert split_pinned(f"actions/checkout@{SHA} # v5") == (f"actions/checkout@{SHA}", "v5")

    def test_unpinned(self):
        assert split_pinned("actions/checkout@v5") == ("actions/checkout@v5", None)

    def test_local(self):
        assert split_pinned("./actions/setup") == ("./actions/setup", None)


# ============================================================================
# RENDER
# ============================================================================

class TestRender:
    """Document layout."""

    def _render(self, workflow=None, jobs=None, **defaults):
        writer = LockFileWriter(CompilerDefaults(**defaults))
        workflow = workflow or make_workflow(markdown="# Triage\n")
        jobs = jobs or _manager(
            JobNode(name="activation", permissions={"contents": "read"}),
            JobNode(
                name="agent",
                needs=["activation"],
                steps=[
                    {"name": "Checkout", "uses": f"actions/checkout@{SHA} # v5"},
                    {"name": "Run", "run": "echo one\necho two\n"},
                ],
            ),
        )
        return writer.render(workflow, jobs)

    def test_header_and_parse(self):
        text = self._render()
        assert text.startswith("# This file was automatically generated")
        assert "# To update this file, edit triage.md and recompile." in text

        document = yaml.safe_load(text)
        assert document["name"] == "Triage"
        assert document["on"] == {"issues": {"types": ["opened"]}}
        assert document["permissions"] == {}
        assert list(document["jobs"]) == ["activation", "agent"]

    def test_pinned_tag_comment(self):
        text = self._render()
        assert f"uses: actions/checkout@{SHA} # v5\n" in text
        assert yaml.safe_load(text)["jobs"]["agent"]["steps"][0]["uses"] == f"actions/checkout@{SHA}"

    def test_literal_block_for_multiline(self):
        text = self._render()
        assert "run: |" in text
        assert yaml.safe_load(text)["jobs"]["agent"]["steps"][1]["run"] == "echo one\necho two\n"

    def test_job_key_order(self):
        job = JobNode(
            name="agent",
            needs=["activation"],
            if_condition="always()",
            timeout_minutes=5,
            env={"A": "1"},
            outputs={"o": "x"},
            steps=[{"run": "true"}],
        )
        text = self._render(jobs=_manager(JobNode(name="activation"), job))
        agent = yaml.safe_load(text)["jobs"]["agent"]

        assert list(agent) == [
            "needs", "if", "runs-on", "permissions", "timeout-minutes", "env", "outputs", "steps",
        ]
        assert agent["needs"] == "activation"
        assert agent["permissions"] == {}

    def test_custom_job_without_permissions_omits_key(self):
        text = self._render(jobs=_manager(JobNode(name="lint", steps=[{"run": "true"}])))
        assert "permissions" not in yaml.safe_load(text)["jobs"]["lint"]

    def test_reusable_workflow_job(self):
        job = JobNode(
            name="call",
            uses="org/repo/.github/workflows/build.yml@main",
            with_={"target": "prod"},
            secrets={"TOKEN": "${{ secrets.T }}"},
        )
        document = yaml.safe_load(self._render(jobs=_manager(job)))

        assert document["jobs"]["call"] == {
            "uses": "org/repo/.github/workflows/build.yml@main",
            "with": {"target": "prod"},
            "secrets": {"TOKEN": "${{ secrets.T }}"},
        }

    def test_deterministic(self):
        assert self._render() == self._render()

    def test_oversized_line_names_job(self):
        job = JobNode(name="agent", env={"BIG": "x" * 200}, steps=[{"run": "true"}])
        with pytest.raises(SizeLimitError, match="jobs.agent.env") as exc_info:
            self._render(jobs=_manager(job), max_expression_size=100)
        assert exc_info.value.limit == 100


class TestRenderOn:
    """Trigger section."""

    def test_gate_keys_removed(self):
        workflow = make_workflow(on={"issues": {"types": ["opened"]}, "reaction": "eyes", "stop-after": "+1d"})
        assert LockFileWriter(CompilerDefaults()).render_on(workflow) == {"issues": {"types": ["opened"]}}

    def test_command_adds_events(self):
        workflow = make_workflow(on={"command": "fix"})
        on = LockFileWriter(CompilerDefaults()).render_on(workflow)
        assert on["issue_comment"] == {"types": ["created", "edited"]}
        assert "command" not in on

    def test_missing_on(self):
        workflow = make_workflow(on=None)
        assert LockFileWriter(CompilerDefaults()).render_on(workflow) == {"workflow_dispatch": None}


class TestLockPath:
    """Output location."""

    def test_beside_source(self, tmp_path):
        workflow = make_workflow(source_path=str(tmp_path / "triage.md"))
        assert LockFileWriter().lock_path(workflow) == tmp_path / "triage.lock.yml"

    def test_output_dir(self, tmp_path):
        assert LockFileWriter().lock_path(make_workflow(), tmp_path) == tmp_path / "triage.lock.yml"
