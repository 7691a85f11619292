# ============================================================================
# MEMORY JOB TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - repo-memory and cache-memory persistence
# PURPOSE: Verify memory job creation, wiring and validation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Memory Job Tests

Run with:
    pytest tests/test_memory_jobs.py -v
"""

import pytest

from compiler.job_builder import JobGraphBuilder
from core.errors import ConfigurationError, InvalidBranchPrefixError
from core.models import CacheMemoryEntry, RepoMemoryEntry, validate_branch_prefix

from conftest import make_context, make_workflow


def _build(tools, **data):
    ctx = make_context(make_workflow(tools=tools, **data))
    return JobGraphBuilder(ctx).build()


def _job(manager, name):
    job, found = manager.get_job(name)
    assert found
    return job


# ============================================================================
# REPO MEMORY
# ============================================================================

class TestRepoMemory:
    """push_repo_memory job."""

    def test_job_created_and_conclusion_waits(self):
        manager = _build({"repo-memory": True})

        assert manager.job_names()[-1] == "push_repo_memory"
        job = _job(manager, "push_repo_memory")
        assert job.needs == ["agent"]
        assert job.if_condition == "always()"
        assert job.permissions == {"contents": "write"}
        assert "push_repo_memory" in _job(manager, "conclusion").needs

    def test_push_step_env(self):
        manager = _build({"repo-memory": {"id": "notes", "branch-prefix": "agent-mem", "max-file-count": 5}})
        job = _job(manager, "push_repo_memory")
        push = next(step for step in job.steps if step.get("id") == "push_repo_memory_notes")

        assert push["env"]["BRANCH_NAME"] == "agent-mem/notes"
        assert push["env"]["MAX_FILE_COUNT"] == "5"
        assert push["env"]["ARTIFACT_DIR"] == "/tmp/gh-aw/repo-memory/notes"
        assert job.outputs["validation_failed_notes"] == (
            "${{ steps.push_repo_memory_notes.outputs.validation_failed }}"
        )

    def test_agent_clones_and_uploads(self):
        manager = _build({"repo-memory": True})
        names = [step["name"] for step in _job(manager, "agent").steps]

        assert "Clone repo-memory branch (default)" in names
        assert "Upload repo-memory artifact (default)" in names

    def test_detection_gates_push(self):
        manager = _build({"repo-memory": True}, **{"safe-outputs": {"create-issue": None}})
        job = _job(manager, "push_repo_memory")

        assert job.needs == ["agent", "detection"]
        assert job.if_condition == "(always()) && (needs.detection.outputs.success == 'true')"

    def test_bad_branch_prefix(self):
        with pytest.raises(InvalidBranchPrefixError, match="at least 4 characters"):
            _build({"repo-memory": {"branch-prefix": "ab"}})

    def test_duplicate_ids(self):
        with pytest.raises(ConfigurationError, match="Duplicate repo-memory id 'x'"):
            _build({"repo-memory": [{"id": "x"}, {"id": "x"}]})


class TestBranchPrefix:
    """validate_branch_prefix rules."""

    @pytest.mark.parametrize("prefix", ["", "memo", "agent_memory-1", "a" * 32])
    def test_valid(self, prefix):
        validate_branch_prefix(prefix)

    @pytest.mark.parametrize("prefix,reason", [
        ("abc", "at least 4"),
        ("a" * 33, "at most 32"),
        ("has/slash", "alphanumeric"),
        ("Copilot", "reserved"),
    ])
    def test_invalid(self, prefix, reason):
        with pytest.raises(InvalidBranchPrefixError, match=reason):
            validate_branch_prefix(prefix)

    def test_effective_branch(self):
        assert RepoMemoryEntry().effective_branch() == "memory/default"
        assert RepoMemoryEntry(id="x", branch_name="custom").effective_branch() == "custom"


# ============================================================================
# CACHE MEMORY
# ============================================================================

class TestCacheMemory:
    """Cache restore in the agent job and update_cache_memory."""

    def test_without_detection_agent_saves(self):
        manager = _build({"cache-memory": True})

        assert "update_cache_memory" not in manager
        restore = next(
            step for step in _job(manager, "agent").steps
            if step["name"] == "Restore cache-memory file share data (default)"
        )
        assert restore["uses"].startswith("actions/cache@")
        assert _job(manager, "agent").env["GH_AW_WORKFLOW_ID_SANITIZED"] == "triage"

    def test_with_detection_saved_later(self):
        manager = _build({"cache-memory": True}, **{"safe-outputs": {"create-issue": None}})
        agent = _job(manager, "agent")

        restore = next(step for step in agent.steps if step["name"].startswith("Restore cache-memory"))
        assert restore["uses"].startswith("actions/cache/restore@")
        assert any(step["name"] == "Upload cache-memory data as artifact (default)" for step in agent.steps)

        job = _job(manager, "update_cache_memory")
        assert job.needs == ["agent", "detection"]
        save = next(step for step in job.steps if step["name"] == "Save cache-memory to cache (default)")
        assert save["with"]["key"] == "memory-${{ env.GH_AW_WORKFLOW_ID_SANITIZED }}-${{ github.run_id }}"
        assert "update_cache_memory" in _job(manager, "conclusion").needs

    def test_restore_only_skips_update_job(self):
        manager = _build(
            {"cache-memory": {"restore-only": True}},
            **{"safe-outputs": {"create-issue": None}},
        )
        assert "update_cache_memory" not in manager

    def test_allowed_extensions_validated(self):
        manager = _build({"cache-memory": {"allowed-extensions": [".json"]}})
        validation = next(
            step for step in _job(manager, "agent").steps
            if step["name"] == "Validate cache-memory file types (default)"
        )
        assert '[".json"]' in validation["with"]["script"]

    def test_cache_keys(self):
        cache = CacheMemoryEntry(id="notes", key="custom-key")
        assert cache.cache_key() == "custom-key-${{ github.run_id }}"
        assert cache.restore_key() == "custom-key-"
        assert cache.artifact_name == "cache-memory-notes"
        assert CacheMemoryEntry().directory == "/tmp/gh-aw/cache-memory"
