# ============================================================================
# EXPRESSION AND SCRIPT TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - Condition builders and github-script rendering
# PURPOSE: Verify expression composition and Jinja2 script bodies
# CREATED: 18 OCT 2026
# ============================================================================
"""
Expression and Script Tests

Run with:
    pytest tests/test_expressions.py -v
"""

import pytest
from jinja2 import UndefinedError

from compiler.engine.expressions import (
    and_,
    contains,
    equals,
    needs_output,
    not_equals,
    or_,
    references_job,
    step_output,
    unwrap,
    wrap,
)
from compiler.engine.scripts import StepFactory, render_memory_validation, render_script, run_step
from core.config import CompilerDefaults
from core.errors import ConfigurationError
from services.action_pins import ActionPinner
from services.action_resolver import ActionResolver

from conftest import fake_sha, make_lookup


# ============================================================================
# EXPRESSIONS
# ============================================================================

class TestConditions:
    """and_/or_/equals composition."""

    def test_and_two(self):
        assert and_("a", "b") == "(a) && (b)"

    def test_and_folds_left(self):
        assert and_("a", "b", "c") == "((a) && (b)) && (c)"

    def test_and_skips_empty(self):
        assert and_("", "a", None) == "a"
        assert and_() == ""

    def test_or(self):
        assert or_("x", "y") == "(x) || (y)"

    def test_equals_quotes_value(self):
        assert equals("github.event_name", "issues") == "github.event_name == 'issues'"
        assert not_equals("needs.agent.result", "skipped") == "needs.agent.result != 'skipped'"

    def test_string_literal_escapes_quote(self):
        assert equals("x", "it's") == "x == 'it''s'"

    def test_output_references(self):
        assert step_output("check", "ok") == "steps.check.outputs.ok"
        assert needs_output("agent", "output") == "needs.agent.outputs.output"
        assert contains("needs.agent.outputs.output_types", "create_issue") == (
            "contains(needs.agent.outputs.output_types, 'create_issue')"
        )


class TestWrap:
    """${{ }} wrapping."""

    def test_wrap(self):
        assert wrap("a == 'b'") == "${{ a == 'b' }}"

    def test_unwrap(self):
        assert unwrap("${{ github.event_name == 'issues' }}") == "github.event_name == 'issues'"

    def test_unwrap_bare_expression(self):
        assert unwrap("  always() ") == "always()"
        assert unwrap("") == ""

    def test_unwrap_leaves_multiple_wrappers(self):
        text = "${{ a }} && ${{ b }}"
        assert unwrap(text) == text


class TestReferencesJob:
    """needs.<job>. detection."""

    def test_output_reference(self):
        assert references_job("needs.check.outputs.ok == 'true'", "check") is True

    def test_result_reference(self):
        assert references_job("needs.check.result == 'success'", "check") is True

    def test_prefix_name_not_matched(self):
        assert references_job("needs.checker.outputs.ok", "check") is False

    def test_empty_text(self):
        assert references_job("", "check") is False


# ============================================================================
# SCRIPTS
# ============================================================================

class TestRenderScript:
    """Jinja2 github-script bodies."""

    def test_handler_body(self):
        body = render_script("check_membership", destination="/opt/gh-aw/actions")
        assert body.splitlines() == [
            "const { setupGlobals } = require('/opt/gh-aw/actions/setup_globals.cjs');",
            "setupGlobals(core, github, context, exec, io);",
            "const { main } = require('/opt/gh-aw/actions/check_membership.cjs');",
            "await main();",
        ]

    def test_memory_validation_lists_extensions(self):
        body = render_memory_validation("/tmp/gh-aw/cache-memory", [".json", ".md"], destination="/opt/x")
        assert "require('/opt/x/validate_memory_files.cjs')" in body
        assert 'const allowedExtensions = [".json", ".md"];' in body
        assert "validateMemoryFiles('/tmp/gh-aw/cache-memory', 'cache', allowedExtensions)" in body
        assert "Only .json, .md are allowed." in body

    def test_run_step_key_order(self):
        step = run_step("Build", "make", step_id="build", env={"A": "1"}, condition="always()")
        assert list(step) == ["name", "id", "if", "env", "run"]


class TestStepFactory:
    """Pinned step construction."""

    def _factory(self, **overrides):
        pinner = ActionPinner(ActionResolver(lookup=make_lookup()))
        return StepFactory(pinner, CompilerDefaults(**overrides))

    def test_github_script_is_pinned(self):
        step = self._factory().github_script("Check", "check_membership", step_id="check", github_token="t")

        sha = fake_sha("actions/github-script", "v8")
        assert step["uses"] == f"actions/github-script@{sha} # v8"
        assert step["id"] == "check"
        assert list(step["with"]) == ["github-token", "script"]

    def test_dev_mode_setup_checks_out_actions(self):
        steps = self._factory().setup_steps()

        assert [step["name"] for step in steps] == ["Checkout actions folder", "Setup Scripts"]
        assert steps[0]["with"]["sparse-checkout"] == "actions\n"
        assert steps[0]["with"]["persist-credentials"] is False
        assert steps[1]["uses"] == "./actions/setup"

    def test_release_mode_pins_setup_action(self):
        factory = self._factory(action_mode="release", action_tag="v0.40.0")
        steps = factory.setup_steps(safe_output_projects=True)

        sha = fake_sha("github/gh-aw", "v0.40.0")
        assert len(steps) == 1
        assert steps[0]["uses"] == f"github/gh-aw/actions/setup@{sha} # v0.40.0"
        assert steps[0]["with"]["safe-output-projects"] == "true"
        assert factory.checks_out_actions is False

    def test_release_mode_without_tag(self):
        factory = self._factory(action_mode="release")
        with pytest.raises(ConfigurationError, match="requires an action tag"):
            factory.setup_steps()

    def test_download_continues_on_error(self):
        step = self._factory().download_artifact("Download", "agent-output", "/tmp/out/")
        assert step["continue-on-error"] is True
        assert step["with"] == {"name": "agent-output", "path": "/tmp/out/"}

    def test_cache_restore_action_choice(self):
        factory = self._factory()
        restore = factory.cache_restore("Restore", "k-1", "/tmp/c", ["k-"], restore_only=True)
        full = factory.cache_restore("Restore", "k-1", "/tmp/c", ["k-"], restore_only=False)

        assert restore["uses"].startswith("actions/cache/restore@")
        assert full["uses"].startswith("actions/cache@")
        assert restore["with"]["restore-keys"] == "k-\n"


class TestStrictTemplates:
    """Templates fail loudly on a missing variable."""

    def test_missing_variable_raises(self):
        from compiler.engine import scripts

        with pytest.raises(UndefinedError):
            scripts._HANDLER_TEMPLATE.render(destination="/opt")
