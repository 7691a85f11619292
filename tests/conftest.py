# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - Fixtures shared by the compiler tests
# PURPOSE: Offline resolver, build context and workflow helpers
# CREATED: 18 OCT 2026
# ============================================================================
"""
Shared fixtures.

No test touches the network: the resolver's tag lookup is a MagicMock
returning a deterministic 40-hex SHA per (repo, version).
"""

import hashlib

import pytest
from unittest.mock import MagicMock

from compiler.context import BuildContext
from compiler.engine.scripts import StepFactory
from core.config import CompilerDefaults, Defaults
from core.models import WorkflowSpec
from services.action_pins import ActionPinner
from services.action_resolver import ActionResolver
from services.safe_output_config import SafeOutputConfigBuilder


def fake_sha(repo: str, version: str) -> str:
    """Stable 40-hex SHA for a (repo, version) pair."""
    return hashlib.sha1(f"{repo}@{version}".encode("utf-8")).hexdigest()


def make_lookup():
    lookup = MagicMock()
    lookup.lookup.side_effect = fake_sha
    return lookup


def make_context(workflow: WorkflowSpec, defaults: Defaults = None) -> BuildContext:
    """BuildContext with an offline resolver and the dispatch config built."""
    defaults = defaults or Defaults()
    pinner = ActionPinner(ActionResolver(lookup=make_lookup()), defaults.actions)
    builder = SafeOutputConfigBuilder(defaults.compiler)
    dispatch = builder.build(workflow.safe_outputs)
    return BuildContext(
        workflow=workflow,
        steps=StepFactory(pinner, defaults.compiler),
        defaults=defaults.compiler,
        dispatch=dispatch,
        dispatch_json=builder.serialize(dispatch) if dispatch else "",
    )


def make_workflow(**data) -> WorkflowSpec:
    data.setdefault("workflow_id", "triage")
    data.setdefault("on", {"issues": {"types": ["opened"]}})
    return WorkflowSpec.model_validate(data)


@pytest.fixture
def defaults():
    return Defaults(compiler=CompilerDefaults())


@pytest.fixture
def lookup():
    return make_lookup()


@pytest.fixture
def resolver(lookup):
    return ActionResolver(lookup=lookup)
