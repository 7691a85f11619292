# ============================================================================
# ACTION RESOLUTION TESTS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Tests - Cache, tag lookup, resolver and pinner
# PURPOSE: Verify tag -> SHA resolution without network access
# CREATED: 18 OCT 2026
# ============================================================================
"""
Action Resolution Tests

GitHubTagLookup runs against httpx.MockTransport; the resolver tests
use a MagicMock lookup.

Run with:
    pytest tests/test_action_resolver.py -v
"""

import json

import httpx
import pytest
from unittest.mock import MagicMock

from core.errors import ConfigurationError, ResolutionError
from core.models import ActionReference
from services.action_cache import ActionCache
from services.action_pins import ActionPinner, is_remote_action
from services.action_resolver import ActionResolver
from services.tag_lookup import GitHubTagLookup

SHA_A = "a" * 40
SHA_B = "b" * 40


# ============================================================================
# ACTION REFERENCES
# ============================================================================

class TestActionReference:
    """Parsing and formatting of `uses:` values."""

    def test_parse_tag(self):
        ref = ActionReference.parse("actions/checkout@v5")
        assert (ref.repo, ref.version, ref.sha) == ("actions/checkout", "v5", None)
        assert ref.is_pinned is False

    def test_parse_pinned_with_comment(self):
        ref = ActionReference.parse(f"actions/checkout@{SHA_A} # v5")
        assert ref.sha == SHA_A
        assert ref.version == "v5"
        assert ref.pinned() == f"actions/checkout@{SHA_A} # v5"

    def test_subpath_shares_root_key(self):
        ref = ActionReference.parse("github/codeql-action/upload-sarif@v3")
        assert ref.root == "github/codeql-action"
        assert ref.cache_key == "github/codeql-action@v3"

    def test_no_version(self):
        with pytest.raises(ValueError, match="no version"):
            ActionReference.parse("actions/checkout")

    @pytest.mark.parametrize("uses,remote", [
        ("actions/checkout@v5", True),
        ("./actions/setup", False),
        ("docker://alpine:3", False),
        ("local@v1", False),
    ])
    def test_is_remote_action(self, uses, remote):
        assert is_remote_action(uses) is remote


# ============================================================================
# CACHE
# ============================================================================

class TestActionCache:
    """Persistent lock file."""

    def test_missing_file_is_empty(self, tmp_path):
        cache = ActionCache(tmp_path / "actions-lock.json")
        assert len(cache) == 0
        assert cache.save() is False

    def test_set_and_save_roundtrip(self, tmp_path):
        path = tmp_path / ".github" / "aw" / "actions-lock.json"
        cache = ActionCache(path)
        assert cache.set("actions/checkout", "v5", SHA_A) is True
        assert cache.is_dirty is True
        assert cache.save() is True
        assert cache.is_dirty is False

        data = json.loads(path.read_text())
        assert data == {"entries": {"actions/checkout@v5": {
            "repo": "actions/checkout", "sha": SHA_A, "version": "v5",
        }}}
        assert ActionCache(path).get("actions/checkout", "v5") == SHA_A

    def test_same_sha_not_dirty(self, tmp_path):
        cache = ActionCache(tmp_path / "lock.json")
        cache.set("actions/checkout", "v5", SHA_A)
        cache.save()

        assert cache.set("actions/checkout", "v5", SHA_A) is False
        assert cache.save() is False

    def test_subpath_keyed_on_root(self):
        cache = ActionCache()
        cache.set("github/codeql-action/upload-sarif", "v3", SHA_A)

        assert "github/codeql-action@v3" in cache
        assert cache.get("github/codeql-action/analyze", "v3") == SHA_A

    def test_malformed_file_ignored(self, tmp_path):
        path = tmp_path / "lock.json"
        path.write_text("{not json")

        cache = ActionCache(path)
        assert len(cache) == 0
        cache.set("actions/checkout", "v5", SHA_A)
        assert cache.save() is True
        assert json.loads(path.read_text())["entries"]

    def test_invalid_entry_skipped(self, tmp_path):
        path = tmp_path / "lock.json"
        path.write_text(json.dumps({"entries": {
            "a/b@v1": {"repo": "a/b", "version": "v1", "sha": "short"},
            "c/d@v2": {"repo": "c/d", "version": "v2", "sha": SHA_B},
        }}))

        cache = ActionCache(path)
        assert list(cache.keys()) == ["c/d@v2"]

    def test_no_temp_files_left(self, tmp_path):
        cache = ActionCache(tmp_path / "lock.json")
        cache.set("actions/checkout", "v5", SHA_A)
        cache.save()
        assert [p.name for p in tmp_path.iterdir()] == ["lock.json"]

    def test_for_repository(self, tmp_path):
        cache = ActionCache.for_repository(tmp_path)
        assert cache.path == tmp_path / ".github" / "aw" / "actions-lock.json"


# ============================================================================
# TAG LOOKUP
# ============================================================================

def _lookup(handler):
    return GitHubTagLookup(
        api_base_url="https://api.github.test",
        token="t0ken",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


class TestGitHubTagLookup:
    """HTTP behaviour against a mock transport."""

    def test_lightweight_tag(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"object": {"type": "commit", "sha": SHA_A}})

        assert _lookup(handler).lookup("actions/checkout", "v5") == SHA_A
        assert seen[0].url.path == "/repos/actions/checkout/git/ref/tags/v5"
        assert seen[0].headers["Authorization"] == "Bearer t0ken"

    def test_annotated_tag_dereferenced(self):
        def handler(request):
            if request.url.path.endswith("/git/ref/tags/v5"):
                return httpx.Response(200, json={"object": {"type": "tag", "sha": SHA_B}})
            assert request.url.path == f"/repos/actions/checkout/git/tags/{SHA_B}"
            return httpx.Response(200, json={"object": {"type": "commit", "sha": SHA_A}})

        assert _lookup(handler).lookup("actions/checkout", "v5") == SHA_A

    def test_not_found(self):
        lookup = _lookup(lambda request: httpx.Response(404, json={"message": "Not Found"}))
        with pytest.raises(ResolutionError, match="tag not found") as exc_info:
            lookup.lookup("actions/checkout", "v99")
        assert exc_info.value.repo == "actions/checkout"
        assert exc_info.value.version == "v99"

    def test_server_error(self):
        lookup = _lookup(lambda request: httpx.Response(502))
        with pytest.raises(ResolutionError, match="HTTP 502"):
            lookup.lookup("actions/checkout", "v5")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ResolutionError, match="request failed"):
            _lookup(handler).lookup("actions/checkout", "v5")

    def test_payload_without_sha(self):
        lookup = _lookup(lambda request: httpx.Response(200, json={"object": {"type": "commit"}}))
        with pytest.raises(ResolutionError, match="no commit SHA"):
            lookup.lookup("actions/checkout", "v5")

    @pytest.mark.parametrize("payload", [{"object": "commit"}, {"object": [SHA_A]}, {"ref": "refs/tags/v5"}])
    def test_payload_without_object(self, payload):
        lookup = _lookup(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(ResolutionError, match="no tag object"):
            lookup.lookup("actions/checkout", "v5")


# ============================================================================
# RESOLVER
# ============================================================================

class TestActionResolver:
    """Cache-first resolution with per-run failure memory."""

    def test_cache_hit_skips_lookup(self):
        cache = ActionCache()
        cache.set("actions/checkout", "v5", SHA_A)
        lookup = MagicMock()

        assert ActionResolver(cache, lookup).resolve_sha("actions/checkout", "v5") == SHA_A
        lookup.lookup.assert_not_called()

    def test_miss_looks_up_root_and_caches(self):
        lookup = MagicMock()
        lookup.lookup.return_value = SHA_A
        resolver = ActionResolver(ActionCache(), lookup)

        assert resolver.resolve_sha("github/codeql-action/analyze", "v3") == SHA_A
        assert resolver.resolve_sha("github/codeql-action/upload-sarif", "v3") == SHA_A
        lookup.lookup.assert_called_once_with("github/codeql-action", "v3")
        assert resolver.cache.get("github/codeql-action", "v3") == SHA_A

    def test_failure_not_retried(self):
        lookup = MagicMock()
        lookup.lookup.side_effect = ResolutionError("a/b", "v1", "tag not found")
        resolver = ActionResolver(ActionCache(), lookup)

        with pytest.raises(ResolutionError):
            resolver.resolve_sha("a/b", "v1")
        with pytest.raises(ResolutionError, match="previously failed"):
            resolver.resolve_sha("a/b", "v1")
        assert lookup.lookup.call_count == 1
        assert resolver.failed == frozenset({"a/b@v1"})

    def test_no_lookup_configured(self):
        with pytest.raises(ResolutionError, match="no lookup configured"):
            ActionResolver(ActionCache()).resolve_sha("a/b", "v1")

    def test_force_refresh_looks_up_once(self):
        cache = ActionCache()
        cache.set("actions/checkout", "v5", SHA_A)
        lookup = MagicMock()
        lookup.lookup.return_value = SHA_B
        resolver = ActionResolver(cache, lookup, force_refresh=True)

        assert resolver.resolve_sha("actions/checkout", "v5") == SHA_B
        assert resolver.resolve_sha("actions/checkout", "v5") == SHA_B
        assert lookup.lookup.call_count == 1

    def test_lookup_fresh_bypasses_cache(self):
        cache = ActionCache()
        cache.set("actions/checkout", "v5", SHA_A)
        lookup = MagicMock()
        lookup.lookup.return_value = SHA_B
        resolver = ActionResolver(cache, lookup)

        assert resolver.lookup_fresh("actions/checkout/sub", "v5") == SHA_B
        assert resolver.lookup_fresh("actions/checkout", "v5") == SHA_B
        lookup.lookup.assert_called_once_with("actions/checkout", "v5")
        assert cache.get("actions/checkout", "v5") == SHA_B

    def test_lookup_fresh_failure_remembered(self):
        lookup = MagicMock()
        lookup.lookup.side_effect = ResolutionError("a/b", "v1", "tag not found")
        resolver = ActionResolver(ActionCache(), lookup)

        with pytest.raises(ResolutionError):
            resolver.lookup_fresh("a/b", "v1")
        with pytest.raises(ResolutionError, match="previously failed"):
            resolver.resolve_sha("a/b", "v1")
        assert lookup.lookup.call_count == 1

    def test_lookup_fresh_without_lookup(self):
        cache = ActionCache()
        cache.set("a/b", "v1", SHA_A)
        with pytest.raises(ResolutionError, match="no lookup configured"):
            ActionResolver(cache).lookup_fresh("a/b", "v1")


class TestActionPinner:
    """Pinning through the resolver."""

    def _pinner(self):
        lookup = MagicMock()
        lookup.lookup.return_value = SHA_A
        return ActionPinner(ActionResolver(ActionCache(), lookup))

    def test_pin_standard_action(self):
        assert self._pinner().pin("actions/cache/save", "v4") == f"actions/cache/save@{SHA_A} # v4"

    def test_already_pinned_untouched(self):
        uses = f"actions/checkout@{SHA_B} # v5"
        assert self._pinner().pin_uses(uses) == uses

    def test_pin_steps_copies(self):
        steps = [{"uses": "actions/setup-node@v4", "with": {"node-version": "20"}}]
        pinned = self._pinner().pin_steps(steps)

        assert pinned[0]["uses"] == f"actions/setup-node@{SHA_A} # v4"
        assert steps[0]["uses"] == "actions/setup-node@v4"

    def test_pin_steps_malformed_uses(self):
        steps = [{"name": "Checkout", "uses": "actions/checkout@"}]

        with pytest.raises(ConfigurationError, match="jobs.lint step Checkout"):
            self._pinner().pin_steps(steps, "lint")
