# ============================================================================
# ACTION STALENESS VALIDATOR
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Service - Advisory check of pinned SHAs
# PURPOSE: Flag pinned SHAs that no longer match their version tag
# CREATED: 16 OCT 2026
# ============================================================================
"""
Action Staleness Validator

Scans compiled workflow text for pinned references:

    uses: actions/checkout@93cb6efe18208431cddfb8368fd83d5badbf9bfd # v5

and re-resolves each version tag with the cache bypassed. A pinned SHA
that differs from the tag's current SHA produces a StalenessWarning.

Never fatal:
- mismatches are warnings
- resolution failures are recorded in the report and logged
- references without a version comment are skipped

Fresh SHAs land in the resolver's cache; persist=True saves it.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from core.errors import ResolutionError
from core.logging import get_logger, ComponentType
from services.action_resolver import ActionResolver

logger = get_logger(__name__, ComponentType.VALIDATOR)

PINNED_USES_PATTERN = re.compile(
    r"""uses:\s*["']?([A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_./-]+)?)@([0-9a-f]{40})["']?(?:\s*#\s*(\S+))?"""
)


# ============================================================================
# RESULT
# ============================================================================

@dataclass
class StalenessWarning:
    """A pinned SHA behind the current SHA of its version tag."""
    action: str
    version: str
    pinned_sha: str
    current_sha: str

    @property
    def suggestion(self) -> str:
        return f"update to {self.action}@{self.current_sha} # {self.version}"

    def __str__(self) -> str:
        return (
            f"{self.action}@{self.version} is pinned to {self.pinned_sha} "
            f"but the tag now points to {self.current_sha}; {self.suggestion}"
        )


@dataclass
class StalenessReport:
    """
    Result of a staleness scan.

    Collects all findings rather than stopping at the first.
    """
    checked: int = 0
    warnings: List[StalenessWarning] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    cache_saved: bool = False

    @property
    def is_stale(self) -> bool:
        return bool(self.warnings)

    def merge(self, other: "StalenessReport") -> None:
        self.checked += other.checked
        self.warnings.extend(other.warnings)
        self.failures.extend(other.failures)
        self.skipped.extend(other.skipped)
        self.cache_saved = self.cache_saved or other.cache_saved


# ============================================================================
# VALIDATOR
# ============================================================================

def find_pinned_references(text: str) -> List[Tuple[str, str, Optional[str]]]:
    """
    Distinct (action, sha, version) triples in first-seen order.

    version is None when the reference has no trailing comment.
    """
    seen = set()
    references = []
    for match in PINNED_USES_PATTERN.finditer(text):
        triple = (match.group(1), match.group(2), match.group(3))
        if triple in seen:
            continue
        seen.add(triple)
        references.append(triple)
    return references


class ActionValidator:
    """Re-resolves pinned references and reports stale ones."""

    def __init__(self, resolver: ActionResolver):
        self.resolver = resolver

    def validate_text(self, text: str, persist: bool = False) -> StalenessReport:
        """
        Check every pinned reference in compiled workflow text.

        Args:
            text: Compiled workflow YAML
            persist: Save the cache afterwards if it changed
        """
        report = StalenessReport()

        for action, pinned_sha, version in find_pinned_references(text):
            if version is None:
                logger.debug(f"Skipping {action}@{pinned_sha}: no version comment")
                report.skipped.append(f"{action}@{pinned_sha}")
                continue

            report.checked += 1
            try:
                current_sha = self.resolver.lookup_fresh(action, version)
            except ResolutionError as e:
                logger.warning(f"Could not check {action}@{version}: {e.reason}")
                report.failures.append(str(e))
                continue

            if current_sha != pinned_sha:
                warning = StalenessWarning(
                    action=action,
                    version=version,
                    pinned_sha=pinned_sha,
                    current_sha=current_sha,
                )
                logger.warning(str(warning))
                report.warnings.append(warning)

        if persist:
            report.cache_saved = self.resolver.cache.save()
        return report

    def validate_file(self, path: Union[str, Path], persist: bool = False) -> StalenessReport:
        """Check a compiled lock file on disk."""
        text = Path(path).read_text(encoding="utf-8")
        return self.validate_text(text, persist=persist)


__all__ = [
    "PINNED_USES_PATTERN",
    "StalenessWarning",
    "StalenessReport",
    "ActionValidator",
    "find_pinned_references",
]
