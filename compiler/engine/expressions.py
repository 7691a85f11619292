# ============================================================================
# EXPRESSION BUILDERS
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Engine - Run-condition and output expressions
# PURPOSE: Compose ${{ }} expressions for job conditions and outputs
# CREATED: 15 OCT 2026
# ============================================================================
"""
Expression Builders

Run conditions are opaque strings to the job graph. This module only
composes them; it never evaluates one.

Rendering rules:
- and_(a, b)      -> (a) && (b)         folded left for more operands
- or_(a, b)       -> (a) || (b)
- equals(x, "v")  -> x == 'v'
- wrap(x)         -> ${{ x }}
- unwrap("${{ x }}") -> x
"""

import re
from typing import Iterable, List, Optional

_WRAPPED = re.compile(r"^\$\{\{\s*(.*?)\s*\}\}$", re.DOTALL)


def wrap(expression: str) -> str:
    """Wrap a bare expression in ${{ }}."""
    return f"${{{{ {expression} }}}}"


def unwrap(expression: str) -> str:
    """Strip a single enclosing ${{ }} if present."""
    if not expression:
        return ""
    match = _WRAPPED.match(expression.strip())
    if match and "${{" not in match.group(1):
        return match.group(1)
    return expression.strip()


def string_literal(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def equals(left: str, value: str) -> str:
    return f"{left} == {string_literal(value)}"


def not_equals(left: str, value: str) -> str:
    return f"{left} != {string_literal(value)}"


def _fold(operator: str, conditions: Iterable[Optional[str]]) -> str:
    parts: List[str] = [c for c in conditions if c]
    if not parts:
        return ""
    result = parts[0]
    for part in parts[1:]:
        result = f"({result}) {operator} ({part})"
    return result


def and_(*conditions: Optional[str]) -> str:
    """AND the non-empty conditions together."""
    return _fold("&&", conditions)


def or_(*conditions: Optional[str]) -> str:
    """OR the non-empty conditions together."""
    return _fold("||", conditions)


def step_output(step_id: str, output: str) -> str:
    return f"steps.{step_id}.outputs.{output}"


def needs_output(job_name: str, output: str) -> str:
    return f"needs.{job_name}.outputs.{output}"


def needs_result(job_name: str) -> str:
    return f"needs.{job_name}.result"


def contains(haystack: str, needle: str) -> str:
    return f"contains({haystack}, {string_literal(needle)})"


def references_job(text: str, job_name: str) -> bool:
    """
    True if `text` mentions `needs.<job_name>.`

    Covers outputs and result references. Plain substring match.
    """
    if not text:
        return False
    return f"needs.{job_name}." in text


__all__ = [
    "wrap",
    "unwrap",
    "string_literal",
    "equals",
    "not_equals",
    "and_",
    "or_",
    "step_output",
    "needs_output",
    "needs_result",
    "contains",
    "references_job",
]
