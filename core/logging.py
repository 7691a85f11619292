# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across all compiler phases
# CREATED: 12 OCT 2026
# ============================================================================
"""
Structured Logging

JSON or human-readable log lines for the workflow compiler, always on
stderr so compiled output and CLI summaries on stdout stay clean.

Features:
- Component-tagged loggers (compiler, job_builder, resolver, ...)
- Nested contextual fields (workflow_id, job_name, action)
- JSON output for CI log aggregation (LOG_FORMAT=json)
- Named checkpoints marking compile milestones

Usage:
    from core.logging import get_logger, log_context, ComponentType

    logger = get_logger(__name__, ComponentType.JOB_BUILDER)

    with log_context(workflow_id="triage"):
        with log_context(job_name="agent"):
            logger.info("Building job")
    # -> ... compiler.job_builder [job_builder | workflow=triage, job=agent]: Building job
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from enum import Enum


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    COMPILER = "compiler"
    JOB_BUILDER = "job_builder"
    SAFE_OUTPUTS = "safe_outputs"
    RESOLVER = "resolver"
    VALIDATOR = "validator"
    SERVICE = "service"
    CLI = "cli"


@dataclass(frozen=True)
class LogContext:
    """
    Fields attached to every record emitted inside a log_context block.

    Inner blocks inherit the enclosing fields and override the ones they
    set; anything that is not a known field lands in `extra`.
    """
    workflow_id: Optional[str] = None
    job_name: Optional[str] = None
    action: Optional[str] = None
    source_path: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged(self, **kwargs) -> "LogContext":
        known = {f.name for f in fields(self)} - {"extra"}
        updates = {key: value for key, value in kwargs.items() if key in known}
        extra = {**self.extra, **{k: v for k, v in kwargs.items() if k not in known}}
        return replace(self, extra=extra, **updates)

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, with `extra` flattened in."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        result.update(self.extra)
        return result


# (label, field) pairs shown inline by HumanFormatter
_HUMAN_FIELDS = (("workflow", "workflow_id"), ("job", "job_name"), ("action", "action"))

_local = threading.local()


def _stack() -> List[LogContext]:
    if not hasattr(_local, "stack"):
        _local.stack = []
    return _local.stack


def get_current_context() -> LogContext:
    """Innermost active context (empty outside any log_context block)."""
    stack = _stack()
    return stack[-1] if stack else LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Push contextual fields for the duration of the block.

    Example:
        with log_context(workflow_id="triage", job_name="safe_outputs"):
            logger.info("Building dispatcher job")
    """
    context = get_current_context().merged(**kwargs)
    stack = _stack()
    stack.append(context)
    try:
        yield context
    finally:
        stack.pop()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": _timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        component = getattr(record, "component", None)
        if component:
            log_data["component"] = component

        context = get_current_context().to_dict()
        if context:
            log_data["context"] = context

        data = getattr(record, "data", None)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = f"{record.filename}:{record.lineno}"

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line records with component and context inline."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        context = get_current_context()

        parts = [f"{label}={getattr(context, name)}" for label, name in _HUMAN_FIELDS if getattr(context, name)]
        tag = ", ".join(parts)
        component = getattr(record, "component", None)
        if component:
            tag = f"{component} | {tag}" if tag else component
        prefix = f" [{tag}]" if tag else ""

        result = f"{timestamp} {record.levelname:<8} {record.name}{prefix}: {record.getMessage()}"
        data = getattr(record, "data", None)
        if data:
            result += f" {data}"
        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"
        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter tagging records with the logger's component.

    `extra=` passed at the call site is carried as record.data.
    """

    def process(self, msg, kwargs):
        component = self.extra.get("component")
        kwargs["extra"] = {
            "component": component.value if isinstance(component, ComponentType) else component,
            "data": dict(kwargs.get("extra") or {}),
        }
        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (usually __name__)
        component: Component tag shown in every record
    """
    return ContextLogger(logging.getLogger(name), {"component": component})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    stream=None,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Log level name or number
        json_output: Use JSON lines (also forced by LOG_FORMAT=json)
        stream: Output stream, stderr by default
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named compile milestone.

    compile_started -> jobs_built -> graph_validated -> compile_completed,
    each tagged with the active workflow_id so one compilation can be
    followed with a single grep.
    """
    payload: Dict[str, Any] = {"checkpoint": name, "timestamp": _timestamp()}
    context = get_current_context()
    if context.workflow_id:
        payload["workflow_id"] = context.workflow_id
    if data:
        payload["data"] = data

    (logger or logging.getLogger("checkpoint")).info(f"CHECKPOINT: {name}", extra={"data": payload})


__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
