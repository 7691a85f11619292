# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - WORKFLOW COMPILATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 12 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the workflow compiler.
"""

from core.config.defaults import (
    CompilerDefaults,
    ResolverDefaults,
    ActionDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "CompilerDefaults",
    "ResolverDefaults",
    "ActionDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
