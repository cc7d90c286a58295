"""Sandboxing and path safety primitives."""

from .environment import (
    EnvironmentRestrictedError,
    enforce_non_production,
    is_production_environment,
)
from .paths import PathRejected, canonical_path, is_traversal_attempt, sanitize_path
from .policy import PathDecision, PathPolicy, SearchLimits

__all__ = [
    "EnvironmentRestrictedError",
    "PathDecision",
    "PathPolicy",
    "PathRejected",
    "SearchLimits",
    "canonical_path",
    "enforce_non_production",
    "is_production_environment",
    "is_traversal_attempt",
    "sanitize_path",
]
