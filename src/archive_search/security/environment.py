"""Guard that keeps archive search out of production deployments."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Final

logger = logging.getLogger(__name__)

PRODUCTION_PROFILES: Final[frozenset[str]] = frozenset({"prod", "production", "live", "prd"})
PRODUCTION_FLAGS: Final[tuple[str, ...]] = ("PRODUCTION", "PROD", "LIVE")
PROFILE_VARIABLES: Final[tuple[str, ...]] = ("ARCHIVE_SEARCH_PROFILE", "ENVIRONMENT")


class EnvironmentRestrictedError(RuntimeError):
    """Raised when the feature is enabled in a production environment."""


def is_production_environment(environ: Mapping[str, str] | None = None) -> bool:
    """Detect production from profile names and conventional flag variables."""
    env = os.environ if environ is None else environ
    for name in PROFILE_VARIABLES:
        profiles = env.get(name, "")
        for profile in profiles.split(","):
            if profile.strip().lower() in PRODUCTION_PROFILES:
                logger.debug("Production profile detected via %s=%s", name, profiles)
                return True
    for name in PRODUCTION_FLAGS:
        value = env.get(name, "").strip().lower()
        if value in {"true", "1"}:
            logger.debug("Production flag detected: %s=%s", name, value)
            return True
    if env.get("NODE_ENV", "").strip().lower() == "production":
        return True
    return False


def enforce_non_production(enabled: bool, environ: Mapping[str, str] | None = None) -> None:
    """Raise EnvironmentRestrictedError when enabled in production."""
    if not enabled:
        return
    if is_production_environment(environ):
        raise EnvironmentRestrictedError(
            "Archive search is enabled in a production environment. "
            "Enable it only in development, testing or staging environments."
        )
