"""Configuration loaders for the environment table.

Usage:
    from feedback_recs.lib.config import load_environment

    env = load_environment("dev")
    print(env.stage_name, env.log_level)
"""

from .environments_loader import (
    CorsSettings,
    EnvironmentConfig,
    ThrottleSettings,
    get_supported_environments,
    load_environment,
    load_environments,
    reset_cache,
)

__all__ = [
    "CorsSettings",
    "EnvironmentConfig",
    "ThrottleSettings",
    "get_supported_environments",
    "load_environment",
    "load_environments",
    "reset_cache",
]
