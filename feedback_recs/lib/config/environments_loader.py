"""
Environment table loader.

This module loads per-environment settings from config/environments.yaml.
Each environment (dev, staging, prod) carries its API stage name, log level,
throttle settings and CORS policy; the ``shared`` block holds the CORS values
common to all of them.

Usage:
    from feedback_recs.lib.config import load_environment

    env = load_environment("prod")
    env.log_level           # "WARN"
    env.cors.allow_origins  # ["https://example.com"]
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from feedback_recs.config import ConfigurationError

logger = logging.getLogger(__name__)


def _find_project_root() -> Optional[Path]:
    """Find project root by looking for pyproject.toml.

    Returns:
        Path to project root directory, or None if not found
    """
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _get_default_environments_path() -> Path:
    """Get the default environments.yaml path.

    Order of precedence:
    1. ENVIRONMENTS_CONFIG_PATH environment variable
    2. Project root detection (pyproject.toml)
    3. Relative path from this module
    """
    env_path = os.environ.get("ENVIRONMENTS_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    project_root = _find_project_root()
    if project_root:
        return project_root / "config" / "environments.yaml"

    return Path(__file__).resolve().parents[3] / "config" / "environments.yaml"


_init_lock = threading.Lock()


@dataclass
class ThrottleSettings:
    rate_limit: int = 10000
    burst_limit: int = 5000


@dataclass
class CorsSettings:
    """CORS policy applied by the API."""

    allow_origins: List[str] = field(default_factory=list)
    allow_credentials: bool = True
    allow_methods: List[str] = field(default_factory=list)
    allow_headers: List[str] = field(default_factory=list)
    expose_headers: List[str] = field(default_factory=list)
    max_age_seconds: int = 600


@dataclass
class EnvironmentConfig:
    """
    Settings for one deployment environment.

    Attributes:
        name: Environment name (dev, staging, prod)
        stage_name: API stage the routes are deployed under
        log_level: Default logging level (LOG_LEVEL overrides it)
        throttle: Gateway throttle settings
        cors: CORS policy, environment values merged over the shared block
    """

    name: str
    stage_name: str = "api"
    log_level: str = "INFO"
    throttle: ThrottleSettings = field(default_factory=ThrottleSettings)
    cors: CorsSettings = field(default_factory=CorsSettings)

    @classmethod
    def from_yaml(
        cls,
        name: str,
        data: Dict[str, Any],
        shared: Dict[str, Any],
    ) -> "EnvironmentConfig":
        throttle = data.get("throttle") or {}
        cors = {**(shared.get("cors") or {}), **(data.get("cors") or {})}
        return cls(
            name=name,
            stage_name=data.get("stage_name", "api"),
            log_level=str(data.get("log_level", "INFO")).upper(),
            throttle=ThrottleSettings(
                rate_limit=int(throttle.get("rate_limit", 10000)),
                burst_limit=int(throttle.get("burst_limit", 5000)),
            ),
            cors=CorsSettings(
                allow_origins=list(cors.get("allow_origins", [])),
                allow_credentials=bool(cors.get("allow_credentials", True)),
                allow_methods=list(cors.get("allow_methods", [])),
                allow_headers=list(cors.get("allow_headers", [])),
                expose_headers=list(cors.get("expose_headers", [])),
                max_age_seconds=int(cors.get("max_age_seconds", 600)),
            ),
        )


# Module-level cache for loaded environments
_environments: Dict[str, EnvironmentConfig] = {}
_initialized: bool = False


def load_environments(
    config_path: Optional[Path] = None,
    force_reload: bool = False,
) -> Dict[str, EnvironmentConfig]:
    """
    Load every environment from environments.yaml.

    Args:
        config_path: Path to environments.yaml (default: config/environments.yaml)
        force_reload: Force reload even if already initialized

    Returns:
        Dictionary mapping environment name to EnvironmentConfig

    Raises:
        FileNotFoundError: If config_path doesn't exist
        ConfigurationError: If the file defines no environments
    """
    global _environments, _initialized

    with _init_lock:
        if _initialized and not force_reload:
            return _environments

        if config_path is None:
            config_path = _get_default_environments_path()

        if not config_path.exists():
            raise FileNotFoundError(f"Environment configuration not found: {config_path}")

        logger.info('Loading environment table from: %s', config_path)

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        environments_data = data.get("environments") or {}
        if not environments_data:
            raise ConfigurationError(f"No environments defined in {config_path}")

        shared = data.get("shared") or {}
        _environments = {
            name: EnvironmentConfig.from_yaml(name, env_data or {}, shared)
            for name, env_data in environments_data.items()
        }
        _initialized = True
        logger.info('Loaded environments: %s', ", ".join(_environments))

        return _environments


def get_supported_environments() -> List[str]:
    return list(load_environments())


def load_environment(name: str) -> EnvironmentConfig:
    """
    Get the settings for one environment.

    Raises:
        ConfigurationError: If the environment is not defined
    """
    environments = load_environments()
    if name not in environments:
        raise ConfigurationError(
            f"Unknown environment: {name}. "
            f"Supported environments: {', '.join(environments)}"
        )
    return environments[name]


def reset_cache() -> None:
    """Reset the environment cache (for testing)."""
    global _environments, _initialized
    _environments = {}
    _initialized = False
