"""Environment-backed configuration loading."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Mapping

from dotenv import load_dotenv
from pydantic import ValidationError

from omnisync.config.config import Config
from omnisync.utils.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> Config field
ENV_FIELDS: dict[str, str] = {
    "OMNISYNC_ENVIRONMENT": "environment",
    "OMNISYNC_VERBOSE": "verbose",
    "OMNISYNC_API_URL": "api_url",
    "OMNISYNC_API_TIMEOUT_MS": "api_timeout_ms",
    "OMNISYNC_RETRY_MAX_ATTEMPTS": "retry_max_attempts",
    "OMNISYNC_RETRY_BASE_DELAY": "retry_base_delay",
    "OMNISYNC_RETRY_MAX_DELAY": "retry_max_delay",
    "OMNISYNC_CIRCUIT_THRESHOLD": "circuit_threshold",
    "OMNISYNC_CIRCUIT_COOLDOWN": "circuit_cooldown",
    "OMNISYNC_PROBE_TIMEOUT": "probe_timeout",
    "DATABASE_PATH": "database_path",
    "UPSTASH_REDIS_REST_URL": "upstash_redis_rest_url",
    "UPSTASH_REDIS_REST_TOKEN": "upstash_redis_rest_token",
    "QDRANT_URL": "qdrant_url",
}


def config_from_mapping(env: Mapping[str, str]) -> Config:
    """Build a Config from an environment-like mapping.

    Raises:
        ConfigError: If any value fails validation.
    """
    raw = {field: env[name] for name, field in ENV_FIELDS.items() if env.get(name)}
    try:
        return Config.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(loc) for loc in first.get("loc", ()))
        raise ConfigError(
            message=f"Invalid configuration: {first.get('msg', 'validation error')}",
            config_key=field or None,
            details={"errors": len(e.errors())},
            cause=e,
        ) from e


@lru_cache(maxsize=1)
def load_config() -> Config:
    """Load configuration from the environment (and a ``.env`` file).

    The result is cached for the process lifetime.
    """
    load_dotenv()
    config = config_from_mapping(os.environ)
    logger.debug(f"Configuration loaded for environment={config.environment}")
    return config


def reset_config_cache() -> None:
    """Forget the cached configuration (tests only)."""
    load_config.cache_clear()
