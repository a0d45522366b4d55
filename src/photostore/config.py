"""Configuration management for photostore.

Values come from environment variables. A ``.env`` file can be loaded into
the environment first with :func:`load_env_file`; the operator tasks do this
before building the store context.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        """Initialize configuration."""
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)
        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")
                    else:
                        value = bool(value)
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get required configuration value.

        Raises:
            ValueError: If the required configuration is not found
        """
        value = self.get(key, cast_type=cast_type)
        if value is None or value == "":
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local", "test"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["production", "prod"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def load_env_file(env_file: str | os.PathLike = ".env") -> bool:
    """Load variables from a dotenv file into the environment.

    Existing environment variables win over the file. The config cache is
    cleared so new values become visible.

    Returns:
        True if the file existed and was loaded
    """
    if not Path(env_file).exists():
        logger.debug("env_file_not_found", env_file=str(env_file))
        return False

    load_dotenv(dotenv_path=env_file, override=False)
    get_config().clear_cache()
    logger.info("env_file_loaded", env_file=str(env_file))
    return True


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get environment variable with type casting."""
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    """Get required environment variable.

    Raises:
        ValueError: If the required environment variable is not found
    """
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    """Check if running in development mode."""
    return get_config().is_development()


def is_production() -> bool:
    """Check if running in production mode."""
    return get_config().is_production()


def get_blob_prefix() -> str:
    """Get the object name prefix under which blobs are written."""
    return str(get_env("GCS_BLOB_PREFIX", "photos/blobs")).strip("/")


def get_database_path() -> str:
    """Get the DuckDB database file path."""
    return str(get_env("DATABASE_PATH", "data/photostore.duckdb"))


def get_jwt_secret() -> str:
    """Get the token signing secret."""
    return str(get_required_env("JWT_SECRET_KEY"))


def get_jwt_algorithm() -> str:
    """Get the token signing algorithm."""
    return str(get_env("JWT_ALGORITHM", "HS256"))


def get_token_ttl_seconds() -> int:
    """Get token lifetime in seconds."""
    return int(get_env("TOKEN_TTL_SECONDS", 3600, int))


def get_bcrypt_rounds() -> int:
    """Get the bcrypt cost factor."""
    return int(get_env("BCRYPT_ROUNDS", 12, int))


def get_max_file_size() -> int:
    """Get the largest accepted upload in bytes."""
    return int(get_env("MAX_FILE_SIZE", 50 * 1024 * 1024, int))


def get_download_chunk_size() -> int:
    """Get the chunk size used when streaming blobs."""
    return int(get_env("DOWNLOAD_CHUNK_SIZE", 1024 * 1024, int))


def get_reconcile_grace_seconds() -> int:
    """Get how old an unreferenced blob must be before reconciliation treats it as orphaned."""
    return int(get_env("RECONCILE_GRACE_SECONDS", 3600, int))


def get_temp_dir() -> str | None:
    """Get the directory for staged upload copies (system default when unset)."""
    return get_env("TEMP_DIR")


def get_log_level() -> str:
    """Get log level."""
    return str(get_env("LOG_LEVEL", "INFO"))
