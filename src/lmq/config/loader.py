"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (LMQ_*)
3. Config file (~/.lmq/config.toml)
4. Default values

Environment variables:
- LMQ_DATA_DIR: Base data directory (overrides ~/.lmq/)
- LMQ_CONFIG_PATH: Path to config file (overrides default location)
- LMQ_DATABASE_PATH: Path to database file
- LMQ_MEDIA_ROOT: Directory containing uploads/ for lesson media
- LMQ_SERVER_BIND, LMQ_SERVER_PORT, LMQ_SERVER_SHUTDOWN_TIMEOUT
- LMQ_AUTH_TOKEN: Shared secret for HTTP Basic Auth
- LMQ_DISPATCH_INTERVAL, LMQ_DISPATCH_BATCH_SIZE, LMQ_MAX_WORKERS
- LMQ_STALE_AFTER, LMQ_JOB_TIMEOUT, LMQ_FAST_PATH
- LMQ_AI_PROVIDER (or AI_PROVIDER): openai or local
- LMQ_OPENAI_API_KEY (or OPENAI_API_KEY)
- LMQ_LOCAL_WHISPER_URL (or LOCAL_WHISPER_URL)
- LMQ_LOCAL_LLM_URL (or LOCAL_OLLAMA_URL)
- LMQ_SUMMARY_MODEL (or LOCAL_LLM_MODEL), LMQ_TRANSCRIPTION_MODEL
- LMQ_LOG_LEVEL, LMQ_LOG_FILE, LMQ_LOG_FORMAT
"""

from __future__ import annotations

import logging
import os
import threading
import tomllib
from pathlib import Path

from lmq.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from lmq.config.env import EnvReader
from lmq.config.models import LMQConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".lmq"
DATABASE_FILENAME = "queue.db"
CONFIG_FILENAME = "config.toml"

# path -> (parsed dict, mtime); reloaded when the file changes
_config_cache: dict[Path, tuple[dict, float]] = {}
_config_cache_lock = threading.Lock()


class ConfigFileError(Exception):
    """Raised when a config file exists but cannot be parsed."""


def get_data_dir() -> Path:
    """Get the data directory (~/.lmq/ unless LMQ_DATA_DIR is set).

    Holds the database (queue.db) and config file (config.toml).
    """
    env_path = os.environ.get("LMQ_DATA_DIR")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_DIR


def get_default_config_path() -> Path:
    """Get the config file path (LMQ_CONFIG_PATH or <data dir>/config.toml)."""
    env_path = os.environ.get("LMQ_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_data_dir() / CONFIG_FILENAME


def get_default_db_path() -> Path:
    return get_data_dir() / DATABASE_FILENAME


def _read_toml(path: Path, *, strict: bool) -> dict:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as e:
        if strict:
            raise ConfigFileError(f"Cannot parse config file {path}: {e}") from e
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from a TOML file.

    Results are cached and reloaded when the file's mtime changes.
    Thread-safe.

    Args:
        path: Path to config file. If None, uses the default location.
        strict: If True, raise ConfigFileError on parse failures.
            If False (default), log a warning and return an empty dict.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist.
    """
    if path is None:
        path = get_default_config_path()

    try:
        current_mtime = path.stat().st_mtime
    except FileNotFoundError:
        current_mtime = 0.0

    with _config_cache_lock:
        cached = _config_cache.get(path)
        if cached is not None and cached[1] == current_mtime:
            return cached[0]

        result = _read_toml(path, strict=strict)
        _config_cache[path] = (result, current_mtime)
        return result


def clear_config_cache() -> None:
    """Clear the config file cache. Primarily useful for testing."""
    with _config_cache_lock:
        _config_cache.clear()


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    database_path: Path | None = None,
    media_root: Path | None = None,
    server_bind: str | None = None,
    server_port: int | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> LMQConfig:
    """Get configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides LMQ_CONFIG_PATH).
        database_path: CLI override for database path.
        media_root: CLI override for the media root directory.
        server_bind: CLI override for the server bind address.
        server_port: CLI override for the server port.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise ConfigFileError on config file parse failures.

    Returns:
        LMQConfig with merged configuration.

    Raises:
        ValueError: If a merged value fails section validation.
    """
    reader = env_reader or EnvReader()
    file_config = load_config_file(config_path, strict=strict)

    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config))
    builder.apply(source_from_env(reader))
    builder.apply(
        ConfigSource(
            database_path=database_path,
            media_root=media_root,
            server_bind=server_bind,
            server_port=server_port,
        )
    )

    return builder.build(default_db_path=get_default_db_path())


def validate_config(config: LMQConfig) -> list[str]:
    """Validate cross-section constraints that __post_init__ can't see.

    Returns:
        List of error strings. Empty list means configuration is valid.
    """
    errors: list[str] = []

    if config.provider.provider == "openai" and not config.provider.api_key:
        errors.append("Provider 'openai' requires OPENAI_API_KEY or [provider] api_key")

    if not config.storage.media_root.is_dir():
        errors.append(f"Media root does not exist: {config.storage.media_root}")

    if config.dispatcher.batch_size > config.dispatcher.max_workers:
        errors.append(
            f"batch_size ({config.dispatcher.batch_size}) exceeds max_workers "
            f"({config.dispatcher.max_workers}); sweeps will be capped by the pool"
        )

    return errors
