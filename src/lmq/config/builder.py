"""Configuration builder with explicit layering.

This module provides ConfigBuilder for building LMQConfig by composing
configuration sources with explicit precedence handling.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from lmq.config.env import EnvReader
from lmq.config.models import (
    DispatcherConfig,
    LMQConfig,
    LoggingConfig,
    ProviderConfig,
    ServerConfig,
    StorageConfig,
)


@dataclass
class ConfigSource:
    """Configuration values from a single source.

    None values mean "not specified in this source" and never override
    values from lower-precedence sources.
    """

    # Storage
    database_path: Path | None = None
    media_root: Path | None = None

    # Server
    server_bind: str | None = None
    server_port: int | None = None
    server_shutdown_timeout: float | None = None
    server_auth_token: str | None = None

    # Dispatcher
    dispatch_interval: float | None = None
    dispatch_batch_size: int | None = None
    dispatch_max_workers: int | None = None
    dispatch_stale_after: int | None = None
    dispatch_job_timeout: float | None = None
    dispatch_fast_path: bool | None = None

    # Provider
    provider_name: str | None = None
    provider_api_key: str | None = None
    provider_openai_url: str | None = None
    provider_whisper_url: str | None = None
    provider_llm_url: str | None = None
    provider_transcription_model: str | None = None
    provider_summary_model: str | None = None
    provider_timeout: float | None = None
    provider_summarize: bool | None = None

    # Logging
    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Builds LMQConfig by layering ConfigSources with precedence.

    Later sources override earlier ones (for non-None values).

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config))
        builder.apply(source_from_env(reader))
        builder.apply(cli_source)
        config = builder.build(default_db_path)
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def apply(self, source: ConfigSource) -> None:
        """Apply a configuration source, overriding existing values.

        Args:
            source: Configuration source to apply.
        """
        for field_obj in fields(source):
            value = getattr(source, field_obj.name)
            if value is not None:
                self._values[field_obj.name] = value

    def _get(self, key: str, default: Any) -> Any:
        return self._values.get(key, default)

    def build(self, default_db_path: Path) -> LMQConfig:
        """Build the final LMQConfig with defaults for unset values.

        Args:
            default_db_path: Database path used when no source sets one.

        Returns:
            Complete LMQConfig. Section __post_init__ validation runs here,
            so invalid values raise ValueError.
        """
        server_defaults = ServerConfig()
        server = ServerConfig(
            bind=self._get("server_bind", server_defaults.bind),
            port=self._get("server_port", server_defaults.port),
            shutdown_timeout=self._get(
                "server_shutdown_timeout", server_defaults.shutdown_timeout
            ),
            auth_token=self._get("server_auth_token", server_defaults.auth_token),
        )

        dispatch_defaults = DispatcherConfig()
        dispatcher = DispatcherConfig(
            interval_seconds=self._get(
                "dispatch_interval", dispatch_defaults.interval_seconds
            ),
            batch_size=self._get("dispatch_batch_size", dispatch_defaults.batch_size),
            max_workers=self._get(
                "dispatch_max_workers", dispatch_defaults.max_workers
            ),
            stale_after_seconds=self._get(
                "dispatch_stale_after", dispatch_defaults.stale_after_seconds
            ),
            job_timeout_seconds=self._get(
                "dispatch_job_timeout", dispatch_defaults.job_timeout_seconds
            ),
            fast_path=self._get("dispatch_fast_path", dispatch_defaults.fast_path),
        )

        provider_defaults = ProviderConfig()
        provider = ProviderConfig(
            provider=self._get("provider_name", provider_defaults.provider),
            api_key=self._get("provider_api_key", provider_defaults.api_key),
            openai_url=self._get("provider_openai_url", provider_defaults.openai_url),
            whisper_url=self._get(
                "provider_whisper_url", provider_defaults.whisper_url
            ),
            llm_url=self._get("provider_llm_url", provider_defaults.llm_url),
            transcription_model=self._get(
                "provider_transcription_model", provider_defaults.transcription_model
            ),
            summary_model=self._get(
                "provider_summary_model", provider_defaults.summary_model
            ),
            timeout_seconds=self._get(
                "provider_timeout", provider_defaults.timeout_seconds
            ),
            summarize=self._get("provider_summarize", provider_defaults.summarize),
        )

        storage = StorageConfig(
            database_path=self._get("database_path", default_db_path),
            media_root=self._get("media_root", Path.cwd()),
        )

        logging_defaults = LoggingConfig()
        logging_config = LoggingConfig(
            level=self._get("logging_level", logging_defaults.level),
            file=self._get("logging_file", logging_defaults.file),
            format=self._get("logging_format", logging_defaults.format),
            include_stderr=self._get(
                "logging_include_stderr", logging_defaults.include_stderr
            ),
            max_bytes=self._get("logging_max_bytes", logging_defaults.max_bytes),
            backup_count=self._get(
                "logging_backup_count", logging_defaults.backup_count
            ),
        )

        return LMQConfig(
            server=server,
            dispatcher=dispatcher,
            provider=provider,
            storage=storage,
            logging=logging_config,
        )


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Create ConfigSource from a parsed TOML config file.

    Expected layout::

        database_path = "~/.lmq/queue.db"
        media_root = "/srv/cms"

        [server]       bind, port, shutdown_timeout, auth_token
        [dispatcher]   interval_seconds, batch_size, max_workers,
                       stale_after_seconds, job_timeout_seconds, fast_path
        [provider]     name, api_key, openai_url, whisper_url, llm_url,
                       transcription_model, summary_model, timeout_seconds,
                       summarize
        [logging]      level, file, format, include_stderr, max_bytes,
                       backup_count
    """
    server = file_config.get("server", {})
    dispatcher = file_config.get("dispatcher", {})
    provider = file_config.get("provider", {})
    logging_conf = file_config.get("logging", {})

    return ConfigSource(
        database_path=_optional_path(file_config.get("database_path")),
        media_root=_optional_path(file_config.get("media_root")),
        server_bind=server.get("bind"),
        server_port=server.get("port"),
        server_shutdown_timeout=server.get("shutdown_timeout"),
        server_auth_token=server.get("auth_token"),
        dispatch_interval=dispatcher.get("interval_seconds"),
        dispatch_batch_size=dispatcher.get("batch_size"),
        dispatch_max_workers=dispatcher.get("max_workers"),
        dispatch_stale_after=dispatcher.get("stale_after_seconds"),
        dispatch_job_timeout=dispatcher.get("job_timeout_seconds"),
        dispatch_fast_path=dispatcher.get("fast_path"),
        provider_name=provider.get("name"),
        provider_api_key=provider.get("api_key"),
        provider_openai_url=provider.get("openai_url"),
        provider_whisper_url=provider.get("whisper_url"),
        provider_llm_url=provider.get("llm_url"),
        provider_transcription_model=provider.get("transcription_model"),
        provider_summary_model=provider.get("summary_model"),
        provider_timeout=provider.get("timeout_seconds"),
        provider_summarize=provider.get("summarize"),
        logging_level=logging_conf.get("level"),
        logging_file=_optional_path(logging_conf.get("file")),
        logging_format=logging_conf.get("format"),
        logging_include_stderr=logging_conf.get("include_stderr"),
        logging_max_bytes=logging_conf.get("max_bytes"),
        logging_backup_count=logging_conf.get("backup_count"),
    )


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Create ConfigSource from environment variables.

    The unprefixed AI_PROVIDER, OPENAI_API_KEY, LOCAL_WHISPER_URL,
    LOCAL_OLLAMA_URL and LOCAL_LLM_MODEL names used by existing
    deployments are accepted after their LMQ_* equivalents.
    """
    return ConfigSource(
        database_path=reader.get_path("LMQ_DATABASE_PATH"),
        media_root=reader.get_path("LMQ_MEDIA_ROOT"),
        server_bind=reader.get_str("LMQ_SERVER_BIND"),
        server_port=reader.get_int("LMQ_SERVER_PORT"),
        server_shutdown_timeout=reader.get_float("LMQ_SERVER_SHUTDOWN_TIMEOUT"),
        server_auth_token=reader.get_str("LMQ_AUTH_TOKEN"),
        dispatch_interval=reader.get_float("LMQ_DISPATCH_INTERVAL"),
        dispatch_batch_size=reader.get_int("LMQ_DISPATCH_BATCH_SIZE"),
        dispatch_max_workers=reader.get_int("LMQ_MAX_WORKERS"),
        dispatch_stale_after=reader.get_int("LMQ_STALE_AFTER"),
        dispatch_job_timeout=reader.get_float("LMQ_JOB_TIMEOUT"),
        dispatch_fast_path=reader.get_bool("LMQ_FAST_PATH"),
        provider_name=reader.get_first_str("LMQ_AI_PROVIDER", "AI_PROVIDER"),
        provider_api_key=reader.get_first_str("LMQ_OPENAI_API_KEY", "OPENAI_API_KEY"),
        provider_openai_url=reader.get_str("LMQ_OPENAI_URL"),
        provider_whisper_url=reader.get_first_str(
            "LMQ_LOCAL_WHISPER_URL", "LOCAL_WHISPER_URL"
        ),
        provider_llm_url=reader.get_first_str("LMQ_LOCAL_LLM_URL", "LOCAL_OLLAMA_URL"),
        provider_transcription_model=reader.get_str("LMQ_TRANSCRIPTION_MODEL"),
        provider_summary_model=reader.get_first_str(
            "LMQ_SUMMARY_MODEL", "LOCAL_LLM_MODEL"
        ),
        provider_timeout=reader.get_float("LMQ_PROVIDER_TIMEOUT"),
        provider_summarize=reader.get_bool("LMQ_SUMMARIZE"),
        logging_level=reader.get_str("LMQ_LOG_LEVEL"),
        logging_file=reader.get_path("LMQ_LOG_FILE"),
        logging_format=reader.get_str("LMQ_LOG_FORMAT"),
        logging_include_stderr=None,
        logging_max_bytes=None,
        logging_backup_count=None,
    )
