"""Configuration models for Lesson Media Queue."""

from dataclasses import dataclass, field
from pathlib import Path

VALID_PROVIDERS = frozenset({"openai", "local"})

OPENAI_BASE_URL = "https://api.openai.com"
DEFAULT_LOCAL_WHISPER_URL = "http://localhost:8000"
DEFAULT_LOCAL_LLM_URL = "http://localhost:11434"


@dataclass
class ServerConfig:
    """Configuration for `lmq serve`.

    Controls bind address, port, and shutdown behavior.
    """

    bind: str = "127.0.0.1"
    """Network address to bind to. Default localhost for security."""

    port: int = 8340
    """Port number for the HTTP API."""

    shutdown_timeout: float = 30.0
    """Seconds to wait for in-flight workers before cancelling them."""

    auth_token: str | None = None
    """Shared secret for HTTP Basic Auth. None or empty disables authentication."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass
class DispatcherConfig:
    """Configuration for the sweep loop and worker pool."""

    # Seconds between sweeps
    interval_seconds: float = 5.0

    # Maximum jobs claimed per sweep
    batch_size: int = 5

    # Maximum workers running at once in this process
    max_workers: int = 5

    # Processing jobs claimed longer ago than this are returned to pending
    stale_after_seconds: int = 1800

    # Deadline for one job's whole pipeline
    job_timeout_seconds: float = 900.0

    # Start a worker straight from the enqueuing request
    fast_path: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be positive, got {self.interval_seconds}"
            )
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.job_timeout_seconds <= 0:
            raise ValueError(
                f"job_timeout_seconds must be positive, got {self.job_timeout_seconds}"
            )
        if self.stale_after_seconds <= self.job_timeout_seconds:
            raise ValueError(
                "stale_after_seconds must exceed job_timeout_seconds "
                f"({self.stale_after_seconds} <= {self.job_timeout_seconds})"
            )


@dataclass
class ProviderConfig:
    """Configuration for the transcription/summarization provider.

    ``openai`` talks to the hosted API with a bearer key. ``local`` talks to
    a self-hosted Whisper server for transcription and an Ollama server
    (OpenAI-compatible endpoint) for summaries.
    """

    provider: str = "openai"
    """Provider name: openai or local."""

    api_key: str | None = None
    """Bearer token for the openai provider."""

    openai_url: str = OPENAI_BASE_URL
    whisper_url: str = DEFAULT_LOCAL_WHISPER_URL
    llm_url: str = DEFAULT_LOCAL_LLM_URL

    transcription_model: str | None = None
    """Model override. Defaults to whisper-1 (openai) or medium (local)."""

    summary_model: str | None = None
    """Model override. Defaults to gpt-4o (openai) or llama3 (local)."""

    timeout_seconds: float = 300.0
    """Per-request HTTP timeout."""

    summarize: bool = True
    """Run the summary step after a successful transcription."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.provider = self.provider.lower()
        if self.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"provider must be one of {sorted(VALID_PROVIDERS)}, got {self.provider}"
            )
        for name in ("openai_url", "whisper_url", "llm_url"):
            url = getattr(self, name)
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"{name} must start with http:// or https://")
        if self.api_key is not None and " " in self.api_key.strip():
            raise ValueError("API key must not contain whitespace")
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    @property
    def effective_transcription_model(self) -> str:
        if self.transcription_model:
            return self.transcription_model
        return "whisper-1" if self.provider == "openai" else "medium"

    @property
    def effective_summary_model(self) -> str:
        if self.summary_model:
            return self.summary_model
        return "gpt-4o" if self.provider == "openai" else "llama3"


@dataclass
class StorageConfig:
    """Where the queue database and uploaded lesson media live."""

    # Database path (None = <data dir>/queue.db)
    database_path: Path | None = None

    # Directory that holds uploads/<name> for content_url /assets/<name>
    media_root: Path = field(default_factory=Path.cwd)


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class LMQConfig:
    """Main configuration container.

    Aggregates all configuration sections.
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
