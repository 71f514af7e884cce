"""Configuration for Lesson Media Queue.

Module organization:
- models.py: Dataclass configuration sections with validation
- env.py: EnvReader for typed environment variable access
- builder.py: ConfigSource/ConfigBuilder layering
- loader.py: get_config() with file < env < CLI precedence
- logging_factory.py: LoggingConfig construction from CLI flags
"""

from lmq.config.builder import ConfigBuilder, ConfigSource
from lmq.config.env import EnvReader
from lmq.config.loader import (
    ConfigFileError,
    clear_config_cache,
    get_config,
    get_data_dir,
    get_default_config_path,
    get_default_db_path,
    load_config_file,
    validate_config,
)
from lmq.config.models import (
    DispatcherConfig,
    LMQConfig,
    LoggingConfig,
    ProviderConfig,
    ServerConfig,
    StorageConfig,
)

__all__ = [
    "ConfigBuilder",
    "ConfigFileError",
    "ConfigSource",
    "DispatcherConfig",
    "EnvReader",
    "LMQConfig",
    "LoggingConfig",
    "ProviderConfig",
    "ServerConfig",
    "StorageConfig",
    "clear_config_cache",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "get_default_db_path",
    "load_config_file",
    "validate_config",
]
