"""Tests for config loader module."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

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
from lmq.config.models import DispatcherConfig, LMQConfig, ProviderConfig, StorageConfig


class TestDataDirAndPaths:
    def test_data_dir_defaults_to_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LMQ_DATA_DIR", raising=False)
        assert get_data_dir() == Path.home() / ".lmq"

    def test_data_dir_from_env(self, lmq_data_dir: Path) -> None:
        assert get_data_dir() == lmq_data_dir

    def test_default_db_path(self, lmq_data_dir: Path) -> None:
        assert get_default_db_path() == lmq_data_dir / "queue.db"

    def test_config_path_under_data_dir(self, lmq_data_dir: Path) -> None:
        assert get_default_config_path() == lmq_data_dir / "config.toml"

    def test_config_path_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LMQ_CONFIG_PATH", "/etc/lmq/config.toml")
        assert get_default_config_path() == Path("/etc/lmq/config.toml")


class TestLoadConfigFile:
    """Tests for load_config_file function."""

    def test_returns_empty_dict_when_file_not_exists(self, tmp_path: Path) -> None:
        assert load_config_file(tmp_path / "nonexistent.toml") == {}

    def test_loads_valid_config_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text('[server]\nport = 9000\nbind = "0.0.0.0"\n')

        result = load_config_file(config_file)

        assert result["server"] == {"port": 9000, "bind": "0.0.0.0"}

    def test_invalid_toml_is_ignored_by_default(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server\nport = ")

        assert load_config_file(config_file) == {}
        assert "Ignoring unreadable config file" in caplog.text

    def test_invalid_toml_raises_when_strict(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server\nport = ")

        with pytest.raises(ConfigFileError, match="Cannot parse config file"):
            load_config_file(config_file, strict=True)

    def test_reloads_after_file_changes(self, tmp_path: Path) -> None:
        """Should serve the cached dict until the file's mtime moves."""
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server]\nport = 9000\n")
        first = load_config_file(config_file)
        assert load_config_file(config_file) is first

        config_file.write_text("[server]\nport = 9100\n")
        stat = config_file.stat()
        os.utime(config_file, (stat.st_atime, stat.st_mtime + 5))

        assert load_config_file(config_file)["server"]["port"] == 9100
        clear_config_cache()


class TestGetConfig:
    """Tests for get_config function."""

    def test_defaults(self, tmp_path: Path, lmq_data_dir: Path) -> None:
        config = get_config(
            config_path=tmp_path / "missing.toml", env_reader=EnvReader(env={})
        )

        assert config.server.port == 8340
        assert config.server.bind == "127.0.0.1"
        assert config.server.auth_token is None
        assert config.dispatcher.interval_seconds == 5.0
        assert config.dispatcher.max_workers == 5
        assert config.dispatcher.fast_path is True
        assert config.provider.provider == "openai"
        assert config.storage.database_path == lmq_data_dir / "queue.db"
        assert config.logging.level == "info"

    def test_file_values(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            f"""
database_path = "{tmp_path / 'cms.db'}"
media_root = "{tmp_path}"

[server]
port = 9001
auth_token = "s3cret"

[dispatcher]
interval_seconds = 2.5
max_workers = 3
stale_after_seconds = 3600
job_timeout_seconds = 600

[provider]
name = "local"
whisper_url = "http://stt:9000"
summarize = false

[logging]
format = "json"
"""
        )

        config = get_config(config_path=config_file, env_reader=EnvReader(env={}))

        assert config.storage.database_path == tmp_path / "cms.db"
        assert config.storage.media_root == tmp_path
        assert config.server.port == 9001
        assert config.server.auth_token == "s3cret"
        assert config.dispatcher.interval_seconds == 2.5
        assert config.dispatcher.max_workers == 3
        assert config.dispatcher.job_timeout_seconds == 600
        assert config.provider.provider == "local"
        assert config.provider.whisper_url == "http://stt:9000"
        assert config.provider.summarize is False
        assert config.logging.format == "json"

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text("[server]\nport = 9001\n\n[provider]\nname = 'openai'\n")
        env = EnvReader(
            env={
                "LMQ_SERVER_PORT": "9002",
                "AI_PROVIDER": "local",
                "LOCAL_OLLAMA_URL": "http://llm:11434",
                "LOCAL_LLM_MODEL": "mistral",
                "LMQ_FAST_PATH": "false",
            }
        )

        config = get_config(config_path=config_file, env_reader=env)

        assert config.server.port == 9002
        assert config.provider.provider == "local"
        assert config.provider.llm_url == "http://llm:11434"
        assert config.provider.summary_model == "mistral"
        assert config.dispatcher.fast_path is False

    def test_prefixed_env_beats_alias(self, tmp_path: Path) -> None:
        env = EnvReader(env={"LMQ_OPENAI_API_KEY": "sk-lmq", "OPENAI_API_KEY": "sk-x"})

        config = get_config(config_path=tmp_path / "none.toml", env_reader=env)

        assert config.provider.api_key == "sk-lmq"

    def test_cli_overrides_env(self, tmp_path: Path) -> None:
        env = EnvReader(
            env={"LMQ_SERVER_PORT": "9002", "LMQ_DATABASE_PATH": "/tmp/env.db"}
        )

        config = get_config(
            config_path=tmp_path / "none.toml",
            database_path=tmp_path / "cli.db",
            server_port=9003,
            server_bind="0.0.0.0",
            media_root=tmp_path,
            env_reader=env,
        )

        assert config.server.port == 9003
        assert config.server.bind == "0.0.0.0"
        assert config.storage.database_path == tmp_path / "cli.db"
        assert config.storage.media_root == tmp_path

    def test_invalid_merged_value_raises(self, tmp_path: Path) -> None:
        env = EnvReader(env={"LMQ_MAX_WORKERS": "0"})

        with pytest.raises(ValueError, match="max_workers"):
            get_config(config_path=tmp_path / "none.toml", env_reader=env)


class TestValidateConfig:
    def test_valid_local_config(self, tmp_path: Path) -> None:
        config = LMQConfig(
            provider=ProviderConfig(provider="local"),
            storage=StorageConfig(media_root=tmp_path),
        )
        assert validate_config(config) == []

    def test_openai_without_key(self, tmp_path: Path) -> None:
        config = LMQConfig(
            provider=ProviderConfig(provider="openai"),
            storage=StorageConfig(media_root=tmp_path),
        )
        errors = validate_config(config)
        assert len(errors) == 1
        assert "OPENAI_API_KEY" in errors[0]

    def test_missing_media_root(self, tmp_path: Path) -> None:
        config = LMQConfig(
            provider=ProviderConfig(provider="local"),
            storage=StorageConfig(media_root=tmp_path / "absent"),
        )
        assert any("Media root does not exist" in e for e in validate_config(config))

    def test_batch_larger_than_pool(self, tmp_path: Path) -> None:
        config = LMQConfig(
            dispatcher=DispatcherConfig(batch_size=10, max_workers=2),
            provider=ProviderConfig(provider="local"),
            storage=StorageConfig(media_root=tmp_path),
        )
        assert any("exceeds max_workers" in e for e in validate_config(config))
