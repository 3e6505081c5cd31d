"""Tests for src/config.py: DaylogConfig, TOML loading, env vars, CLI overrides."""

from unittest.mock import patch

import pytest
from daylog.config import (
    AIProvider,
    ChannelFailurePolicy,
    DaylogConfig,
    PipelineSectionConfig,
    load_config,
    merge_cli_overrides,
)
from daylog.errors import ConfigurationError

ENV_VARS = [
    "DAYLOG_AI_PROVIDER",
    "DAYLOG_AI_MODEL",
    "DAYLOG_AI_URL",
    "OPENAI_API_KEY",
    "SCREENPIPE_USER_TOKEN",
    "DAYLOG_EMAIL_ADDRESS",
    "DAYLOG_EMAIL_PASSWORD",
    "DAYLOG_WINDOW_NAME",
    "DAYLOG_CONTENT_TYPE",
    "DAYLOG_CHANNEL_FAILURE_POLICY",
    "SCREENPIPE_URL",
    "DAYLOG_STORAGE_DIR",
    "DAYLOG_LOG_LEVEL",
    "DAYLOG_INTERVAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("daylog.config.GLOBAL_CONFIG_PATH", tmp_path / "no-global.toml")


class TestDaylogConfigDefaults:
    def test_default_ai(self):
        cfg = DaylogConfig()
        assert cfg.ai.provider is AIProvider.OPENAI
        assert cfg.ai.model == "gpt-4o"
        assert cfg.ai.user_token == ""

    def test_default_pipeline(self):
        cfg = DaylogConfig()
        assert cfg.pipeline.interval_seconds == 60
        assert cfg.pipeline.effective_content_type == "ocr"
        assert cfg.pipeline.page_size == 100
        assert cfg.pipeline.channel_failure_policy is ChannelFailurePolicy.FATAL
        assert cfg.pipeline.max_welcome_attempts == 5
        assert cfg.pipeline.email_enabled is False

    def test_default_storage(self):
        cfg = DaylogConfig()
        assert cfg.storage.directory == "./daylog-data"

    def test_default_screenpipe(self):
        cfg = DaylogConfig()
        assert cfg.screenpipe.url == "http://localhost:3030"
        assert cfg.screenpipe.inbox_url == "http://localhost:11435/inbox"


class TestPipelineSection:
    @pytest.mark.parametrize("interval", [None, 0, -5])
    def test_interval_falls_back_to_default(self, interval):
        assert PipelineSectionConfig(interval=interval).interval_seconds == 60

    def test_interval_set(self):
        assert PipelineSectionConfig(interval=300).interval_seconds == 300

    def test_content_type_override(self):
        assert PipelineSectionConfig(content_type="audio").effective_content_type == "audio"

    def test_email_needs_address_and_password(self):
        assert PipelineSectionConfig(email_address="me@example.com").email_enabled is False
        assert (
            PipelineSectionConfig(
                email_address="me@example.com", email_password="app-pass"
            ).email_enabled
            is True
        )

    def test_schedule_daily(self):
        section = PipelineSectionConfig(summary_frequency="daily", email_time="08:30")
        assert section.schedule_description() == "It will run at 08:30 every day."

    def test_schedule_hourly(self):
        section = PipelineSectionConfig(summary_frequency="4")
        assert section.schedule_description() == "It will run every 4 hours."

    def test_schedule_hours_as_integer(self, tmp_path):
        toml_path = tmp_path / ".daylog.toml"
        toml_path.write_text("[pipeline]\nsummary_frequency = 6\n")
        cfg = load_config(toml_path)
        assert cfg.pipeline.schedule_description() == "It will run every 6 hours."


class TestProvider:
    def test_only_screenpipe_cloud_needs_user_token(self):
        assert AIProvider.SCREENPIPE_CLOUD.requires_user_token is True
        assert AIProvider.OPENAI.requires_user_token is False
        assert AIProvider.NATIVE_OLLAMA.requires_user_token is False


class TestLoadConfig:
    def test_load_from_explicit_path(self, tmp_path):
        toml_path = tmp_path / ".daylog.toml"
        toml_path.write_text(
            '[ai]\nprovider = "native-ollama"\nmodel = "llama3.2"\n\n'
            '[pipeline]\ninterval = 120\nwindow_name = "code"\n'
        )
        cfg = load_config(toml_path)
        assert cfg.ai.provider is AIProvider.NATIVE_OLLAMA
        assert cfg.ai.model == "llama3.2"
        assert cfg.pipeline.interval_seconds == 120
        assert cfg.pipeline.window_name == "code"

    def test_load_missing_path_returns_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nonexistent.toml")
        assert cfg.ai.model == "gpt-4o"

    def test_load_searches_cwd(self, tmp_path):
        (tmp_path / ".daylog.toml").write_text('[storage]\ndirectory = "/custom/data"\n')
        with patch("daylog.config.CONFIG_SEARCH_PATHS", [tmp_path]):
            cfg = load_config()
        assert cfg.storage.directory == "/custom/data"

    def test_global_config_used_when_no_local(self, tmp_path, monkeypatch):
        global_path = tmp_path / "config.toml"
        global_path.write_text('[ai]\nmodel = "gpt-4o-mini"\n')
        monkeypatch.setattr("daylog.config.GLOBAL_CONFIG_PATH", global_path)
        with patch("daylog.config.CONFIG_SEARCH_PATHS", []):
            cfg = load_config()
        assert cfg.ai.model == "gpt-4o-mini"

    def test_invalid_toml_returns_defaults(self, tmp_path):
        toml_path = tmp_path / ".daylog.toml"
        toml_path.write_text("this is not valid toml {{{")
        assert load_config(toml_path).ai.model == "gpt-4o"

    def test_invalid_value_raises(self, tmp_path):
        toml_path = tmp_path / ".daylog.toml"
        toml_path.write_text('[ai]\nprovider = "carrier-pigeon"\n')
        with pytest.raises(ConfigurationError):
            load_config(toml_path)


class TestEnvVarOverrides:
    def test_env_beats_toml(self, tmp_path, monkeypatch):
        toml_path = tmp_path / ".daylog.toml"
        toml_path.write_text('[ai]\nmodel = "from-toml"\n')
        monkeypatch.setenv("DAYLOG_AI_MODEL", "from-env")
        assert load_config(toml_path).ai.model == "from-env"

    def test_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("SCREENPIPE_USER_TOKEN", "tok")
        monkeypatch.setenv("DAYLOG_EMAIL_ADDRESS", "me@example.com")
        monkeypatch.setenv("DAYLOG_EMAIL_PASSWORD", "secret")
        with patch("daylog.config.CONFIG_SEARCH_PATHS", []):
            cfg = load_config()
        assert cfg.ai.user_token == "tok"
        assert cfg.pipeline.email_enabled is True

    def test_interval_env(self, monkeypatch):
        monkeypatch.setenv("DAYLOG_INTERVAL", "900")
        with patch("daylog.config.CONFIG_SEARCH_PATHS", []):
            assert load_config().pipeline.interval_seconds == 900

    def test_bad_interval_env(self, monkeypatch):
        monkeypatch.setenv("DAYLOG_INTERVAL", "often")
        with patch("daylog.config.CONFIG_SEARCH_PATHS", []):
            with pytest.raises(ConfigurationError, match="DAYLOG_INTERVAL"):
                load_config()

    def test_failure_policy_env(self, monkeypatch):
        monkeypatch.setenv("DAYLOG_CHANNEL_FAILURE_POLICY", "isolated")
        with patch("daylog.config.CONFIG_SEARCH_PATHS", []):
            cfg = load_config()
        assert cfg.pipeline.channel_failure_policy is ChannelFailurePolicy.ISOLATED


class TestMergeCliOverrides:
    def test_override_storage(self):
        merged = merge_cli_overrides(DaylogConfig(), storage_directory="/cli/data")
        assert merged.storage.directory == "/cli/data"

    def test_override_server(self):
        merged = merge_cli_overrides(DaylogConfig(), host="0.0.0.0", port=9000)
        assert merged.server.host == "0.0.0.0"
        assert merged.server.port == 9000

    def test_none_values_ignored(self):
        merged = merge_cli_overrides(DaylogConfig(), interval=None, model=None)
        assert merged.pipeline.interval is None
        assert merged.ai.model == "gpt-4o"

    def test_unknown_keys_ignored(self):
        merged = merge_cli_overrides(DaylogConfig(), colour="blue")
        assert merged == DaylogConfig()

    def test_invalid_override_raises(self):
        with pytest.raises(ConfigurationError):
            merge_cli_overrides(DaylogConfig(), channel_failure_policy="sometimes")
