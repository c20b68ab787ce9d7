"""Tests for configuration management."""

import os

import pytest

from thirteenf.utils.config import (
    AppConfig,
    Environment,
    Settings,
    get_absolute_path,
    get_project_root,
)


class TestProjectRoot:
    def test_project_root_has_config_and_package(self):
        root = get_project_root()
        assert (root / "config").is_dir()
        assert (root / "thirteenf").is_dir()

    def test_absolute_path_passthrough(self, tmp_path):
        assert get_absolute_path(str(tmp_path)) == tmp_path

    def test_relative_path_resolved_from_root(self):
        assert get_absolute_path("data/x.json") == get_project_root() / "data" / "x.json"


class TestSettings:
    """Tests for typed defaults."""

    def test_defaults(self):
        settings = Settings()

        assert settings.sec_api.rate_limit_per_second == 4.0
        assert settings.discovery.max_empty_batches == 3
        assert settings.pipeline.value_scale_change_date == "2023-01-03"
        assert settings.resolution.mapping_batch_size == 10
        assert settings.enrichment.batch_size == 50
        assert len(settings.pipeline.target_companies) == 6

    def test_target_companies_from_dict(self):
        settings = Settings(pipeline={"target_companies": [{"cik": "0000000001", "name": "X"}]})
        assert settings.pipeline.target_companies[0].cik == "0000000001"


class TestAppConfig:
    """Tests for AppConfig loading and overlays."""

    def test_test_environment_overlay(self):
        config = AppConfig(env="test")

        assert config.environment == Environment.TEST
        assert config.settings.storage.database_path == ":memory:"
        assert config.settings.resolution.ai_enabled is False
        assert str(config.database_path) == ":memory:"

    def test_base_values_survive_overlay(self):
        config = AppConfig(env="test")

        assert config.settings.resolution.mapping_batch_size == 10
        assert config.get("sec_api.submissions_url") == "https://data.sec.gov/submissions"

    def test_unknown_environment_falls_back(self):
        assert AppConfig(env="nonsense").environment == Environment.DEVELOPMENT

    def test_dot_notation_default(self):
        config = AppConfig(env="test")
        assert config.get("storage.missing", "fallback") == "fallback"

    def test_user_agent_from_environment(self):
        config = AppConfig(env="test")
        assert config.settings.sec_api.user_agent == os.environ["SEC_API_USER_AGENT"]

    def test_db_path_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("THIRTEENF_DB_PATH", str(tmp_path / "x.duckdb"))

        config = AppConfig(env="test")

        assert config.database_path == tmp_path / "x.duckdb"

    def test_deep_merge(self):
        config = AppConfig(env="test")
        base = {"a": {"b": 1, "c": 2}, "d": 1}

        config._deep_merge(base, {"a": {"c": 3}, "e": 4})

        assert base == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}

    def test_api_keys_status(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("FINANCIAL_DATASETS_API_KEY", raising=False)
        monkeypatch.delenv("OPENFIGI_API_KEY", raising=False)

        status = AppConfig(env="test").get_api_keys_status()

        assert status["openai"] is True
        assert status["openfigi"] is False
        assert "sk-test" not in str(status)

    def test_validate_ok(self):
        assert AppConfig(env="test").validate() == []

    @pytest.mark.parametrize("overrides,message", [
        ({"sec_api": {"rate_limit_per_second": 20}}, "Invalid SEC rate limit"),
        ({"sec_api": {"user_agent": "no contact"}}, "contact email"),
        ({"pipeline": {"start_year": 2026, "end_year": 2024}}, "Start year"),
    ])
    def test_validate_errors(self, overrides, message):
        config = AppConfig(env="test")
        config._settings = Settings(**overrides)

        errors = config.validate()

        assert any(message in e for e in errors)
