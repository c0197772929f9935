"""
@PURPOSE: 测试配置加载
@OUTLINE:
  - TestEnvironmentConfig: YAML 环境配置与别名
  - TestSettings: Settings 主类
@DEPENDENCIES:
  - 外部: pytest, pydantic
  - 内部: testforge.config.settings
"""

import importlib

import pytest
from pydantic import ValidationError

from testforge.config.settings import (
    McpConfig,
    Settings,
    TestRunConfig,
    create_settings,
    load_environment_config,
)

# testforge.config 导出的 settings 是实例, 需要按模块名取模块
settings_module = importlib.import_module("testforge.config.settings")


class TestEnvironmentConfig:
    """测试环境配置"""

    @pytest.mark.parametrize("env", ["development", "staging", "production"])
    def test_bundled_environments_load(self, env):
        assert isinstance(load_environment_config(env), dict)

    def test_missing_environment(self):
        with pytest.raises(FileNotFoundError):
            load_environment_config("qa")

    def test_alias_and_cycle(self, tmp_path, monkeypatch):
        (tmp_path / "environments").mkdir()
        (tmp_path / "environments" / "base.yaml").write_text("browser:\n  headless: false\n")
        (tmp_path / "environments" / "alias.yaml").write_text("base\n")
        (tmp_path / "environments" / "loop_a.yaml").write_text("loop_b\n")
        (tmp_path / "environments" / "loop_b.yaml").write_text("loop_a.yaml\n")
        monkeypatch.setattr(settings_module, "__file__", str(tmp_path / "settings.py"))

        assert load_environment_config("alias") == {"browser": {"headless": False}}
        with pytest.raises(ValueError, match="循环引用"):
            load_environment_config("loop_a")

    def test_create_settings_applies_yaml(self):
        development = create_settings("development")

        assert development.environment == "development"
        assert development.browser.headless is False
        assert development.test_run.base_url == "http://localhost:3000"
        assert development.logging.level == "DEBUG"


class TestSettings:
    """测试 Settings"""

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_is_production(self):
        assert Settings(environment="production").is_production is True
        assert Settings(environment="staging").is_production is False

    def test_get_url(self):
        config = Settings(test_run=TestRunConfig(base_url="https://example.com/"))

        assert config.get_url("/login") == "https://example.com/login"
        assert config.get_url("login") == "https://example.com/login"

    def test_get_api_url(self):
        local = Settings(test_run=TestRunConfig(base_url="http://localhost:3000"))
        remote = Settings(test_run=TestRunConfig(base_url="https://example.com"))

        assert local.get_api_url("/users") == "http://localhost:3000/api/users"
        assert remote.get_api_url("users") == "https://example.com/api/users"

    def test_to_dict_masks_secret(self):
        config = Settings(mcp=McpConfig(client_secret="s3cret"))

        assert config.to_dict()["mcp"]["client_secret"] == "***"

    def test_ensure_directories(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = create_settings("staging")

        config.ensure_directories()

        assert (tmp_path / "test-results").is_dir()
        assert (tmp_path / "test-results" / "videos").is_dir()
        assert (tmp_path / "test-results" / "logs").is_dir()
