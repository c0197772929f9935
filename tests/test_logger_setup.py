"""
@PURPOSE: 测试日志设置
@OUTLINE:
  - TestFormatters: 格式化器
  - TestSetupLogger: 日志输出
@DEPENDENCIES:
  - 外部: pytest, loguru
  - 内部: testforge.utils.logger_setup
"""

import json

import pytest
from loguru import logger

from testforge.config.settings import LoggingConfig
from testforge.utils.logger_setup import (
    format_detailed,
    format_json,
    get_logger_with_context,
    setup_logger,
)


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    setup_logger()


class TestFormatters:
    """测试格式化器"""

    def test_detailed_includes_context(self):
        template = format_detailed({"extra": {"run_id": "abcdef1234", "step": "teardown"}})

        assert "run=abcdef12" in template
        assert "step=teardown" in template

    def test_detailed_without_context(self):
        assert " [" not in format_detailed({"extra": {}})


class TestSetupLogger:
    """测试日志输出"""

    def test_json_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        config = LoggingConfig(format="json", output=["file"], file_path=str(log_file))

        setup_logger(config, force=True)
        get_logger_with_context(run_id="r1", step="setup_browser").info("启动 {浏览器}")
        logger.complete()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "启动 {浏览器}"
        assert entry["level"] == "INFO"
        assert entry["context"] == {"run_id": "r1", "step": "setup_browser"}

    def test_level_filter(self, tmp_path):
        log_file = tmp_path / "run.log"
        config = LoggingConfig(
            level="WARNING", format="simple", output=["file"], file_path=str(log_file)
        )

        setup_logger(config, force=True)
        logger.info("hidden")
        logger.warning("visible")
        logger.complete()

        content = log_file.read_text(encoding="utf-8")
        assert "visible" in content
        assert "hidden" not in content
