"""
@PURPOSE: Pytest 配置和通用 fixtures
@OUTLINE:
  - pytest_configure(): 注册标记
  - mock_data_manager / mock_browser_manager: 协作者 Mock
  - title_check: 截图写入临时目录的默认检查
  - make_orchestrator: 组装编排器的工厂
@DEPENDENCIES:
  - 外部: pytest
  - 内部: testforge.core, tests.mocks
"""

from __future__ import annotations

import pytest

from testforge.core.orchestrator import TestOrchestrator
from testforge.core.workflow_graph import TitleCheck
from tests.mocks import MockBrowserManager, MockDataManager


def pytest_configure(config):
    """配置pytest."""
    config.addinivalue_line("markers", "integration: 标记集成测试（需要浏览器环境）")
    config.addinivalue_line("markers", "slow: 标记慢速测试")


@pytest.fixture
def mock_data_manager():
    return MockDataManager()


@pytest.fixture
def mock_browser_manager():
    return MockBrowserManager()


@pytest.fixture
def title_check(tmp_path):
    """期望标题包含 Example 的默认检查."""
    return TitleCheck(expected_title="Example", screenshot_path=tmp_path / "screenshot.png")


@pytest.fixture
def make_orchestrator(mock_data_manager, mock_browser_manager, title_check):
    """编排器工厂, 未指定的协作者使用默认 Mock."""

    def _make(data_manager=None, browser_manager=None, check=None, **kwargs):
        return TestOrchestrator(
            data_manager=data_manager or mock_data_manager,
            browser_manager=browser_manager or mock_browser_manager,
            check=check or title_check,
            **kwargs,
        )

    return _make
